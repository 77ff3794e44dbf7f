"""Tests for the VMD writer, read back through validate_vmd."""

import numpy as np
import pytest

from facevmd.motion_document import MotionDocument
from facevmd.vmd_codec import (
    BONE_RECORD_SIZE,
    DEFAULT_INTERPOLATION,
    MORPH_RECORD_SIZE,
    encode_document,
    encode_text,
    write_vmd,
)
from validate_vmd import read_vmd, validate_vmd


HEADER_SIZE = 50


def sample_document():
    document = MotionDocument()
    head = document.rotation_channel("頭")
    head.append(0, [0.0, 0.0, 0.0, 1.0])
    head.append(5, [0.0, np.sin(0.25), 0.0, np.cos(0.25)])
    document.position_channel("センター").append(0, [0.5, -0.25, 1.0])
    blink = document.morph_channel("まばたき")
    blink.append(0, 0.0)
    blink.append(3, 1.0)
    blink.append(9, 0.25)
    return document


class TestEncodeText:

    def test_ascii_is_nul_padded(self):
        assert encode_text("Head", 15) == b"Head" + b"\0" * 11

    def test_japanese_uses_cp932(self):
        assert encode_text("頭", 15) == "頭".encode("cp932") + b"\0" * 13

    def test_unsupported_character_is_substituted(self):
        assert encode_text("a\U0001F600b", 15) == b"a?b" + b"\0" * 12

    def test_long_text_cut_at_character_boundary(self):
        # eight double-byte characters need 16 bytes; only seven fit
        field = encode_text("あいうえおかきく", 15)
        assert len(field) == 15
        assert field == "あいうえおかき".encode("cp932") + b"\0"

    def test_exact_fit_has_no_padding(self):
        assert encode_text("x" * 15, 15) == b"x" * 15


class TestLayout:

    def test_record_sizes(self):
        assert BONE_RECORD_SIZE == 111
        assert MORPH_RECORD_SIZE == 23
        assert len(DEFAULT_INTERPOLATION) == 64

    def test_empty_document(self):
        data = encode_document(MotionDocument())
        assert len(data) == HEADER_SIZE + 4 + 4 + 12
        assert data[:25] == b"Vocaloid Motion Data 0002"
        assert data[30:41] == b"dummy model"
        assert data[HEADER_SIZE:] == b"\0" * 20

    def test_total_length(self):
        data = encode_document(sample_document())
        assert len(data) == HEADER_SIZE + 4 + 3 * BONE_RECORD_SIZE + 4 + 3 * MORPH_RECORD_SIZE + 12


class TestReadBack:

    def test_round_trip(self):
        vmd = read_vmd(encode_document(sample_document()))

        assert vmd['version'] == "Vocaloid Motion Data 0002"
        assert vmd['model_name'] == "dummy model"
        assert vmd['trailing_bytes'] == 12

        head = [b for b in vmd['bones'] if b['name'] == "頭"]
        assert [b['frame'] for b in head] == [0, 5]
        assert head[0]['position'] == (0.0, 0.0, 0.0)
        np.testing.assert_allclose(head[1]['rotation'], [0.0, np.sin(0.25), 0.0, np.cos(0.25)], rtol=1e-6)
        assert head[1]['interpolation'] == DEFAULT_INTERPOLATION

        center = [b for b in vmd['bones'] if b['name'] == "センター"]
        assert len(center) == 1
        np.testing.assert_allclose(center[0]['position'], [0.5, -0.25, 1.0])
        assert center[0]['rotation'] == (0.0, 0.0, 0.0, 1.0)

        assert [(m['frame'], m['weight']) for m in vmd['morphs']] == [(0, 0.0), (3, 1.0), (9, 0.25)]
        assert {m['name'] for m in vmd['morphs']} == {"まばたき"}

    def test_write_and_validate(self, tmp_path):
        path = tmp_path / "face.vmd"
        n_bytes = write_vmd(sample_document(), str(path))

        assert path.stat().st_size == n_bytes
        assert validate_vmd(str(path))

    def test_validator_rejects_truncated_file(self, tmp_path):
        path = tmp_path / "broken.vmd"
        path.write_bytes(encode_document(sample_document())[:120])
        assert not validate_vmd(str(path))

    def test_unwritable_path_raises(self, tmp_path):
        with pytest.raises(OSError):
            write_vmd(sample_document(), str(tmp_path / "no_such_dir" / "face.vmd"))
