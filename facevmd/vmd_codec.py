#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
VMD (Vocaloid Motion Data) writer

Layout (all integers/floats little-endian):

    header      char[30] version, char[20] model name
    bone block  uint32 count, count x {char[15] name, uint32 frame,
                float32[3] position, float32[4] rotation xyzw, uint8[64] interpolation}
    morph block uint32 count, count x {char[15] name, uint32 frame, float32 weight}
    camera, light and self-shadow blocks, written empty (uint32 0 each)

Text fields are Shift_JIS (cp932) and NUL padded. The container does not
order records across channels; records of one channel stay in frame order.
"""

import struct
from typing import Iterator, Tuple

from loguru import logger

from facevmd.motion_document import POSITION, ROTATION, Channel, MotionDocument


TEXT_ENCODING = 'cp932'
SUBSTITUTE_CHAR = '?'

VERSION_LEN = 30
MODEL_NAME_LEN = 20
BONE_NAME_LEN = 15
MORPH_NAME_LEN = 15

COUNT = struct.Struct('<I')
BONE_BODY = struct.Struct('<I3f4f')
MORPH_BODY = struct.Struct('<If')

# MMD's linear interpolation curve for X, Y, Z and rotation
DEFAULT_INTERPOLATION = bytes([
    20, 20, 0, 0, 20, 20, 20, 20, 107, 107, 107, 107, 107, 107, 107, 107,
    20, 20, 20, 20, 20, 20, 20, 107, 107, 107, 107, 107, 107, 107, 107, 0,
    20, 20, 20, 20, 20, 20, 107, 107, 107, 107, 107, 107, 107, 107, 0, 0,
    20, 20, 20, 20, 20, 107, 107, 107, 107, 107, 107, 107, 107, 0, 0, 0,
])

BONE_RECORD_SIZE = BONE_NAME_LEN + BONE_BODY.size + len(DEFAULT_INTERPOLATION)
MORPH_RECORD_SIZE = MORPH_NAME_LEN + MORPH_BODY.size

ZERO_POSITION = (0.0, 0.0, 0.0)
IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)


def encode_text(text: str, width: int) -> bytes:
    """
    Encode text into a fixed-width, NUL padded cp932 field.

    Characters cp932 cannot represent become '?'. Text longer than the field
    is cut at the last whole character that fits.
    """
    encoded = bytearray()
    for char in text:
        try:
            chunk = char.encode(TEXT_ENCODING)
        except UnicodeEncodeError:
            chunk = SUBSTITUTE_CHAR.encode(TEXT_ENCODING)
            logger.warning(f"{char!r} in {text!r} has no {TEXT_ENCODING} encoding; written as {SUBSTITUTE_CHAR!r}")
        if len(encoded) + len(chunk) > width:
            logger.warning(f"{text!r} does not fit in {width} bytes; truncated to {encoded.decode(TEXT_ENCODING)!r}")
            break
        encoded += chunk
    return bytes(encoded).ljust(width, b'\0')


def bone_records(channel: Channel) -> Iterator[Tuple[int, Tuple[float, ...], Tuple[float, ...]]]:
    """(frame, position, rotation) for each sample of a bone channel."""
    for frame, value in zip(channel.frames, channel.values):
        if channel.kind == ROTATION:
            yield int(frame), ZERO_POSITION, tuple(value)
        elif channel.kind == POSITION:
            yield int(frame), tuple(value), IDENTITY_ROTATION
        else:
            raise ValueError(f"{channel.name}: {channel.kind} channel in the bone block")


def encode_header(document: MotionDocument) -> bytes:
    return encode_text(document.version, VERSION_LEN) + encode_text(document.model_name, MODEL_NAME_LEN)


def encode_bones(document: MotionDocument) -> bytes:
    records = []
    for channel in document.bone_channels:
        name = encode_text(channel.name, BONE_NAME_LEN)
        for frame, position, rotation in bone_records(channel):
            records.append(name + BONE_BODY.pack(frame, *position, *rotation) + DEFAULT_INTERPOLATION)
    return COUNT.pack(len(records)) + b''.join(records)


def encode_morphs(document: MotionDocument) -> bytes:
    records = []
    for channel in document.morph_channels:
        name = encode_text(channel.name, MORPH_NAME_LEN)
        for frame, weight in zip(channel.frames, channel.values[:, 0]):
            records.append(name + MORPH_BODY.pack(int(frame), float(weight)))
    return COUNT.pack(len(records)) + b''.join(records)


def encode_document(document: MotionDocument) -> bytes:
    """Serialize the whole document into VMD bytes."""
    empty_blocks = COUNT.pack(0) * 3  # camera, light, self shadow
    return encode_header(document) + encode_bones(document) + encode_morphs(document) + empty_blocks


def write_vmd(document: MotionDocument, path: str) -> int:
    """
    Write the document to path.

    Raises OSError when the path cannot be written; a failed write may leave
    a partial file behind.

    Returns:
        Number of bytes written
    """
    data = encode_document(document)
    with open(path, 'wb') as f:
        f.write(data)
    n_bones = sum(len(c) for c in document.bone_channels)
    n_morphs = sum(len(c) for c in document.morph_channels)
    logger.info(f"Wrote {path}: {n_bones} bone keys, {n_morphs} morph keys, {len(data)} bytes")
    return len(data)
