"""Tests for the Expression Refiner exclusion rules."""

import numpy as np
import pytest

from facevmd.channel_mapper import MORPH_BLINK, MORPH_BROW_WORRY, MORPH_CHEEK_RAISER, MORPH_SMILE
from facevmd.expression_refiner import ExclusionRule, apply_rule, refine_expressions
from facevmd.motion_document import MorphChannel, MotionDocument


def document_with(**morphs):
    document = MotionDocument()
    for name, (frames, weights) in morphs.items():
        document.morph_channels.append(MorphChannel(name, frames, weights))
    return document


RULE = ExclusionRule('a-vs-b', 'A', 'B')


class TestApplyRule:

    def test_smaller_weight_is_zeroed(self):
        document = document_with(A=([0, 1], [0.9, 0.6]), B=([0, 1], [0.7, 0.8]))
        assert apply_rule(document, RULE) == 2

        np.testing.assert_allclose(document.get_morph('A').weights, [0.9, 0.0])
        np.testing.assert_allclose(document.get_morph('B').weights, [0.0, 0.8])

    def test_below_threshold_is_untouched(self):
        document = document_with(A=([0, 1], [0.49, 0.9]), B=([0, 1], [0.9, 0.3]))
        assert apply_rule(document, RULE) == 0
        np.testing.assert_allclose(document.get_morph('A').weights, [0.49, 0.9])
        np.testing.assert_allclose(document.get_morph('B').weights, [0.9, 0.3])

    def test_threshold_is_inclusive(self):
        document = document_with(A=([0], [0.5]), B=([0], [0.6]))
        assert apply_rule(document, RULE) == 1
        assert document.get_morph('A').weights[0] == 0.0

    def test_tie_zeroes_second(self):
        document = document_with(A=([0], [0.7]), B=([0], [0.7]))
        apply_rule(document, RULE)
        assert document.get_morph('A').weights[0] == pytest.approx(0.7)
        assert document.get_morph('B').weights[0] == 0.0

    def test_keyframes_that_do_not_line_up(self):
        document = document_with(A=([0, 30], [1.0, 1.0]), B=([5, 25], [0.8, 0.8]))
        assert apply_rule(document, RULE) == 2
        np.testing.assert_allclose(document.get_morph('A').weights, [1.0, 1.0])
        np.testing.assert_allclose(document.get_morph('B').weights, [0.0, 0.0])
        np.testing.assert_array_equal(document.get_morph('B').frames, [5, 25])

    def test_other_curve_is_interpolated(self):
        # A falls from 0.9 to 0.0: still high at frame 2 (0.72), low at frame 8 (0.18)
        document = document_with(A=([0, 10], [0.9, 0.0]), B=([2, 8], [0.6, 0.6]))
        assert apply_rule(document, RULE) == 1
        np.testing.assert_allclose(document.get_morph('A').weights, [0.9, 0.0])
        np.testing.assert_allclose(document.get_morph('B').weights, [0.0, 0.6])

    def test_missing_channel_skips_rule(self):
        document = document_with(A=([0], [0.9]))
        assert apply_rule(document, RULE) == 0
        assert document.get_morph('A').weights[0] == pytest.approx(0.9)

    def test_custom_threshold(self):
        rule = ExclusionRule('loose', 'A', 'B', threshold=0.2)
        document = document_with(A=([0], [0.3]), B=([0], [0.25]))
        assert apply_rule(document, rule) == 1
        assert document.get_morph('B').weights[0] == 0.0


class TestDefaultRules:

    def test_blink_beats_weaker_cheek_and_smile(self):
        document = document_with(**{
            MORPH_BLINK: ([0, 1], [1.0, 0.1]),
            MORPH_CHEEK_RAISER: ([0, 1], [0.6, 0.6]),
            MORPH_SMILE: ([0, 1], [0.8, 0.8]),
        })
        counts = refine_expressions(document)

        assert counts == [1, 1, 0]
        np.testing.assert_allclose(document.get_morph(MORPH_CHEEK_RAISER).weights, [0.0, 0.6])
        np.testing.assert_allclose(document.get_morph(MORPH_SMILE).weights, [0.0, 0.8])
        np.testing.assert_allclose(document.get_morph(MORPH_BLINK).weights, [1.0, 0.1])

    def test_strong_smile_closes_no_eyes(self):
        document = document_with(**{
            MORPH_BLINK: ([0], [0.6]),
            MORPH_SMILE: ([0], [0.9]),
        })
        refine_expressions(document)
        assert document.get_morph(MORPH_BLINK).weights[0] == 0.0
        assert document.get_morph(MORPH_SMILE).weights[0] == pytest.approx(0.9)

    def test_brow_rule_needs_both_channels(self):
        document = document_with(**{MORPH_BROW_WORRY: ([0], [0.9])})
        assert refine_expressions(document) == [0, 0, 0]

    def test_rules_apply_in_order(self):
        # blink is zeroed by the cheek rule, so the smile rule no longer sees a conflict
        document = document_with(**{
            MORPH_BLINK: ([0], [0.6]),
            MORPH_CHEEK_RAISER: ([0], [0.7]),
            MORPH_SMILE: ([0], [0.55]),
        })
        assert refine_expressions(document) == [1, 0, 0]
        assert document.get_morph(MORPH_SMILE).weights[0] == pytest.approx(0.55)
