#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Expression Refiner

Some MMD morphs cannot both be visibly active: a closed eye and a smiling
eye share the same lids, worried and content brows pull the same muscles.
The mapper cannot resolve these per frame (it does not see the final,
filtered curves), so a small rule table is applied once to the finished
morph set.

Channels are compared through their interpolated curves, since reduced
channels rarely keep the same keyframes. Only existing keyframes are
attenuated; no keyframe is added.

The brow rule pairs 困る with にこり. The stock mapper does not emit にこり,
so that rule only applies when an upstream step adds the channel.
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from loguru import logger

from facevmd.channel_mapper import MORPH_BLINK, MORPH_BROW_CONTENT, MORPH_BROW_WORRY, MORPH_CHEEK_RAISER, MORPH_SMILE
from facevmd.motion_document import MorphChannel, MotionDocument


@dataclass(frozen=True)
class ExclusionRule:
    """
    When first and second are both at or above threshold on the same frame,
    the smaller of the two is set to zero.
    """
    tag: str
    first: str
    second: str
    threshold: float = 0.5


DEFAULT_RULES = (
    ExclusionRule('blink-vs-cheek', MORPH_BLINK, MORPH_CHEEK_RAISER),
    ExclusionRule('blink-vs-smile', MORPH_BLINK, MORPH_SMILE),
    ExclusionRule('brow-worry-vs-content', MORPH_BROW_WORRY, MORPH_BROW_CONTENT),
)


def weights_at(channel: MorphChannel, frames: np.ndarray) -> np.ndarray:
    """Channel weight at arbitrary frames; the end keys hold outside the keyed span."""
    return np.interp(frames, channel.frames, channel.weights)


def apply_rule(document: MotionDocument, rule: ExclusionRule) -> int:
    """
    Apply one rule at every keyframe of either channel.

    Returns:
        Number of keyframes zeroed
    """
    first = document.get_morph(rule.first)
    second = document.get_morph(rule.second)
    if first is None or second is None or len(first) == 0 or len(second) == 0:
        return 0

    w_first = first.weights.copy()
    w_second = second.weights.copy()
    other_at_first = weights_at(second, first.frames)
    other_at_second = weights_at(first, second.frames)

    # Ties go against the second channel
    drop_first = (w_first >= rule.threshold) & (other_at_first >= rule.threshold) & (w_first < other_at_first)
    drop_second = (w_second >= rule.threshold) & (other_at_second >= rule.threshold) & (w_second <= other_at_second)

    first.values[drop_first, 0] = 0.0
    second.values[drop_second, 0] = 0.0
    return int(np.count_nonzero(drop_first) + np.count_nonzero(drop_second))


def refine_expressions(document: MotionDocument, rules: Sequence[ExclusionRule] = DEFAULT_RULES) -> List[int]:
    """Apply every rule in table order; returns the zeroed keyframe count per rule."""
    adjusted = []
    for rule in rules:
        count = apply_rule(document, rule)
        if count:
            logger.info(f"  {rule.tag}: zeroed {count} conflicting keyframes")
        adjusted.append(count)
    return adjusted
