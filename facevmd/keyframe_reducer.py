#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Keyframe Reducer

Thins a dense, resampled channel down to the keyframes MMD actually needs.
A sample is dropped when interpolating between its kept neighbours
reproduces every dropped sample to within the channel kind's threshold:

    position: Euclidean distance (MMD units)
    rotation: rotation angle (degrees)
    morph:    absolute weight difference

The sweep runs forward with a "last kept" anchor and grows the segment one
sample at a time; when the segment anchor -> j stops fitting, j - 1 is kept
and becomes the next anchor.
"""

from typing import Dict, List

import numpy as np
from loguru import logger
from scipy.spatial.transform import Rotation as R, Slerp

from facevmd.motion_document import MORPH, POSITION, ROTATION, Channel, MotionDocument
from facevmd.rotation_utils import quaternion_angle_deg


def segment_deviation(channel: Channel, start: int, end: int) -> np.ndarray:
    """
    Deviation of every sample strictly between start and end from the
    interpolation of the two end samples.

    Args:
        channel: channel holding the dense curve
        start, end: sample indices of the segment ends (end > start + 1)

    Returns:
        (end - start - 1,) deviations in the channel kind's unit
    """
    frames = channel.frames
    values = channel.values
    inner = slice(start + 1, end)

    if channel.kind == ROTATION:
        key_times = [frames[start], frames[end]]
        slerp = Slerp(key_times, R.from_quat(values[[start, end]]))
        predicted = slerp(frames[inner]).as_quat()
        return quaternion_angle_deg(predicted, values[inner])

    t = (frames[inner] - frames[start]) / float(frames[end] - frames[start])
    predicted = values[start] + t[:, np.newaxis] * (values[end] - values[start])
    if channel.kind == POSITION:
        return np.linalg.norm(values[inner] - predicted, axis=1)
    return np.abs(values[inner, 0] - predicted[:, 0])


def kept_indices(channel: Channel, threshold: float) -> List[int]:
    """Sample indices to keep for one channel."""
    n = len(channel)
    if n <= 2 or not threshold > 0:
        return list(range(n))

    keep = [0]
    anchor = 0
    end = anchor + 2
    while end < n:
        if np.max(segment_deviation(channel, anchor, end)) <= threshold:
            end += 1
            continue
        anchor = end - 1
        keep.append(anchor)
        end = anchor + 2
    keep.append(n - 1)
    return keep


def reduce_channel(channel: Channel, threshold: float) -> Channel:
    """Return a copy of channel holding only the samples kept by the sweep."""
    keep = kept_indices(channel, threshold)
    return channel.replace(channel.frames[keep], channel.values[keep])


def reduce_document(document: MotionDocument, threshold_pos: float, threshold_rot: float,
                    threshold_morph: float) -> Dict[str, Dict[str, int]]:
    """
    Reduce every channel in place with the threshold for its kind.

    Returns:
        Key counts per kind before and after reduction
    """
    thresholds = {POSITION: threshold_pos, ROTATION: threshold_rot, MORPH: threshold_morph}
    before = document.key_counts()

    document.map_channels(lambda channel: reduce_channel(channel, thresholds[channel.kind]))

    after = document.key_counts()
    for kind in (POSITION, ROTATION, MORPH):
        logger.info(f"  {kind}: {before[kind]} -> {after[kind]} keys (threshold {thresholds[kind]})")
    return {'before': before, 'after': after}
