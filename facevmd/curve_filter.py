#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Curve Filter & Resampler

Low-pass filters each channel at the source frame rate and resamples it onto
the fixed VMD frame grid (30 fps by default).

Pipeline Position:
    Channel Mapper → THIS FILTER/RESAMPLER → Keyframe Reducer → Refiner → Renamer → VMD

Tracking drops frames where no face was found, so a channel's source
timeline can have gaps. Gaps are filled by interpolation onto the dense
source grid before filtering, because the Butterworth filter assumes
uniform sampling.
"""

from typing import Tuple

import numpy as np
from loguru import logger
from scipy import signal
from scipy.spatial.transform import Rotation as R, Slerp

from facevmd.motion_document import MORPH, ROTATION, Channel, MotionDocument
from facevmd.rotation_utils import enforce_quaternion_continuity, normalize_quaternions


DEFAULT_TARGET_FPS = 30.0
FILTER_ORDER = 2


def _interpolate(channel: Channel, src_times: np.ndarray, query_times: np.ndarray) -> np.ndarray:
    """Sample a channel's curve at query_times (clamped to the source span)."""
    query_times = np.clip(query_times, src_times[0], src_times[-1])
    values = channel.values

    if len(src_times) == 1:
        return np.repeat(values[:1], len(query_times), axis=0)

    if channel.kind == ROTATION:
        slerp = Slerp(src_times, R.from_quat(values))
        return enforce_quaternion_continuity(slerp(query_times).as_quat())

    out = np.empty((len(query_times), values.shape[1]))
    for dim in range(values.shape[1]):
        out[:, dim] = np.interp(query_times, src_times, values[:, dim])
    return out


def lowpass_filter(values: np.ndarray, cutoff_freq: float, fps: float) -> np.ndarray:
    """
    Zero-phase Butterworth low-pass applied to each column independently.

    Args:
        values: (N, D) uniformly sampled series
        cutoff_freq: cutoff frequency in Hz (<= 0 disables filtering)
        fps: sampling rate of values

    Returns:
        filtered: (N, D) filtered series
    """
    n = len(values)
    if cutoff_freq <= 0 or n < 2:
        return values.copy()

    nyquist = fps / 2.0
    if cutoff_freq >= nyquist:
        logger.warning(f"Cutoff {cutoff_freq} Hz is not below Nyquist ({nyquist} Hz); filtering skipped")
        return values.copy()

    b, a = signal.butter(FILTER_ORDER, cutoff_freq / nyquist, btype='low')
    padlen = min(3 * max(len(a), len(b)), n - 1)

    filtered = np.empty_like(values)
    for dim in range(values.shape[1]):
        filtered[:, dim] = signal.filtfilt(b, a, values[:, dim], padlen=padlen)
    return filtered


def smooth_and_resample(channel: Channel, cutoff_freq: float, source_fps: float,
                        target_fps: float = DEFAULT_TARGET_FPS) -> Channel:
    """
    Filter one channel at the source rate and resample it onto n / target_fps.

    Rotation channels are sign-aligned before filtering and renormalized after,
    then resampled with SLERP; position and morph channels use linear
    interpolation.

    Returns:
        A new channel of the same kind and name.
    """
    if len(channel) == 0:
        return channel.replace(channel.frames, channel.values)

    src_times = channel.frames / source_fps

    # Fill dropped source frames so the filter sees a uniform signal
    dense_frames = np.arange(channel.frames[0], channel.frames[-1] + 1)
    dense_values = _interpolate(channel, src_times, dense_frames / source_fps)

    if channel.kind == ROTATION:
        dense_values = enforce_quaternion_continuity(dense_values)
        dense_values = normalize_quaternions(lowpass_filter(dense_values, cutoff_freq, source_fps))
    else:
        dense_values = lowpass_filter(dense_values, cutoff_freq, source_fps)
    if channel.kind == MORPH:
        # Filter overshoot must not push weights out of [0, 1]
        dense_values = np.clip(dense_values, 0.0, 1.0)

    target_frames, target_times = target_grid(src_times[0], src_times[-1], target_fps)
    dense = channel.replace(dense_frames, dense_values)
    resampled = _interpolate(dense, dense_frames / source_fps, target_times)
    return channel.replace(target_frames, resampled)


def target_grid(t_start: float, t_end: float, target_fps: float) -> Tuple[np.ndarray, np.ndarray]:
    """Target frame numbers covering [t_start, t_end] and their times in seconds."""
    first = int(round(t_start * target_fps))
    last = int(round(t_end * target_fps))
    frames = np.arange(first, last + 1, dtype=np.int64)
    return frames, frames / target_fps


def smooth_document(document: MotionDocument, cutoff_freq: float, source_fps: float,
                    target_fps: float = DEFAULT_TARGET_FPS) -> None:
    """Filter and resample every channel of the document in place."""
    logger.info(f"Smoothing {len(document.bone_channels)} bone and {len(document.morph_channels)} morph channels "
                f"(cutoff {cutoff_freq} Hz, {source_fps} -> {target_fps} fps)")
    document.map_channels(
        lambda channel: smooth_and_resample(channel, cutoff_freq, source_fps, target_fps)
    )
