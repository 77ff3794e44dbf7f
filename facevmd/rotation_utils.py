#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Quaternion helpers shared by the mapper, the curve filter and the reducer.

All quaternions are scalar-last [x, y, z, w], the order used by
scipy.spatial.transform.Rotation and by VMD bone records.
"""

import numpy as np
from scipy.spatial.transform import Rotation as R


IDENTITY_QUAT = np.array([0.0, 0.0, 0.0, 1.0])


def enforce_quaternion_continuity(quats: np.ndarray) -> np.ndarray:
    """
    Enforce shortest-arc continuity between consecutive frames.
    Flip quaternion sign if dot product < 0.

    Args:
        quats: (N, 4) array of quaternions

    Returns:
        continuous_quats: (N, 4), with continuity enforced
    """
    continuous_quats = np.array(quats, dtype=np.float64, copy=True)
    for i in range(1, len(continuous_quats)):
        if np.dot(continuous_quats[i - 1], continuous_quats[i]) < 0:
            continuous_quats[i] = -continuous_quats[i]
    return continuous_quats


def normalize_quaternions(quats: np.ndarray) -> np.ndarray:
    """Renormalize (N, 4) quaternions; degenerate rows become identity."""
    quats = np.asarray(quats, dtype=np.float64)
    norms = np.linalg.norm(quats, axis=-1, keepdims=True)
    out = np.where(norms > 1e-12, quats / np.maximum(norms, 1e-12), IDENTITY_QUAT)
    return out


def quaternion_angle_deg(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """
    Rotation angle in degrees between quaternions (double cover aware).
    Broadcasts over leading dimensions.
    """
    q1 = normalize_quaternions(q1)
    q2 = normalize_quaternions(q2)
    dot = np.abs(np.sum(q1 * q2, axis=-1))
    return np.degrees(2.0 * np.arccos(np.clip(dot, -1.0, 1.0)))


def rotation_between_vectors(src: np.ndarray, dst: np.ndarray) -> R:
    """
    Minimal rotation taking direction src onto direction dst.

    Antiparallel inputs turn 180 degrees about an axis orthogonal to src.
    """
    a = np.asarray(src, dtype=np.float64)
    b = np.asarray(dst, dtype=np.float64)
    a = a / np.linalg.norm(a)
    b = b / np.linalg.norm(b)

    dot = float(np.clip(np.dot(a, b), -1.0, 1.0))
    if dot < -1.0 + 1e-9:
        axis = np.cross(a, [1.0, 0.0, 0.0])
        if np.linalg.norm(axis) < 1e-6:
            axis = np.cross(a, [0.0, 1.0, 0.0])
        axis = axis / np.linalg.norm(axis)
        return R.from_rotvec(axis * np.pi)

    # q = [a x b, 1 + a.b] normalized is the half-angle quaternion
    quat = np.concatenate([np.cross(a, b), [1.0 + dot]])
    return R.from_quat(quat / np.linalg.norm(quat))
