#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Channel Mapper

Turns one frame of facial measurements into one sample on each animation
channel: head rotation, center position, eye rotations (when gaze is known)
and the fixed list of MMD expression morphs.
"""

import numpy as np
from scipy.spatial.transform import Rotation as R, Slerp

from facevmd.measurements import ActionUnit, ActionUnitVector, MeasurementFrame
from facevmd.motion_document import MotionDocument
from facevmd.rotation_utils import rotation_between_vectors


# Bone names of the standard MMD skeleton
HEAD_BONE = "頭"
CENTER_BONE = "センター"
LEFT_EYE_BONE = "左目"
RIGHT_EYE_BONE = "右目"

# Morph names
MORPH_A = "あ"
MORPH_I = "い"
MORPH_U = "う"
MORPH_SMILE = "にやり"
MORPH_FROWN = "∧"
MORPH_BLINK = "まばたき"
MORPH_CHEEK_RAISER = "CheekRaiser"
MORPH_SURPRISE = "びっくり"
MORPH_BROW_WORRY = "困る"
MORPH_BROW_SERIOUS = "真面目"
MORPH_ANGER = "怒り"
MORPH_BROW_DOWN = "下"
MORPH_BROW_UP = "上"
MORPH_BROW_CONTENT = "にこり"

# Head position calibration
CALIBRATION_DEPTH_MM = 1000.0
MM_TO_MMD_UNITS = 12.5 / 1000.0 / 2.0  # 1 m = 12.5 MMD units, scaled by 1/2

GAZE_DAMPING = 0.25
HEAD_FORWARD = np.array([0.0, 0.0, -1.0])

MOUTH_SUPPRESS_EPS = 0.1
BLINK_OVERRIDE = 0.2

# morph name -> AU passed through unchanged
PASS_THROUGH_MORPHS = (
    (MORPH_SMILE, ActionUnit.LipCornerPuller),
    (MORPH_FROWN, ActionUnit.LipCornerDepressor),
    (MORPH_CHEEK_RAISER, ActionUnit.CheekRaiser),
    (MORPH_SURPRISE, ActionUnit.UpperLidRaiser),
    (MORPH_BROW_WORRY, ActionUnit.InnerBrowRaiser),
    (MORPH_BROW_SERIOUS, ActionUnit.OuterBrowRaiser),
    (MORPH_ANGER, ActionUnit.NoseWrinkler),
    (MORPH_BROW_DOWN, ActionUnit.BrowLowerer),
    (MORPH_BROW_UP, ActionUnit.UpperLidRaiser),
)


def head_rotation(pitch: float, yaw: float, roll: float) -> R:
    """Camera-space head angles to a model-space rotation (pitch and roll inverted)."""
    return R.from_euler('XYZ', [-pitch, yaw, -roll])


def center_position(head_position: np.ndarray) -> np.ndarray:
    """Camera-space head position (mm) to a center bone offset in MMD units."""
    x, y, z = np.asarray(head_position, dtype=np.float64)
    return np.array([x, -y, z - CALIBRATION_DEPTH_MM]) * MM_TO_MMD_UNITS


def gaze_rotation(gaze: np.ndarray, head_rot: R, damping: float = GAZE_DAMPING) -> np.ndarray:
    """
    Eye rotation quaternion for one gaze direction.

    The vertical axis of the gaze vector is flipped into model space, the
    minimal rotation from the head's forward direction is taken, then damped
    toward identity to keep the eyes from over-rotating.
    """
    gaze = np.asarray(gaze, dtype=np.float64)
    direction = np.array([gaze[0], -gaze[1], gaze[2]])
    front = head_rot.apply(HEAD_FORWARD)
    rot = rotation_between_vectors(front, direction)
    return Slerp([0.0, 1.0], R.concatenate([R.identity(), rot]))(damping).as_quat()


def expression_weights(au: ActionUnitVector) -> dict:
    """
    Morph weights for one frame, before clamping.

    The "i" mouth shape is only read when neither "a" nor "u" is open, since
    lip part fires for every open mouth.
    """
    mouth_a = au[ActionUnit.JawDrop] * 2
    mouth_u = au[ActionUnit.LipTightener] * 2
    mouth_i = 0.0
    if mouth_a < MOUTH_SUPPRESS_EPS and mouth_u < MOUTH_SUPPRESS_EPS:
        mouth_i = au[ActionUnit.LipPart] * 2

    blink = au[ActionUnit.LidTightener]
    if au[ActionUnit.Blink] > BLINK_OVERRIDE:
        blink = 1.0

    weights = {
        MORPH_A: mouth_a,
        MORPH_I: mouth_i,
        MORPH_U: mouth_u,
        MORPH_BLINK: blink,
    }
    for name, au_id in PASS_THROUGH_MORPHS:
        weights[name] = au[au_id]
    return weights


def map_frame(document: MotionDocument, frame: MeasurementFrame) -> None:
    """Append this frame's samples to the document's channels."""
    index = frame.frame_index
    pitch, yaw, roll = frame.head_rotation

    head_rot = head_rotation(pitch, yaw, roll)
    document.rotation_channel(HEAD_BONE).append(index, head_rot.as_quat())
    document.position_channel(CENTER_BONE).append(index, center_position(frame.head_position))

    if frame.has_gaze:
        rot_left = gaze_rotation(frame.gaze_left, head_rot)
        rot_right = gaze_rotation(frame.gaze_right, head_rot)
        # Left gaze drives 右目 and right gaze drives 左目
        document.rotation_channel(LEFT_EYE_BONE).append(index, rot_right)
        document.rotation_channel(RIGHT_EYE_BONE).append(index, rot_left)

    for name, weight in expression_weights(frame.action_units).items():
        document.morph_channel(name).append(index, weight)
