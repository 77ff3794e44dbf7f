#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Measurement stream types

Per-frame facial measurements as delivered by the face tracking front end
(OpenFace style): head pose, action unit intensities and gaze directions.
Recorded streams are stored with joblib so a tracking run can be converted
(and re-converted with other parameters) without touching the video again.
"""

import os
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

import joblib
import numpy as np
from loguru import logger


AU_SIZE = 46  # AU ids run 1..45, slot 0 unused
ACTION_UNIT_MAXVAL = 5.0  # OpenFace regression range is 0..5

_AU_LABEL = re.compile(r'^AU(\d+)(?:_[rc])?$')


class ActionUnit(IntEnum):
    """Action units used by the channel mapper (FACS numbering)."""
    InnerBrowRaiser = 1
    OuterBrowRaiser = 2
    BrowLowerer = 4
    UpperLidRaiser = 5
    CheekRaiser = 6
    LidTightener = 7
    NoseWrinkler = 9
    UpperLipRaiser = 10
    LipCornerPuller = 12
    Dimpler = 14
    LipCornerDepressor = 15
    ChinRaiser = 17
    LipStretcher = 20
    LipTightener = 23
    LipPart = 25
    JawDrop = 26
    LipSuck = 28
    Blink = 45


class InputStreamError(OSError):
    """The measurement stream could not be opened."""


def parse_au_id(key: Union[int, str]) -> Optional[int]:
    """
    Turn an AU report key into a numeric id.

    Accepts ints and textual labels such as "AU26", "AU26_r" or "AU26_c".
    Returns None for anything unparsable or outside 1..45.
    """
    if isinstance(key, (int, np.integer)) and not isinstance(key, bool):
        au_id = int(key)
    elif isinstance(key, str):
        match = _AU_LABEL.match(key.strip())
        if match is None:
            return None
        au_id = int(match.group(1))
    else:
        return None
    if 1 <= au_id < AU_SIZE:
        return au_id
    return None


class ActionUnitVector:
    """
    Dense per-frame AU intensities indexed by AU id.

    A slot holds the reported intensity only when the AU was flagged present
    for the frame; otherwise it is 0.0.
    """

    def __init__(self, values: Optional[np.ndarray] = None):
        if values is None:
            values = np.zeros(AU_SIZE, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (AU_SIZE,):
            raise ValueError(f"ActionUnitVector expects shape ({AU_SIZE},), got {values.shape}")
        self._values = values

    @classmethod
    def from_report(cls, report: Mapping[Union[int, str], Tuple[float, bool]],
                    scale: float = 1.0) -> 'ActionUnitVector':
        """
        Build the vector in a single pass over an id -> (intensity, present) report.

        Args:
            report: AU id or label -> (intensity, presence flag)
            scale: raw intensities are divided by this (ACTION_UNIT_MAXVAL for raw OpenFace output)
        """
        values = np.zeros(AU_SIZE, dtype=np.float64)
        for key, (intensity, present) in report.items():
            au_id = parse_au_id(key)
            if au_id is None:
                continue
            values[au_id] = float(intensity) / scale if present else 0.0
        return cls(values)

    def __getitem__(self, au_id: int) -> float:
        return float(self._values[int(au_id)])

    def as_array(self) -> np.ndarray:
        return self._values.copy()


@dataclass
class MeasurementFrame:
    """One source video frame worth of facial measurements."""
    frame_index: int
    head_position: np.ndarray  # (3,) millimeters, camera space
    head_rotation: np.ndarray  # (3,) radians: pitch, yaw, roll (camera convention)
    action_units: ActionUnitVector
    gaze_left: Optional[np.ndarray] = None  # (3,) unit vector, None without eye model
    gaze_right: Optional[np.ndarray] = None

    @property
    def has_gaze(self) -> bool:
        return self.gaze_left is not None and self.gaze_right is not None


class RecordedMeasurementStream:
    """
    Measurement stream replayed from a joblib dump of a tracking run.

    Iterating yields one item per recorded source frame: a MeasurementFrame,
    or None when the tracker found no face in that frame.
    """

    def __init__(self, fps: float, frames: list, au_scale: float = 1.0):
        self.fps = float(fps)
        self.au_scale = float(au_scale)
        self._frames = frames

    @classmethod
    def load(cls, path: str) -> 'RecordedMeasurementStream':
        if not os.path.isfile(path):
            raise InputStreamError(f"Measurement stream not found: {path}")
        try:
            data = joblib.load(path)
        except Exception as e:
            raise InputStreamError(f"Failed to load measurement stream {path}: {e}") from e

        if not isinstance(data, dict) or 'frames' not in data or 'fps' not in data:
            raise InputStreamError(f"{path} is not a measurement stream (expected 'fps' and 'frames' keys)")

        au_scale = data.get('au_scale', 1.0)
        if not au_scale > 0:
            raise InputStreamError(f"{path}: au_scale must be > 0, got {au_scale}")

        logger.info(f"Loaded {len(data['frames'])} recorded frames at {data['fps']} fps from {path}")
        return cls(data['fps'], list(data['frames']), au_scale)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Optional[MeasurementFrame]]:
        for index, record in enumerate(self._frames):
            yield self._to_frame(index, record)

    def _to_frame(self, index: int, record: Dict) -> Optional[MeasurementFrame]:
        pose = record.get('pose')
        if pose is None:
            return None
        pose = np.asarray(pose, dtype=np.float64).reshape(6)

        gaze_left = record.get('gaze_left')
        gaze_right = record.get('gaze_right')
        return MeasurementFrame(
            frame_index=int(record.get('frame', index)),
            head_position=pose[:3],
            head_rotation=pose[3:],
            action_units=ActionUnitVector.from_report(record.get('au', {}), scale=self.au_scale),
            gaze_left=None if gaze_left is None else np.asarray(gaze_left, dtype=np.float64),
            gaze_right=None if gaze_right is None else np.asarray(gaze_right, dtype=np.float64),
        )
