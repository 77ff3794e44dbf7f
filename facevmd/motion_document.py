"""
In-memory motion document: header plus bone and morph channels.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import numpy as np


DEFAULT_VERSION = "Vocaloid Motion Data 0002"
DEFAULT_MODEL_NAME = "dummy model"

ROTATION = 'rotation'
POSITION = 'position'
MORPH = 'morph'


@dataclass(eq=False)
class Channel:
    """
    A named animation track.

    frames holds strictly increasing frame indices; values holds one row per
    frame (quaternion xyzw, position xyz or a scalar weight).
    """
    name: str
    frames: np.ndarray = None
    values: np.ndarray = None

    kind = None
    width = 1

    def __post_init__(self):
        if self.frames is None:
            self.frames = np.zeros(0, dtype=np.int64)
        if self.values is None:
            self.values = np.zeros((0, self.width), dtype=np.float64)
        self.frames = np.asarray(self.frames, dtype=np.int64)
        self.values = np.asarray(self.values, dtype=np.float64).reshape(-1, self.width)
        if len(self.frames) != len(self.values):
            raise ValueError(f"{self.name}: {len(self.frames)} frames but {len(self.values)} values")
        if len(self.frames) > 1 and np.any(np.diff(self.frames) <= 0):
            raise ValueError(f"{self.name}: frame indices must be strictly increasing")

    def __len__(self) -> int:
        return len(self.frames)

    def append(self, frame: int, value) -> None:
        if len(self.frames) and frame <= self.frames[-1]:
            raise ValueError(f"{self.name}: frame {frame} is not after frame {self.frames[-1]}")
        row = np.asarray(value, dtype=np.float64).reshape(1, self.width)
        self.frames = np.append(self.frames, np.int64(frame))
        self.values = np.vstack([self.values, row])

    def replace(self, frames: np.ndarray, values: np.ndarray) -> 'Channel':
        """Return a channel of the same kind and name with new samples."""
        return type(self)(self.name, frames, values)


@dataclass(eq=False)
class RotationChannel(Channel):
    kind = ROTATION
    width = 4

    @property
    def rotations(self) -> np.ndarray:
        return self.values


@dataclass(eq=False)
class PositionChannel(Channel):
    kind = POSITION
    width = 3

    @property
    def positions(self) -> np.ndarray:
        return self.values


@dataclass(eq=False)
class MorphChannel(Channel):
    kind = MORPH
    width = 1

    @property
    def weights(self) -> np.ndarray:
        return self.values[:, 0]

    def append(self, frame: int, value) -> None:
        # Weights are clamped to [0, 1] on the way in
        super().append(frame, min(1.0, max(0.0, float(value))))


@dataclass(eq=False)
class MotionDocument:
    """Everything produced for one conversion run, handed to the codec at the end."""
    version: str = DEFAULT_VERSION
    model_name: str = DEFAULT_MODEL_NAME
    bone_channels: List[Channel] = field(default_factory=list)
    morph_channels: List[MorphChannel] = field(default_factory=list)

    def _find(self, channels: List[Channel], kind: str, name: str) -> Optional[Channel]:
        for channel in channels:
            if channel.kind == kind and channel.name == name:
                return channel
        return None

    def rotation_channel(self, name: str) -> RotationChannel:
        channel = self._find(self.bone_channels, ROTATION, name)
        if channel is None:
            channel = RotationChannel(name)
            self.bone_channels.append(channel)
        return channel

    def position_channel(self, name: str) -> PositionChannel:
        channel = self._find(self.bone_channels, POSITION, name)
        if channel is None:
            channel = PositionChannel(name)
            self.bone_channels.append(channel)
        return channel

    def morph_channel(self, name: str) -> MorphChannel:
        channel = self._find(self.morph_channels, MORPH, name)
        if channel is None:
            channel = MorphChannel(name)
            self.morph_channels.append(channel)
        return channel

    def get_morph(self, name: str) -> Optional[MorphChannel]:
        return self._find(self.morph_channels, MORPH, name)

    def channels(self) -> Iterator[Channel]:
        yield from self.bone_channels
        yield from self.morph_channels

    def map_channels(self, transform) -> None:
        """Replace every channel with transform(channel), keeping order."""
        self.bone_channels = [transform(c) for c in self.bone_channels]
        self.morph_channels = [transform(c) for c in self.morph_channels]

    def key_counts(self) -> Dict[str, int]:
        counts = {ROTATION: 0, POSITION: 0, MORPH: 0}
        for channel in self.channels():
            counts[channel.kind] += len(channel)
        return counts
