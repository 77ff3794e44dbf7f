"""Shared fixtures for the facevmd test suite."""

import numpy as np
import pytest

from facevmd.measurements import ActionUnitVector, MeasurementFrame


def _make_frame(index, au=None, position=(0.0, 0.0, 1000.0), rotation=(0.0, 0.0, 0.0),
                gaze_left=None, gaze_right=None):
    report = {au_id: (value, True) for au_id, value in (au or {}).items()}
    return MeasurementFrame(
        frame_index=index,
        head_position=np.array(position, dtype=np.float64),
        head_rotation=np.array(rotation, dtype=np.float64),
        action_units=ActionUnitVector.from_report(report),
        gaze_left=None if gaze_left is None else np.array(gaze_left, dtype=np.float64),
        gaze_right=None if gaze_right is None else np.array(gaze_right, dtype=np.float64),
    )


@pytest.fixture
def make_frame():
    """Factory for MeasurementFrame objects with neutral defaults."""
    return _make_frame


@pytest.fixture
def recording():
    """A small joblib-ready recording: 12 frames at 30 fps, frame 4 without a face."""
    frames = []
    for i in range(12):
        frames.append({
            'frame': i,
            'pose': None if i == 4 else [2.0 * i, 0.0, 1000.0 + i, 0.01 * i, 0.02 * i, 0.0],
            'au': {'AU26_r': (2.5 if i in (5, 6) else 0.0, True), 'AU45_c': (0.0, False)},
            'gaze_left': [0.0, 0.0, -1.0],
            'gaze_right': [0.0, 0.0, -1.0] if i != 7 else None,
        })
    return {'fps': 30.0, 'au_scale': 5.0, 'frames': frames}
