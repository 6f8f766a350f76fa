"""Shared fixtures for the exercise coach tests."""

import sys
from pathlib import Path

import pytest # pyright: ignore[reportMissingImports]

sys.path.insert(0, str(Path(__file__).parent.parent))

from scoring.posture_geometry import (
    LEFT_ANKLE, LEFT_HIP, LEFT_KNEE, LEFT_SHOULDER,
    RIGHT_ANKLE, RIGHT_HIP, RIGHT_KNEE, RIGHT_SHOULDER,
    NUM_JOINTS
)


def build_skeleton(
    hip_y: float = 0.8,
    knee_y: float = 0.7,
    ankle_y: float = 0.9,
    shoulder_y: float = 0.3,
    trunk_x: tuple = (0.45, 0.55),
    shoulder_x: tuple = None,
    knee_x: tuple = (0.45, 0.55),
    ankle_x: tuple = (0.45, 0.55)
) -> list:
    """
    33 joints as {x, y, z} dicts in image coordinates (y down).

    Defaults: hip midway between knee and ankle, shoulders straight above the
    hips, knees as wide as ankles, trunk centered in the frame.
    """
    shoulder_x = shoulder_x or trunk_x
    points = [{'x': 0.5, 'y': 0.5, 'z': 0.0} for _ in range(NUM_JOINTS)]

    points[LEFT_SHOULDER] = {'x': shoulder_x[0], 'y': shoulder_y, 'z': 0.0}
    points[RIGHT_SHOULDER] = {'x': shoulder_x[1], 'y': shoulder_y, 'z': 0.0}
    points[LEFT_HIP] = {'x': trunk_x[0], 'y': hip_y, 'z': 0.0}
    points[RIGHT_HIP] = {'x': trunk_x[1], 'y': hip_y, 'z': 0.0}
    points[LEFT_KNEE] = {'x': knee_x[0], 'y': knee_y, 'z': 0.0}
    points[RIGHT_KNEE] = {'x': knee_x[1], 'y': knee_y, 'z': 0.0}
    points[LEFT_ANKLE] = {'x': ankle_x[0], 'y': ankle_y, 'z': 0.0}
    points[RIGHT_ANKLE] = {'x': ankle_x[1], 'y': ankle_y, 'z': 0.0}

    return points


@pytest.fixture
def make_skeleton():
    """Factory for synthetic skeletons (see build_skeleton)."""
    return build_skeleton
