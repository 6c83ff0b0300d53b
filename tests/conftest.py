"""Shared test fixtures for the posepuppet test suite.

Provides a reusable standing pose and helpers to derive transformed,
mirrored or partially occluded skeletons from it.
"""

import math

import pytest

from posepuppet.core import Config, Landmark, NUM_LANDMARKS


CANVAS_SIZE = (640, 480)

# Frontal standing pose on a 640x480 canvas, symmetric about x = 320.
# Subject's left side appears on the image right.
STANDING_POSE = {
    0: (320, 80),
    1: (326, 74), 2: (330, 74), 3: (334, 74),
    4: (314, 74), 5: (310, 74), 6: (306, 74),
    7: (340, 78), 8: (300, 78),
    9: (326, 92), 10: (314, 92),
    11: (360, 140), 12: (280, 140),
    13: (375, 200), 14: (265, 200),
    15: (385, 255), 16: (255, 255),
    17: (390, 270), 18: (250, 270),
    19: (386, 274), 20: (254, 274),
    21: (380, 266), 22: (260, 266),
    23: (345, 270), 24: (295, 270),
    25: (350, 350), 26: (290, 350),
    27: (352, 430), 28: (288, 430),
    29: (348, 442), 30: (292, 442),
    31: (365, 448), 32: (275, 448),
}


def make_skeleton(
    visibility=1.0,
    scale=1.0,
    angle=0.0,
    tx=0.0,
    ty=0.0,
    mirror=False,
    drop=(),
    overrides=None,
):
    """Standing pose, optionally mirrored about x=320 then similarity-transformed.

    Args:
        visibility: Visibility for every landmark
        drop: Indices to leave as None
        overrides: {index: visibility} applied after the defaults
    """
    overrides = overrides or {}
    c = math.cos(angle)
    s = math.sin(angle)
    skeleton = []
    for i in range(NUM_LANDMARKS):
        if i in drop:
            skeleton.append(None)
            continue
        x, y = STANDING_POSE[i]
        if mirror:
            x = 640 - x
        nx = scale * (c * x - s * y) + tx
        ny = scale * (s * x + c * y) + ty
        skeleton.append(Landmark(nx, ny, overrides.get(i, visibility)))
    return skeleton


def make_config(**sections):
    """Config with per-section overrides, e.g. make_config(mirror={"frames_threshold": 3})."""
    return Config(overrides=sections)


def assert_skeletons_close(actual, expected, tol=1e-6):
    assert len(actual) == len(expected)
    for i, (a, b) in enumerate(zip(actual, expected)):
        if b is None:
            assert a is None, f"landmark {i} should be missing"
            continue
        assert a is not None, f"landmark {i} missing"
        assert a.x == pytest.approx(b.x, abs=tol), f"landmark {i} x"
        assert a.y == pytest.approx(b.y, abs=tol), f"landmark {i} y"


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def standing():
    return make_skeleton()
