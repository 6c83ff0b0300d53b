"""Tests for 2D similarity fitting and transform helpers."""

import math

import numpy as np
import pytest

from posepuppet.core import DegenerateGeometry, InsufficientCorrespondence, Landmark
from posepuppet.motion.similarity import (
    Transform,
    angle_difference,
    apply_transform,
    centroid,
    estimate_similarity,
    fit_similarity,
    match_error,
    mirror_points,
    wrap_angle,
)


SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 20.0), (0.0, 20.0)]


def _mapped(points, transform):
    return [transform.apply(x, y) for x, y in points]


class TestWrapAngle:

    @pytest.mark.parametrize("angle,expected", [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (2 * math.pi + 0.5, 0.5),
        (-0.5, -0.5),
    ])
    def test_range(self, angle, expected):
        assert wrap_angle(angle) == pytest.approx(expected)

    def test_shortest_difference_crosses_seam(self):
        assert angle_difference(3.0, -3.0) == pytest.approx(6.0 - 2 * math.pi)


class TestFitSimilarity:

    def test_identity(self):
        t = fit_similarity(SQUARE, SQUARE)
        assert t.scale == pytest.approx(1.0)
        assert t.angle == pytest.approx(0.0)
        assert t.tx == pytest.approx(0.0, abs=1e-9)
        assert t.ty == pytest.approx(0.0, abs=1e-9)

    def test_recovers_known_transform(self):
        truth = Transform(scale=1.5, angle=0.3, tx=10.0, ty=-5.0)
        t = fit_similarity(SQUARE, _mapped(SQUARE, truth))
        assert t.scale == pytest.approx(1.5)
        assert t.angle == pytest.approx(0.3)
        assert t.tx == pytest.approx(10.0)
        assert t.ty == pytest.approx(-5.0)

    def test_negative_rotation(self):
        truth = Transform(scale=0.8, angle=-2.5, tx=3.0, ty=4.0)
        t = fit_similarity(SQUARE, _mapped(SQUARE, truth))
        assert t.angle == pytest.approx(-2.5)
        np.testing.assert_allclose(_mapped(SQUARE, t), _mapped(SQUARE, truth), atol=1e-9)

    def test_scale_clamped(self):
        truth = Transform(scale=5.0)
        t = fit_similarity(SQUARE, _mapped(SQUARE, truth))
        assert t.scale == pytest.approx(2.0)

        t = fit_similarity(SQUARE, _mapped(SQUARE, Transform(scale=0.1)))
        assert t.scale == pytest.approx(0.5)

    def test_missing_points_ignored(self):
        truth = Transform(scale=1.2, angle=0.1, tx=1.0, ty=2.0)
        dst = _mapped(SQUARE, truth)
        src = list(SQUARE) + [None, (5.0, 5.0)]
        dst = dst + [(0.0, 0.0), None]
        t = fit_similarity(src, dst)
        assert t.scale == pytest.approx(1.2)
        assert t.angle == pytest.approx(0.1)

    def test_insufficient_pairs(self):
        with pytest.raises(InsufficientCorrespondence) as exc:
            fit_similarity([(0.0, 0.0), None], [(1.0, 1.0), (2.0, 2.0)])
        assert exc.value.valid_pairs == 1

    def test_degenerate_geometry(self):
        with pytest.raises(DegenerateGeometry):
            fit_similarity([(5.0, 5.0)] * 3, SQUARE[:3])

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            fit_similarity(SQUARE, SQUARE[:3])

    def test_estimate_returns_none_on_failure(self):
        assert estimate_similarity([(0.0, 0.0)], [(1.0, 1.0)]) is None
        assert estimate_similarity(SQUARE, SQUARE) is not None


class TestHelpers:

    def test_centroid(self):
        assert centroid(SQUARE + [None]) == pytest.approx((5.0, 10.0))
        assert centroid([None, None]) is None

    def test_mirror_points(self):
        assert mirror_points([(4.0, 1.0), None], 10.0) == [(16.0, 1.0), None]

    def test_apply_transform_keeps_visibility(self):
        skeleton = [Landmark(1.0, 2.0, 0.4), None]
        out = apply_transform(skeleton, Transform(scale=2.0, tx=1.0))
        assert out[1] is None
        assert (out[0].x, out[0].y, out[0].visibility) == pytest.approx((3.0, 4.0, 0.4))

    def test_apply_transform_mirrors_first(self):
        out = apply_transform([Landmark(4.0, 1.0)], Transform(tx=1.0), mirror_center_x=10.0)
        assert (out[0].x, out[0].y) == pytest.approx((17.0, 1.0))

    def test_matrix(self):
        m = Transform(scale=2.0, angle=math.pi / 2).matrix
        np.testing.assert_allclose(m, [[0.0, -2.0], [2.0, 0.0]], atol=1e-12)


class TestMatchError:

    def test_mean_squared_distance(self):
        mapped = [Landmark(0.0, 0.0), Landmark(3.0, 4.0)]
        target = [Landmark(0.0, 0.0), Landmark(0.0, 0.0)]
        assert match_error(mapped, target, 0.35) == pytest.approx(12.5)

    def test_low_visibility_excluded(self):
        mapped = [Landmark(0.0, 0.0), Landmark(3.0, 4.0, 0.1)]
        target = [Landmark(0.0, 0.0), Landmark(0.0, 0.0)]
        assert match_error(mapped, target, 0.35) == pytest.approx(0.0)

    def test_no_qualifying_points(self):
        assert match_error([None, Landmark(0, 0, 0.1)], [Landmark(0, 0), Landmark(0, 0)], 0.35) == math.inf
