"""Tests for the bone-length relaxation solver."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

from conftest import assert_skeletons_close, make_config, make_skeleton
from posepuppet.core import Landmark, POSE_CONNECTIONS, compute_bone_lengths
from posepuppet.motion.bone_constraints import BoneConstraintSolver


CHAIN = ((0, 1), (1, 2))
CHAIN_TARGETS = (20.0, 5.0)


def _chain():
    return [Landmark(0.0, 0.0), Landmark(10.0, 0.0), Landmark(20.0, 0.0)]


def _chain_error(skeleton):
    total = 0.0
    for (a, b), target in zip(CHAIN, CHAIN_TARGETS):
        total += abs(skeleton[a].distance_to(skeleton[b]) - target)
    return total


class TestBoneConstraintSolver:

    def test_single_iteration_half_step(self, config):
        solver = BoneConstraintSolver(config)
        out = solver.solve(_chain(), CHAIN_TARGETS, CHAIN, iterations=1)
        assert out[0].x == pytest.approx(0.0)
        assert out[1].x == pytest.approx(15.0)
        assert out[2].x == pytest.approx(20.0)

    def test_error_non_increasing(self, config):
        solver = BoneConstraintSolver(config)
        errors = [
            _chain_error(solver.solve(_chain(), CHAIN_TARGETS, CHAIN, iterations=k))
            for k in range(8)
        ]
        assert errors[0] == pytest.approx(15.0)
        assert errors[1] == pytest.approx(5.0)
        assert errors[2] == pytest.approx(3.75)
        for before, after in zip(errors, errors[1:]):
            assert after <= before + 1e-12

    def test_input_not_modified(self, config):
        chain = _chain()
        BoneConstraintSolver(config).solve(chain, CHAIN_TARGETS, CHAIN)
        assert [lm.x for lm in chain] == [0.0, 10.0, 20.0]

    def test_consistent_skeleton_unchanged(self, config):
        skeleton = make_skeleton()
        lengths = compute_bone_lengths(skeleton)
        out = BoneConstraintSolver(config).solve(skeleton, lengths)
        assert_skeletons_close(out, skeleton, tol=1e-9)

    def test_skips_missing_and_unset_edges(self, config):
        solver = BoneConstraintSolver(config)
        skeleton = [Landmark(0.0, 0.0), None, Landmark(20.0, 0.0)]
        out = solver.solve(skeleton, (20.0, 5.0), ((0, 1), (0, 2)))
        # Edge (0, 2) has length 20 but target 5
        assert out[2].x < 20.0

        out = solver.solve(_chain(), (None, 0.0), CHAIN)
        assert [lm.x for lm in out] == [0.0, 10.0, 20.0]

    def test_skips_zero_length_edges(self, config):
        skeleton = [Landmark(5.0, 5.0), Landmark(5.0, 5.0)]
        out = BoneConstraintSolver(config).solve(skeleton, (10.0,), ((0, 1),))
        assert (out[1].x, out[1].y) == (5.0, 5.0)

    def test_length_mismatch(self, config):
        with pytest.raises(ValueError):
            BoneConstraintSolver(config).solve(make_skeleton(), [1.0] * (len(POSE_CONNECTIONS) - 1))

    def test_iterations_from_config(self):
        solver = BoneConstraintSolver(make_config(constraints={"iterations": 5}))
        assert solver.iterations == 5
