"""Motion processing module - alignment, mirroring, constraints, retargeting"""

from .similarity import (
    Transform,
    fit_similarity,
    estimate_similarity,
    apply_transform,
    match_error,
    wrap_angle,
)
from .mirror import MirrorDecision, MirrorState
from .transform_smoother import TransformSmoother
from .bone_constraints import BoneConstraintSolver
from .retargeter import PuppetRetargeter, RetargeterStatus, SessionState

__all__ = [
    "Transform", "fit_similarity", "estimate_similarity",
    "apply_transform", "match_error", "wrap_angle",
    "MirrorDecision", "MirrorState",
    "TransformSmoother",
    "BoneConstraintSolver",
    "PuppetRetargeter", "RetargeterStatus", "SessionState",
]
