"""Core systems - config, logging, timing, errors, landmark layout"""

from .config import Config, DEFAULT_CONFIG
from .logging import setup_logging, get_logger
from .timing import FrameTimer
from .errors import (
    RetargetError,
    TransformFitError,
    InsufficientCorrespondence,
    DegenerateGeometry,
    MissingTemplate,
    InvalidImport,
    IndexOutOfRange,
)
from .landmarks import (
    NUM_LANDMARKS,
    PoseLandmark,
    LANDMARK_NAMES,
    POSE_CONNECTIONS,
    CRITICAL_POINTS,
    Landmark,
    Skeleton,
    empty_skeleton,
    copy_skeleton,
    as_skeleton,
    check_index,
    average_visibility,
    get_landmark_name,
    BoneLengths,
    compute_bone_lengths,
)

__all__ = [
    "Config", "DEFAULT_CONFIG", "setup_logging", "get_logger", "FrameTimer",
    # Errors
    "RetargetError", "TransformFitError", "InsufficientCorrespondence",
    "DegenerateGeometry", "MissingTemplate", "InvalidImport", "IndexOutOfRange",
    # Landmarks
    "NUM_LANDMARKS", "PoseLandmark", "LANDMARK_NAMES", "POSE_CONNECTIONS",
    "CRITICAL_POINTS", "Landmark", "Skeleton",
    "empty_skeleton", "copy_skeleton", "as_skeleton", "check_index",
    "average_visibility", "get_landmark_name", "BoneLengths", "compute_bone_lengths",
]
