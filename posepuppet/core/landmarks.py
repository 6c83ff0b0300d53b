"""Body landmark layout and skeleton data structures.

A skeleton is a fixed list of 33 optional landmarks using the MediaPipe
Pose numbering. The slot index is the landmark's identity; ``None`` in a
slot means the point was not observed, which is different from a point
observed with low visibility.
"""

import math
import operator
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import IndexOutOfRange


NUM_LANDMARKS = 33


class PoseLandmark(IntEnum):
    """MediaPipe Pose landmark indices."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


LANDMARK_NAMES = {lm: lm.name.lower() for lm in PoseLandmark}


# Anatomical edges. The first index of each pair stays fixed when the
# bone-length solver corrects that edge, so the order matters.
POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    # Arms
    (11, 13), (13, 15), (12, 14), (14, 16),
    # Torso
    (11, 12), (11, 23), (12, 24), (23, 24),
    # Legs
    (23, 25), (25, 27), (24, 26), (26, 28),
    # Feet
    (27, 29), (29, 31), (28, 30), (30, 32),
    # Hands
    (15, 17), (17, 19), (19, 21), (16, 18), (18, 20), (20, 22),
    # Face
    (0, 1), (1, 3), (0, 2), (2, 4), (5, 6), (5, 7), (6, 8), (7, 9), (8, 10),
)

# Order in which points are placed during guided manual capture
CRITICAL_POINTS: Tuple[PoseLandmark, ...] = (
    PoseLandmark.NOSE,
    PoseLandmark.LEFT_SHOULDER,
    PoseLandmark.RIGHT_SHOULDER,
    PoseLandmark.LEFT_ELBOW,
    PoseLandmark.RIGHT_ELBOW,
    PoseLandmark.LEFT_WRIST,
    PoseLandmark.RIGHT_WRIST,
    PoseLandmark.LEFT_HIP,
    PoseLandmark.RIGHT_HIP,
    PoseLandmark.LEFT_KNEE,
    PoseLandmark.RIGHT_KNEE,
    PoseLandmark.LEFT_ANKLE,
    PoseLandmark.RIGHT_ANKLE,
)


@dataclass
class Landmark:
    """Single 2D landmark with detection confidence."""
    x: float
    y: float
    visibility: float = 1.0

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def is_visible(self, threshold: float) -> bool:
        return self.visibility >= threshold

    def distance_to(self, other: "Landmark") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def copy(self) -> "Landmark":
        return Landmark(self.x, self.y, self.visibility)


Skeleton = List[Optional[Landmark]]


def empty_skeleton() -> Skeleton:
    """Skeleton with every slot unobserved."""
    return [None] * NUM_LANDMARKS


def copy_skeleton(skeleton: Sequence[Optional[Landmark]]) -> Skeleton:
    """Deep copy so callers never share landmark objects."""
    return [lm.copy() if lm is not None else None for lm in skeleton]


def as_skeleton(landmarks: Iterable[Optional[Landmark]]) -> Skeleton:
    """
    Copy a landmark sequence into a full 33-slot skeleton.

    Shorter sequences are padded with ``None``.

    Raises:
        ValueError: if more than 33 landmarks are given
    """
    skeleton = copy_skeleton(list(landmarks))
    if len(skeleton) > NUM_LANDMARKS:
        raise ValueError(
            f"Skeleton has {len(skeleton)} landmarks, expected at most {NUM_LANDMARKS}"
        )
    skeleton.extend([None] * (NUM_LANDMARKS - len(skeleton)))
    return skeleton


def check_index(index: int) -> int:
    """Validate a landmark index, raising IndexOutOfRange if invalid."""
    if isinstance(index, bool):
        raise IndexOutOfRange(index, NUM_LANDMARKS)
    try:
        value = operator.index(index)
    except TypeError:
        raise IndexOutOfRange(index, NUM_LANDMARKS) from None
    if not 0 <= value < NUM_LANDMARKS:
        raise IndexOutOfRange(index, NUM_LANDMARKS)
    return value


def average_visibility(skeleton: Sequence[Optional[Landmark]]) -> float:
    """Mean visibility over observed landmarks (0 when none observed)."""
    present = [lm.visibility for lm in skeleton if lm is not None]
    if not present:
        return 0.0
    return sum(present) / len(present)


def get_landmark_name(index: int) -> str:
    """Lowercase name for a landmark index."""
    return LANDMARK_NAMES[PoseLandmark(check_index(index))]


BoneLengths = List[Optional[float]]


def compute_bone_lengths(
    template: Sequence[Optional[Landmark]],
    connections: Sequence[Tuple[int, int]] = POSE_CONNECTIONS
) -> BoneLengths:
    """Length of every connection in a template (None where an endpoint is missing)."""
    lengths: BoneLengths = []
    for a, b in connections:
        pa = template[a] if a < len(template) else None
        pb = template[b] if b < len(template) else None
        lengths.append(pa.distance_to(pb) if pa is not None and pb is not None else None)
    return lengths
