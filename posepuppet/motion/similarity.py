"""
2D similarity transform (rotation + uniform scale + translation) fitting.

The fit is the closed-form least-squares (Procrustes) solution. For 2D
similarity transforms no eigen-decomposition is needed: with both point
sets centered on their centroids,

    angle = atan2(sum(ax*by - ay*bx), sum(ax*bx + ay*by))
    scale = hypot(sum(ax*bx + ay*by), sum(ax*by - ay*bx)) / sum(|a|^2)

and the translation maps the source centroid onto the destination centroid.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import numpy as np

from posepuppet.core import get_logger
from posepuppet.core.errors import (
    DegenerateGeometry,
    InsufficientCorrespondence,
    TransformFitError,
)
from posepuppet.core.landmarks import Landmark, Skeleton


logger = get_logger("motion.similarity")

Point = Tuple[float, float]

DEFAULT_MIN_SCALE = 0.5
DEFAULT_MAX_SCALE = 2.0
DEFAULT_MIN_SPREAD = 1e-6


def wrap_angle(angle: float) -> float:
    """Normalize an angle to (-pi, pi]."""
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


def angle_difference(a: float, b: float) -> float:
    """Shortest signed angle from b to a, in (-pi, pi]."""
    return wrap_angle(a - b)


@dataclass
class Transform:
    """Similarity transform: p' = scale * R(angle) @ p + (tx, ty)."""
    scale: float = 1.0
    angle: float = 0.0
    tx: float = 0.0
    ty: float = 0.0

    @property
    def matrix(self) -> np.ndarray:
        """2x2 linear part (scale * rotation)."""
        c = math.cos(self.angle)
        s = math.sin(self.angle)
        return self.scale * np.array([[c, -s], [s, c]])

    def apply(self, x: float, y: float) -> Point:
        c = math.cos(self.angle)
        s = math.sin(self.angle)
        return (
            self.scale * (c * x - s * y) + self.tx,
            self.scale * (s * x + c * y) + self.ty,
        )

    def copy(self) -> "Transform":
        return Transform(self.scale, self.angle, self.tx, self.ty)


def _valid_pairs(
    src: Sequence[Optional[Point]],
    dst: Sequence[Optional[Point]]
) -> Tuple[np.ndarray, np.ndarray]:
    if len(src) != len(dst):
        raise ValueError(f"Point sets differ in length: {len(src)} vs {len(dst)}")

    pairs = [(a, b) for a, b in zip(src, dst) if a is not None and b is not None]
    if not pairs:
        return np.empty((0, 2)), np.empty((0, 2))

    src_pts = np.array([a for a, _ in pairs], dtype=np.float64)
    dst_pts = np.array([b for _, b in pairs], dtype=np.float64)
    return src_pts, dst_pts


def fit_similarity(
    src: Sequence[Optional[Point]],
    dst: Sequence[Optional[Point]],
    min_scale: float = DEFAULT_MIN_SCALE,
    max_scale: float = DEFAULT_MAX_SCALE,
    min_spread: float = DEFAULT_MIN_SPREAD
) -> Transform:
    """
    Least-squares similarity transform mapping src onto dst.

    Only index-aligned pairs where both points are present are used.

    Args:
        src: Source points (None for missing)
        dst: Destination points, same length as src
        min_scale, max_scale: Band the solved scale is clamped to
        min_spread: Minimum sum of squared centered source distances

    Returns:
        Fitted Transform

    Raises:
        InsufficientCorrespondence: fewer than 2 valid pairs
        DegenerateGeometry: source spread below min_spread
    """
    src_pts, dst_pts = _valid_pairs(src, dst)
    n = len(src_pts)
    if n < 2:
        raise InsufficientCorrespondence(n)

    src_centroid = src_pts.mean(axis=0)
    dst_centroid = dst_pts.mean(axis=0)
    a = src_pts - src_centroid
    b = dst_pts - dst_centroid

    spread = float(np.sum(a * a))
    if spread < min_spread:
        raise DegenerateGeometry(spread)

    # Cross-covariance components
    sxx = float(np.sum(a[:, 0] * b[:, 0]))
    sxy = float(np.sum(a[:, 0] * b[:, 1]))
    syx = float(np.sum(a[:, 1] * b[:, 0]))
    syy = float(np.sum(a[:, 1] * b[:, 1]))

    dot = sxx + syy
    cross = sxy - syx

    angle = math.atan2(cross, dot)
    scale = math.hypot(dot, cross) / spread
    scale = min(max(scale, min_scale), max_scale)

    transform = Transform(scale=scale, angle=wrap_angle(angle))
    mapped_centroid = transform.matrix @ src_centroid
    transform.tx = float(dst_centroid[0] - mapped_centroid[0])
    transform.ty = float(dst_centroid[1] - mapped_centroid[1])
    return transform


def estimate_similarity(
    src: Sequence[Optional[Point]],
    dst: Sequence[Optional[Point]],
    min_scale: float = DEFAULT_MIN_SCALE,
    max_scale: float = DEFAULT_MAX_SCALE,
    min_spread: float = DEFAULT_MIN_SPREAD
) -> Optional[Transform]:
    """Like fit_similarity, but returns None when there is no solution."""
    try:
        return fit_similarity(src, dst, min_scale, max_scale, min_spread)
    except TransformFitError as e:
        logger.debug(f"No similarity solution: {e}")
        return None


def centroid(points: Sequence[Optional[Point]]) -> Optional[Point]:
    """Mean of the present points, or None if there are none."""
    present = [p for p in points if p is not None]
    if not present:
        return None
    arr = np.array(present, dtype=np.float64)
    cx, cy = arr.mean(axis=0)
    return float(cx), float(cy)


def mirror_points(points: Sequence[Optional[Point]], center_x: float) -> list:
    """Reflect points horizontally about the vertical line x = center_x."""
    return [(2.0 * center_x - p[0], p[1]) if p is not None else None for p in points]


def apply_transform(
    skeleton: Sequence[Optional[Landmark]],
    transform: Transform,
    mirror_center_x: Optional[float] = None
) -> Skeleton:
    """
    Map every present landmark through a transform.

    When mirror_center_x is given, points are first reflected about that
    vertical line. Visibility is carried over unchanged.
    """
    result: Skeleton = []
    for lm in skeleton:
        if lm is None:
            result.append(None)
            continue
        x = 2.0 * mirror_center_x - lm.x if mirror_center_x is not None else lm.x
        nx, ny = transform.apply(x, lm.y)
        result.append(Landmark(nx, ny, lm.visibility))
    return result


def match_error(
    mapped: Sequence[Optional[Landmark]],
    target: Sequence[Optional[Landmark]],
    visibility_threshold: float
) -> float:
    """
    Mean squared distance between mapped points and their targets.

    Only indices present in both and whose mapped visibility reaches the
    threshold count. Returns infinity when no index qualifies.
    """
    total = 0.0
    count = 0
    for a, b in zip(mapped, target):
        if a is None or b is None or a.visibility < visibility_threshold:
            continue
        dx = a.x - b.x
        dy = a.y - b.y
        total += dx * dx + dy * dy
        count += 1
    return total / count if count else math.inf
