"""
Landmark smoothing for raw per-frame detector output.

Each landmark index is filtered independently in three stages:
- Median over a short history window (rejects single-frame spikes)
- Two exponential blends toward the median, slower for low-visibility points
- A per-frame displacement cap (velocity clamp against detector glitches)
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple
import numpy as np

from posepuppet.core import Config, get_logger
from posepuppet.core.landmarks import Landmark, Skeleton, copy_skeleton


@dataclass
class LandmarkFilterParams:
    """Parameters for the landmark filter."""
    history_length: int = 3          # Median window size (frames)
    ewma_alpha: float = 0.80         # Weight on previous value when building the target
    alpha_high: float = 0.3          # Weight on previous value for confident points
    alpha_low: float = 0.5           # Weight on previous value for uncertain points
    visibility_threshold: float = 0.35
    max_jump: float = 60.0           # Max displacement per frame (display units)

    @classmethod
    def from_config(cls, config: Config) -> "LandmarkFilterParams":
        section = config.landmark_filter
        defaults = cls()
        return cls(
            history_length=int(section.get("history_length", defaults.history_length)),
            ewma_alpha=section.get("ewma_alpha", defaults.ewma_alpha),
            alpha_high=section.get("alpha_high", defaults.alpha_high),
            alpha_low=section.get("alpha_low", defaults.alpha_low),
            visibility_threshold=section.get("visibility_threshold", defaults.visibility_threshold),
            max_jump=section.get("max_jump", defaults.max_jump),
        )


class HistoryBuffer:
    """Bounded FIFO of raw (x, y, visibility) samples for one landmark."""

    def __init__(self, maxlen: int):
        if maxlen < 1:
            raise ValueError(f"History length must be positive, got {maxlen}")
        self._xs: Deque[float] = deque(maxlen=maxlen)
        self._ys: Deque[float] = deque(maxlen=maxlen)
        self._vs: Deque[float] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._xs)

    def push(self, x: float, y: float, visibility: float) -> None:
        self._xs.append(x)
        self._ys.append(y)
        self._vs.append(visibility)

    def median(self) -> Tuple[float, float, float]:
        """Coordinate-wise median; even lengths average the two middle values."""
        if not self._xs:
            raise ValueError("Median of empty history")
        return (
            float(np.median(self._xs)),
            float(np.median(self._ys)),
            float(np.median(self._vs)),
        )

    def clear(self) -> None:
        self._xs.clear()
        self._ys.clear()
        self._vs.clear()


def clamp_displacement(
    prev_x: float,
    prev_y: float,
    next_x: float,
    next_y: float,
    max_jump: float
) -> Tuple[float, float]:
    """Limit the step from prev to next to at most max_jump, keeping direction."""
    distance = math.hypot(next_x - prev_x, next_y - prev_y)
    if distance <= max_jump:
        return next_x, next_y

    t = max_jump / distance
    return prev_x + (next_x - prev_x) * t, prev_y + (next_y - prev_y) * t


class LandmarkFilter:
    """
    Per-landmark temporal filter for a whole skeleton.

    The filter keeps the last smoothed skeleton and one HistoryBuffer per
    index. A frame whose length differs from the previous one (detector
    re-initialized) resets all history.
    """

    def __init__(
        self,
        params: Optional[LandmarkFilterParams] = None,
        config: Optional[Config] = None
    ):
        self.logger = get_logger("pose.filter")
        if params is None:
            params = LandmarkFilterParams.from_config(config or Config())
        self.params = params
        self._smoothed: Optional[Skeleton] = None
        self._history: List[HistoryBuffer] = []

    @property
    def smoothed(self) -> Optional[Skeleton]:
        """Copy of the current smoothed skeleton, or None before the first frame."""
        if self._smoothed is None:
            return None
        return copy_skeleton(self._smoothed)

    @property
    def is_initialized(self) -> bool:
        return self._smoothed is not None

    def reset(self) -> None:
        """Drop all history; the next frame seeds the filter."""
        self._smoothed = None
        self._history = []

    def filter(self, raw: Sequence[Optional[Landmark]]) -> Skeleton:
        """
        Smooth one frame of landmarks.

        Args:
            raw: Landmarks in display coordinates; None marks an unobserved slot

        Returns:
            Smoothed skeleton, one entry per input entry
        """
        if self._smoothed is None or len(raw) != len(self._smoothed):
            self._seed(raw)
            return copy_skeleton(self._smoothed)

        for i, lm in enumerate(raw):
            if lm is None:
                continue

            buffer = self._history[i]
            buffer.push(lm.x, lm.y, lm.visibility)

            prev = self._smoothed[i]
            if prev is None:
                self._smoothed[i] = lm.copy()
                continue

            self._smoothed[i] = self._smooth_point(prev, buffer)

        return copy_skeleton(self._smoothed)

    def _seed(self, raw: Sequence[Optional[Landmark]]) -> None:
        if self._smoothed is not None:
            self.logger.debug(
                f"Landmark count changed ({len(self._smoothed)} -> {len(raw)}), resetting history"
            )

        self._smoothed = copy_skeleton(raw)
        self._history = [HistoryBuffer(self.params.history_length) for _ in raw]
        for lm, buffer in zip(raw, self._history):
            if lm is not None:
                buffer.push(lm.x, lm.y, lm.visibility)

    def _smooth_point(self, prev: Landmark, buffer: HistoryBuffer) -> Landmark:
        p = self.params
        med_x, med_y, med_v = buffer.median()

        target_x = prev.x * p.ewma_alpha + med_x * (1.0 - p.ewma_alpha)
        target_y = prev.y * p.ewma_alpha + med_y * (1.0 - p.ewma_alpha)

        # Low-confidence points keep more of their previous position
        alpha = p.alpha_high if med_v >= p.visibility_threshold else p.alpha_low

        next_x = prev.x * alpha + target_x * (1.0 - alpha)
        next_y = prev.y * alpha + target_y * (1.0 - alpha)
        next_v = prev.visibility * alpha + med_v * (1.0 - alpha)

        final_x, final_y = clamp_displacement(prev.x, prev.y, next_x, next_y, p.max_jump)
        return Landmark(final_x, final_y, next_v)
