"""Motion trail of a single selected landmark"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence

from posepuppet.core import Config
from posepuppet.core.landmarks import Landmark, check_index


@dataclass
class TrailPoint:
    x: float
    y: float
    score: float


class LandmarkTrail:
    """
    Keeps recent positions of one landmark for path visualization.

    Points below the visibility threshold are ignored, and a new point is
    only recorded once it is at least min_distance away from the last one.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()

        trail_config = self.config.trail

        self._index = check_index(trail_config.get("landmark", 16))
        self._min_distance = trail_config.get("min_distance", 3.0)
        self._visibility_threshold = trail_config.get("visibility_threshold", 0.35)
        self._points: Deque[TrailPoint] = deque(maxlen=int(trail_config.get("max_length", 200)))

    @property
    def landmark_index(self) -> int:
        return self._index

    @property
    def points(self) -> List[TrailPoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def select(self, index: int) -> None:
        """Track a different landmark; the existing trail is discarded."""
        self._index = check_index(index)
        self._points.clear()

    def clear(self) -> None:
        self._points.clear()

    def update(self, skeleton: Sequence[Optional[Landmark]]) -> bool:
        """Record the tracked landmark from a skeleton. Returns True if a point was added."""
        if self._index >= len(skeleton):
            return False

        lm = skeleton[self._index]
        if lm is None or lm.visibility < self._visibility_threshold:
            return False

        if self._points:
            last = self._points[-1]
            dx = lm.x - last.x
            dy = lm.y - last.y
            if (dx * dx + dy * dy) ** 0.5 < self._min_distance:
                return False

        self._points.append(TrailPoint(lm.x, lm.y, lm.visibility))
        return True
