"""Temporal smoothing of the running alignment transform"""

from typing import Optional

from posepuppet.core import Config, get_logger
from .similarity import Transform, angle_difference, wrap_angle


class TransformSmoother:
    """
    Exponentially blends each newly chosen transform into a running one.

    Scale and translation are linearly interpolated. The angle moves along
    the shortest arc toward the new angle, so blending 3.0 rad with -3.0 rad
    crosses the +-pi seam instead of sweeping through zero.
    """

    def __init__(self, config: Optional[Config] = None, lerp: Optional[float] = None):
        self.logger = get_logger("motion.transform")
        self.config = config or Config()

        if lerp is None:
            lerp = self.config.transform.get("lerp", 0.12)
        if not 0.0 < lerp <= 1.0:
            raise ValueError(f"lerp must be in (0, 1], got {lerp}")
        self._lerp = lerp

        self._current: Optional[Transform] = None

    @property
    def lerp(self) -> float:
        return self._lerp

    @property
    def current(self) -> Optional[Transform]:
        """The running transform (not a copy), or None before the first update."""
        return self._current

    def reset(self) -> None:
        """Invalidate the running transform; the next update cold-starts."""
        if self._current is not None:
            self.logger.debug("Running transform invalidated")
        self._current = None

    def update(self, target: Transform) -> Transform:
        """
        Blend a new transform into the running one.

        Args:
            target: Transform chosen for this frame

        Returns:
            The updated running transform
        """
        if self._current is None:
            self._current = target.copy()
            self._current.angle = wrap_angle(self._current.angle)
            return self._current

        t = self._lerp
        current = self._current
        current.scale = current.scale * (1.0 - t) + target.scale * t
        current.tx = current.tx * (1.0 - t) + target.tx * t
        current.ty = current.ty * (1.0 - t) + target.ty * t

        delta = angle_difference(target.angle, current.angle)
        current.angle = wrap_angle(current.angle + delta * t)

        return current
