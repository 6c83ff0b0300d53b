"""
Bone-length constraint enforcement.

The solver is a relaxation method, not an exact solve. For every edge it
moves the second endpoint halfway toward the position that would give
the edge its template length, keeping the first endpoint fixed. Joints
shared by several edges settle on a compromise over repeated iterations.
Convergence is approximate and depends on the order of the connection
list.
"""

import math
from typing import Optional, Sequence, Tuple

from posepuppet.core import Config, get_logger
from posepuppet.core.landmarks import (
    POSE_CONNECTIONS,
    Landmark,
    Skeleton,
    copy_skeleton,
)


class BoneConstraintSolver:
    """Nudges a skeleton toward fixed bone lengths."""

    def __init__(self, config: Optional[Config] = None):
        self.logger = get_logger("motion.constraints")
        self.config = config or Config()

        constraint_config = self.config.constraints

        self._iterations = int(constraint_config.get("iterations", 2))
        self._min_length = constraint_config.get("min_length", 0.1)

    @property
    def iterations(self) -> int:
        return self._iterations

    def solve(
        self,
        skeleton: Sequence[Optional[Landmark]],
        target_lengths: Sequence[Optional[float]],
        connections: Sequence[Tuple[int, int]] = POSE_CONNECTIONS,
        iterations: Optional[int] = None
    ) -> Skeleton:
        """
        Project a skeleton toward the target bone lengths.

        Args:
            skeleton: Input skeleton (not modified)
            target_lengths: One entry per connection; None or 0 skips the edge
            connections: Edge list, first endpoint of each edge held fixed
            iterations: Relaxation passes (defaults to the configured count)

        Returns:
            New skeleton with adjusted positions
        """
        if len(target_lengths) != len(connections):
            raise ValueError(
                f"Got {len(target_lengths)} bone lengths for {len(connections)} connections"
            )

        if iterations is None:
            iterations = self._iterations

        result = copy_skeleton(skeleton)

        for _ in range(iterations):
            for (a, b), target in zip(connections, target_lengths):
                if not target:
                    continue
                pa = result[a]
                pb = result[b]
                if pa is None or pb is None:
                    continue

                dx = pb.x - pa.x
                dy = pb.y - pa.y
                length = math.hypot(dx, dy)
                if length < self._min_length:
                    continue

                ratio = target / length
                goal_x = pa.x + dx * ratio
                goal_y = pa.y + dy * ratio

                # Half step toward the exact solution
                pb.x += (goal_x - pb.x) * 0.5
                pb.y += (goal_y - pb.y) * 0.5

        return result
