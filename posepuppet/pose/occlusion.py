"""Heel and toe extrapolation for occluded feet"""

import math
from dataclasses import dataclass
from typing import List, Optional

from posepuppet.core import Config, get_logger
from posepuppet.core.landmarks import Landmark, PoseLandmark, Skeleton


# Visibility written onto synthesized points so consumers can tell them apart
INFERRED_VISIBILITY = 0.5


@dataclass(frozen=True)
class FootChain:
    """Landmark indices for one leg's foot prediction."""
    side: str
    knee: int
    ankle: int
    heel: int
    toe: int


FOOT_CHAINS = (
    FootChain(
        side="left",
        knee=PoseLandmark.LEFT_KNEE,
        ankle=PoseLandmark.LEFT_ANKLE,
        heel=PoseLandmark.LEFT_HEEL,
        toe=PoseLandmark.LEFT_FOOT_INDEX,
    ),
    FootChain(
        side="right",
        knee=PoseLandmark.RIGHT_KNEE,
        ankle=PoseLandmark.RIGHT_ANKLE,
        heel=PoseLandmark.RIGHT_HEEL,
        toe=PoseLandmark.RIGHT_FOOT_INDEX,
    ),
)


class OcclusionPredictor:
    """
    Fills in low-confidence heel and toe points from the shin direction.

    When a foot point drops below the visibility threshold but the knee
    and a reasonably visible ankle are present, the foot is assumed to
    continue along the knee->ankle direction.
    """

    def __init__(self, config: Optional[Config] = None):
        self.logger = get_logger("pose.occlusion")
        self.config = config or Config()

        occ_config = self.config.occlusion

        self._visibility_threshold = occ_config.get("visibility_threshold", 0.35)
        self._ankle_min_visibility = occ_config.get("ankle_min_visibility", 0.3)
        self._min_shin_length = occ_config.get("min_shin_length", 5.0)
        self._foot_length_ratio = occ_config.get("foot_length_ratio", 1.0)
        self._heel_fraction = occ_config.get("heel_fraction", 0.3)
        self._toe_fraction = occ_config.get("toe_fraction", 1.0)

    def predict(self, skeleton: Skeleton) -> int:
        """
        Complete occluded heel/toe points in place.

        Args:
            skeleton: Skeleton to update

        Returns:
            Number of synthesized points
        """
        predicted = 0
        for chain in FOOT_CHAINS:
            predicted += self._predict_foot(skeleton, chain)
        return predicted

    def _predict_foot(self, skeleton: Skeleton, chain: FootChain) -> int:
        knee = skeleton[chain.knee]
        ankle = skeleton[chain.ankle]
        heel = skeleton[chain.heel]
        toe = skeleton[chain.toe]

        heel_vis = heel.visibility if heel is not None else 0.0
        toe_vis = toe.visibility if toe is not None else 0.0
        heel_hidden = heel_vis < self._visibility_threshold
        toe_hidden = toe_vis < self._visibility_threshold

        if not (heel_hidden or toe_hidden):
            return 0
        if knee is None or ankle is None or ankle.visibility < self._ankle_min_visibility:
            return 0

        shin_dx = ankle.x - knee.x
        shin_dy = ankle.y - knee.y
        shin_length = math.hypot(shin_dx, shin_dy)
        if shin_length <= self._min_shin_length:
            return 0

        dir_x = shin_dx / shin_length
        dir_y = shin_dy / shin_length
        foot_length = shin_length * self._foot_length_ratio

        predicted = 0
        targets: List[tuple] = []
        if heel_hidden:
            targets.append((chain.heel, self._heel_fraction))
        if toe_hidden:
            targets.append((chain.toe, self._toe_fraction))

        for index, fraction in targets:
            offset = foot_length * fraction
            skeleton[index] = Landmark(
                ankle.x + dir_x * offset,
                ankle.y + dir_y * offset,
                INFERRED_VISIBILITY,
            )
            predicted += 1

        self.logger.debug(f"Predicted {predicted} {chain.side} foot point(s)")
        return predicted
