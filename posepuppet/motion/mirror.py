"""
Mirror / orientation decision with hysteresis.

Each frame the retargeter fits the live skeleton to the template twice,
once as-is and once reflected horizontally, and hands both fit errors to
MirrorDecision. The decision only changes after a sustained streak of
votes, and the vote itself uses asymmetric error ratios so that noise
around the break-even point cannot make the puppet flicker between the
two orientations.

States:
    Undecided        -- no orientation committed yet (acts as "normal")
    Locked(mirrored) -- orientation committed by voting or by a force
"""

from dataclasses import dataclass, replace
from typing import Optional

from posepuppet.core import Config, get_logger


@dataclass
class MirrorState:
    """Session-scoped mirror decision state."""
    locked: bool = False
    current_decision: bool = False      # True = mirrored
    vote_streak: int = 0
    last_vote: Optional[bool] = None
    forced: Optional[bool] = None


class MirrorDecision:
    """
    Debounced boolean "is the live skeleton mirrored" decision.

    Voting rule:
        currently mirrored -> vote normal   iff err_normal   < err_mirrored * tight_ratio
        currently normal   -> vote mirrored iff err_mirrored < err_normal   * loose_ratio

    The first commit happens when the same vote repeats frames_threshold
    times; once locked, a flip needs frames_threshold * relock_multiplier.
    """

    def __init__(self, config: Optional[Config] = None):
        self.logger = get_logger("motion.mirror")
        self.config = config or Config()

        mirror_config = self.config.mirror

        self._frames_threshold = int(mirror_config.get("frames_threshold", 30))
        self._relock_multiplier = int(mirror_config.get("relock_multiplier", 2))
        self._tight_ratio = mirror_config.get("tight_ratio", 0.85)
        self._loose_ratio = mirror_config.get("loose_ratio", 0.95)

        if self._frames_threshold < 1:
            raise ValueError(f"frames_threshold must be >= 1, got {self._frames_threshold}")

        self._state = MirrorState()

    @property
    def state(self) -> MirrorState:
        """Copy of the current state."""
        return replace(self._state)

    @property
    def is_mirrored(self) -> bool:
        return self._state.current_decision

    @property
    def is_locked(self) -> bool:
        return self._state.locked

    @property
    def forced(self) -> Optional[bool]:
        return self._state.forced

    @property
    def commit_threshold(self) -> int:
        """Streak length needed for the next commit."""
        if self._state.locked:
            return self._frames_threshold * self._relock_multiplier
        return self._frames_threshold

    def force(self, mirrored: Optional[bool]) -> None:
        """Force an orientation, or release the force with None."""
        self._state.forced = mirrored
        if mirrored is not None:
            self._apply_force()
            self.logger.info(f"Mirror forced: {'MIRRORED' if mirrored else 'NORMAL'}")
        else:
            self.logger.info("Mirror force released")

    def reset(self) -> None:
        """Return to Undecided. An active force is kept."""
        forced = self._state.forced
        self._state = MirrorState(forced=forced)
        if forced is not None:
            self._apply_force()
        self.logger.debug("Mirror decision reset")

    def update(self, err_normal: float, err_mirrored: float) -> bool:
        """
        Feed one frame of fit errors.

        Args:
            err_normal: Fit error of the non-mirrored hypothesis
            err_mirrored: Fit error of the mirrored hypothesis

        Returns:
            Current decision (True = mirrored)
        """
        state = self._state

        if state.forced is not None:
            self._apply_force()
            return state.current_decision

        vote = self._vote(err_normal, err_mirrored)

        if vote == state.last_vote:
            state.vote_streak += 1
        else:
            state.vote_streak = 1
            state.last_vote = vote

        if state.vote_streak < self.commit_threshold:
            return state.current_decision

        if not state.locked:
            state.current_decision = vote
            state.locked = True
            self.logger.info(
                f"Mirror locked: {'MIRRORED' if vote else 'NORMAL'} "
                f"(err_normal={err_normal:.1f}, err_mirrored={err_mirrored:.1f})"
            )
        elif vote != state.current_decision:
            state.current_decision = vote
            state.vote_streak = 0
            state.last_vote = None
            self.logger.info(f"Mirror re-locked: {'MIRRORED' if vote else 'NORMAL'}")

        return state.current_decision

    def _vote(self, err_normal: float, err_mirrored: float) -> bool:
        if self._state.current_decision:
            return not (err_normal < err_mirrored * self._tight_ratio)
        return err_mirrored < err_normal * self._loose_ratio

    def _apply_force(self) -> None:
        state = self._state
        state.current_decision = bool(state.forced)
        state.locked = True
        state.vote_streak = 0
        state.last_vote = None
