"""Error types raised at the retargeting boundaries.

None of these are fatal to a running session. Per-frame failures are
caught inside the pipeline, which holds its last good state; commands
raise them before any state is mutated.
"""


class RetargetError(Exception):
    """Base class for all posepuppet errors."""


class TransformFitError(RetargetError):
    """A similarity transform could not be fitted."""


class InsufficientCorrespondence(TransformFitError):
    """Fewer than two valid point pairs were available for a fit."""

    def __init__(self, valid_pairs: int):
        super().__init__(f"Need at least 2 point pairs, got {valid_pairs}")
        self.valid_pairs = valid_pairs


class DegenerateGeometry(TransformFitError):
    """Source points have (near) zero spread around their centroid."""

    def __init__(self, spread: float):
        super().__init__(f"Source point spread too small: {spread:.3g}")
        self.spread = spread


class MissingTemplate(RetargetError):
    """An operation needs a puppet template but none exists."""


class InvalidImport(RetargetError):
    """A persisted template record is malformed."""


class IndexOutOfRange(RetargetError, IndexError):
    """A landmark index outside the fixed skeleton was referenced."""

    def __init__(self, index, size: int):
        super().__init__(f"Landmark index {index!r} out of range [0, {size})")
        self.index = index
