"""Exceptions raised by diffrecon.

Per-point degeneracies (invalid projections, ill-conditioned
correspondences) are never raised; they are reported through validity flags
and filtered index sets. Only structural problems and broken invariants are
exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from diffrecon.synthetic.cameras import CameraSet


class MalformedCorrespondenceError(ValueError):
    """Correspondence input rejected before any computation.

    Raised for fewer than three views or cameras, or for views whose
    sequences differ in length.
    """


class InvariantViolation(RuntimeError):
    """A geometric invariant that can only fail through a logic bug."""


class SeparationConstraintExhausted(RuntimeError):
    """Camera sampling gave up on the minimum-separation constraint.

    Attributes:
        cameras: Cameras accepted before the trial budget ran out.
        trials: Number of consecutive rejected draws when sampling stopped.
        requested: Number of cameras originally requested.
    """

    def __init__(self, cameras: CameraSet, trials: int, requested: int) -> None:
        super().__init__(
            f"Unable to place camera {len(cameras) + 1} of {requested} after "
            f"{trials} rejected draws; minimum separation cannot be satisfied"
        )
        self.cameras = cameras
        self.trials = trials
        self.requested = requested
