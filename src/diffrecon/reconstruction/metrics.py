"""Reprojection error engine for two-view differential reconstruction.

Ground-truth correspondences over at least three views are reconstructed
from views 0 and 1, reprojected into view 2 and compared against the view-2
observation on four channels: position, tangent angle, curvature and
curvature rate. Correspondences whose projection is degenerate or whose
view-0 tangent is too close to the epipolar line are filtered out; the
surviving original indices are kept so that worst cases can be traced back
to the input.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from diffrecon.calibration.projection import PerspectiveCamera
from diffrecon.errors import MalformedCorrespondenceError
from diffrecon.geometry.differential import DifferentialPoint2D
from diffrecon.reconstruction.rig import TwoViewRig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

DEFAULT_EPIPOLAR_ANGLE_THRESHOLD: float = math.pi / 6  # 30 degrees
MIN_VIEWS: int = 3

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

# view -> correspondence index -> image point
Correspondences = Sequence[Sequence[DifferentialPoint2D]]

# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReprojectionErrors:
    """Per-correspondence reprojection errors for the accepted indices.

    All arrays have one entry per accepted correspondence, in input order.

    Attributes:
        position_sq: Squared pixel distance between the reprojected and the
            observed view-2 positions.
        tangent: Unsigned angle in radians between the unit tangents.
        curvature: Absolute curvature difference.
        curvature_rate: Absolute curvature-rate difference.
        valid_indices: Original correspondence index of each entry.
    """

    position_sq: np.ndarray
    tangent: np.ndarray
    curvature: np.ndarray
    curvature_rate: np.ndarray
    valid_indices: np.ndarray

    def __len__(self) -> int:
        return int(self.valid_indices.shape[0])


@dataclass(frozen=True)
class ChannelMax:
    """Largest error on one channel and the correspondence attaining it."""

    value: float
    original_index: int


@dataclass(frozen=True)
class MaxErrorSummary:
    """Worst-case errors over the accepted correspondences.

    Channels are None when no correspondence was accepted.

    Attributes:
        position: Maximum position error in pixels (square root applied).
        tangent: Maximum tangent angle error in radians.
        curvature: Maximum absolute curvature error.
        curvature_rate: Maximum absolute curvature-rate error.
        valid_count: Number of accepted correspondences.
    """

    position: ChannelMax | None
    tangent: ChannelMax | None
    curvature: ChannelMax | None
    curvature_rate: ChannelMax | None
    valid_count: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def tangent_angle_error(a: np.ndarray, b: np.ndarray) -> float:
    """Unsigned angle between two unit tangents, in [0, pi].

    The dot product is clamped to [-1, 1] before the inverse cosine so that
    floating-point overshoot never produces NaN.
    """
    cos_angle = float(np.dot(a, b))
    return math.acos(min(1.0, max(-1.0, cos_angle)))


def _validate_input(
    correspondences: Correspondences, cameras: Sequence[PerspectiveCamera]
) -> int:
    if len(correspondences) < MIN_VIEWS:
        raise MalformedCorrespondenceError(
            f"Need at least {MIN_VIEWS} views, got {len(correspondences)}"
        )
    if len(cameras) < MIN_VIEWS:
        raise MalformedCorrespondenceError(
            f"Need one camera per view for at least {MIN_VIEWS} views, "
            f"got {len(cameras)}"
        )
    n_points = len(correspondences[0])
    lengths = [len(view) for view in correspondences]
    if any(length != n_points for length in lengths):
        raise MalformedCorrespondenceError(
            f"All views must have the same number of points, got {lengths}"
        )
    return n_points


def _channel_max(values: np.ndarray, valid_indices: np.ndarray) -> ChannelMax | None:
    if values.size == 0:
        return None
    # argmax returns the first occurrence, so earlier indices win ties
    pos = int(np.argmax(values))
    return ChannelMax(value=float(values[pos]), original_index=int(valid_indices[pos]))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ReconstructionErrorEngine:
    """Reconstruct-and-reproject error metrics over a correspondence set.

    The engine holds only its configuration; every call to :meth:`compute`
    produces fresh result arrays.

    Args:
        epipolar_angle_threshold: Minimum angle in radians between the view-0
            tangent and the epipolar line for a correspondence to be used.
    """

    def __init__(
        self, epipolar_angle_threshold: float = DEFAULT_EPIPOLAR_ANGLE_THRESHOLD
    ) -> None:
        self.epipolar_angle_threshold = epipolar_angle_threshold

    def compute(
        self,
        correspondences: Correspondences,
        cameras: Sequence[PerspectiveCamera],
        rig: TwoViewRig | None = None,
    ) -> ReprojectionErrors:
        """Compute the four error channels for all accepted correspondences.

        Args:
            correspondences: Per-view sequences of image points; view ``i``
                at index ``k`` is the same 3D sample in every view.
            cameras: One camera per view. Only cameras 0-2 are used.
            rig: Rig over views 0 and 1. Built from ``cameras[0]`` and
                ``cameras[1]`` when omitted.

        Returns:
            ReprojectionErrors for the accepted indices.

        Raises:
            MalformedCorrespondenceError: Fewer than three views or cameras,
                or views of unequal length.
        """
        n_points = _validate_input(correspondences, cameras)
        if rig is None:
            rig = TwoViewRig(cameras[0], cameras[1])

        view0, view1, view2 = correspondences[0], correspondences[1], correspondences[2]
        cam2 = cameras[2]

        err_pos_sq: list[float] = []
        err_t: list[float] = []
        err_k: list[float] = []
        err_kdot: list[float] = []
        valid_idx: list[int] = []
        n_ill_conditioned = 0
        n_degenerate = 0

        for i in range(n_points):
            p1 = view0[i]
            if rig.epipolar_angle(p1) <= self.epipolar_angle_threshold:
                n_ill_conditioned += 1
                continue

            p1_w = rig.image_to_world(0, p1)
            p2_w = rig.image_to_world(1, view1[i])
            p_rec = rig.reconstruct_third_order(p1_w, p2_w)

            reproj, valid = cam2.project(p_rec)
            if not valid:
                n_degenerate += 1
                continue

            p3 = view2[i]
            valid_idx.append(i)

            diff = reproj.position - p3.position
            err_pos_sq.append(float(np.dot(diff, diff)))
            err_t.append(tangent_angle_error(reproj.tangent, p3.tangent))
            err_k.append(abs(reproj.curvature - p3.curvature))
            err_kdot.append(abs(reproj.curvature_rate - p3.curvature_rate))

        logger.debug(
            "Reprojection errors: %d/%d accepted (%d near epipolar tangency, "
            "%d degenerate reprojections)",
            len(valid_idx),
            n_points,
            n_ill_conditioned,
            n_degenerate,
        )

        return ReprojectionErrors(
            position_sq=np.asarray(err_pos_sq, dtype=np.float64),
            tangent=np.asarray(err_t, dtype=np.float64),
            curvature=np.asarray(err_k, dtype=np.float64),
            curvature_rate=np.asarray(err_kdot, dtype=np.float64),
            valid_indices=np.asarray(valid_idx, dtype=np.int64),
        )

    def max_errors(
        self,
        correspondences: Correspondences,
        cameras: Sequence[PerspectiveCamera],
        rig: TwoViewRig | None = None,
    ) -> MaxErrorSummary:
        """Compute errors and reduce them to per-channel maxima."""
        return max_errors(self.compute(correspondences, cameras, rig))


# ---------------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------------


def compute_errors(
    correspondences: Correspondences,
    cameras: Sequence[PerspectiveCamera],
    rig: TwoViewRig | None = None,
    epipolar_angle_threshold: float = DEFAULT_EPIPOLAR_ANGLE_THRESHOLD,
) -> ReprojectionErrors:
    """Functional form of :meth:`ReconstructionErrorEngine.compute`."""
    engine = ReconstructionErrorEngine(epipolar_angle_threshold)
    return engine.compute(correspondences, cameras, rig)


def max_errors(errors: ReprojectionErrors) -> MaxErrorSummary:
    """Reduce per-correspondence errors to per-channel maxima.

    The position channel is stored squared; the square root is taken only
    on its maximum. Ties resolve to the first accepted correspondence.

    Args:
        errors: Output of :func:`compute_errors`.

    Returns:
        MaxErrorSummary with original correspondence indices.
    """
    idx = errors.valid_indices
    pos = _channel_max(errors.position_sq, idx)
    if pos is not None:
        pos = ChannelMax(value=math.sqrt(pos.value), original_index=pos.original_index)
    return MaxErrorSummary(
        position=pos,
        tangent=_channel_max(errors.tangent, idx),
        curvature=_channel_max(errors.curvature, idx),
        curvature_rate=_channel_max(errors.curvature_rate, idx),
        valid_count=len(errors),
    )
