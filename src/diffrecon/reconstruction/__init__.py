"""Two-view differential reconstruction and third-view reprojection errors."""

from .metrics import (
    DEFAULT_EPIPOLAR_ANGLE_THRESHOLD,
    ChannelMax,
    Correspondences,
    MaxErrorSummary,
    ReconstructionErrorEngine,
    ReprojectionErrors,
    compute_errors,
    max_errors,
    tangent_angle_error,
)
from .rig import (
    TwoViewRig,
    angle_with_epipolar_line,
    epipole,
    fundamental_matrix,
    reconstruct_third_order,
)

__all__ = [
    "DEFAULT_EPIPOLAR_ANGLE_THRESHOLD",
    "ChannelMax",
    "Correspondences",
    "MaxErrorSummary",
    "ReconstructionErrorEngine",
    "ReprojectionErrors",
    "TwoViewRig",
    "angle_with_epipolar_line",
    "compute_errors",
    "epipole",
    "fundamental_matrix",
    "max_errors",
    "reconstruct_third_order",
    "tangent_angle_error",
]
