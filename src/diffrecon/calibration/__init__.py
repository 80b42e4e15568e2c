"""Pinhole calibration and differential perspective projection."""

from .intrinsics import calibration_matrix, scale_calibration
from .projection import PerspectiveCamera, WorldObservation, project

__all__ = [
    "PerspectiveCamera",
    "WorldObservation",
    "calibration_matrix",
    "project",
    "scale_calibration",
]
