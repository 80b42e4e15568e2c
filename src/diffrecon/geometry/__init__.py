"""Differential-geometric point types and their closed-form construction."""

from .differential import (
    MIN_SPEED,
    DifferentialPoint2D,
    DifferentialPoint3D,
    any_orthogonal,
    cross2,
    normalize,
    planar_point_from_derivatives,
    rot90,
    spatial_point_from_derivatives,
)

__all__ = [
    "MIN_SPEED",
    "DifferentialPoint2D",
    "DifferentialPoint3D",
    "any_orthogonal",
    "cross2",
    "normalize",
    "planar_point_from_derivatives",
    "rot90",
    "spatial_point_from_derivatives",
]
