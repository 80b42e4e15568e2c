"""Analytic 3D curves sampled as differential points.

Each generator evaluates a closed-form curve and its first three parametric
derivatives, so every sample carries exact tangent, curvature, curvature
rate and torsion. Angular parameters are in degrees and sampled over
``[start, start + span)`` with the given step, so consecutive samples never
coincide.

:func:`reference_scene` lays out a fixed mix of lines, circles, ellipses and
helices for sweeps. Curves that share an end point are nudged by tiny
offsets so that no two samples are exactly equal.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

from diffrecon.geometry.differential import (
    DifferentialPoint3D,
    spatial_point_from_derivatives,
)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

Curve3D = list[DifferentialPoint3D]

# Shift applied between curves that would otherwise share a start point.
NUDGE: float = 1e-5


def _angles(start_deg: float, step_deg: float, span_deg: float) -> np.ndarray:
    if step_deg <= 0.0:
        raise ValueError(f"Angular step must be positive, got {step_deg}")
    if span_deg <= 0.0:
        raise ValueError(f"Angular span must be positive, got {span_deg}")
    return np.radians(np.arange(start_deg, start_deg + span_deg, step_deg))


def _sample(
    translation: Sequence[float],
    values: np.ndarray,
    derivatives: Callable[[float], tuple[np.ndarray, ...]],
) -> Curve3D:
    offset = np.asarray(translation, dtype=np.float64)
    curve: Curve3D = []
    for value in values:
        p, d1, d2, d3 = derivatives(value)
        curve.append(spatial_point_from_derivatives(p + offset, d1, d2, d3))
    return curve


# ---------------------------------------------------------------------------
# Generators
# ---------------------------------------------------------------------------


def line_curve(
    translation: Sequence[float],
    direction: Sequence[float],
    length: float,
    step: float,
) -> Curve3D:
    """Sample a straight segment starting at *translation*.

    Args:
        translation: Start point, shape (3,).
        direction: Segment direction (any non-zero length), shape (3,).
        length: Segment length.
        step: Arc-length spacing between samples.

    Returns:
        Samples at arc lengths ``0, step, ...`` below *length*.
    """
    if step <= 0.0:
        raise ValueError(f"Step must be positive, got {step}")
    d = np.asarray(direction, dtype=np.float64)
    norm = float(np.linalg.norm(d))
    if norm == 0.0:
        raise ValueError("Line direction must be non-zero")
    d = d / norm
    zero = np.zeros(3)
    return _sample(
        translation,
        np.arange(0.0, length, step),
        lambda s: (s * d, d, zero, zero),
    )


def circle_curve(
    radius: float,
    translation: Sequence[float],
    start_deg: float,
    step_deg: float,
    span_deg: float,
) -> Curve3D:
    """Sample a circle of *radius* in the XY plane around *translation*."""
    if radius <= 0.0:
        raise ValueError(f"Radius must be positive, got {radius}")
    return ellipse_curve(radius, radius, translation, start_deg, step_deg, span_deg)


def ellipse_curve(
    ra: float,
    rb: float,
    translation: Sequence[float],
    start_deg: float,
    step_deg: float,
    span_deg: float,
) -> Curve3D:
    """Sample an axis-aligned ellipse with semi-axes *ra* (X) and *rb* (Y)."""
    if ra <= 0.0 or rb <= 0.0:
        raise ValueError(f"Semi-axes must be positive, got ra={ra}, rb={rb}")

    def derivatives(t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        c, s = np.cos(t), np.sin(t)
        return (
            np.array([ra * c, rb * s, 0.0]),
            np.array([-ra * s, rb * c, 0.0]),
            np.array([-ra * c, -rb * s, 0.0]),
            np.array([ra * s, -rb * c, 0.0]),
        )

    return _sample(translation, _angles(start_deg, step_deg, span_deg), derivatives)


def helix_curve(
    radius: float,
    pitch: float,
    translation: Sequence[float],
    start_deg: float,
    step_deg: float,
    span_deg: float,
) -> Curve3D:
    """Sample a right-handed helix around the Z axis.

    Args:
        radius: Helix radius.
        pitch: Rise along Z per full turn.
        translation: Offset of the helix axis.
        start_deg: First angle.
        step_deg: Angular step.
        span_deg: Total angle; values above 360 give several turns.
    """
    if radius <= 0.0:
        raise ValueError(f"Radius must be positive, got {radius}")
    rise = pitch / (2.0 * np.pi)

    def derivatives(t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        c, s = np.cos(t), np.sin(t)
        return (
            np.array([radius * c, radius * s, rise * t]),
            np.array([-radius * s, radius * c, rise]),
            np.array([-radius * c, -radius * s, 0.0]),
            np.array([radius * s, -radius * c, 0.0]),
        )

    return _sample(translation, _angles(start_deg, step_deg, span_deg), derivatives)


# ---------------------------------------------------------------------------
# Rigid transforms
# ---------------------------------------------------------------------------


def rotate_curve(curve: Curve3D, rotvec: Sequence[float]) -> Curve3D:
    """Rotate every sample about the origin.

    Args:
        curve: Samples to rotate.
        rotvec: Rotation axis scaled by the angle in radians, shape (3,).

    Returns:
        New list of rotated samples. Scalars are unchanged.
    """
    if not curve:
        return []
    rot = Rotation.from_rotvec(np.asarray(rotvec, dtype=np.float64))

    # np.stack copies; Rotation.apply rejects the points' read-only buffers.
    positions = rot.apply(np.stack([p.position for p in curve]))
    tangents = rot.apply(np.stack([p.tangent for p in curve]))
    normals = rot.apply(np.stack([p.normal for p in curve]))
    binormals = rot.apply(np.stack([p.binormal for p in curve]))
    return [
        DifferentialPoint3D(
            position=positions[i],
            tangent=tangents[i],
            normal=normals[i],
            binormal=binormals[i],
            curvature=p.curvature,
            curvature_rate=p.curvature_rate,
            torsion=p.torsion,
        )
        for i, p in enumerate(curve)
    ]


def translate_curve(curve: Curve3D, offset: Sequence[float]) -> Curve3D:
    """Translate every sample by *offset*."""
    shift = np.asarray(offset, dtype=np.float64)
    return [
        DifferentialPoint3D(
            position=p.position + shift,
            tangent=p.tangent,
            normal=p.normal,
            binormal=p.binormal,
            curvature=p.curvature,
            curvature_rate=p.curvature_rate,
            torsion=p.torsion,
        )
        for p in curve
    ]


def flatten_curves(curves: Sequence[Curve3D]) -> Curve3D:
    """Concatenate curves into one sample list (correspondence order)."""
    return [p for curve in curves for p in curve]


# ---------------------------------------------------------------------------
# Reference scene
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SceneConfig:
    """Layout parameters for :func:`reference_scene`.

    Attributes:
        unit: Scene length unit; the bounding cube has side ``20 * unit``.
        line_step: Arc-length step for straight edges, in units.
        circle_step_deg: Angular step for circles.
        ellipse_step_deg: Angular step for ellipses.
        helix_step_deg: Angular step for helices.
        include_cube: Whether to include the twelve bounding-cube edges.
    """

    unit: float = 0.5
    line_step: float = 0.2
    circle_step_deg: float = 2.0
    ellipse_step_deg: float = 2.0
    helix_step_deg: float = 5.0
    include_cube: bool = True


def _cube_edges(half: float, step: float) -> list[Curve3D]:
    side = 2.0 * half
    corner = np.array([-half, -half, -half])
    axes = np.eye(3)
    edges: list[Curve3D] = []
    nudge = 0.0
    # Three edges from each of four alternating corners cover the cube.
    for origin_offset, signs in (
        ((0, 0, 0), (1, 1, 1)),
        ((1, 1, 0), (-1, -1, 1)),
        ((1, 0, 1), (-1, 1, -1)),
        ((0, 1, 1), (1, -1, -1)),
    ):
        start = corner + side * np.asarray(origin_offset, dtype=np.float64)
        for axis, sign in zip(axes, signs):
            nudge += NUDGE
            edges.append(line_curve(start + nudge, sign * axis, side, step))
    return edges


def reference_scene(config: SceneConfig | None = None) -> list[Curve3D]:
    """Build a mixed scene of analytic curves around the origin.

    Args:
        config: Scene layout; defaults to :class:`SceneConfig`.

    Returns:
        List of sampled curves.
    """
    cfg = config if config is not None else SceneConfig()
    un = cfg.unit
    line_step = cfg.line_step * un
    curves: list[Curve3D] = []

    if cfg.include_cube:
        curves.extend(_cube_edges(10.0 * un, line_step))

    # Free segments
    curves.append(line_curve(np.array([6, 6, -2]) * un, [5, 5, 9], 10 * un, line_step))
    curves.append(line_curve(np.array([-5.82, -5, -9]) * un, [0, 1, 3], 15 * un, line_step))

    # Circles and arcs
    step = cfg.circle_step_deg
    curves.append(circle_curve(0.5 * un, np.array([-6, -2, 0]) * un, 90, step, 360))
    curves.append(circle_curve(1.5 * un, np.array([5, 2.5, 9]) * un, 90, step, 360))
    curves.append(circle_curve(un, np.array([8, -5, 0]) * un, -89, step, 175))
    curves.append(circle_curve(un, np.array([8, -5, 0]) * un + NUDGE, 89, step, 175))
    arc = circle_curve(3 * un, [0, 0, 0], 60, step, 120)
    arc = rotate_curve(arc, np.pi / 4 * np.array([1, 1, 0]) / np.sqrt(2))
    curves.append(translate_curve(arc, np.array([-5, -7, 3]) * un))

    # Ellipses
    step = cfg.ellipse_step_deg
    curves.append(ellipse_curve(un, 4 * un, np.array([-6, -6, -7]) * un, 60, step, 120))
    curves.append(ellipse_curve(un, 4 * un, np.array([9, 0, -3]) * un, 0, step, 360))
    ell = ellipse_curve(3 * un, un, [0, 0, 0], 30, step, 180)
    ell = rotate_curve(ell, np.pi / 3 * np.array([0, 1, 0]))
    curves.append(translate_curve(ell, np.array([7, -4, -10]) * un))
    ell = ellipse_curve(un, 0.5 * un, [0, 0, 0], 0, step, 280)
    ell = rotate_curve(ell, np.pi / 3 * np.array([1, 1, 1]) / np.sqrt(3))
    curves.append(translate_curve(ell, np.array([-8, 6, 8]) * un))

    # Helices
    step = cfg.helix_step_deg
    hel = helix_curve(0.5 * un, 1.8 * un, np.array([-9, -9, 0]) * un, 0, step, 1800)
    curves.append(hel)
    hel = helix_curve(un, un / 2, np.array([5, 10, 5]) * un, 0, step, 360 * 10)
    curves.append(rotate_curve(hel, np.pi / 2 * np.array([1, 0, 0])))
    hel = helix_curve(0.5 * un, 3 * un, [0, 0, 0], 0, step, 360 * 5)
    hel = rotate_curve(hel, np.pi / 2 * np.array([1, -1, -1]) / np.sqrt(3))
    curves.append(translate_curve(hel, np.array([5, 5, -10]) * un))

    return curves
