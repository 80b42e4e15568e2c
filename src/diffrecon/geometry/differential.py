"""Differential point types carrying third-order local curve geometry.

A differential point is a curve sample annotated with its tangent,
curvature and the arc-length derivative of curvature. The 3D variant also
carries the full Frenet frame and torsion so that it can be projected into
any camera up to third order.

Both types are built from position plus the first three derivatives of a
curve with respect to an arbitrary (not necessarily arc-length) parameter,
which is how analytic curves, projections and back-projections all produce
them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

# Parametric speeds at or below this are treated as a stationary point.
MIN_SPEED: float = 1e-12


def _as_vector(values: object, size: int) -> np.ndarray:
    arr = np.array(values, dtype=np.float64).reshape(size)
    arr.setflags(write=False)
    return arr


def cross2(a: np.ndarray, b: np.ndarray) -> float:
    """Scalar 2D cross product ``a_x b_y - a_y b_x``."""
    return float(a[0] * b[1] - a[1] * b[0])


def rot90(v: np.ndarray) -> np.ndarray:
    """Rotate a 2D vector by +90 degrees (the left normal of a tangent)."""
    return np.array([-v[1], v[0]], dtype=np.float64)


def normalize(v: np.ndarray) -> np.ndarray:
    """Return ``v / |v|``, or ``v`` unchanged when its norm is zero."""
    norm = float(np.linalg.norm(v))
    if norm == 0.0:
        return np.asarray(v, dtype=np.float64)
    return np.asarray(v, dtype=np.float64) / norm


def any_orthogonal(v: np.ndarray) -> np.ndarray:
    """Return some unit vector orthogonal to the 3D unit vector *v*."""
    # Cross with the world axis least aligned with v.
    axis = np.zeros(3, dtype=np.float64)
    axis[int(np.argmin(np.abs(v)))] = 1.0
    return normalize(np.cross(v, axis))


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DifferentialPoint2D:
    """Image-space curve sample with third-order differential geometry.

    Attributes:
        position: Image position (u, v) in pixels, shape (2,).
        tangent: Unit tangent, shape (2,). Zero-filled for degenerate
            projections.
        curvature: Signed curvature with respect to the left normal
            ``rot90(tangent)``, in 1/pixels.
        curvature_rate: Derivative of curvature with respect to image arc
            length, in 1/pixels^2.
    """

    position: np.ndarray
    tangent: np.ndarray
    curvature: float = 0.0
    curvature_rate: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _as_vector(self.position, 2))
        object.__setattr__(self, "tangent", _as_vector(self.tangent, 2))
        object.__setattr__(self, "curvature", float(self.curvature))
        object.__setattr__(self, "curvature_rate", float(self.curvature_rate))

    @property
    def normal(self) -> np.ndarray:
        """Left normal of the tangent, shape (2,)."""
        return rot90(self.tangent)

    def with_unit_tangent(self) -> DifferentialPoint2D:
        """Return a copy whose tangent is renormalized to unit length."""
        return DifferentialPoint2D(
            position=self.position,
            tangent=normalize(self.tangent),
            curvature=self.curvature,
            curvature_rate=self.curvature_rate,
        )

    @classmethod
    def zeros(cls) -> DifferentialPoint2D:
        """Zero-filled point returned for degenerate projections."""
        return cls(position=np.zeros(2), tangent=np.zeros(2))


@dataclass(frozen=True)
class DifferentialPoint3D:
    """World-space curve sample with its Frenet frame up to third order.

    The arc-length derivatives of the curve at the sample are

    - ``Gamma'   = T``
    - ``Gamma''  = K N``
    - ``Gamma''' = -K^2 T + K' N + K tau B``

    Attributes:
        position: World position, shape (3,).
        tangent: Unit tangent T, shape (3,).
        normal: Unit normal N, shape (3,). Arbitrary (but orthogonal to T)
            where curvature vanishes.
        binormal: Unit binormal B = T x N, shape (3,).
        curvature: Curvature K >= 0.
        curvature_rate: Arc-length derivative of curvature K'.
        torsion: Torsion tau.
    """

    position: np.ndarray
    tangent: np.ndarray
    normal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    binormal: np.ndarray = field(default_factory=lambda: np.zeros(3))
    curvature: float = 0.0
    curvature_rate: float = 0.0
    torsion: float = 0.0

    def __post_init__(self) -> None:
        for name in ("position", "tangent", "normal", "binormal"):
            object.__setattr__(self, name, _as_vector(getattr(self, name), 3))
        for name in ("curvature", "curvature_rate", "torsion"):
            object.__setattr__(self, name, float(getattr(self, name)))

    def derivatives(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Arc-length derivatives (Gamma', Gamma'', Gamma''') at the sample."""
        k = self.curvature
        d1 = self.tangent
        d2 = k * self.normal
        d3 = (
            -k * k * self.tangent
            + self.curvature_rate * self.normal
            + k * self.torsion * self.binormal
        )
        return d1, d2, d3


# ---------------------------------------------------------------------------
# Construction from parametric derivatives
# ---------------------------------------------------------------------------


def planar_point_from_derivatives(
    position: np.ndarray,
    d1: np.ndarray,
    d2: np.ndarray,
    d3: np.ndarray,
) -> tuple[DifferentialPoint2D, float]:
    """Build a 2D differential point from parametric derivatives.

    Args:
        position: Curve position, shape (2,).
        d1: First derivative with respect to the parameter, shape (2,).
        d2: Second derivative, shape (2,).
        d3: Third derivative, shape (2,).

    Returns:
        Tuple of (point, speed) where speed is ``|d1|``. When the speed is
        at or below MIN_SPEED the tangent and higher-order terms are zero.
    """
    speed = float(np.linalg.norm(d1))
    if speed <= MIN_SPEED:
        return DifferentialPoint2D(position=position, tangent=np.zeros(2)), speed

    c12 = cross2(d1, d2)
    curvature = c12 / speed**3
    dk_dparam = cross2(d1, d3) / speed**3 - 3.0 * c12 * float(np.dot(d1, d2)) / speed**5
    point = DifferentialPoint2D(
        position=position,
        tangent=d1 / speed,
        curvature=curvature,
        curvature_rate=dk_dparam / speed,
    )
    return point, speed


def spatial_point_from_derivatives(
    position: np.ndarray,
    d1: np.ndarray,
    d2: np.ndarray,
    d3: np.ndarray,
) -> DifferentialPoint3D:
    """Build a 3D differential point from parametric derivatives.

    Uses the standard Frenet formulas for an arbitrary parameterization:
    ``K = |r' x r''| / |r'|^3`` and ``tau = (r' x r'') . r''' / |r' x r''|^2``.

    Raises:
        ValueError: If the parametric speed vanishes (no tangent).
    """
    d1 = np.asarray(d1, dtype=np.float64)
    d2 = np.asarray(d2, dtype=np.float64)
    d3 = np.asarray(d3, dtype=np.float64)
    speed = float(np.linalg.norm(d1))
    if speed <= MIN_SPEED:
        raise ValueError("Curve parameterization is stationary; tangent undefined")

    tangent = d1 / speed
    c = np.cross(d1, d2)
    c_norm = float(np.linalg.norm(c))
    if c_norm <= MIN_SPEED * speed:
        normal = any_orthogonal(tangent)
        return DifferentialPoint3D(
            position=position,
            tangent=tangent,
            normal=normal,
            binormal=np.cross(tangent, normal),
        )

    binormal = c / c_norm
    normal = np.cross(binormal, tangent)
    curvature = c_norm / speed**3
    dk_dparam = (
        float(np.dot(binormal, np.cross(d1, d3))) / speed**3
        - 3.0 * c_norm * float(np.dot(d1, d2)) / speed**5
    )
    return DifferentialPoint3D(
        position=position,
        tangent=tangent,
        normal=normal,
        binormal=binormal,
        curvature=curvature,
        curvature_rate=dk_dparam / speed,
        torsion=float(np.dot(c, d3)) / c_norm**2,
    )
