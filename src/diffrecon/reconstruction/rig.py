"""Two-view rig: epipolar geometry and third-order differential reconstruction.

Reconstruction recovers a 3D differential point (position, Frenet frame,
curvature, curvature rate and torsion) from a pair of corresponding image
differential points. Position comes from the closest approach of the two
viewing rays, the tangent from the intersection of the two viewing planes,
and the second and third derivatives from one linear constraint per view
plus the arc-length constraints.

The algebra stays defined when the two viewing planes coincide (curve
tangent along the epipolar line) but becomes ill-conditioned there. Nothing
here flags that case; callers gate correspondences with
:func:`angle_with_epipolar_line` first.
"""

from __future__ import annotations

import math

import numpy as np
import scipy.linalg

from diffrecon.calibration.projection import PerspectiveCamera, WorldObservation
from diffrecon.geometry.differential import (
    DifferentialPoint2D,
    DifferentialPoint3D,
    normalize,
)

# ---------------------------------------------------------------------------
# Epipolar geometry
# ---------------------------------------------------------------------------


def _skew(v: np.ndarray) -> np.ndarray:
    return np.array(
        [[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]],
        dtype=np.float64,
    )


def fundamental_matrix(cam0: PerspectiveCamera, cam1: PerspectiveCamera) -> np.ndarray:
    """Fundamental matrix F with ``x1^T F x0 = 0`` for corresponding pixels.

    Args:
        cam0: First camera.
        cam1: Second camera.

    Returns:
        F, shape (3, 3), normalized to unit Frobenius norm.
    """
    R = cam1.R @ cam0.R.T
    t = cam1.R @ (cam0.center - cam1.center)
    F = cam1.K_inv.T @ _skew(t) @ R @ cam0.K_inv
    return F / np.linalg.norm(F)


def epipole(epipolar_form: np.ndarray) -> np.ndarray:
    """Homogeneous epipole of the first view: the right null vector of F."""
    _, _, vt = np.linalg.svd(epipolar_form)
    return vt[-1]


def angle_with_epipolar_line(
    tangent: np.ndarray,
    position: np.ndarray,
    epipolar_form: np.ndarray,
) -> float:
    """Acute angle between an image tangent and the local epipolar line.

    The epipolar line through *position* in the first view is the line
    joining it to the epipole (the null vector of *epipolar_form*); this also
    covers epipoles at infinity.

    Args:
        tangent: Image tangent in the first view, shape (2,).
        position: Image position in the first view, shape (2,).
        epipolar_form: Fundamental matrix mapping first-view points to
            second-view epipolar lines, shape (3, 3).

    Returns:
        Angle in [0, pi/2]. Zero when the position coincides with the
        epipole or the tangent is zero.
    """
    return _angle_to_line_through(tangent, position, epipole(epipolar_form))


def _angle_to_line_through(
    tangent: np.ndarray, position: np.ndarray, e: np.ndarray
) -> float:
    x = np.array([position[0], position[1], 1.0], dtype=np.float64)
    line = np.cross(e, x)
    direction = np.array([line[1], -line[0]], dtype=np.float64)
    d_norm = float(np.linalg.norm(direction))
    t_norm = float(np.linalg.norm(tangent))
    if d_norm == 0.0 or t_norm == 0.0:
        return 0.0
    cos_angle = abs(float(np.dot(tangent, direction))) / (d_norm * t_norm)
    return math.acos(min(cos_angle, 1.0))


# ---------------------------------------------------------------------------
# Rig
# ---------------------------------------------------------------------------


def _closest_approach(obs0: WorldObservation, obs1: WorldObservation) -> np.ndarray:
    """Midpoint of the shortest segment between the two viewing rays.

    Solves ``sum_i (I - d_i d_i^T) p = sum_i (I - d_i d_i^T) o_i`` in the
    least-squares sense, which also handles parallel rays.
    """
    A = np.zeros((3, 3), dtype=np.float64)
    b = np.zeros(3, dtype=np.float64)
    for obs in (obs0, obs1):
        d = normalize(obs.ray)
        M = np.eye(3) - np.outer(d, d)
        A += M
        b += M @ obs.center
    solution, *_ = scipy.linalg.lstsq(A, b)
    return solution


class TwoViewRig:
    """Two calibrated cameras and the epipolar relation between them.

    The rig keeps references to the cameras it was built from and must not
    outlive them; it copies nothing.

    Args:
        cam0: First camera (the view whose tangents are tested against the
            epipolar line).
        cam1: Second camera.

    Attributes:
        cam: Tuple ``(cam0, cam1)``.
        f12: Fundamental matrix with ``x1^T f12 x0 = 0``.
        epipole: Homogeneous epipole of view 0, the null vector of f12.
    """

    def __init__(self, cam0: PerspectiveCamera, cam1: PerspectiveCamera) -> None:
        self.cam = (cam0, cam1)
        self.f12 = fundamental_matrix(cam0, cam1)
        self.epipole = epipole(self.f12)

    def epipolar_angle(self, point: DifferentialPoint2D) -> float:
        """Epipolar angle of a first-view image point, in [0, pi/2]."""
        return _angle_to_line_through(point.tangent, point.position, self.epipole)

    def image_to_world(self, view: int, point: DifferentialPoint2D) -> WorldObservation:
        """Lift an image point of view 0 or 1 to a world observation."""
        return self.cam[view].image_to_world(point)

    def reconstruct_third_order(
        self, obs0: WorldObservation, obs1: WorldObservation
    ) -> DifferentialPoint3D:
        """Reconstruct a 3D differential point from two lifted observations.

        For each view with depth ``z``, ray ``d`` (``d . axis = 1``) and
        viewing-plane normal ``w``, writing ``Gamma - C = z d`` and
        differentiating with respect to 3D arc length gives

        - ``w . Gamma''  = z a^2 k``
        - ``w . Gamma''' = 3 z' a^2 k + z (a^3 k' + 3 a a' k)``

        where ``a`` is the image speed ``d sigma / ds`` and ``k``, ``k'`` are
        the normalized image curvature and its rate. Together with
        ``T . Gamma'' = 0`` and ``T . Gamma''' = -K^2`` these give two 3x3
        systems, solved in the least-squares sense.

        Args:
            obs0: Observation lifted from view 0.
            obs1: Observation lifted from view 1.

        Returns:
            Reconstructed DifferentialPoint3D. No conditioning flag is
            produced.
        """
        position = _closest_approach(obs0, obs1)
        observations = (obs0, obs1)
        plane_normals = [obs.plane_normal for obs in observations]

        tangent = normalize(np.cross(plane_normals[0], plane_normals[1]))
        # Orient T so that it moves along the view-0 image tangent.
        z0 = float(np.dot(obs0.axis, position - obs0.center))
        g1 = tangent - float(np.dot(obs0.axis, tangent)) * obs0.ray
        if z0 * float(np.dot(g1, obs0.tangent)) < 0.0:
            tangent = -tangent

        # Per-view depth, depth rate, image speed and image velocity.
        depth = []
        depth_rate = []
        speed = []
        velocity = []
        for obs in observations:
            z = float(np.dot(obs.axis, position - obs.center))
            z1 = float(np.dot(obs.axis, tangent))
            v = (tangent - z1 * obs.ray) / z
            depth.append(z)
            depth_rate.append(z1)
            speed.append(float(np.dot(v, obs.tangent)))
            velocity.append(v)

        # Second order
        A = np.vstack([plane_normals[0], plane_normals[1], tangent])
        b2 = np.array(
            [
                depth[i] * speed[i] ** 2 * observations[i].curvature
                for i in range(2)
            ]
            + [0.0]
        )
        gamma2, *_ = scipy.linalg.lstsq(A, b2)
        curvature = float(np.linalg.norm(gamma2))
        normal = normalize(gamma2)

        # Third order
        b3 = []
        for i, obs in enumerate(observations):
            z, z1, a, k = depth[i], depth_rate[i], speed[i], obs.curvature
            z2 = float(np.dot(obs.axis, gamma2))
            acceleration = (gamma2 - z2 * obs.ray - 2.0 * z1 * velocity[i]) / z
            a1 = float(np.dot(acceleration, obs.tangent))
            b3.append(
                3.0 * z1 * a * a * k
                + z * (a**3 * obs.curvature_rate + 3.0 * a * a1 * k)
            )
        b3.append(-(curvature**2))
        gamma3, *_ = scipy.linalg.lstsq(A, np.array(b3))

        binormal = np.cross(tangent, normal)
        curvature_rate = float(np.dot(gamma3, normal))
        torsion = float(np.dot(gamma3, binormal)) / curvature if curvature > 0.0 else 0.0

        return DifferentialPoint3D(
            position=position,
            tangent=tangent,
            normal=normal,
            binormal=binormal,
            curvature=curvature,
            curvature_rate=curvature_rate,
            torsion=torsion,
        )


def reconstruct_third_order(
    rig: TwoViewRig, obs0: WorldObservation, obs1: WorldObservation
) -> DifferentialPoint3D:
    """Functional form of :meth:`TwoViewRig.reconstruct_third_order`."""
    return rig.reconstruct_third_order(obs0, obs1)
