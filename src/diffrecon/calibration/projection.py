"""Calibrated perspective camera with third-order differential projection."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from diffrecon.geometry.differential import (
    MIN_SPEED,
    DifferentialPoint2D,
    DifferentialPoint3D,
    planar_point_from_derivatives,
    rot90,
)


@dataclass(frozen=True)
class WorldObservation:
    """An image differential point lifted into world coordinates.

    All image-curve quantities are expressed on the unit-depth image plane
    (normalized coordinates, unit focal length), so curvature is in world
    units of that plane rather than pixels.

    Attributes:
        center: Camera center, shape (3,).
        axis: Optical axis (camera z) in world frame, shape (3,).
        ray: Direction from the center through the image point, scaled so
            that ``ray . axis == 1``, shape (3,).
        point: Image point on the unit-depth plane, ``center + ray``, shape (3,).
        tangent: Unit tangent of the image curve in world frame, shape (3,).
        normal: Left normal of the image curve in world frame, shape (3,).
        curvature: Signed curvature of the normalized image curve.
        curvature_rate: Arc-length derivative of that curvature.
    """

    center: np.ndarray
    axis: np.ndarray
    ray: np.ndarray
    point: np.ndarray
    tangent: np.ndarray
    normal: np.ndarray
    curvature: float
    curvature_rate: float

    @property
    def plane_normal(self) -> np.ndarray:
        """Normal of the viewing plane through the ray and the image tangent.

        Equal to ``normal - (normal . ray) axis``, which is orthogonal to both
        the ray and the world tangent.
        """
        return self.normal - float(np.dot(self.normal, self.ray)) * self.axis


class PerspectiveCamera:
    """Pinhole camera projecting differential points up to third order.

    Args:
        K: Intrinsic calibration matrix (focal lengths, principal point,
            skew), shape (3, 3).
        R: Rotation matrix (world to camera), shape (3, 3). Rows are the
            camera x, y and z (viewing direction) axes in world frame.
        center: Camera center in world frame, shape (3,).
    """

    def __init__(self, K: np.ndarray, R: np.ndarray, center: np.ndarray) -> None:
        self.K = np.array(K, dtype=np.float64).reshape(3, 3)
        self.R = np.array(R, dtype=np.float64).reshape(3, 3)
        self.center = np.array(center, dtype=np.float64).reshape(3)

        # Precompute derived quantities
        self.K_inv = np.linalg.inv(self.K)
        self.t = -self.R @ self.center
        self.A = self.K[:2, :2].copy()  # affine part acting on derivatives
        self.A_inv = np.linalg.inv(self.A)

        for arr in (self.K, self.R, self.center, self.K_inv, self.t, self.A, self.A_inv):
            arr.setflags(write=False)

    def __repr__(self) -> str:
        c = self.center
        return f"PerspectiveCamera(center=({c[0]:.4g}, {c[1]:.4g}, {c[2]:.4g}))"

    @property
    def axis(self) -> np.ndarray:
        """Optical axis in world frame, shape (3,)."""
        return self.R[2]

    @property
    def P(self) -> np.ndarray:
        """3x4 projection matrix ``K [R | t]``."""
        return self.K @ np.hstack([self.R, self.t[:, None]])

    # ------------------------------------------------------------------
    # Point projection
    # ------------------------------------------------------------------

    def depths(self, points: np.ndarray) -> np.ndarray:
        """Depth along the optical axis of world points, shape (N,)."""
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return (points - self.center) @ self.axis

    def project_positions(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Project world points to pixel positions.

        Args:
            points: World points, shape (N, 3).

        Returns:
            pixels: Pixel coordinates, shape (N, 2). NaN where invalid.
            valid: Boolean mask, shape (N,). False for points on or behind
                the principal plane.
        """
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        cam = (points - self.center) @ self.R.T
        valid = cam[:, 2] > 0.0
        pixels = np.full((points.shape[0], 2), np.nan, dtype=np.float64)
        h = cam[valid] @ self.K.T
        pixels[valid] = h[:, :2] / h[:, 2:3]
        return pixels, valid

    def project(self, point: DifferentialPoint3D) -> tuple[DifferentialPoint2D, bool]:
        """Project a 3D differential point into the image.

        The image curve's derivatives are obtained by differentiating
        ``g = X / z`` with ``X = R (Gamma - C)`` three times, then mapping
        them through the affine part of K.

        Args:
            point: World-space differential point.

        Returns:
            Tuple of (image point, valid). ``valid`` is False when the point
            is on or behind the principal plane (zero-filled result) or when
            its tangent projects to a stationary image point (position filled,
            tangent zero). Callers must check it before using the result.
        """
        X = self.R @ (point.position - self.center)
        z = float(X[2])
        if z <= 0.0:
            return DifferentialPoint2D.zeros(), False

        d1, d2, d3 = point.derivatives()
        X1 = self.R @ d1
        X2 = self.R @ d2
        X3 = self.R @ d3
        z1, z2, z3 = X1[2], X2[2], X3[2]

        g = X / z
        g1 = (X1 - z1 * g) / z
        g2 = (X2 - z2 * g - 2.0 * z1 * g1) / z
        g3 = (X3 - z3 * g - 3.0 * z2 * g1 - 3.0 * z1 * g2) / z

        position = self.A @ g[:2] + self.K[:2, 2]
        image_point, speed = planar_point_from_derivatives(
            position, self.A @ g1[:2], self.A @ g2[:2], self.A @ g3[:2]
        )
        return image_point, speed > MIN_SPEED

    # ------------------------------------------------------------------
    # Back-projection
    # ------------------------------------------------------------------

    def image_to_world(self, point: DifferentialPoint2D) -> WorldObservation:
        """Lift an image differential point to a world ray with curve geometry.

        Pixel-space derivatives with respect to image arc length are mapped
        through the inverse affine calibration, and tangent, curvature and
        curvature rate are recomputed in normalized coordinates before being
        rotated into the world frame.

        Args:
            point: Image-space differential point (unit tangent).

        Returns:
            WorldObservation for this camera.
        """
        t = point.tangent
        n = rot90(t)
        k = point.curvature
        p1 = t
        p2 = k * n
        p3 = point.curvature_rate * n - k * k * t

        g = self.K_inv @ np.array([point.position[0], point.position[1], 1.0])
        g = g / g[2]
        normalized, _ = planar_point_from_derivatives(
            g[:2], self.A_inv @ p1, self.A_inv @ p2, self.A_inv @ p3
        )

        Rt = self.R.T
        ray = Rt @ g
        tangent = Rt @ np.array([normalized.tangent[0], normalized.tangent[1], 0.0])
        normal = Rt @ np.array([normalized.normal[0], normalized.normal[1], 0.0])
        return WorldObservation(
            center=self.center,
            axis=self.axis,
            ray=ray,
            point=self.center + ray,
            tangent=tangent,
            normal=normal,
            curvature=normalized.curvature,
            curvature_rate=normalized.curvature_rate,
        )


def project(
    camera: PerspectiveCamera, point: DifferentialPoint3D
) -> tuple[DifferentialPoint2D, bool]:
    """Functional form of :meth:`PerspectiveCamera.project`."""
    return camera.project(point)
