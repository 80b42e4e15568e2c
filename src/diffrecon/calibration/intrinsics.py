"""Construction of 3x3 intrinsic calibration matrices."""

from __future__ import annotations

import numpy as np


def calibration_matrix(
    fx: float,
    fy: float,
    cx: float,
    cy: float,
    skew: float = 0.0,
) -> np.ndarray:
    """Build an upper-triangular intrinsic calibration matrix.

    Args:
        fx: Focal length along x in pixels.
        fy: Focal length along y in pixels.
        cx: Principal point x coordinate in pixels.
        cy: Principal point y coordinate in pixels.
        skew: Axis skew term K[0, 1].

    Returns:
        Calibration matrix, shape (3, 3), float64.

    Raises:
        ValueError: If either focal length is not strictly positive.
    """
    if fx <= 0.0 or fy <= 0.0:
        raise ValueError(f"Focal lengths must be positive, got fx={fx}, fy={fy}")
    return np.array(
        [[fx, skew, cx], [0.0, fy, cy], [0.0, 0.0, 1.0]],
        dtype=np.float64,
    )


def scale_calibration(
    K: np.ndarray,
    x_max_scaled: float,
    crop: tuple[float, float] = (0.0, 0.0),
) -> np.ndarray:
    """Adapt a calibration matrix to a cropped and resized image.

    The principal point is first shifted by the crop origin. The image is
    assumed to be centred on the (cropped) principal point, so its original
    width is ``2 * cx``; the matrix is then scaled so that this width maps
    onto ``x_max_scaled`` columns.

    Args:
        K: Reference calibration matrix, shape (3, 3).
        x_max_scaled: Number of columns of the resized image. Zero keeps the
            original resolution.
        crop: Crop origin (x, y) in reference pixels.

    Returns:
        New calibration matrix, shape (3, 3), float64.
    """
    K = np.asarray(K, dtype=np.float64)
    cx = K[0, 2] - crop[0]
    cy = K[1, 2] - crop[1]

    if x_max_scaled == 0:
        scale = 1.0
    else:
        scale = (x_max_scaled - 1.0) / (2.0 * cx - 1.0)

    return calibration_matrix(
        fx=scale * K[0, 0],
        fy=scale * K[1, 1],
        cx=scale * cx,
        cy=scale * cy,
        skew=scale * K[0, 1],
    )
