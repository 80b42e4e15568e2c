"""Projection of synthetic curves into multiple views.

Produces the per-view correspondence sequences consumed by the
reconstruction error engine, optionally removes samples that are
near-tangent to the epipolar lines of the first camera pair, and perturbs
image observations to simulate edge-detection noise.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from diffrecon.calibration.projection import PerspectiveCamera
from diffrecon.geometry.differential import DifferentialPoint2D, normalize
from diffrecon.reconstruction.metrics import Correspondences
from diffrecon.reconstruction.rig import TwoViewRig
from diffrecon.synthetic.curves import Curve3D, flatten_curves

logger = logging.getLogger(__name__)


def project_into_views(
    curves: Sequence[Curve3D],
    cameras: Sequence[PerspectiveCamera],
) -> tuple[list[list[DifferentialPoint2D]], np.ndarray]:
    """Project every curve sample into every camera.

    Samples are flattened across curves in order, so index ``k`` refers to
    the same 3D sample in every view.

    Args:
        curves: Sampled 3D curves.
        cameras: One camera per view.

    Returns:
        Tuple of (correspondences, valid). ``correspondences[v][k]`` is the
        projection of sample ``k`` into view ``v``; ``valid`` has shape
        (n_views, n_samples) and is False for degenerate projections.
    """
    samples = flatten_curves(curves)
    views: list[list[DifferentialPoint2D]] = []
    valid = np.zeros((len(cameras), len(samples)), dtype=bool)
    for v, cam in enumerate(cameras):
        projected = []
        for k, sample in enumerate(samples):
            point, ok = cam.project(sample)
            projected.append(point)
            valid[v, k] = ok
        views.append(projected)

    n_bad = int((~valid).sum())
    if n_bad:
        logger.debug("%d of %d projections are degenerate", n_bad, valid.size)
    return views, valid


def project_positions_into_views(
    points: np.ndarray,
    cameras: Sequence[PerspectiveCamera],
) -> np.ndarray:
    """Project plain 3D points into every camera.

    Args:
        points: World points, shape (N, 3).
        cameras: One camera per view.

    Returns:
        Pixel coordinates, shape (n_views, N, 2). NaN where a point is on or
        behind a camera's principal plane.
    """
    return np.stack([cam.project_positions(points)[0] for cam in cameras])


def drop_epitangent(
    correspondences: Correspondences,
    rig: TwoViewRig,
    threshold: float,
) -> list[list[DifferentialPoint2D]]:
    """Keep only correspondences whose view-0 epipolar angle exceeds *threshold*.

    Args:
        correspondences: Per-view sequences of equal length.
        rig: Rig over views 0 and 1.
        threshold: Minimum epipolar angle in radians.

    Returns:
        New per-view lists containing only the kept indices, in order.
    """
    keep = [
        i
        for i, p in enumerate(correspondences[0])
        if rig.epipolar_angle(p) > threshold
    ]
    logger.debug(
        "Kept %d of %d correspondences away from epipolar tangency",
        len(keep),
        len(correspondences[0]),
    )
    return [[view[i] for i in keep] for view in correspondences]


def perturb_observations(
    points: Sequence[DifferentialPoint2D],
    rng: np.random.Generator,
    position_px: float = 0.0,
    tangent_deg: float = 0.0,
) -> list[DifferentialPoint2D]:
    """Add uniform noise to image positions and tangent orientations.

    Each position coordinate moves by up to *position_px* and each tangent
    rotates by up to *tangent_deg*; the tangent is renormalized afterwards.
    Curvature and curvature rate are left unchanged.

    Args:
        points: Observations of one view.
        rng: Random generator of the run.
        position_px: Maximum absolute position offset per coordinate.
        tangent_deg: Maximum absolute tangent rotation in degrees.

    Returns:
        New list of perturbed observations.
    """
    max_angle = math.radians(tangent_deg)
    perturbed = []
    for p in points:
        offset = rng.uniform(-position_px, position_px, size=2) if position_px else 0.0
        angle = rng.uniform(-max_angle, max_angle) if max_angle else 0.0
        c, s = math.cos(angle), math.sin(angle)
        tangent = np.array(
            [c * p.tangent[0] - s * p.tangent[1], s * p.tangent[0] + c * p.tangent[1]]
        )
        perturbed.append(
            DifferentialPoint2D(
                position=p.position + offset,
                tangent=normalize(tangent),
                curvature=p.curvature,
                curvature_rate=p.curvature_rate,
            )
        )
    return perturbed
