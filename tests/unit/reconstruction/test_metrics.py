"""Tests for the reprojection error engine and max-error reduction."""

from __future__ import annotations

import math

import numpy as np
import pytest

from diffrecon.calibration import calibration_matrix
from diffrecon.errors import MalformedCorrespondenceError
from diffrecon.geometry import DifferentialPoint2D
from diffrecon.reconstruction import (
    ReconstructionErrorEngine,
    ReprojectionErrors,
    TwoViewRig,
    compute_errors,
    max_errors,
    tangent_angle_error,
)
from diffrecon.synthetic import (
    CameraSet,
    circle_curve,
    helix_curve,
    line_curve,
    project_into_views,
    rotate_curve,
    turntable_cameras,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cameras() -> CameraSet:
    K = calibration_matrix(1000.0, 1000.0, 320.0, 240.0)
    return turntable_cameras([0.0, 35.0, 70.0], K, distance=10.0)


@pytest.fixture
def views(cameras: CameraSet) -> list[list[DifferentialPoint2D]]:
    curves = [
        rotate_curve(helix_curve(1.0, 1.0, [0.0, 0.0, 0.0], 0.0, 9.0, 720.0), [0.2, 0.1, 0.0]),
        circle_curve(0.8, [0.5, -0.5, 0.5], 0.0, 10.0, 360.0),
        line_curve([-1.0, -1.0, 0.0], [0.1, 1.0, 0.3], 2.0, 0.25),
    ]
    observations, valid = project_into_views(curves, cameras)
    assert valid.all()
    return observations


def _errors(values: list[float], indices: list[int]) -> ReprojectionErrors:
    arr = np.asarray(values, dtype=np.float64)
    return ReprojectionErrors(
        position_sq=arr,
        tangent=arr,
        curvature=arr,
        curvature_rate=arr,
        valid_indices=np.asarray(indices, dtype=np.int64),
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TestReconstructionErrorEngine:
    """Tests for the reconstruct-and-reproject error channels."""

    def test_noise_free_errors_vanish(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        errors = compute_errors(views, cameras)
        assert len(errors) > 20
        assert errors.position_sq.max() < 1e-9
        assert errors.tangent.max() < 1e-6
        assert errors.curvature.max() < 1e-6
        assert errors.curvature_rate.max() < 1e-6

    def test_channels_share_index_set(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        errors = compute_errors(views, cameras)
        n = len(errors.valid_indices)
        for channel in (errors.position_sq, errors.tangent, errors.curvature):
            assert channel.shape == (n,)
        assert errors.curvature_rate.shape == (n,)
        assert np.all(np.diff(errors.valid_indices) > 0)

    def test_excludes_near_epipolar_tangents(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        threshold = math.radians(30.0)
        rig = TwoViewRig(cameras[0], cameras[1])
        errors = ReconstructionErrorEngine(threshold).compute(views, cameras, rig)
        accepted = set(errors.valid_indices.tolist())
        for i, p in enumerate(views[0]):
            if rig.epipolar_angle(p) <= threshold:
                assert i not in accepted
            else:
                assert i in accepted

    def test_larger_threshold_accepts_fewer(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        loose = compute_errors(views, cameras, epipolar_angle_threshold=math.radians(10.0))
        strict = compute_errors(views, cameras, epipolar_angle_threshold=math.radians(60.0))
        assert len(strict) < len(loose)
        assert set(strict.valid_indices) <= set(loose.valid_indices)

    def test_extra_views_are_ignored(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        base = compute_errors(views, cameras)
        padded_cameras = list(cameras) + [cameras[0]]
        padded_views = list(views) + [views[0]]
        padded = compute_errors(padded_views, padded_cameras)
        np.testing.assert_array_equal(padded.valid_indices, base.valid_indices)

    def test_perturbed_position_shows_up(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        errors = compute_errors(views, cameras)
        target = int(errors.valid_indices[0])
        shifted = list(views[2])
        p = shifted[target]
        shifted[target] = DifferentialPoint2D(
            position=p.position + np.array([3.0, 4.0]),
            tangent=p.tangent,
            curvature=p.curvature,
            curvature_rate=p.curvature_rate,
        )
        summary = max_errors(compute_errors([views[0], views[1], shifted], cameras))
        assert summary.position is not None
        assert summary.position.value == pytest.approx(5.0, abs=1e-6)
        assert summary.position.original_index == target

    def test_empty_input(self, cameras: CameraSet) -> None:
        errors = compute_errors([[], [], []], cameras)
        assert len(errors) == 0
        summary = max_errors(errors)
        assert summary.valid_count == 0
        assert summary.position is None
        assert summary.curvature_rate is None


class TestMalformedInput:
    """Structural problems raise before any computation."""

    def test_too_few_views(self, cameras: CameraSet) -> None:
        with pytest.raises(MalformedCorrespondenceError, match="at least 3 views"):
            compute_errors([[], []], cameras)

    def test_too_few_cameras(self, cameras: CameraSet) -> None:
        with pytest.raises(MalformedCorrespondenceError):
            compute_errors([[], [], []], cameras[:2])

    def test_unequal_lengths(
        self, cameras: CameraSet, views: list[list[DifferentialPoint2D]]
    ) -> None:
        with pytest.raises(MalformedCorrespondenceError, match="same number"):
            compute_errors([views[0], views[1], views[2][:-1]], cameras)


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------


class TestMaxErrors:
    """Tests for per-channel maxima and index tracing."""

    def test_maximum_and_original_index(self) -> None:
        summary = max_errors(_errors([0.2, 0.9, 0.5], [3, 7, 9]))
        assert summary.tangent is not None
        assert summary.tangent.value == 0.9
        assert summary.tangent.original_index == 7
        assert summary.valid_count == 3

    def test_position_is_square_rooted(self) -> None:
        summary = max_errors(_errors([0.25, 4.0, 1.0], [0, 1, 2]))
        assert summary.position is not None
        assert summary.position.value == pytest.approx(2.0)
        assert summary.curvature is not None
        assert summary.curvature.value == 4.0

    def test_ties_resolve_to_first(self) -> None:
        summary = max_errors(_errors([1.0, 3.0, 3.0], [4, 5, 6]))
        assert summary.curvature is not None
        assert summary.curvature.original_index == 5


class TestTangentAngleError:
    """Tests for the clamped tangent angle."""

    def test_identical_tangents(self) -> None:
        t = np.array([0.6, 0.8])
        assert tangent_angle_error(t, t * (1.0 + 1e-15)) == 0.0

    def test_opposite_tangents(self) -> None:
        t = np.array([0.6, 0.8])
        assert tangent_angle_error(t, -t * (1.0 + 1e-15)) == pytest.approx(math.pi)
