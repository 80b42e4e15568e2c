"""Tests for analytic curve generators and the reference scene."""

from __future__ import annotations

import math

import numpy as np
import pytest

from diffrecon.synthetic import (
    SceneConfig,
    circle_curve,
    ellipse_curve,
    flatten_curves,
    helix_curve,
    line_curve,
    reference_scene,
    rotate_curve,
    translate_curve,
)


class TestGenerators:
    """Tests for individual curve generators."""

    def test_line(self) -> None:
        curve = line_curve([1.0, 2.0, 3.0], [0.0, 0.0, 2.0], 1.0, 0.25)
        assert len(curve) == 4
        np.testing.assert_allclose(curve[-1].position, [1.0, 2.0, 3.75])
        for p in curve:
            np.testing.assert_allclose(p.tangent, [0.0, 0.0, 1.0])
            assert p.curvature == 0.0

    def test_line_rejects_zero_direction(self) -> None:
        with pytest.raises(ValueError, match="non-zero"):
            line_curve([0.0, 0.0, 0.0], [0.0, 0.0, 0.0], 1.0, 0.1)

    def test_circle(self) -> None:
        curve = circle_curve(2.0, [0.0, 0.0, 1.0], 0.0, 30.0, 360.0)
        assert len(curve) == 12
        for p in curve:
            assert np.linalg.norm(p.position[:2]) == pytest.approx(2.0)
            assert p.position[2] == pytest.approx(1.0)
            assert p.curvature == pytest.approx(0.5)
            assert p.torsion == pytest.approx(0.0, abs=1e-12)
            np.testing.assert_allclose(p.binormal, [0.0, 0.0, 1.0], atol=1e-12)

    def test_span_is_half_open(self) -> None:
        curve = circle_curve(1.0, [0.0, 0.0, 0.0], 0.0, 90.0, 360.0)
        assert len(curve) == 4
        np.testing.assert_allclose(curve[-1].position, [0.0, -1.0, 0.0], atol=1e-12)

    def test_ellipse_vertex_curvature(self) -> None:
        curve = ellipse_curve(3.0, 1.0, [0.0, 0.0, 0.0], 0.0, 90.0, 180.0)
        # At t = 0 the curvature is a / b^2, at t = 90 it is b / a^2.
        assert curve[0].curvature == pytest.approx(3.0)
        assert curve[1].curvature == pytest.approx(1.0 / 9.0)

    def test_helix(self) -> None:
        curve = helix_curve(1.0, 2.0 * math.pi, [0.0, 0.0, 0.0], 0.0, 45.0, 720.0)
        assert len(curve) == 16
        for p in curve:
            assert p.curvature == pytest.approx(0.5)
            assert p.torsion == pytest.approx(0.5)

    @pytest.mark.parametrize("step, span", [(0.0, 90.0), (-5.0, 90.0), (5.0, 0.0)])
    def test_rejects_bad_angles(self, step: float, span: float) -> None:
        with pytest.raises(ValueError):
            circle_curve(1.0, [0.0, 0.0, 0.0], 0.0, step, span)

    def test_rejects_bad_radius(self) -> None:
        with pytest.raises(ValueError):
            helix_curve(0.0, 1.0, [0.0, 0.0, 0.0], 0.0, 5.0, 90.0)


class TestTransforms:
    """Tests for rigid transforms of sampled curves."""

    def test_rotation_preserves_invariants(self) -> None:
        curve = helix_curve(1.0, 0.5, [0.0, 0.0, 0.0], 0.0, 60.0, 360.0)
        rotated = rotate_curve(curve, [0.0, 0.0, math.pi / 2])
        for p, q in zip(curve, rotated):
            assert q.curvature == p.curvature
            assert q.torsion == p.torsion
            np.testing.assert_allclose(
                q.position, [-p.position[1], p.position[0], p.position[2]], atol=1e-12
            )
            np.testing.assert_allclose(np.cross(q.tangent, q.normal), q.binormal, atol=1e-12)

    def test_rotation_accepts_read_only_samples(self) -> None:
        curve = ellipse_curve(2.0, 1.0, [1.0, 0.0, 0.0], 0.0, 45.0, 360.0)
        assert not curve[0].position.flags.writeable
        axis = np.array([1.0, 1.0, 1.0]) / np.sqrt(3)
        rotated = rotate_curve(curve, np.pi / 3 * axis)
        assert len(rotated) == len(curve)
        for p, q in zip(curve, rotated):
            assert not q.position.flags.writeable
            norm = np.linalg.norm(p.position)
            assert np.linalg.norm(q.position) == pytest.approx(norm)
            assert np.linalg.norm(q.tangent) == pytest.approx(1.0)
            assert q.curvature_rate == p.curvature_rate

    def test_rotation_of_empty_curve(self) -> None:
        assert rotate_curve([], [0.0, 0.0, 1.0]) == []

    def test_translation(self) -> None:
        curve = circle_curve(1.0, [0.0, 0.0, 0.0], 0.0, 90.0, 180.0)
        moved = translate_curve(curve, [1.0, 2.0, 3.0])
        np.testing.assert_allclose(moved[0].position, [2.0, 2.0, 3.0])
        np.testing.assert_array_equal(moved[0].tangent, curve[0].tangent)


class TestReferenceScene:
    """Tests for the fixed mixed scene."""

    def test_curve_count(self) -> None:
        assert len(reference_scene()) == 12 + 2 + 5 + 4 + 3
        assert len(reference_scene(SceneConfig(include_cube=False))) == 14

    def test_samples_are_distinct(self) -> None:
        cfg = SceneConfig(line_step=1.0, circle_step_deg=20.0, ellipse_step_deg=20.0,
                          helix_step_deg=30.0)
        positions = np.array([p.position for p in flatten_curves(reference_scene(cfg))])
        rounded = {tuple(row) for row in np.round(positions, 12)}
        assert len(rounded) == len(positions)

    def test_scene_fits_in_cube(self) -> None:
        cfg = SceneConfig(unit=1.0, include_cube=False, line_step=1.0,
                          circle_step_deg=20.0, ellipse_step_deg=20.0, helix_step_deg=30.0)
        positions = np.array([p.position for p in flatten_curves(reference_scene(cfg))])
        assert np.abs(positions).max() < 20.0

    def test_frames_are_orthonormal(self) -> None:
        cfg = SceneConfig(line_step=2.0, circle_step_deg=30.0, ellipse_step_deg=30.0,
                          helix_step_deg=45.0)
        for p in flatten_curves(reference_scene(cfg)):
            frame = np.vstack([p.tangent, p.normal, p.binormal])
            np.testing.assert_allclose(frame @ frame.T, np.eye(3), atol=1e-9)
