"""Unit tests for the seeded reconstruction-accuracy experiment."""

from __future__ import annotations

import pytest
import yaml

from diffrecon.engine import ExperimentReport, load_config, run_experiment
from diffrecon.errors import SeparationConstraintExhausted

# Coarse scene so that each run stays fast.
_FAST = {
    "seed": "3",
    "sampler.count": "7",
    "scene.include_cube": "false",
    "scene.line_step": "2.0",
    "scene.circle_step_deg": "30",
    "scene.ellipse_step_deg": "30",
    "scene.helix_step_deg": "60",
    "reconstruction.max_triplets": "5",
}


def _config(**extra: str):
    return load_config(cli_overrides={**_FAST, **extra}, run_id="test_run")


@pytest.fixture
def report() -> ExperimentReport:
    return run_experiment(_config())


class TestRunExperiment:
    """Tests for run_experiment."""

    def test_disjoint_triplets(self, report: ExperimentReport) -> None:
        # 7 cameras give two complete triplets; the last camera is unused.
        assert len(report.cameras) == 7
        assert [t.views for t in report.triplets] == [(0, 1, 2), (3, 4, 5)]
        assert report.exhausted is False

    def test_noise_free_errors_are_tiny(self, report: ExperimentReport) -> None:
        for triplet in report.triplets:
            assert triplet.n_points == report.n_samples
            assert 0 < triplet.summary.valid_count <= triplet.n_points
            assert triplet.summary.position is not None
            assert triplet.summary.position.value < 1e-6

    def test_max_triplets_caps_evaluation(self) -> None:
        report = run_experiment(_config(**{"reconstruction.max_triplets": "1"}))
        assert len(report.triplets) == 1

    def test_same_seed_same_report(self, report: ExperimentReport) -> None:
        again = run_experiment(_config())
        assert again.to_dict() == report.to_dict()

    def test_perturbation_increases_errors(self, report: ExperimentReport) -> None:
        noisy = run_experiment(
            _config(**{"perturbation.position_px": "1.0", "perturbation.tangent_deg": "1.0"})
        )
        for clean, dirty in zip(report.triplets, noisy.triplets):
            assert dirty.summary.position is not None
            assert clean.summary.position is not None
            assert dirty.summary.position.value > clean.summary.position.value

    def test_drop_epitangent_keeps_indices_conditioned(self) -> None:
        report = run_experiment(_config(**{"reconstruction.drop_epitangent": "true"}))
        for triplet in report.triplets:
            assert triplet.n_points < report.n_samples
            assert triplet.summary.valid_count == triplet.n_points

    def test_exhaustion_propagates(self) -> None:
        config = _config(
            **{"sampler.min_separation_deg": "89", "sampler.max_trials": "500"}
        )
        with pytest.raises(SeparationConstraintExhausted):
            run_experiment(config)

    def test_exhaustion_truncates(self) -> None:
        config = _config(
            **{
                "sampler.min_separation_deg": "89",
                "sampler.max_trials": "500",
                "sampler.on_exhausted": "truncate",
            }
        )
        report = run_experiment(config)
        assert report.exhausted is True
        assert len(report.cameras) < 7


class TestReportSerialization:
    """Tests for ExperimentReport.to_dict."""

    def test_yaml_safe(self, report: ExperimentReport) -> None:
        data = yaml.safe_load(yaml.dump(report.to_dict()))
        assert data["run_id"] == "test_run"
        assert data["seed"] == 3
        assert data["n_cameras"] == 7
        first = data["triplets"][0]
        assert first["views"] == [0, 1, 2]
        assert set(first["max_position_px"]) == {"value", "original_index"}
        assert isinstance(first["max_position_px"]["original_index"], int)
