"""Unit tests for the experiment config module.

Covers: defaults, YAML overrides, CLI overrides, override precedence,
frozen mutation guard, run_id handling, unknown keys, and serialization
roundtrip.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import numpy as np
import pytest
import yaml

from diffrecon.engine.config import (
    ExperimentConfig,
    load_config,
    serialize_config,
)

# ---------------------------------------------------------------------------
# 1. Default values
# ---------------------------------------------------------------------------


def test_load_config_defaults() -> None:
    """load_config() with no args produces expected field defaults."""
    config = load_config()

    assert config.seed == 0
    assert config.sampler.count == 30
    assert config.sampler.min_separation_deg == 15.0
    assert config.scene.include_cube is True
    assert config.reconstruction.epipolar_angle_threshold_deg == 30.0
    assert config.perturbation.enabled is False
    np.testing.assert_array_equal(
        config.intrinsics.matrix(),
        [[2900.0, 0.0, 250.0], [0.0, 2900.0, 250.0], [0.0, 0.0, 1.0]],
    )


# ---------------------------------------------------------------------------
# 2. YAML override
# ---------------------------------------------------------------------------


def test_load_config_yaml_override(tmp_path: Path) -> None:
    """YAML overrides apply; non-overridden fields retain defaults."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump({"seed": 4, "sampler": {"count": 9}, "scene": {"unit": 2.0}})
    )

    config = load_config(yaml_path=path)

    assert config.seed == 4
    assert config.sampler.count == 9
    assert config.scene.unit == 2.0
    assert config.sampler.perturb is False
    assert config.scene.line_step == 0.2


def test_load_config_empty_yaml(tmp_path: Path) -> None:
    """An empty YAML file yields defaults."""
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(yaml_path=path).sampler.count == 30


# ---------------------------------------------------------------------------
# 3. CLI overrides
# ---------------------------------------------------------------------------


def test_cli_overrides_parse_scalars() -> None:
    """String overrides from --set are parsed as YAML scalars."""
    config = load_config(
        cli_overrides={
            "seed": "12",
            "sampler.perturb": "true",
            "perturbation.position_px": "0.5",
            "sampler.on_exhausted": "truncate",
        }
    )
    assert config.seed == 12
    assert config.sampler.perturb is True
    assert config.perturbation.position_px == 0.5
    assert config.perturbation.enabled is True
    assert config.sampler.on_exhausted == "truncate"


def test_cli_overrides_nested_form() -> None:
    """Nested dict overrides behave like dot notation."""
    config = load_config(cli_overrides={"reconstruction": {"max_triplets": 2}})
    assert config.reconstruction.max_triplets == 2


def test_cli_beats_yaml(tmp_path: Path) -> None:
    """CLI overrides take precedence over YAML values."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"sampler": {"count": 9}, "seed": 1}))

    config = load_config(yaml_path=path, cli_overrides={"sampler.count": "3"})

    assert config.sampler.count == 3
    assert config.seed == 1


# ---------------------------------------------------------------------------
# 4. Validation
# ---------------------------------------------------------------------------


def test_unknown_section_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown config section"):
        load_config(cli_overrides={"detector.kind": "x"})


def test_unknown_field_rejected() -> None:
    with pytest.raises(TypeError):
        load_config(cli_overrides={"sampler.bogus": "1"})


def test_invalid_sampler_value_rejected() -> None:
    with pytest.raises(ValueError):
        load_config(cli_overrides={"sampler.on_exhausted": "retry"})


# ---------------------------------------------------------------------------
# 5. Frozen guard and run identity
# ---------------------------------------------------------------------------


def test_config_is_frozen() -> None:
    config = load_config()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.seed = 3  # type: ignore[misc]
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.sampler.count = 3  # type: ignore[misc]


def test_run_id_generated_and_used_for_output_dir() -> None:
    config = load_config()
    assert config.run_id.startswith("run_")
    assert config.output_dir.endswith(config.run_id)


def test_explicit_run_id_wins(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"run_id": "from_yaml"}))
    assert load_config(yaml_path=path).run_id == "from_yaml"
    assert load_config(yaml_path=path, run_id="explicit").run_id == "explicit"


def test_output_dir_override() -> None:
    config = load_config(cli_overrides={"output_dir": "/tmp/somewhere"})
    assert config.output_dir == "/tmp/somewhere"


# ---------------------------------------------------------------------------
# 6. Serialization roundtrip
# ---------------------------------------------------------------------------


def test_serialize_roundtrip(tmp_path: Path) -> None:
    """A serialized config reloads to an identical config."""
    original = load_config(
        cli_overrides={"seed": "8", "sampler.count": "6", "scene.helix_step_deg": "30"}
    )
    path = tmp_path / "config.yaml"
    path.write_text(serialize_config(original))

    reloaded = load_config(yaml_path=path)

    assert reloaded == original


def test_serialize_template_reloads(tmp_path: Path) -> None:
    """The init-config template (empty run_id/output_dir) reloads cleanly."""
    path = tmp_path / "template.yaml"
    path.write_text(serialize_config(ExperimentConfig()))

    config = load_config(yaml_path=path)

    assert config.run_id
    assert config.output_dir
