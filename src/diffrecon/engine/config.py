"""Frozen dataclass config hierarchy for diffrecon experiment runs.

Loading precedence: defaults -> YAML file -> CLI overrides -> freeze.

The frozen guarantee prevents accidental mutation during a run. The full
serialized config is written next to the run report so that every sweep can
be reproduced from its seed.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from diffrecon.calibration.intrinsics import calibration_matrix
from diffrecon.synthetic.cameras import SamplerConfig
from diffrecon.synthetic.curves import SceneConfig

# ---------------------------------------------------------------------------
# Section config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IntrinsicsConfig:
    """Shared intrinsic calibration of every synthetic camera.

    Attributes:
        fx: Focal length along x in pixels.
        fy: Focal length along y in pixels.
        cx: Principal point x in pixels.
        cy: Principal point y in pixels.
        skew: Axis skew.
    """

    fx: float = 2900.0
    fy: float = 2900.0
    cx: float = 250.0
    cy: float = 250.0
    skew: float = 0.0

    def matrix(self) -> np.ndarray:
        """Return the 3x3 calibration matrix."""
        return calibration_matrix(self.fx, self.fy, self.cx, self.cy, self.skew)


@dataclass(frozen=True)
class ReconstructionConfig:
    """Config for the reconstruct-and-reproject evaluation.

    Attributes:
        epipolar_angle_threshold_deg: Minimum angle between a view-0 tangent
            and its epipolar line for the correspondence to be scored.
        max_triplets: Maximum number of disjoint consecutive camera triplets
            to evaluate.
        drop_epitangent: Remove near-epitangent samples from the projected
            views before scoring.
    """

    epipolar_angle_threshold_deg: float = 30.0
    max_triplets: int = 10
    drop_epitangent: bool = False


@dataclass(frozen=True)
class PerturbationConfig:
    """Uniform noise applied to image observations before scoring.

    Attributes:
        position_px: Maximum position offset per coordinate in pixels.
        tangent_deg: Maximum tangent rotation in degrees.
    """

    position_px: float = 0.0
    tangent_deg: float = 0.0

    @property
    def enabled(self) -> bool:
        return self.position_px > 0.0 or self.tangent_deg > 0.0


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExperimentConfig:
    """Top-level frozen config for one experiment run.

    Attributes:
        run_id: Unique run identifier (timestamp-based by default).
        output_dir: Directory for the run config and report.
        seed: Seed of the run's single random generator.
        intrinsics: Camera intrinsics.
        sampler: Spherical camera sampler config.
        scene: Reference scene layout.
        reconstruction: Evaluation config.
        perturbation: Observation noise config.
    """

    run_id: str = dataclasses.field(default="")
    output_dir: str = dataclasses.field(default="")
    seed: int = 0
    intrinsics: IntrinsicsConfig = field(default_factory=IntrinsicsConfig)
    sampler: SamplerConfig = field(default_factory=SamplerConfig)
    scene: SceneConfig = field(default_factory=SceneConfig)
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)
    perturbation: PerturbationConfig = field(default_factory=PerturbationConfig)


_SECTIONS: dict[str, type] = {
    "intrinsics": IntrinsicsConfig,
    "sampler": SamplerConfig,
    "scene": SceneConfig,
    "reconstruction": ReconstructionConfig,
    "perturbation": PerturbationConfig,
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _generate_run_id() -> str:
    """Generate a timestamp-based run identifier of the form "run_YYYYMMDD_HHMMSS"."""
    return f"run_{datetime.now():%Y%m%d_%H%M%S}"


def _default_output_dir(run_id: str) -> str:
    """Return the default output directory for a run."""
    return str(Path(f"~/diffrecon/runs/{run_id}").expanduser())


def _flatten(nested: dict[str, Any]) -> dict[str, Any]:
    """Flatten one level of nesting into dot-notation keys.

    Overrides may arrive as dot-notation keys ("sampler.count") or as nested
    dicts ({"sampler": {"count": 30}}); both end up as "sampler.count".
    """
    result: dict[str, Any] = {}
    for key, value in nested.items():
        if isinstance(value, dict):
            for subkey, subvalue in value.items():
                result[f"{key}.{subkey}"] = subvalue
        else:
            result[key] = value
    return result


def _bucket(flat: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Group dot-notation keys by section; top-level keys go to "__top__"."""
    nested: dict[str, dict[str, Any]] = {"__top__": {}}
    for key, value in flat.items():
        if "." in key:
            section, _, field_name = key.partition(".")
            if section not in _SECTIONS:
                raise ValueError(f"Unknown config section {section!r}")
            nested.setdefault(section, {})[field_name] = value
        else:
            nested["__top__"][key] = value
    return nested


def _coerce(value: Any) -> Any:
    """Parse string values (from --set key=value) as YAML scalars."""
    if isinstance(value, str):
        return yaml.safe_load(value)
    return value


# ---------------------------------------------------------------------------
# Public factory
# ---------------------------------------------------------------------------


def load_config(
    yaml_path: str | Path | None = None,
    *,
    cli_overrides: dict[str, Any] | None = None,
    run_id: str | None = None,
) -> ExperimentConfig:
    """Construct a frozen :class:`ExperimentConfig` using layered overrides.

    Loading precedence (lowest to highest priority):

    1. Dataclass field defaults
    2. YAML file (*yaml_path*)
    3. CLI overrides (*cli_overrides*), string values parsed as YAML scalars
    4. Freeze

    Args:
        yaml_path: Optional path to a YAML config file.
        cli_overrides: Optional dict of overrides in dot notation or nested
            form.
        run_id: Explicit run identifier. Auto-generated if not provided.

    Returns:
        Frozen ExperimentConfig with all overrides applied.

    Raises:
        ValueError: Unknown section name.
        TypeError: Unknown field name within a section.
    """
    kwargs: dict[str, dict[str, Any]] = {name: {} for name in _SECTIONS}
    top_kwargs: dict[str, Any] = {}

    layers: list[dict[str, Any]] = []
    if yaml_path is not None:
        with Path(yaml_path).open() as fh:
            layers.append(_flatten(yaml.safe_load(fh) or {}))
    if cli_overrides is not None:
        layers.append({k: _coerce(v) for k, v in _flatten(cli_overrides).items()})

    for flat in layers:
        bucketed = _bucket(flat)
        for name in _SECTIONS:
            kwargs[name].update(bucketed.get(name, {}))
        top_kwargs.update(bucketed["__top__"])

    yaml_run_id = top_kwargs.pop("run_id", None)
    resolved_run_id = run_id or yaml_run_id or _generate_run_id()
    resolved_output_dir = top_kwargs.pop("output_dir", None) or _default_output_dir(
        resolved_run_id
    )

    return ExperimentConfig(
        run_id=resolved_run_id,
        output_dir=resolved_output_dir,
        **{name: cls(**kwargs[name]) for name, cls in _SECTIONS.items()},
        **top_kwargs,
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_config(config: ExperimentConfig) -> str:
    """Serialize *config* to a YAML string via :func:`dataclasses.asdict`."""
    return yaml.dump(
        dataclasses.asdict(config), default_flow_style=False, sort_keys=True
    )
