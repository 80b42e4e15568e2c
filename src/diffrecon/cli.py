"""diffrecon CLI -- thin wrapper over the reconstruction-accuracy experiment."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from diffrecon.engine import (
    ExperimentConfig,
    load_config,
    run_experiment,
    serialize_config,
)
from diffrecon.synthetic import SeparationConstraintExhausted, sample_cameras

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_overrides(items: tuple[str, ...]) -> dict[str, Any]:
    """Turn ``key=val`` pairs into a dot-notation override dict."""
    overrides: dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not key or not sep:
            raise click.BadParameter(
                f"Expected key=val, got {item!r}", param_hint="--set"
            )
        overrides[key] = value
    return overrides


# ---------------------------------------------------------------------------
# CLI definition
# ---------------------------------------------------------------------------


@click.group()
def cli() -> None:
    """diffrecon -- differential two-view curve reconstruction experiments."""


@cli.command()
@click.option(
    "--config",
    "-c",
    required=True,
    type=click.Path(exists=True),
    help="Path to experiment config YAML.",
)
@click.option(
    "--set",
    "overrides",
    multiple=True,
    help="Config override as key=val (e.g. --set sampler.count=12).",
)
@click.option(
    "--output",
    "-o",
    default=None,
    type=click.Path(),
    help="Output directory (overrides output_dir from the config).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Verbose output.")
def run(
    config: str,
    overrides: tuple[str, ...],
    output: str | None,
    verbose: bool,
) -> None:
    """Run one seeded reconstruction-accuracy experiment."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cli_overrides = _parse_overrides(overrides)
    if output is not None:
        cli_overrides["output_dir"] = output

    try:
        experiment_config = load_config(yaml_path=config, cli_overrides=cli_overrides)
        report = run_experiment(experiment_config)

        output_dir = Path(experiment_config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / "config.yaml").write_text(serialize_config(experiment_config))
        (output_dir / "report.yaml").write_text(
            yaml.dump(report.to_dict(), default_flow_style=False, sort_keys=False)
        )
    except Exception as exc:
        sys.stderr.write(f"Error: {exc}\n")
        sys.exit(1)

    click.echo(
        f"Run {report.run_id}: {len(report.cameras)} cameras, "
        f"{len(report.triplets)} triplets scored -> {output_dir}"
    )
    for triplet in report.triplets:
        position = triplet.summary.position
        if position is None:
            click.echo(f"  views {triplet.views}: no valid correspondences")
        else:
            click.echo(
                f"  views {triplet.views}: {triplet.summary.valid_count}/"
                f"{triplet.n_points} valid, max position error "
                f"{position.value:.3g} px"
            )


@cli.command("init-config")
@click.option(
    "--output",
    "-o",
    default="diffrecon.yaml",
    type=click.Path(),
    help="Output file path (default: diffrecon.yaml).",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Overwrite existing file.",
)
def init_config(output: str, force: bool) -> None:
    """Generate a template YAML config file with all experiment defaults."""
    output_path = Path(output)
    if output_path.exists() and not force:
        raise click.ClickException(
            f"'{output}' already exists. Use --force to overwrite."
        )
    yaml_content = serialize_config(ExperimentConfig())
    output_path.write_text(yaml_content)
    click.echo(f"Config written to {output}")


@cli.command("sample-cameras")
@click.option("--count", "-n", default=10, show_default=True, type=int)
@click.option("--seed", default=0, show_default=True, type=int)
@click.option(
    "--min-separation",
    default=15.0,
    show_default=True,
    type=float,
    help="Minimum angular separation in degrees (0 disables).",
)
@click.option("--perturb", is_flag=True, default=False, help="Perturb cameras.")
def sample_cameras_cmd(
    count: int, seed: int, min_separation: float, perturb: bool
) -> None:
    """Print the centers of a seeded spherical camera sample."""
    try:
        cameras = sample_cameras(
            count, min_separation=min_separation, perturb=perturb, seed=seed
        )
    except SeparationConstraintExhausted as exc:
        raise click.ClickException(str(exc)) from exc

    for i, center in enumerate(cameras.centers()):
        click.echo(f"{i:4d} {center[0]: .6f} {center[1]: .6f} {center[2]: .6f}")


def main() -> None:
    """Entry point for the ``diffrecon`` console script."""
    cli()
