"""Experiment engine: layered config and the seeded accuracy sweep.

Import boundary: engine/ may import from computation modules, but
computation modules never import from engine/.
"""

from diffrecon.engine.config import (
    ExperimentConfig,
    IntrinsicsConfig,
    PerturbationConfig,
    ReconstructionConfig,
    load_config,
    serialize_config,
)
from diffrecon.engine.experiment import (
    ExperimentReport,
    TripletResult,
    run_experiment,
)

__all__ = [
    "ExperimentConfig",
    "ExperimentReport",
    "IntrinsicsConfig",
    "PerturbationConfig",
    "ReconstructionConfig",
    "TripletResult",
    "load_config",
    "run_experiment",
    "serialize_config",
]
