"""Synthetic cameras, analytic curves and multi-view projection."""

from diffrecon.errors import SeparationConstraintExhausted

from .cameras import (
    CameraSet,
    SamplerConfig,
    SphericalCameraSampler,
    sample_cameras,
    turntable_cameras,
)
from .curves import (
    Curve3D,
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
from .views import (
    drop_epitangent,
    perturb_observations,
    project_into_views,
    project_positions_into_views,
)

__all__ = [
    "CameraSet",
    "Curve3D",
    "SamplerConfig",
    "SceneConfig",
    "SeparationConstraintExhausted",
    "SphericalCameraSampler",
    "circle_curve",
    "drop_epitangent",
    "ellipse_curve",
    "flatten_curves",
    "helix_curve",
    "line_curve",
    "perturb_observations",
    "project_into_views",
    "project_positions_into_views",
    "reference_scene",
    "rotate_curve",
    "sample_cameras",
    "translate_curve",
    "turntable_cameras",
]
