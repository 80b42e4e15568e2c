"""Synthetic camera placement: spherical rejection sampling and turntables.

The spherical sampler places cameras on a sphere around the world origin
(the fixation point), all looking at it, with an optional minimum angular
separation between camera directions and optional Gaussian perturbation of
orientation and distance. Randomness comes from an explicitly seeded
``numpy.random.Generator`` so that runs are reproducible and independent.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import overload

import numpy as np

from diffrecon.calibration.projection import PerspectiveCamera
from diffrecon.errors import InvariantViolation, SeparationConstraintExhausted

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

DEFAULT_CAMERA_DISTANCE: float = 1.128036301860739e03
DEFAULT_MIN_SEPARATION_DEG: float = 15.0
DEFAULT_MAX_TRIALS: int = 100_000
ROTATION_TOLERANCE: float = 1e-9

# ---------------------------------------------------------------------------
# Camera set
# ---------------------------------------------------------------------------


class CameraSet(Sequence[PerspectiveCamera]):
    """Ordered, append-only sequence of cameras; position is the view index."""

    def __init__(self, cameras: Iterable[PerspectiveCamera] = ()) -> None:
        self._cameras: list[PerspectiveCamera] = list(cameras)

    @overload
    def __getitem__(self, index: int) -> PerspectiveCamera: ...

    @overload
    def __getitem__(self, index: slice) -> CameraSet: ...

    def __getitem__(self, index: int | slice) -> PerspectiveCamera | CameraSet:
        if isinstance(index, slice):
            return CameraSet(self._cameras[index])
        return self._cameras[index]

    def __len__(self) -> int:
        return len(self._cameras)

    def __iter__(self) -> Iterator[PerspectiveCamera]:
        return iter(self._cameras)

    def __repr__(self) -> str:
        return f"CameraSet(n={len(self._cameras)})"

    def append(self, camera: PerspectiveCamera) -> None:
        """Add a camera as the next view."""
        self._cameras.append(camera)

    def centers(self) -> np.ndarray:
        """Camera centers, shape (N, 3)."""
        if not self._cameras:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack([cam.center for cam in self._cameras])


# ---------------------------------------------------------------------------
# Spherical sampler
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SamplerConfig:
    """Configuration for :class:`SphericalCameraSampler`.

    Attributes:
        count: Number of cameras to place.
        distance: Base distance from the fixation point to each camera.
        min_separation_deg: Minimum great-circle angle between a new camera
            direction and every accepted center direction. The complement
            to 180 degrees must also exceed it (no near-antipodal pairs).
        enforce_min_separation: Whether to apply the separation test.
        perturb: Whether to add Gaussian noise to the viewing direction and
            the distance. The separation test is applied to the perturbed
            viewing direction against unperturbed centers, so the pairwise
            center separation holds exactly only when this is False.
        direction_sigma: Std of the noise added to each viewing-direction
            component before renormalization.
        distance_sigma: Std of the noise added to the distance.
        max_trials: Maximum number of consecutive rejected draws before
            separation enforcement gives up.
        on_exhausted: ``"raise"`` to raise SeparationConstraintExhausted, or
            ``"truncate"`` to log a warning and return the cameras placed so
            far.
    """

    count: int = 30
    distance: float = DEFAULT_CAMERA_DISTANCE
    min_separation_deg: float = DEFAULT_MIN_SEPARATION_DEG
    enforce_min_separation: bool = True
    perturb: bool = False
    direction_sigma: float = 0.01
    distance_sigma: float = 10.0
    max_trials: int = DEFAULT_MAX_TRIALS
    on_exhausted: str = "raise"

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError(f"count must be >= 0, got {self.count}")
        if self.distance <= 0.0:
            raise ValueError(f"distance must be positive, got {self.distance}")
        if self.max_trials < 0:
            raise ValueError(f"max_trials must be >= 0, got {self.max_trials}")
        if self.on_exhausted not in ("raise", "truncate"):
            raise ValueError(
                f"on_exhausted must be 'raise' or 'truncate', got {self.on_exhausted!r}"
            )


def _random_unit_vector(rng: np.random.Generator) -> np.ndarray:
    """Uniform sample on the unit sphere (normalized isotropic Gaussian)."""
    while True:
        v = rng.normal(size=3)
        norm = float(np.linalg.norm(v))
        if norm > 0.0:
            return v / norm


def _angle_between(a: np.ndarray, b: np.ndarray) -> float:
    cos_angle = float(np.dot(a, b)) / float(np.linalg.norm(a) * np.linalg.norm(b))
    angle = math.acos(min(1.0, max(-1.0, cos_angle)))
    if not 0.0 <= angle <= math.pi:
        raise InvariantViolation(f"Angular distance {angle} outside [0, pi]")
    return angle


def _check_rotation(R: np.ndarray) -> None:
    """Raise InvariantViolation unless R is a proper rotation."""
    if not np.allclose(R.T @ R, np.eye(3), atol=ROTATION_TOLERANCE):
        raise InvariantViolation("Sampled camera rotation is not orthonormal")
    det = float(np.linalg.det(R))
    if abs(det - 1.0) > ROTATION_TOLERANCE:
        raise InvariantViolation(f"Sampled camera rotation has determinant {det}")


class SphericalCameraSampler:
    """Rejection sampler for cameras on a sphere looking at the origin.

    Args:
        K: Intrinsic calibration matrix shared by every camera, shape (3, 3).
        config: Sampler configuration.
        rng: Random generator. Owned by the sampler; pass one to share a
            stream with other components of the same run.
        seed: Seed for a new generator when *rng* is not given.
    """

    def __init__(
        self,
        K: np.ndarray,
        config: SamplerConfig | None = None,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
    ) -> None:
        self.K = np.asarray(K, dtype=np.float64)
        self.config = config if config is not None else SamplerConfig()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def _is_separated(self, direction: np.ndarray, cameras: CameraSet) -> bool:
        min_sep = math.radians(self.config.min_separation_deg)
        for cam in cameras:
            angle = _angle_between(direction, cam.center)
            if angle < min_sep or math.pi - angle < min_sep:
                return False
        return True

    def _build_camera(self, r: np.ndarray, z: np.ndarray) -> PerspectiveCamera:
        cfg = self.config
        distance = cfg.distance
        if cfg.perturb:
            distance += cfg.distance_sigma * self.rng.normal()

        # Center uses the unperturbed sphere sample; orientation uses z.
        center = distance * r

        x = _random_unit_vector(self.rng)
        x = x - float(np.dot(x, z)) * z
        x = x / np.linalg.norm(x)
        y = np.cross(z, x)
        R = np.vstack([x, y, z])
        _check_rotation(R)
        return PerspectiveCamera(self.K, R, center)

    def sample(self, count: int | None = None) -> CameraSet:
        """Place cameras until *count* have been accepted.

        Args:
            count: Number of cameras; defaults to ``config.count``.

        Returns:
            CameraSet in acceptance order. With ``on_exhausted="truncate"``
            it may be shorter than requested.

        Raises:
            SeparationConstraintExhausted: More than ``max_trials``
                consecutive draws were rejected and ``on_exhausted`` is
                ``"raise"``. The exception carries the partial set.
            InvariantViolation: A sampled rotation is not a proper rotation.
        """
        cfg = self.config
        n_views = cfg.count if count is None else count
        cameras = CameraSet()
        trials = 0

        while len(cameras) < n_views:
            r = _random_unit_vector(self.rng)
            z = -r
            if cfg.perturb:
                z = z + cfg.direction_sigma * self.rng.normal(size=3)
                z = z / np.linalg.norm(z)

            if cfg.enforce_min_separation and not self._is_separated(-z, cameras):
                trials += 1
                if trials > cfg.max_trials:
                    exc = SeparationConstraintExhausted(cameras, trials, n_views)
                    if cfg.on_exhausted == "truncate":
                        logger.warning("%s; returning %d cameras", exc, len(cameras))
                        return cameras
                    raise exc
                continue

            trials = 0
            cameras.append(self._build_camera(r, z))

        logger.debug("Sampled %d spherical cameras", len(cameras))
        return cameras


def sample_cameras(
    count: int,
    min_separation: float | None = DEFAULT_MIN_SEPARATION_DEG,
    perturb: bool = False,
    seed: int | None = None,
    K: np.ndarray | None = None,
    **config_kwargs: object,
) -> CameraSet:
    """Sample *count* spherical cameras with a freshly seeded generator.

    Args:
        count: Number of cameras.
        min_separation: Minimum separation in degrees. ``None`` or zero
            disables enforcement.
        perturb: Perturb viewing direction and distance.
        seed: Generator seed.
        K: Shared calibration matrix; identity-like default when omitted.
        **config_kwargs: Remaining :class:`SamplerConfig` fields.

    Returns:
        CameraSet of the sampled cameras.
    """
    if K is None:
        K = np.array([[1000.0, 0.0, 500.0], [0.0, 1000.0, 500.0], [0.0, 0.0, 1.0]])
    enforce = bool(min_separation)
    config = SamplerConfig(
        count=count,
        min_separation_deg=float(min_separation or 0.0),
        enforce_min_separation=enforce,
        perturb=perturb,
        **config_kwargs,  # type: ignore[arg-type]
    )
    return SphericalCameraSampler(K, config, seed=seed).sample()


# ---------------------------------------------------------------------------
# Turntable
# ---------------------------------------------------------------------------


def turntable_cameras(
    angles_deg: Sequence[float],
    K: np.ndarray,
    distance: float = DEFAULT_CAMERA_DISTANCE,
) -> CameraSet:
    """Cameras on a turntable circle around the world Y axis.

    View ``i`` is rotated by ``angles_deg[i]`` about Y; at angle zero the
    camera sits at ``(0, 0, -distance)`` looking along +Z at the origin.

    Args:
        angles_deg: Turntable angle of each view in degrees.
        K: Shared calibration matrix, shape (3, 3).
        distance: Distance from the rotation axis to each camera.

    Returns:
        CameraSet with one camera per angle.
    """
    cameras = CameraSet()
    for angle in angles_deg:
        theta = math.radians(angle)
        c, s = math.cos(theta), math.sin(theta)
        R = np.array([[c, 0.0, -s], [0.0, 1.0, 0.0], [s, 0.0, c]])
        center = -distance * R[2]
        cameras.append(PerspectiveCamera(K, R, center))
    return cameras
