import logging
from typing import Optional, Sequence

import numpy as np

from .formations import ball_points, wrap_to_count

logger = logging.getLogger(__name__)

PARTICLE_COUNT = 5000

# Share of the remaining distance covered every frame (0 = frozen, 1 = instant)
LERP_SPEED = 0.08
ATTRACT_RADIUS = 4.0
ATTRACT_STRENGTH = 0.06
# Particles closer than this to the attractor are left alone
ATTRACT_EPSILON = 0.01

START_RADIUS = 12.0

# RGB 0..1: white, light pink, hot pink, orchid, medium orchid, mauve
PALETTE = np.array([
    (1.000, 1.000, 1.000),
    (1.000, 0.714, 0.757),
    (1.000, 0.412, 0.706),
    (0.855, 0.439, 0.839),
    (0.729, 0.333, 0.827),
    (0.878, 0.690, 1.000),
], dtype=np.float32)


class ParticleSystem:
    """
    Live positions of the particle cloud.

    Each frame every particle moves a fixed share of the way toward its
    target, then particles near the attractor get pulled in with a force that
    fades linearly to zero at `attract_radius`. There is no velocity: this is
    position blending, not a physics integration.
    """

    def __init__(self, count: int = PARTICLE_COUNT, rng: Optional[np.random.Generator] = None):
        rng = rng if rng is not None else np.random.default_rng()
        self.count = count

        self.lerp_speed = LERP_SPEED
        self.attract_radius = ATTRACT_RADIUS
        self.attract_strength = ATTRACT_STRENGTH
        self.attractor: Optional[np.ndarray] = None

        self.positions = ball_points(count, START_RADIUS, rng).reshape(-1)
        self.scales = (0.5 + rng.random(count) * 1.5).astype(np.float32)
        self.randoms = rng.random(count).astype(np.float32)
        self.color_index = rng.integers(0, len(PALETTE), count)
        self.colors = PALETTE[self.color_index]

        self._target: Optional[np.ndarray] = None
        self._target_source: Optional[np.ndarray] = None

        self.uniforms = {
            "time": 0.0,
            "size": 80.0,
            "pixel_ratio": 1.0,
        }

    @property
    def target(self) -> Optional[np.ndarray]:
        return self._target

    def set_pixel_ratio(self, ratio: float):
        self.uniforms["pixel_ratio"] = min(float(ratio), 2.0)

    def set_attractor(self, point: Optional[Sequence[float]]):
        self.attractor = None if point is None else np.asarray(point, dtype=np.float32)

    def set_target(self, cloud: Optional[np.ndarray]) -> bool:
        """
        Start blending toward `cloud`. Live positions are not touched.

        Missing or empty clouds and the cloud that is already the target are
        ignored. Returns True when the target changed.
        """
        if cloud is None or np.size(cloud) == 0:
            return False
        if cloud is self._target_source:
            return False

        try:
            target = wrap_to_count(cloud, self.count)
        except ValueError:
            logger.warning("Ignoring malformed point cloud of %d values", np.size(cloud))
            return False

        self._target_source = cloud
        self._target = target
        return True

    def update(self, elapsed: float, attractor: Optional[Sequence[float]] = None):
        """Advance one frame. `attractor` overrides `self.attractor` when given."""
        self.uniforms["time"] = elapsed
        pos = self.positions.reshape(-1, 3)

        if self._target is not None:
            pos += (self._target.reshape(-1, 3) - pos) * self.lerp_speed

        point = self.attractor if attractor is None else np.asarray(attractor, dtype=np.float32)
        if point is not None:
            delta = point - pos
            dist = np.linalg.norm(delta, axis=1)
            near = (dist < self.attract_radius) & (dist > ATTRACT_EPSILON)
            if near.any():
                d = dist[near]
                force = self.attract_strength * (1 - d / self.attract_radius)
                pos[near] += delta[near] / d[:, None] * force[:, None]

    def dispose(self):
        self._target = None
        self._target_source = None
        self.attractor = None
