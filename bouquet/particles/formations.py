"""
Formation generators.

Every generator returns a flat float32 buffer of `count * 3` coordinates
(x0, y0, z0, x1, ...). Sampling is random on purpose: the shapes are visual,
not reproducible. Pass an explicit `rng` to make a run deterministic.
"""
from typing import Optional

import numpy as np

PLANET_CORE_SHARE = 0.4


def _rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def ball_points(count: int, radius: float, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Uniform points inside a ball, shape (count, 3)."""
    rng = _rng(rng)
    theta = rng.random(count) * np.pi * 2
    phi = np.arccos(2 * rng.random(count) - 1)
    # cube root keeps the density uniform instead of piling up at the centre
    r = radius * np.cbrt(rng.random(count))

    points = np.empty((count, 3), dtype=np.float32)
    points[:, 0] = r * np.sin(phi) * np.cos(theta)
    points[:, 1] = r * np.sin(phi) * np.sin(theta)
    points[:, 2] = r * np.cos(phi)
    return points


def sphere_positions(count: int, radius: float = 12.0, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    return ball_points(count, radius, rng).reshape(-1)


def compact_positions(count: int, radius: float = 1.2, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Tight cluster at the origin, the "fist" contraction."""
    return ball_points(count, radius, rng).reshape(-1)


def heart_positions(count: int, scale: float = 0.7, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Parametric heart curve lifted to 3-D with a little depth noise."""
    rng = _rng(rng)
    t = rng.random(count) * np.pi * 2
    x = 16 * np.sin(t) ** 3
    y = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    z = (rng.random(count) - 0.5) * 2

    points = np.empty((count, 3), dtype=np.float32)
    points[:, 0] = x * scale * 0.25
    points[:, 1] = y * scale * 0.25
    points[:, 2] = z * 0.3
    return points.reshape(-1)


def planet_positions(
    count: int,
    core_radius: float = 2.0,
    ring_radius: float = 4.0,
    ring_width: float = 1.8,
    ring_thickness: float = 0.3,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Solid planet body plus a flat ring around it, Saturn style."""
    rng = _rng(rng)
    core_count = int(np.floor(count * PLANET_CORE_SHARE))
    ring_count = count - core_count

    points = np.empty((count, 3), dtype=np.float32)
    points[:core_count] = ball_points(core_count, core_radius, rng)

    angle = rng.random(ring_count) * np.pi * 2
    radius = ring_radius + (rng.random(ring_count) - 0.5) * ring_width
    ring = points[core_count:]
    ring[:, 0] = np.cos(angle) * radius
    ring[:, 1] = (rng.random(ring_count) - 0.5) * ring_thickness
    ring[:, 2] = np.sin(angle) * radius
    return points.reshape(-1)


def sample_surface(triangles: np.ndarray, count: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Uniform random points on a triangle mesh surface.

    triangles: (F, 3, 3) array, three corners per triangle.
    A triangle is picked with probability proportional to its area by walking
    the cumulative area distribution, then a point inside it is drawn from
    folded barycentric coordinates.
    """
    rng = _rng(rng)
    triangles = np.asarray(triangles, dtype=np.float64)
    if triangles.ndim != 3 or triangles.shape[1:] != (3, 3) or len(triangles) == 0:
        raise ValueError("Expected a non-empty (F, 3, 3) triangle array")

    a, b, c = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    areas = 0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)
    total_area = areas.sum()
    if total_area <= 0:
        raise ValueError("Mesh has no surface area")

    cdf = np.cumsum(areas) / total_area
    picks = np.searchsorted(cdf, rng.random(count), side="left")
    picks = np.minimum(picks, len(triangles) - 1)

    u = rng.random(count)
    v = rng.random(count)
    outside = u + v > 1
    u[outside] = 1 - u[outside]
    v[outside] = 1 - v[outside]
    w = 1 - u - v

    points = a[picks] * w[:, None] + b[picks] * u[:, None] + c[picks] * v[:, None]
    return points.astype(np.float32).reshape(-1)


def wrap_to_count(cloud: np.ndarray, count: int) -> np.ndarray:
    """
    Resize a flat cloud to exactly `count` points by cycling through it.

    A flat float32 cloud that already has the right size is returned as is
    (the very same object, no copy).
    """
    if isinstance(cloud, np.ndarray) and cloud.dtype == np.float32 and cloud.ndim == 1 and cloud.size == count * 3:
        return cloud

    cloud = np.asarray(cloud, dtype=np.float32).reshape(-1)
    if cloud.size == count * 3:
        return cloud

    points = cloud.reshape(-1, 3)
    if len(points) == 0:
        raise ValueError("Cannot wrap an empty point cloud")
    return points[np.arange(count) % len(points)].reshape(-1)
