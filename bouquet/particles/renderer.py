import math
from dataclasses import dataclass
from itertools import starmap
from typing import Optional, Tuple

import numpy as np
from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QPainter, QPen, QPolygonF

from .engine import PALETTE, ParticleSystem

BACKGROUND_COLOR = QColor(0x05, 0x00, 0x08)
BACKGROUND_STAR_COUNT = 2000


@dataclass
class PerspectiveCamera:
    """Camera on the +z axis looking at the origin."""
    fov: float = 60.0
    aspect: float = 16 / 9
    distance: float = 18.0
    near: float = 0.1
    far: float = 200.0

    @property
    def _half_height(self) -> float:
        return math.tan(math.radians(self.fov) / 2)

    def unproject(self, ndc: Tuple[float, float]) -> Tuple[float, float, float]:
        """NDC point -> where its view ray hits the z = 0 plane."""
        x, y = ndc
        half = self._half_height * self.distance
        return (x * half * self.aspect, y * half, 0.0)

    def project(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """World points (n, 3) -> NDC (n, 2) and view depth (n,)."""
        depth = self.distance - points[:, 2]
        safe = np.where(depth > self.near, depth, self.near)
        half = self._half_height * safe
        ndc = np.empty((len(points), 2), dtype=np.float64)
        ndc[:, 0] = points[:, 0] / (half * self.aspect)
        ndc[:, 1] = points[:, 1] / half
        return ndc, depth


def rotation_matrix(rx: float, ry: float, rz: float = 0.0) -> np.ndarray:
    """XYZ Euler rotation, applied as R @ v."""
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    rot_y = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rot_z = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rot_x @ rot_y @ rot_z


def to_polygon(points: np.ndarray) -> QPolygonF:
    """(n, 2) screen coordinates -> QPolygonF for drawPoints."""
    return QPolygonF(list(starmap(QPointF, points.tolist())))


def background_star_positions(count: int = BACKGROUND_STAR_COUNT, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Static far-away star field behind the cloud, shape (count, 3)."""
    rng = rng if rng is not None else np.random.default_rng()
    stars = np.empty((count, 3), dtype=np.float32)
    stars[:, 0] = (rng.random(count) - 0.5) * 160
    stars[:, 1] = (rng.random(count) - 0.5) * 160
    stars[:, 2] = -20 - rng.random(count) * 80
    return stars


class ParticleRenderer:
    """Projects the particle buffer and paints it with additive blending."""

    def __init__(self, particles: ParticleSystem, camera: Optional[PerspectiveCamera] = None):
        self.particles = particles
        self.camera = camera or PerspectiveCamera()
        self.rotation_x = 0.0
        self.rotation_y = 0.0
        self.background = background_star_positions()
        self._background_key = None
        self._background_polygon: Optional[QPolygonF] = None

    def set_viewport(self, width: int, height: int):
        if height > 0:
            self.camera.aspect = width / height

    def twinkle(self) -> np.ndarray:
        """Per-particle flicker in [0.3, 1.0], each with its own phase."""
        t = self.particles.uniforms["time"]
        r = self.particles.randoms
        return np.sin(t * (1.5 + r * 3.0) + r * 6.283) * 0.35 + 0.65

    def project_particles(self, width: float, height: float):
        """
        Screen positions, point sizes (px) and alpha for every visible particle,
        plus the indices of those particles.
        """
        u = self.particles.uniforms
        pos = self.particles.positions.reshape(-1, 3)
        world = pos @ rotation_matrix(self.rotation_x, self.rotation_y).T

        ndc, depth = self.camera.project(world)
        visible = (depth > self.camera.near) & (depth < self.camera.far)

        twinkle = self.twinkle()
        sizes = u["size"] * self.particles.scales * twinkle * u["pixel_ratio"] / np.maximum(depth, self.camera.near)

        screen = np.empty_like(ndc)
        screen[:, 0] = (ndc[:, 0] * 0.5 + 0.5) * width
        screen[:, 1] = (0.5 - ndc[:, 1] * 0.5) * height

        idx = np.nonzero(visible)[0]
        return screen[idx], sizes[idx], twinkle[idx], idx

    def render_to_painter(self, painter: QPainter, target_rect: QRectF):
        painter.save()
        painter.fillRect(target_rect, BACKGROUND_COLOR)
        painter.translate(target_rect.topLeft())

        width, height = target_rect.width(), target_rect.height()
        self._draw_background(painter, width, height)

        painter.setCompositionMode(QPainter.CompositionMode_Plus)
        screen, sizes, alpha, idx = self.project_particles(width, height)
        colors = self.particles.color_index[idx]
        size_px = np.clip(np.rint(sizes), 1, 24).astype(int)

        # One drawPoints call per (colour, size) bucket
        keys = colors * 100 + size_px
        for key in np.unique(keys):
            members = keys == key
            r, g, b = PALETTE[key // 100]
            color = QColor.fromRgbF(float(r), float(g), float(b), float(alpha[members].mean()))
            pen = QPen(color, float(key % 100))
            pen.setCapStyle(Qt.RoundCap)
            painter.setPen(pen)
            painter.drawPoints(to_polygon(screen[members]))

        painter.restore()

    def background_polygon(self, width: float, height: float) -> QPolygonF:
        """Screen positions of the static star field, reprojected only when the view changes."""
        key = (width, height, self.camera.aspect, self.camera.fov, self.camera.distance)
        if self._background_key != key:
            ndc, depth = self.camera.project(self.background)
            visible = depth > self.camera.near
            screen = np.empty((int(visible.sum()), 2))
            screen[:, 0] = (ndc[visible, 0] * 0.5 + 0.5) * width
            screen[:, 1] = (0.5 - ndc[visible, 1] * 0.5) * height
            self._background_polygon = to_polygon(screen)
            self._background_key = key
        return self._background_polygon

    def _draw_background(self, painter: QPainter, width: float, height: float):
        painter.setPen(QPen(QColor(255, 255, 255, 153), 1.0))
        painter.drawPoints(self.background_polygon(width, height))
