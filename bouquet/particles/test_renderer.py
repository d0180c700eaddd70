import math

import numpy as np
import pytest

pytest.importorskip("PySide6")

from PySide6.QtCore import QRectF
from PySide6.QtGui import QImage, QPainter

from bouquet.particles.engine import ParticleSystem
from bouquet.particles.renderer import ParticleRenderer, PerspectiveCamera, rotation_matrix, to_polygon


def test_unproject_centre_hits_origin():
    assert PerspectiveCamera().unproject((0.0, 0.0)) == (0.0, 0.0, 0.0)


def test_unproject_edge_matches_frustum():
    camera = PerspectiveCamera(fov=60.0, aspect=2.0, distance=18.0)
    x, y, z = camera.unproject((1.0, 1.0))
    half = math.tan(math.radians(30)) * 18.0
    assert y == pytest.approx(half)
    assert x == pytest.approx(half * 2.0)
    assert z == 0.0


def test_project_inverts_unproject():
    camera = PerspectiveCamera(aspect=1.5)
    world = np.array([camera.unproject((0.25, -0.6)), camera.unproject((-1.0, 1.0))])
    ndc, depth = camera.project(world)
    np.testing.assert_allclose(ndc, [[0.25, -0.6], [-1.0, 1.0]], atol=1e-9)
    np.testing.assert_allclose(depth, 18.0)


def test_rotation_matrix():
    np.testing.assert_allclose(rotation_matrix(0.0, 0.0), np.eye(3))
    # quarter turn about y takes +x to -z
    np.testing.assert_allclose(rotation_matrix(0.0, math.pi / 2) @ [1, 0, 0], [0, 0, -1], atol=1e-12)
    r = rotation_matrix(0.3, -1.1, 0.7)
    np.testing.assert_allclose(r @ r.T, np.eye(3), atol=1e-12)


@pytest.fixture
def renderer():
    return ParticleRenderer(ParticleSystem(count=300, rng=np.random.default_rng(5)))


def test_project_particles_shapes(renderer):
    renderer.particles.update(1.0)
    screen, sizes, alpha, idx = renderer.project_particles(800, 600)
    assert screen.shape == (len(idx), 2)
    assert sizes.shape == alpha.shape == (len(idx),)
    # the starting cloud sits well in front of the camera
    assert len(idx) == 300
    assert np.all(sizes > 0)
    assert alpha.min() >= 0.3 - 1e-6
    assert alpha.max() <= 1.0 + 1e-6


def test_centre_particle_lands_mid_screen(renderer):
    renderer.particles.positions[:3] = 0.0
    screen, _, _, idx = renderer.project_particles(800, 600)
    np.testing.assert_allclose(screen[list(idx).index(0)], [400, 300])


def test_viewport_updates_aspect(renderer):
    renderer.set_viewport(1000, 500)
    assert renderer.camera.aspect == 2.0
    renderer.set_viewport(1000, 0)
    assert renderer.camera.aspect == 2.0


def test_render_to_painter_draws(qapp, renderer):
    image = QImage(320, 240, QImage.Format.Format_ARGB32)
    painter = QPainter(image)
    renderer.render_to_painter(painter, QRectF(0, 0, 320, 240))
    painter.end()
    pixels = np.frombuffer(image.constBits(), dtype=np.uint8).reshape(240, image.bytesPerLine())
    rgb = pixels[:, :320 * 4].reshape(240, 320, 4)[..., :3]
    # background is near black, particles add light on top
    assert rgb.max() > 100


def test_to_polygon_keeps_points(qapp):
    polygon = to_polygon(np.array([[1.5, 2.0], [3.0, 4.25]]))
    assert polygon.size() == 2
    assert (polygon[1].x(), polygon[1].y()) == (3.0, 4.25)


def test_background_projection_is_cached_per_view(qapp, renderer):
    renderer.set_viewport(800, 600)
    first = renderer.background_polygon(800, 600)
    assert renderer.background_polygon(800, 600) is first
    assert first.size() > 0

    resized = renderer.background_polygon(400, 300)
    assert resized is not first
    # Same aspect, half the size: every star moves to half its coordinates
    assert resized[0].x() == pytest.approx(first[0].x() / 2)

    renderer.set_viewport(400, 400)
    assert renderer.background_polygon(400, 300) is not resized
