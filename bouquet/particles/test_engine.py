import numpy as np
import pytest

from bouquet.particles.engine import ATTRACT_STRENGTH, ParticleSystem
from bouquet.particles.formations import compact_positions, sphere_positions


@pytest.fixture
def particles():
    return ParticleSystem(count=500, rng=np.random.default_rng(3))


def test_converges_to_target(particles):
    target = compact_positions(500, rng=np.random.default_rng(4))
    particles.set_target(target)

    start_error = np.abs(particles.positions - target).max()
    for frame in range(200):
        particles.update(frame / 60)
    error = np.abs(particles.positions - target).max()

    # 0.92 ** 200 of the initial gap remains
    assert error <= start_error * 0.92 ** 200 + 1e-5
    assert error < 1e-4


def test_each_frame_covers_eight_percent(particles):
    target = np.zeros(500 * 3, dtype=np.float32)
    particles.set_target(target)
    before = particles.positions.copy()
    particles.update(0.0)
    np.testing.assert_allclose(particles.positions, before * 0.92, rtol=1e-5, atol=1e-6)


def test_set_target_keeps_live_positions(particles):
    before = particles.positions.copy()
    particles.set_target(sphere_positions(500))
    np.testing.assert_array_equal(particles.positions, before)


def test_exact_size_target_is_referenced_not_copied(particles):
    target = sphere_positions(500)
    particles.set_target(target)
    assert particles.target is target


def test_smaller_target_is_wrapped(particles):
    particles.set_target(np.arange(30, dtype=np.float32))
    assert particles.target.shape == (1500,)


@pytest.mark.parametrize("cloud", [None, np.array([], dtype=np.float32), np.zeros(7, dtype=np.float32)])
def test_invalid_target_is_ignored(particles, cloud):
    before = particles.positions.copy()
    assert particles.set_target(cloud) is False
    assert particles.target is None
    np.testing.assert_array_equal(particles.positions, before)


def test_same_target_twice_is_noop(particles):
    target = np.arange(30, dtype=np.float32)
    assert particles.set_target(target) is True
    wrapped = particles.target
    assert particles.set_target(target) is False
    assert particles.target is wrapped


def place(particles, *points):
    particles.positions[:] = 100.0  # out of reach of the attractor
    for i, p in enumerate(points):
        particles.positions[i * 3:i * 3 + 3] = p


def test_attractor_pulls_nearby_particle(particles):
    place(particles, (2.0, 0.0, 0.0))
    particles.update(0.0, attractor=(0.0, 0.0, 0.0))
    # strength * (1 - 2/4) toward the origin
    assert particles.positions[0] == pytest.approx(2.0 - ATTRACT_STRENGTH * 0.5)
    assert particles.positions[1] == pytest.approx(0.0)


def test_attractor_boundary_and_epsilon_have_no_effect(particles):
    place(particles, (4.0, 0.0, 0.0), (0.0, 0.005, 0.0), (0.0, 0.0, 5.0))
    before = particles.positions.copy()
    particles.update(0.0, attractor=(0.0, 0.0, 0.0))
    np.testing.assert_array_equal(particles.positions, before)


def test_attractor_attribute_is_used(particles):
    place(particles, (1.0, 0.0, 0.0))
    particles.set_attractor((0.0, 0.0, 0.0))
    particles.update(0.0)
    assert particles.positions[0] < 1.0

    particles.set_attractor(None)
    place(particles, (1.0, 0.0, 0.0))
    particles.update(0.0)
    assert particles.positions[0] == 1.0


def test_update_sets_time_uniform(particles):
    particles.update(2.5)
    assert particles.uniforms["time"] == 2.5


def test_pixel_ratio_is_capped(particles):
    particles.set_pixel_ratio(3.0)
    assert particles.uniforms["pixel_ratio"] == 2.0
