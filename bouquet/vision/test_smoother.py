import pytest

from bouquet.vision.metrics import MetricsCollector
from bouquet.vision.smoother import OneEuroFilter


def test_first_sample_passes_through():
    f = OneEuroFilter()
    assert f.smooth_point(0.3, -0.2, t=0.0) == (0.3, -0.2)


def test_jump_is_damped_then_converges():
    f = OneEuroFilter()
    f.smooth_point(0.0, 0.0, t=0.0)
    x, _ = f.smooth_point(1.0, 0.0, t=1 / 30)
    assert 0.0 < x < 1.0

    t = 1 / 30
    for _ in range(200):
        t += 1 / 30
        x, _ = f.smooth_point(1.0, 0.0, t=t)
    assert x == pytest.approx(1.0, abs=1e-3)


def test_reset_forgets_history():
    f = OneEuroFilter()
    f.smooth_point(0.0, 0.0, t=0.0)
    f.reset()
    assert f.smooth_point(0.5, 0.5, t=1.0) == (0.5, 0.5)


def test_metrics_fps_over_window():
    metrics = MetricsCollector(window=30)
    assert metrics.update(0.0) == 0.0
    for i in range(1, 11):
        fps = metrics.update(i * 0.1)
    assert fps == pytest.approx(10.0)
