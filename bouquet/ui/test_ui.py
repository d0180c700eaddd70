import numpy as np
import pytest

pytest.importorskip("PySide6")

from PySide6.QtCore import QEvent, QPointF, Qt
from PySide6.QtGui import QMouseEvent

from bouquet.core.orchestrator import DEFAULT_FORMATION, Formation, FormationLibrary, Orchestrator
from bouquet.particles.engine import ParticleSystem
from bouquet.particles.renderer import ParticleRenderer, PerspectiveCamera
from bouquet.ui.ui import GestureHintWidget, MainWindow, ParticleWidget
from bouquet.vision.frame_data import HandObservation
from bouquet.vision.gesture_detector import GESTURE_LABELS, Gesture


@pytest.fixture
def orchestrator(qapp):
    library = FormationLibrary()
    library.precompute(100, rng=np.random.default_rng(0))
    orchestrator = Orchestrator(ParticleSystem(100), library, PerspectiveCamera())
    orchestrator.start()
    return orchestrator


def move_event(x, y):
    return QMouseEvent(QEvent.MouseMove, QPointF(x, y), QPointF(x, y), Qt.NoButton, Qt.NoButton, Qt.NoModifier)


def test_mouse_position_becomes_ndc_pointer(orchestrator):
    renderer = ParticleRenderer(orchestrator.particles, orchestrator.camera)
    widget = ParticleWidget(renderer, orchestrator)
    widget.resize(200, 100)

    widget.mouseMoveEvent(move_event(100, 50))
    assert orchestrator.pointer == pytest.approx((0.0, 0.0))

    widget.mouseMoveEvent(move_event(0, 0))
    assert orchestrator.pointer == pytest.approx((-1.0, 1.0))

    widget.leaveEvent(QEvent(QEvent.Leave))
    assert orchestrator.pointer is None


def test_window_buttons_and_hint(orchestrator):
    toggles = []
    renderer = ParticleRenderer(orchestrator.particles, orchestrator.camera)
    window = MainWindow(renderer, orchestrator, on_toggle_camera=lambda: toggles.append(True))

    window.set_loading(True)
    assert not window.cycle_btn.isEnabled()
    window.set_loading(False)

    window.cycle_btn.click()
    assert orchestrator.current != DEFAULT_FORMATION
    assert orchestrator.current == Formation.COMPACT

    window.camera_btn.click()
    assert toggles == [True]

    window.set_camera_active(True)
    window.update_gesture_hint(HandObservation(gesture=Gesture.FIST, raw_gesture=Gesture.FIST, num_hands_detected=1))
    assert window.gesture_hint.text() == GESTURE_LABELS[Gesture.FIST]

    window.set_camera_active(False)
    assert window.gesture_hint.text() == ""
    assert window.camera_btn.text() == "📷 Camera on"


@pytest.mark.parametrize("observation, text", [
    (None, ""),
    (HandObservation(gesture=Gesture.PEACE, num_hands_detected=0), "👀 Looking for a hand…"),
    (HandObservation(gesture=Gesture.PEACE, raw_gesture=Gesture.PEACE, num_hands_detected=1), GESTURE_LABELS[Gesture.PEACE]),
    (HandObservation(gesture=Gesture.PEACE, raw_gesture=Gesture.ROCK, num_hands_detected=1), GESTURE_LABELS[Gesture.ROCK] + "…"),
    (HandObservation(gesture=Gesture.PEACE, raw_gesture=Gesture.NONE, num_hands_detected=1), GESTURE_LABELS[Gesture.PEACE]),
    (HandObservation(gesture=None, raw_gesture=Gesture.NONE, num_hands_detected=1), "🤔 Unknown gesture"),
])
def test_gesture_hint_text(qapp, observation, text):
    hint = GestureHintWidget()
    hint.update_hint(observation)
    assert hint.text() == text
