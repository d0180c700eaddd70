from types import SimpleNamespace

import pytest

pytest.importorskip("cv2")
pytest.importorskip("mediapipe")
pytest.importorskip("PySide6")

from bouquet.core.core import AppCore
from bouquet.core.orchestrator import Formation, FormationLibrary
from bouquet.vision.camera_service import HandTracker


class FakeWindow:
    def __init__(self):
        self.statuses = []
        self.messages = []
        self.titles = []
        self.camera_active = None

    def set_status(self, message):
        self.statuses.append(message)

    def show_message(self, message, timeout=0):
        self.messages.append(message)

    def set_title(self, title):
        self.titles.append(title)

    def set_camera_active(self, active):
        self.camera_active = active


class OpenCapture:
    def __init__(self, index):
        self.released = False

    def isOpened(self):
        return True

    def set(self, prop, value):
        return True

    def release(self):
        self.released = True


def broken_hands():
    raise AttributeError("module 'mediapipe' has no attribute 'solutions'")


def make_core(tracker):
    core = SimpleNamespace(tracker=tracker, window=FakeWindow(), _shown_observation=None)
    core._stop_tracking = lambda status: AppCore._stop_tracking(core, status)
    return core


def test_toggle_camera_reports_hand_model_failure():
    captures = []

    def capture_factory(index):
        captures.append(OpenCapture(index))
        return captures[-1]

    core = make_core(HandTracker(capture_factory=capture_factory, hands_factory=broken_hands))
    AppCore.toggle_camera(core)

    assert captures[0].released
    assert not core.tracker.active
    assert core.window.camera_active is False
    assert core.window.statuses[-1] == "⚠️ Could not load the hand model"


def test_formation_change_shows_title_and_label():
    library = FormationLibrary(name_text="Ana")
    core = SimpleNamespace(
        window=FakeWindow(),
        library=library,
        orchestrator=SimpleNamespace(current=Formation.PLANET),
    )
    AppCore._on_formation_changed(core, "✨ A planet for you ✨")
    assert core.window.titles == ["✨ A planet for you ✨"]
    assert core.window.messages == ["🪐 Planet"]
