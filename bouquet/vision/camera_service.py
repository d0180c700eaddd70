# bouquet/vision/camera_service.py
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from .frame_data import HandObservation
from .gesture_detector import INDEX_TIP, GestureDebouncer, classify_gesture
from .metrics import MetricsCollector
from .smoother import OneEuroFilter

logger = logging.getLogger(__name__)

FINGERTIPS = (4, 8, 12, 16, 20)

# BGR
LANDMARK_COLOR = (180, 105, 255)
SKELETON_COLOR = (180, 130, 255)
FINGERTIP_COLORS = [(193, 182, 255), (180, 105, 255), (214, 112, 218), (211, 85, 186), (255, 176, 224)]

# Seconds stop() waits for the detection thread
STOP_TIMEOUT = 1.0


class CameraAccessError(RuntimeError):
    """No camera device, or the device refused to open."""


class HandModelError(RuntimeError):
    """The MediaPipe hand model could not be created."""


def fingertip_to_ndc(landmark) -> Tuple[float, float]:
    """Normalized image point -> NDC, mirrored on x so the cloud follows the hand like a mirror."""
    return -(landmark.x * 2 - 1), -(landmark.y * 2 - 1)


class LatestObservation:
    """Single-slot cell: the detection thread overwrites, the render tick reads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = HandObservation()

    def publish(self, observation: HandObservation):
        with self._lock:
            self._value = observation

    def get(self) -> HandObservation:
        with self._lock:
            return self._value

    def clear(self):
        self.publish(HandObservation())


class HandTracker:
    """
    Webcam + MediaPipe Hands running on a background thread.

    Every processed frame is classified, debounced and published into a
    `LatestObservation`; the render loop only ever reads the latest value.
    `stop()` halts the loop, releases the camera and turns any result that is
    still in flight into a no-op.
    """

    def __init__(
        self,
        camera_index: int = 0,
        resolution: tuple = (640, 480),
        min_detection_confidence: float = 0.6,
        min_tracking_confidence: float = 0.5,
        model_complexity: int = 1,
        mirror_preview: bool = True,
        smooth_fingertip: bool = True,
        capture_factory: Callable = cv2.VideoCapture,
        hands_factory: Optional[Callable] = None,
    ):
        self.camera_index = camera_index
        self.resolution = resolution
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self.model_complexity = model_complexity
        self.mirror_preview = mirror_preview
        self.smooth_fingertip = smooth_fingertip

        self._capture_factory = capture_factory
        self._hands_factory = hands_factory or self._create_hands

        self.debouncer = GestureDebouncer()
        self.smoother = OneEuroFilter()
        self.metrics = MetricsCollector()
        self.observation = LatestObservation()

        self.cap = None
        self.hands = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._session_lock = threading.Lock()
        self._generation = 0
        self._active = False
        self.stop_timeout = STOP_TIMEOUT

    @property
    def active(self) -> bool:
        return self._active

    def latest(self) -> HandObservation:
        return self.observation.get()

    def start(self, on_status: Callable[[str], None] = lambda msg: None):
        if self._active:
            return

        on_status("Requesting camera…")
        cap = self._capture_factory(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise CameraAccessError(f"Could not open camera {self.camera_index}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])

        on_status("Loading hand model…")
        try:
            hands = self._hands_factory()
        except Exception as e:
            cap.release()
            raise HandModelError(f"Could not load the hand model: {e}") from e

        self.cap, self.hands = cap, hands
        with self._session_lock:
            self._generation += 1
            generation = self._generation
            self._active = True
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(generation, self._stop_event, cap, hands), name="hand-tracker", daemon=True
        )
        self._thread.start()
        logger.info("Hand tracking started on camera %d", self.camera_index)
        on_status("✨ Make gestures with your hand")

    def stop(self):
        """
        End the session. The detection thread owns the camera and the model
        and releases both when it exits; if it is stuck inside a frame for
        longer than `stop_timeout` it finishes on its own.
        """
        with self._session_lock:
            was_active = self._active
            self._active = False
            self._generation += 1
        self._stop_event.set()

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.stop_timeout)
            if self._thread.is_alive():
                logger.warning("Hand tracking thread still busy, it will release the camera on exit")
        self._thread = None
        self.cap = None
        self.hands = None

        self.debouncer.reset()
        self.smoother.reset()
        self.metrics.reset()
        self.observation.clear()
        if was_active:
            logger.info("Hand tracking stopped")

    def _create_hands(self):
        return mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=1,
            model_complexity=self.model_complexity,
            min_detection_confidence=self.min_detection_confidence,
            min_tracking_confidence=self.min_tracking_confidence,
        )

    def _run(self, generation: int, stop_event: threading.Event, cap, hands):
        try:
            while not stop_event.is_set():
                ok, frame = cap.read()
                if not ok:
                    # Stalled camera: report "no hand" and try again
                    self._handle_results(generation, None, None)
                    time.sleep(0.01)
                    continue

                started = time.perf_counter()
                rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                results = hands.process(rgb_frame)
                latency_ms = (time.perf_counter() - started) * 1000
                self._handle_results(generation, frame, results, latency_ms)
        except Exception as e:
            logger.exception("Hand detection failed")
            with self._session_lock:
                if generation == self._generation:
                    self.observation.publish(replace(self.observation.get(), error=str(e), fingertip=None))
        finally:
            cap.release()
            hands.close()

    def _handle_results(self, generation: int, frame: Optional[np.ndarray], results, latency_ms: float = 0.0):
        with self._session_lock:
            if generation != self._generation or not self._active:
                # Result of a session that was already stopped
                return

            now = time.perf_counter()
            hands_found = getattr(results, "multi_hand_landmarks", None) or []
            hand = hands_found[0] if hands_found else None
            landmarks = hand.landmark if hand is not None else None

            if landmarks is not None:
                raw_gesture = classify_gesture(landmarks)
                x, y = fingertip_to_ndc(landmarks[INDEX_TIP])
                if self.smooth_fingertip:
                    x, y = self.smoother.smooth_point(x, y, now)
                fingertip = (x, y)
            else:
                raw_gesture = None
                fingertip = None
                self.smoother.reset()

            stable = self.debouncer.update(raw_gesture)

            preview = None
            if frame is not None:
                preview = self._draw_preview(frame, hand, stable)

            self.observation.publish(
                HandObservation(
                    raw_frame=preview,
                    gesture=stable,
                    raw_gesture=raw_gesture,
                    fingertip=fingertip,
                    num_hands_detected=len(hands_found),
                    fps=self.metrics.update(now),
                    latency_ms=latency_ms,
                )
            )

    def _draw_preview(self, frame: np.ndarray, hand, gesture) -> np.ndarray:
        """Skeleton on the camera frame, flipped afterwards for a mirror-like preview."""
        preview = frame.copy()
        if hand is not None:
            mp_drawing = mp.solutions.drawing_utils
            mp_drawing.draw_landmarks(
                preview,
                hand,
                mp.solutions.hands.HAND_CONNECTIONS,
                mp_drawing.DrawingSpec(color=LANDMARK_COLOR, thickness=2, circle_radius=3),
                mp_drawing.DrawingSpec(color=SKELETON_COLOR, thickness=2),
            )
            h, w = preview.shape[:2]
            for tip_id, color in zip(FINGERTIPS, FINGERTIP_COLORS):
                tip = hand.landmark[tip_id]
                cv2.circle(preview, (int(tip.x * w), int(tip.y * h)), 5, color, -1, cv2.LINE_AA)

        if self.mirror_preview:
            preview = cv2.flip(preview, 1)
        if gesture is not None:
            cv2.putText(preview, gesture.value, (8, preview.shape[0] - 10), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
        return preview
