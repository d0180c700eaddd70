import logging

import cv2
from PySide6.QtCore import QElapsedTimer, QTimer
from PySide6.QtGui import QImage
from PySide6.QtWidgets import QApplication

from bouquet.core.config import Settings
from bouquet.core.orchestrator import FormationLibrary, Orchestrator
from bouquet.particles.engine import ParticleSystem
from bouquet.particles.glyphs import FontLoader
from bouquet.particles.renderer import ParticleRenderer, PerspectiveCamera
from bouquet.ui.ui import MainWindow
from bouquet.vision.camera_service import CameraAccessError, HandModelError, HandTracker
from bouquet.vision.metrics import MetricsCollector

logger = logging.getLogger(__name__)

FPS_REPORT_EVERY = 30


class AppCore:
    def __init__(self, sys_argv, settings: Settings):
        self.app = QApplication(sys_argv)
        self.app.setStyle("Fusion")
        self.settings = settings

        self.particles = ParticleSystem(count=settings.particle_count)
        self.particles.set_pixel_ratio(self.app.devicePixelRatio())
        self.camera = PerspectiveCamera()
        self.renderer = ParticleRenderer(self.particles, self.camera)

        self.library = FormationLibrary(settings.name_text, settings.love_text)
        self.orchestrator = Orchestrator(self.particles, self.library, self.camera)

        self.tracker = HandTracker(
            camera_index=settings.camera_index,
            resolution=tuple(settings.camera_resolution),
            min_detection_confidence=settings.min_detection_confidence,
            min_tracking_confidence=settings.min_tracking_confidence,
            model_complexity=settings.model_complexity,
            mirror_preview=settings.mirror_preview,
            smooth_fingertip=settings.smooth_fingertip,
        )
        self._shown_observation = None

        self.window = MainWindow(self.renderer, self.orchestrator, on_toggle_camera=self.toggle_camera)
        self.orchestrator.on_title = self._on_formation_changed
        self.window.set_loading(True)
        self.window.show()

        self.render_metrics = MetricsCollector()
        self.frame_count = 0
        self.clock = QElapsedTimer()
        self.timer = QTimer()
        self.timer.timeout.connect(self._game_loop)

        self.app.aboutToQuit.connect(self.shutdown)

        # Formations are built once the font is in; the loop starts after that
        self.fonts = FontLoader(settings.font_source)
        self.fonts.loaded.connect(self._on_font_loaded)
        self.fonts.failed.connect(self._on_font_failed)
        self.fonts.load_async()

    def run(self):
        return self.app.exec()

    def shutdown(self):
        self.timer.stop()
        self.tracker.stop()
        self.fonts.dispose()
        self.particles.dispose()
        logger.info("Shutdown complete")

    # --- STARTUP ---
    def _on_font_loaded(self, font):
        self._start_loop(font)

    def _on_font_failed(self, message: str):
        logger.error("Font load failed: %s", message)
        self.window.show_message(f"⚠️ Text formations unavailable: {message}")
        self._start_loop(None)

    def _start_loop(self, font):
        self.library.precompute(self.particles.count, font)
        if self.library.text_error:
            self.window.show_message(f"⚠️ Text formations unavailable: {self.library.text_error}")

        self.orchestrator.start()
        self.window.set_loading(False)
        self.clock.start()
        self.timer.start(self.settings.frame_interval_ms)

    def _on_formation_changed(self, title: str):
        self.window.set_title(title)
        self.window.show_message(self.library.label(self.orchestrator.current), 2000)

    # --- CAMERA ---
    def toggle_camera(self):
        if self.tracker.active:
            self._stop_tracking("")
            return

        try:
            self.tracker.start(on_status=self.window.set_status)
        except CameraAccessError as e:
            logger.warning("Camera unavailable: %s", e)
            self._stop_tracking("⚠️ Could not access the camera")
            return
        except HandModelError as e:
            logger.error("Hand model failed to load: %s", e)
            self._stop_tracking("⚠️ Could not load the hand model")
            return

        self.window.set_camera_active(True)

    def _stop_tracking(self, status: str):
        self.tracker.stop()
        self._shown_observation = None
        self.window.set_camera_active(False)
        self.window.set_status(status)

    # --- FRAME ---
    def _game_loop(self):
        elapsed = self.clock.elapsed() / 1000.0
        observation = self.tracker.latest()
        tracking = self.tracker.active

        if tracking and observation.error:
            self._stop_tracking("⚠️ Hand tracking stopped")
            observation = self.tracker.latest()
            tracking = False

        # gesture -> attractor -> particles, then paint
        self.orchestrator.tick(elapsed, observation, tracking)
        self.renderer.rotation_x = self.orchestrator.rotation_x
        self.renderer.rotation_y = self.orchestrator.rotation_y
        self.window.particle_widget.update()

        if tracking and observation is not self._shown_observation:
            self._shown_observation = observation
            self.window.update_gesture_hint(observation)
            if observation.raw_frame is not None:
                rgb_frame = cv2.cvtColor(observation.raw_frame, cv2.COLOR_BGR2RGB)
                h, w, ch = rgb_frame.shape
                qt_image = QImage(rgb_frame.data, w, h, ch * w, QImage.Format_RGB888)
                self.window.update_preview(qt_image.copy())

        self.render_metrics.update()
        self.frame_count += 1
        if self.frame_count % FPS_REPORT_EVERY == 0:
            message = f"Render {self.render_metrics.fps:.0f} FPS"
            if tracking:
                message += f" | Detection {observation.fps:.0f} FPS, {observation.latency_ms:.0f} ms"
            self.window.show_message(message)
