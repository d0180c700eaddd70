from typing import Callable, Optional

from PySide6.QtCore import QRectF, Qt
from PySide6.QtGui import QImage, QMouseEvent, QPainter, QPaintEvent, QPixmap, QResizeEvent
from PySide6.QtWidgets import (
    QHBoxLayout, QLabel, QMainWindow, QPushButton, QSizePolicy, QStatusBar, QVBoxLayout, QWidget
)

from bouquet.core.orchestrator import Orchestrator
from bouquet.particles.renderer import ParticleRenderer
from bouquet.vision.frame_data import HandObservation
from bouquet.vision.gesture_detector import GESTURE_LABELS


# --- PARTICLE VIEW ---
class ParticleWidget(QWidget):
    def __init__(self, renderer: ParticleRenderer, orchestrator: Orchestrator, parent=None):
        super().__init__(parent)
        self._renderer = renderer
        self._orchestrator = orchestrator
        self.setMouseTracking(True)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        self._renderer.render_to_painter(painter, QRectF(self.rect()))
        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._renderer.set_viewport(self.width(), self.height())
        super().resizeEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent):
        pos = event.position()
        w, h = max(self.width(), 1), max(self.height(), 1)
        self._orchestrator.set_pointer((pos.x() / w * 2 - 1, -(pos.y() / h) * 2 + 1))

    def leaveEvent(self, event):
        self._orchestrator.clear_pointer()
        super().leaveEvent(event)


# --- UI COMPONENTS ---
class ToolButton(QPushButton):
    def __init__(self, text: str, tooltip: str = "", parent=None):
        super().__init__(text, parent)
        self.setToolTip(tooltip)
        self.setCursor(Qt.PointingHandCursor)
        self._is_active = False
        self._init_style()

    def set_active(self, active: bool):
        self._is_active = active
        self._init_style()

    def _init_style(self):
        if self._is_active:
            bg, bg_hover, border = "rgba(255, 105, 180, 0.45)", "rgba(255, 105, 180, 0.6)", "#FF69B4"
        else:
            bg, bg_hover, border = "rgba(255, 255, 255, 0.08)", "rgba(255, 255, 255, 0.16)", "rgba(255, 182, 193, 0.5)"

        self.setStyleSheet(f"""
            QPushButton {{
                background-color: {bg}; color: white; border: 1px solid {border};
                border-radius: 18px; padding: 8px 18px; font-size: 14px; font-weight: 600;
            }}
            QPushButton:hover {{ background-color: {bg_hover}; }}
        """)


class GestureHintWidget(QLabel):
    def __init__(self):
        super().__init__("")
        self.setAlignment(Qt.AlignCenter)
        self.setStyleSheet("color: #FFB6C1; font-size: 13px;")

    def update_hint(self, observation: Optional[HandObservation]):
        if observation is None:
            self.setText("")
        elif observation.num_hands_detected == 0:
            self.setText("👀 Looking for a hand…")
        elif observation.raw_gesture in GESTURE_LABELS and observation.raw_gesture != observation.gesture:
            # Seen this frame, not committed yet
            self.setText(f"{GESTURE_LABELS[observation.raw_gesture]}…")
        elif observation.gesture in GESTURE_LABELS:
            self.setText(GESTURE_LABELS[observation.gesture])
        else:
            self.setText("🤔 Unknown gesture")


# --- MAIN WINDOW ---
class MainWindow(QMainWindow):
    def __init__(
        self,
        renderer: ParticleRenderer,
        orchestrator: Orchestrator,
        on_toggle_camera: Callable[[], None] = lambda: None,
    ):
        super().__init__()
        self._renderer = renderer
        self._orchestrator = orchestrator
        self._on_toggle_camera = on_toggle_camera
        self._init_ui()

    def _init_ui(self):
        self.setWindowTitle("Digital Bouquet")
        self.resize(1280, 800)
        self.setStyleSheet("QMainWindow { background-color: #050008; }")

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        self.title_label = QLabel("")
        self.title_label.setAlignment(Qt.AlignCenter)
        self.title_label.setStyleSheet(
            "background: #050008; color: #FFE4F0; font-size: 28px; font-weight: 700; padding: 14px;"
        )
        main_layout.addWidget(self.title_label)

        self.particle_widget = ParticleWidget(self._renderer, self._orchestrator)
        main_layout.addWidget(self.particle_widget, stretch=1)

        # Loading overlay on top of the particle view until formations are ready
        self.loading_label = QLabel("Loading…", self.particle_widget)
        self.loading_label.setAlignment(Qt.AlignCenter)
        self.loading_label.setStyleSheet("color: #FFB6C1; font-size: 22px; background: transparent;")

        # Camera preview in the corner of the particle view
        self.camera_preview = QLabel(self.particle_widget)
        self.camera_preview.setFixedSize(200, 150)
        self.camera_preview.setStyleSheet("border: 1px solid rgba(255, 182, 193, 0.5); border-radius: 8px;")
        self.camera_preview.hide()

        self._create_bottom_bar(main_layout)

    def _create_bottom_bar(self, layout):
        frame = QWidget()
        frame.setStyleSheet("background: #0B0410;")
        l = QHBoxLayout(frame)
        l.setContentsMargins(20, 10, 20, 10)
        l.setSpacing(16)

        self.cycle_btn = ToolButton("✨ Next formation", "Cycle through the formations")
        self.cycle_btn.clicked.connect(self._on_cycle)
        l.addWidget(self.cycle_btn)

        self.camera_btn = ToolButton("📷 Camera on", "Control the bouquet with hand gestures")
        self.camera_btn.clicked.connect(self._on_toggle_camera)
        l.addWidget(self.camera_btn)

        self.gesture_hint = GestureHintWidget()
        l.addWidget(self.gesture_hint, stretch=1)

        self.camera_status = QLabel("")
        self.camera_status.setStyleSheet("color: #E0B0FF; font-size: 13px;")
        l.addWidget(self.camera_status)

        layout.addWidget(frame)

        self.status_bar = QStatusBar()
        self.status_bar.setStyleSheet("color: #8E7A99; background: #050008;")
        self.setStatusBar(self.status_bar)

    def resizeEvent(self, event: QResizeEvent):
        super().resizeEvent(event)
        view = self.particle_widget
        self.loading_label.setGeometry(0, 0, view.width(), view.height())
        self.camera_preview.move(view.width() - self.camera_preview.width() - 16, 16)

    def _on_cycle(self):
        self._orchestrator.cycle_formation()

    def set_title(self, title: str):
        self.title_label.setText(title)

    def set_status(self, message: str):
        self.camera_status.setText(message)

    def show_message(self, message: str, timeout: int = 0):
        self.status_bar.showMessage(message, timeout)

    def set_loading(self, loading: bool):
        self.loading_label.setVisible(loading)
        self.cycle_btn.setEnabled(not loading)
        self.camera_btn.setEnabled(not loading)

    def set_camera_active(self, active: bool):
        self.camera_btn.setText("🚫 Camera off" if active else "📷 Camera on")
        self.camera_btn.set_active(active)
        self.camera_preview.setVisible(active)
        if not active:
            self.camera_preview.clear()
            self.gesture_hint.update_hint(None)

    def update_preview(self, image: QImage):
        pixmap = QPixmap.fromImage(image).scaled(
            self.camera_preview.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation
        )
        self.camera_preview.setPixmap(pixmap)

    def update_gesture_hint(self, observation: Optional[HandObservation]):
        self.gesture_hint.update_hint(observation)
