from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .gesture_detector import Gesture


@dataclass
class HandObservation:
    # Preview frame (BGR, with the hand skeleton drawn on it)
    raw_frame: Optional[np.ndarray] = None

    # Committed gesture after debouncing; survives frames without a hand
    gesture: Optional[Gesture] = None
    # Classification of this very frame, None when no hand was found
    raw_gesture: Optional[Gesture] = None

    # Index fingertip in normalized device coordinates (mirrored, y up).
    # None as soon as the hand leaves the frame.
    fingertip: Optional[Tuple[float, float]] = None

    num_hands_detected: int = 0

    # Quality metrics
    fps: float = 0.0
    latency_ms: float = 0.0

    # Set when the detection session died
    error: Optional[str] = None

    @property
    def is_tracking(self) -> bool:
        return self.fingertip is not None
