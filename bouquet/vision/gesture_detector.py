from enum import Enum
from typing import Callable, NamedTuple, Optional, Sequence, Tuple

# MediaPipe hand landmark indices
WRIST = 0
THUMB_MCP, THUMB_IP, THUMB_TIP = 2, 3, 4
INDEX_PIP, INDEX_TIP = 6, 8
MIDDLE_PIP, MIDDLE_TIP = 10, 12
RING_PIP, RING_TIP = 14, 16
PINKY_PIP, PINKY_TIP = 18, 20

NUM_LANDMARKS = 21

# Thumb tip must be this much further (laterally) from its base than the IP joint
THUMB_EXTENSION_RATIO = 1.2

DEBOUNCE_FRAMES = 3


class Gesture(str, Enum):
    INDEX_UP = "INDEX_UP"
    PEACE = "PEACE"
    ROCK = "ROCK"
    ILY = "ILY"
    OPEN = "OPEN"
    FIST = "FIST"
    NONE = "NONE"


GESTURE_LABELS = {
    Gesture.INDEX_UP: "☝️ Index up",
    Gesture.PEACE: "✌️ Peace",
    Gesture.ROCK: "🤘 Rock",
    Gesture.ILY: "🤟 I love you",
    Gesture.OPEN: "🖐 Open hand",
    Gesture.FIST: "✊ Fist",
}


class FingerStates(NamedTuple):
    thumb: bool
    index: bool
    middle: bool
    ring: bool
    pinky: bool

    @property
    def count(self) -> int:
        return sum(self)


def finger_states(landmarks: Sequence) -> FingerStates:
    """
    Extended flag for every finger.

    The thumb moves sideways relative to the palm, so it is compared on the
    x axis. The other fingers compare tip and PIP on the y axis, which grows
    downward in image coordinates (smaller y = finger pointing up).
    """
    if len(landmarks) != NUM_LANDMARKS:
        raise ValueError(f"Expected {NUM_LANDMARKS} landmarks, got {len(landmarks)}")

    tip, ip, mcp = landmarks[THUMB_TIP], landmarks[THUMB_IP], landmarks[THUMB_MCP]
    thumb = abs(tip.x - mcp.x) > abs(ip.x - mcp.x) * THUMB_EXTENSION_RATIO

    def extended(tip_id: int, pip_id: int) -> bool:
        return landmarks[tip_id].y < landmarks[pip_id].y

    return FingerStates(
        thumb=thumb,
        index=extended(INDEX_TIP, INDEX_PIP),
        middle=extended(MIDDLE_TIP, MIDDLE_PIP),
        ring=extended(RING_TIP, RING_PIP),
        pinky=extended(PINKY_TIP, PINKY_PIP),
    )


# First match wins. PEACE ignores the thumb while INDEX_UP requires it folded;
# kept as is, the two poses are told apart by the middle finger anyway.
GESTURE_RULES: Tuple[Tuple[Callable[[FingerStates], bool], Gesture], ...] = (
    (lambda f: f.thumb and f.index and not f.middle and not f.ring and f.pinky, Gesture.ILY),
    (lambda f: not f.thumb and f.index and not f.middle and not f.ring and f.pinky, Gesture.ROCK),
    (lambda f: f.index and f.middle and not f.ring and not f.pinky, Gesture.PEACE),
    (lambda f: f.index and not f.middle and not f.ring and not f.pinky and not f.thumb, Gesture.INDEX_UP),
    (lambda f: f.count >= 4, Gesture.OPEN),
    (lambda f: f.count <= 1, Gesture.FIST),
)


def classify_fingers(fingers: FingerStates) -> Gesture:
    for matches, gesture in GESTURE_RULES:
        if matches(fingers):
            return gesture
    return Gesture.NONE


def classify_gesture(landmarks: Sequence) -> Gesture:
    return classify_fingers(finger_states(landmarks))


class GestureDebouncer:
    """
    Commits a gesture only after it was the raw classification for
    `threshold` consecutive frames.

    `None` stands for "no hand in this frame": it leaves both the run and the
    committed gesture untouched, so short detection dropouts do not make the
    formation flicker.
    """

    def __init__(self, threshold: int = DEBOUNCE_FRAMES):
        self.threshold = threshold
        self._raw: Optional[Gesture] = None
        self._run_length = 0
        self._stable: Optional[Gesture] = None

    @property
    def raw(self) -> Optional[Gesture]:
        return self._raw

    @property
    def run_length(self) -> int:
        return self._run_length

    @property
    def stable(self) -> Optional[Gesture]:
        return self._stable

    def update(self, gesture: Optional[Gesture]) -> Optional[Gesture]:
        if gesture is None:
            return self._stable

        if gesture == self._raw:
            self._run_length += 1
        else:
            self._raw = gesture
            self._run_length = 1

        if self._run_length >= self.threshold:
            self._stable = self._raw
        return self._stable

    def reset(self):
        self._raw = None
        self._run_length = 0
        self._stable = None
