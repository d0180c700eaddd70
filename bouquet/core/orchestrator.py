import logging
import math
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from bouquet.particles.engine import ParticleSystem
from bouquet.particles.formations import (
    compact_positions,
    heart_positions,
    planet_positions,
    sphere_positions,
)
from bouquet.particles.glyphs import FontLoadError, text_positions
from bouquet.particles.renderer import PerspectiveCamera
from bouquet.vision.frame_data import HandObservation
from bouquet.vision.gesture_detector import Gesture

logger = logging.getLogger(__name__)


class Formation(str, Enum):
    # Declaration order is the order of the "next formation" button
    PLANET = "PLANET"
    NAME_TEXT = "NAME_TEXT"
    LOVE_TEXT = "LOVE_TEXT"
    HEART = "HEART"
    COSMOS = "COSMOS"
    COMPACT = "COMPACT"


DEFAULT_FORMATION = Formation.COSMOS

GESTURE_TO_FORMATION = {
    Gesture.INDEX_UP: Formation.PLANET,
    Gesture.PEACE: Formation.NAME_TEXT,
    Gesture.ROCK: Formation.LOVE_TEXT,
    Gesture.ILY: Formation.HEART,
    Gesture.OPEN: Formation.COSMOS,
    Gesture.FIST: Formation.COMPACT,
}

FORMATION_INFO = {
    Formation.PLANET: ("🪐", "Planet", "✨ A planet for you ✨"),
    Formation.NAME_TEXT: ("💕", "{name}", "💖 {name} 💖"),
    Formation.LOVE_TEXT: ("🤘", "{love}", "💜 {love} 💜"),
    Formation.HEART: ("❤️", "Heart", "❤️ {love} ❤️"),
    Formation.COSMOS: ("🌌", "Cosmos", "✨ The stars are yours ✨"),
    Formation.COMPACT: ("✊", "Gather", "💫 All for you 💫"),
}

# Planet spin per frame (radians)
PLANET_SPIN = 0.006


class FormationLibrary:
    """Point clouds for every formation, computed once before the loop starts."""

    def __init__(self, name_text: str = "Carolina", love_text: str = "Te Quiero"):
        self.name_text = name_text
        self.love_text = love_text
        self._clouds: Dict[Formation, np.ndarray] = {}
        self.text_error: Optional[str] = None

    def precompute(self, count: int, font=None, rng: Optional[np.random.Generator] = None):
        clouds = {
            Formation.COSMOS: sphere_positions(count, 12.0, rng=rng),
            Formation.PLANET: planet_positions(count, rng=rng),
            Formation.HEART: heart_positions(count, 0.7, rng=rng),
            Formation.COMPACT: compact_positions(count, 1.2, rng=rng),
        }

        if font is not None:
            try:
                clouds[Formation.NAME_TEXT] = text_positions(self.name_text, font, count, rng=rng)
                clouds[Formation.LOVE_TEXT] = text_positions(self.love_text, font, count, rng=rng)
            except FontLoadError as e:
                logger.error("Text formations disabled: %s", e)
                self.text_error = str(e)
                clouds.pop(Formation.NAME_TEXT, None)
                clouds.pop(Formation.LOVE_TEXT, None)

        for cloud in clouds.values():
            cloud.setflags(write=False)
        self._clouds = clouds
        logger.info("Precomputed %d formations of %d particles", len(clouds), count)

    def get(self, formation) -> Optional[np.ndarray]:
        return self._clouds.get(formation)

    def __contains__(self, formation) -> bool:
        return formation in self._clouds

    def title(self, formation: Formation) -> str:
        return FORMATION_INFO[formation][2].format(name=self.name_text, love=self.love_text)

    def label(self, formation: Formation) -> str:
        emoji, label, _ = FORMATION_INFO[formation]
        return f"{emoji} {label.format(name=self.name_text, love=self.love_text)}"


class Orchestrator:
    """
    Decides which formation the cloud is heading to and where the attractor is.

    Runs on every render tick: stable gesture -> formation switch, fingertip
    or pointer -> attractor, then advances the particles.
    """

    def __init__(
        self,
        particles: ParticleSystem,
        library: FormationLibrary,
        camera: PerspectiveCamera,
        on_title: Callable[[str], None] = lambda title: None,
    ):
        self.particles = particles
        self.library = library
        self.camera = camera
        self.on_title = on_title

        self.current = DEFAULT_FORMATION
        self.last_gesture: Optional[Gesture] = None
        self.pointer: Optional[Tuple[float, float]] = None
        self.attractor: Optional[Tuple[float, float, float]] = None
        self.rotation_x = 0.0
        self.rotation_y = 0.0

    def start(self):
        self.particles.set_target(self.library.get(self.current))
        self.on_title(self.library.title(self.current))

    def set_formation(self, formation) -> bool:
        if formation == self.current:
            return False
        cloud = self.library.get(formation)
        if cloud is None:
            return False

        self.current = formation
        self.particles.set_target(cloud)
        self.on_title(self.library.title(formation))
        logger.debug("Formation -> %s", formation.value)
        return True

    def cycle_formation(self) -> bool:
        order = list(Formation)
        start = order.index(self.current)
        # Formations without data (text without a font) are skipped
        for step in range(1, len(order)):
            candidate = order[(start + step) % len(order)]
            if candidate in self.library:
                return self.set_formation(candidate)
        return False

    def process_gesture(self, gesture: Optional[Gesture], tracking_active: bool):
        if not tracking_active:
            return

        if gesture is not None and gesture != self.last_gesture:
            formation = GESTURE_TO_FORMATION.get(gesture)
            if formation is not None:
                self.set_formation(formation)
        self.last_gesture = gesture

    def set_pointer(self, ndc: Tuple[float, float]):
        self.pointer = ndc

    def clear_pointer(self):
        self.pointer = None

    def resolve_attractor(self, fingertip: Optional[Tuple[float, float]], tracking_active: bool):
        """Fingertip when a hand is tracked, otherwise the pointer, otherwise nothing."""
        if tracking_active and fingertip is not None:
            self.attractor = self.camera.unproject(fingertip)
        elif self.pointer is not None:
            self.attractor = self.camera.unproject(self.pointer)
        else:
            self.attractor = None
        self.particles.set_attractor(self.attractor)
        return self.attractor

    def update_rotation(self, elapsed: float):
        if self.current == Formation.PLANET:
            self.rotation_y += PLANET_SPIN
            self.rotation_x = math.sin(elapsed * 0.15) * 0.25
        else:
            self.rotation_y = math.sin(elapsed * 0.1) * 0.3
            self.rotation_x = math.sin(elapsed * 0.07) * 0.1

    def tick(self, elapsed: float, observation: HandObservation, tracking_active: bool):
        self.process_gesture(observation.gesture, tracking_active)
        self.resolve_attractor(observation.fingertip, tracking_active)
        self.update_rotation(elapsed)
        self.particles.update(elapsed)
