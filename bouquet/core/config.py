import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"


@dataclass
class Settings:
    # Particles
    particle_count: int = 5000

    # Camera / MediaPipe
    camera_index: int = 0
    camera_resolution: Tuple[int, int] = (640, 480)
    min_detection_confidence: float = 0.6
    min_tracking_confidence: float = 0.5
    model_complexity: int = 1
    mirror_preview: bool = True
    smooth_fingertip: bool = True

    # Text formations. font_source: TTF/OTF path or URL, None = built-in sans
    font_source: Optional[str] = None
    name_text: str = "Carolina"
    love_text: str = "Te Quiero"

    # Render loop
    frame_interval_ms: int = 16


def load_settings(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """Settings from a JSON file; anything missing keeps its default."""
    if not os.path.exists(path):
        logger.info("Config '%s' not found, using defaults", path)
        return Settings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load config '%s': %s", path, e)
        return Settings()

    if not isinstance(data, dict):
        logger.warning("Config '%s' must hold a JSON object, using defaults", path)
        return Settings()

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

    values = {k: v for k, v in data.items() if k in known}
    if "camera_resolution" in values:
        values["camera_resolution"] = tuple(values["camera_resolution"])
    return Settings(**values)
