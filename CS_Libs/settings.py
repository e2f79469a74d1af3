"""
User settings for Canvas Studio.

Settings live in a JSON file next to the asset store. Missing keys take
their defaults, unknown keys are ignored, and a corrupted file is logged
and rewritten with defaults so the studio always starts.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from CS_Libs.constants import (
    AI_POLL_INTERVAL_SECONDS,
    AI_POLL_TIMEOUT_SECONDS,
    DEFAULT_BRUSH_SIZE,
    DEFAULT_HIGHLIGHT_OPACITY,
    DEFAULT_WINDOW_HEIGHT,
    DEFAULT_WINDOW_WIDTH,
    SETTINGS_FILE_NAME,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_DIR = Path.home() / ".config" / "canvas_studio"


@dataclass
class StudioSettings:
    storage_dir: str = field(default_factory=lambda: str(DEFAULT_SETTINGS_DIR))
    log_level: str = "INFO"
    max_apply_workers: int = 2
    default_brush_size: int = DEFAULT_BRUSH_SIZE
    default_highlight_opacity: float = DEFAULT_HIGHLIGHT_OPACITY
    ai_poll_interval: float = AI_POLL_INTERVAL_SECONDS
    ai_poll_timeout: float = AI_POLL_TIMEOUT_SECONDS
    window_width: int = DEFAULT_WINDOW_WIDTH
    window_height: int = DEFAULT_WINDOW_HEIGHT

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudioSettings":
        """Build settings from a dict, ignoring unknown keys and coercing types."""
        defaults = cls()
        values = {}
        for name in cls.__dataclass_fields__:
            if name not in data:
                continue
            default_value = getattr(defaults, name)
            try:
                values[name] = type(default_value)(data[name])
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid setting {name}={data[name]!r}")
        return cls(**values)


def settings_path(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or DEFAULT_SETTINGS_DIR) / SETTINGS_FILE_NAME


def load_settings(path: Optional[Path] = None) -> StudioSettings:
    """
    Load settings, creating the file with defaults when it does not exist.

    Args:
        path: Settings file; defaults to ~/.config/canvas_studio/studio_settings.json

    Returns:
        StudioSettings with file values merged over defaults
    """
    path = path or settings_path()
    if not path.exists():
        logger.info(f"Settings file not found at {path}. Using defaults.")
        settings = StudioSettings()
        save_settings(settings, path)
        return settings

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Settings file does not contain a JSON object")
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Settings file corrupted: {e}. Recreating with defaults.")
        settings = StudioSettings()
        save_settings(settings, path)
        return settings
    except OSError as e:
        logger.warning(f"Could not read settings file: {e}. Using defaults.")
        return StudioSettings()

    return StudioSettings.from_dict(payload)


def save_settings(settings: StudioSettings, path: Optional[Path] = None) -> None:
    path = path or settings_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not save settings to {path}: {e}")
