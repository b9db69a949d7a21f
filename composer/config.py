"""Configuration management for StoryComposer."""

import json
import logging
import os
import platform
from pathlib import Path
from typing import Optional, Dict, Any, List

from .constants import APP_NAME, PREVIEW_WIDTH, MIN_REGION_PX

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "preview_width": PREVIEW_WIDTH,
    "min_region_px": MIN_REGION_PX,
    "default_board": "dark",
    "font_dirs": [],
    "log_level": "INFO",
}


class ConfigManager:
    """Manages application configuration and persistence."""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir: Explicit configuration directory (defaults to the platform location)
        """
        self.config_dir = Path(config_dir) if config_dir else self._get_config_dir()
        self.config_path = self.config_dir / "config.json"
        self.config = self._load_config()

    def _get_config_dir(self) -> Path:
        """Get platform-specific configuration directory."""
        override = os.getenv("STORYCOMPOSER_CONFIG_DIR")
        if override:
            return Path(override)

        system = platform.system()
        home = Path.home()

        if system == "Windows":
            base = Path(os.getenv("APPDATA", home / "AppData" / "Roaming"))
            return base / APP_NAME
        elif system == "Darwin":  # macOS
            return home / "Library" / "Application Support" / APP_NAME
        else:  # Linux/Unix
            base = Path(os.getenv("XDG_CONFIG_HOME", home / ".config"))
            return base / APP_NAME

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from disk."""
        if self.config_path.exists():
            try:
                return json.loads(self.config_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable config {self.config_path}: {e}")
                return {}
        return {}

    def save(self) -> None:
        """Save current configuration to disk."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(
            json.dumps(self.config, indent=2),
            encoding="utf-8"
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value, falling back to built-in defaults."""
        if key in self.config:
            return self.config[key]
        if default is not None:
            return default
        return DEFAULTS.get(key)

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self.config[key] = value

    @property
    def preview_width(self) -> int:
        return int(self.get("preview_width"))

    @property
    def min_region_px(self) -> float:
        return float(self.get("min_region_px"))

    @property
    def default_board(self) -> str:
        return str(self.get("default_board"))

    @property
    def font_dirs(self) -> List[Path]:
        return [Path(p).expanduser() for p in self.get("font_dirs") or []]

    @property
    def log_level(self) -> int:
        level = self.get("log_level")
        if isinstance(level, int):
            return level
        value = getattr(logging, str(level).upper(), logging.INFO)
        return value if isinstance(value, int) else logging.INFO
