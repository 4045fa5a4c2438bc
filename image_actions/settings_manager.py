from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .logger import get_logger

_logger = get_logger("settings")

_APP_DIR = "image_actions"


def default_settings_path() -> str:
    """``$IMAGE_ACTIONS_SETTINGS``, else ``<AppConfigLocation>/image_actions/settings.json``."""
    env = (os.getenv("IMAGE_ACTIONS_SETTINGS") or "").strip()
    if env:
        return env
    app_cfg = ""
    try:
        from PySide6.QtCore import QStandardPaths

        app_cfg = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.AppConfigLocation)
    except ImportError:
        pass
    if not app_cfg:
        app_cfg = str(Path.home() / ".config")
    return (Path(app_cfg) / _APP_DIR / "settings.json").as_posix()


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "anim_backend": "gifsicle",
        "html_browser": "",
        "handbook_location": "",
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    def update(self, values: dict[str, Any]) -> None:
        """Set several keys with a single write."""
        self._settings.update(values)
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def anim_backend(self) -> str:
        val = self.get("anim_backend")
        return val if val in ("gifsicle", "imagemagick") else "gifsicle"
