from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from .config import MAX_RECENT_FILES, SETTINGS_PATH
from .models import AppSettings

logger = logging.getLogger(__name__)

THEMES = ("Default", "Light", "Dark")


def atomic_write(path: Path, data: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(data, encoding="utf-8")
    tmp.replace(path)


class SettingsService:
    """
    Per-user settings persisted as JSON.
    Never raises: unreadable files give defaults, failed writes are logged.
    """

    def __init__(self, path: Path = SETTINGS_PATH, max_recent: int = MAX_RECENT_FILES):
        self.path = Path(path)
        self.max_recent = max_recent
        self._lock = threading.RLock()
        self.settings = self._load()

    def _load(self) -> AppSettings:
        if not self.path.exists():
            return AppSettings()
        try:
            raw = self.path.read_text(encoding="utf-8")
            settings = AppSettings.model_validate_json(raw)
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return AppSettings()
        # Hand-edited files may repeat entries or exceed the cap
        unique = list(dict.fromkeys(settings.recent_configurations))
        settings.recent_configurations = unique[: self.max_recent]
        return settings

    def save(self) -> bool:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                payload = self.settings.model_dump_json(by_alias=True, indent=2)
                atomic_write(self.path, payload)
                return True
            except OSError as e:
                logger.warning(f"Could not save settings to {self.path}: {e}")
                return False

    @property
    def auto_save_enabled(self) -> bool:
        return self.settings.auto_save_enabled

    def set_auto_save(self, enabled: bool) -> None:
        with self._lock:
            self.settings.auto_save_enabled = enabled
            self.save()

    @property
    def theme(self) -> str:
        return self.settings.theme if self.settings.theme in THEMES else "Default"

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme {theme!r}, expected one of {THEMES}")
        with self._lock:
            self.settings.theme = theme
            self.save()

    @property
    def last_opened(self) -> Optional[str]:
        return self.settings.last_opened_configuration

    def add_recent(self, path: Union[str, Path]) -> None:
        entry = str(path)
        with self._lock:
            recent = [p for p in self.settings.recent_configurations if p != entry]
            recent.insert(0, entry)
            self.settings.recent_configurations = recent[: self.max_recent]
            self.settings.last_opened_configuration = entry
            self.save()

    def recent(self) -> List[str]:
        """Recent files that still exist; missing ones are dropped for good."""
        with self._lock:
            existing = [p for p in self.settings.recent_configurations if Path(p).exists()]
            if len(existing) != len(self.settings.recent_configurations):
                dropped = len(self.settings.recent_configurations) - len(existing)
                logger.info(f"Pruned {dropped} missing file(s) from recent configurations")
                self.settings.recent_configurations = existing
                self.save()
            return list(existing)
