"""Shared fixtures: isolated settings files and a fresh store per test."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from arduino_config.events import EventBus
from arduino_config.settings import SettingsService
from arduino_config.store import ConfigurationStore


@pytest.fixture()
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "appdata" / "appsettings.json"


@pytest.fixture()
def settings(settings_path: Path) -> SettingsService:
    return SettingsService(settings_path)


@pytest.fixture()
def store(settings: SettingsService):
    store = ConfigurationStore(settings)
    yield store
    store.close()


@pytest.fixture()
def recorded_events():
    """Subscribe a list to a bus: ``events = recorded_events(bus)``."""

    def attach(bus: EventBus) -> List[object]:
        seen: List[object] = []
        bus.subscribe(seen.append)
        return seen

    return attach
