from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, Tuple, TypeVar, Union

from .models import DiscoveredDevice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceConnected:
    device: DiscoveredDevice


@dataclass(frozen=True)
class DeviceDisconnected:
    device: DiscoveredDevice


@dataclass(frozen=True)
class DevicesChanged:
    devices: Tuple[DiscoveredDevice, ...]


@dataclass(frozen=True)
class ConfigurationChanged:
    dirty: bool


@dataclass(frozen=True)
class ConfigurationSaved:
    path: str


@dataclass(frozen=True)
class ConfigurationLoaded:
    path: str


E = TypeVar("E")


class EventBus(Generic[E]):
    """
    Synchronous observer list. Listeners run on the publishing thread;
    moving work onto a UI or event loop is the listener's job.
    """

    def __init__(self) -> None:
        self._listeners: List[Callable[[E], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[E], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Callable[[E], None]) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def publish(self, event: E) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener {listener!r} failed for {type(event).__name__}")

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)


DiscoveryEvent = Union[DeviceConnected, DeviceDisconnected, DevicesChanged]
ConfigurationEvent = Union[ConfigurationChanged, ConfigurationSaved, ConfigurationLoaded]


def event_payload(event: object) -> Optional[dict]:
    """JSON-ready representation used by the WebSocket relay."""
    if isinstance(event, DeviceConnected):
        return {"type": "board_connected", "board": event.device.model_dump(mode="json")}
    if isinstance(event, DeviceDisconnected):
        return {"type": "board_disconnected", "board": event.device.model_dump(mode="json")}
    if isinstance(event, DevicesChanged):
        return {"type": "boards_changed", "boards": [d.model_dump(mode="json") for d in event.devices]}
    if isinstance(event, ConfigurationChanged):
        return {"type": "configuration_changed", "dirty": event.dirty}
    if isinstance(event, ConfigurationSaved):
        return {"type": "configuration_saved", "path": event.path}
    if isinstance(event, ConfigurationLoaded):
        return {"type": "configuration_loaded", "path": event.path}
    return None
