from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

from serial.tools import list_ports

from .config import POLL_INTERVAL_SECONDS, RESET_DELAY_SECONDS, SETTINGS_PATH
from .connection import BoardConnection
from .discovery import DeviceEnumerator, DiscoveryReconciler
from .monitor import DiscoveryScheduler
from .port_probe import PortProber
from .settings import SettingsService
from .store import ConfigurationStore


@dataclass
class AppServices:
    """Process-wide services, built once and handed to whoever needs them."""

    settings: SettingsService
    store: ConfigurationStore
    reconciler: DiscoveryReconciler
    scheduler: DiscoveryScheduler
    connection: BoardConnection

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.store.close()


def build_services(
    settings_path: Path = SETTINGS_PATH,
    list_ports_fn: Callable[[], Iterable] = list_ports.comports,
    prober: Optional[PortProber] = None,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    reset_delay: float = RESET_DELAY_SECONDS,
) -> AppServices:
    settings = SettingsService(settings_path)
    store = ConfigurationStore(settings)
    reconciler = DiscoveryReconciler()
    connection = BoardConnection(reconciler, reset_delay=reset_delay)
    enumerator = DeviceEnumerator(
        prober=prober,
        list_ports_fn=list_ports_fn,
        active_port=lambda: connection.active_port,
    )
    scheduler = DiscoveryScheduler(enumerator, reconciler, interval=poll_interval)
    return AppServices(
        settings=settings,
        store=store,
        reconciler=reconciler,
        scheduler=scheduler,
        connection=connection,
    )
