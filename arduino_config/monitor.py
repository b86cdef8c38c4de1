from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .config import POLL_INTERVAL_SECONDS
from .discovery import DeviceEnumerator, DiscoveryReconciler
from .models import DiscoveredDevice

logger = logging.getLogger(__name__)


class DiscoveryScheduler:
    """
    Runs scan + reconcile on a background thread every ``interval`` seconds.
    Ticks that find a cycle in flight are dropped; refresh_now() waits for
    it and then runs its own cycle.
    """

    def __init__(
        self,
        enumerator: DeviceEnumerator,
        reconciler: DiscoveryReconciler,
        interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.enumerator = enumerator
        self.reconciler = reconciler
        self.interval = interval
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._state_lock:
            if self.running:
                return
            # A loop that outlived stop() keeps its own, already set, event
            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop,), name="board-discovery", daemon=True
            )
            self._thread.start()
        logger.info(f"Board monitoring started (every {self.interval}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop.set()
            self._thread = None
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Discovery thread still busy after stop, it will exit after its current scan")
        logger.info("Board monitoring stopped")

    def refresh_now(self) -> List[DiscoveredDevice]:
        self._cycle(wait=True)
        return self.reconciler.devices

    def _loop(self, stop: threading.Event) -> None:
        while not stop.is_set():
            self._cycle(wait=False)
            if stop.wait(self.interval):
                break

    def _cycle(self, wait: bool) -> bool:
        if not self._cycle_lock.acquire(blocking=wait):
            logger.debug("Discovery cycle still running, skipping tick")
            return False
        try:
            try:
                devices = self.enumerator.scan()
            except Exception as e:
                # A failed scan leaves the known boards untouched
                logger.error(f"Error refreshing ports: {e}", exc_info=True)
                return False
            self.reconciler.update(devices)
            self.cycles += 1
            return True
        finally:
            self._cycle_lock.release()
