from __future__ import annotations

import errno
import logging
import os
from typing import Callable, NamedTuple, Optional

import serial

from .models import ConnectionStatus

logger = logging.getLogger(__name__)

_BUSY_ERRNOS = {errno.EACCES, errno.EBUSY}
_BUSY_MARKERS = (
    "access is denied",
    "permission denied",
    "could not exclusively lock",
    "resource busy",
)


class ProbeResult(NamedTuple):
    status: ConnectionStatus
    error: Optional[str] = None


def is_busy_error(exc: BaseException) -> bool:
    if isinstance(exc, PermissionError):
        return True
    if getattr(exc, "errno", None) in _BUSY_ERRNOS:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _BUSY_MARKERS)


class PortProber:
    """
    Opens a port for an instant to see whether anyone else holds it.
    The handle is private to the probe and is always closed again.
    """

    def __init__(self, serial_factory: Callable[[], serial.Serial] = serial.Serial):
        self._serial_factory = serial_factory

    def probe(self, port: str) -> ConnectionStatus:
        return self.check(port).status

    def check(self, port: str) -> ProbeResult:
        handle = None
        try:
            # Constructed without a port so nothing opens before we say so
            handle = self._serial_factory()
            handle.port = port
            if os.name == "posix":
                handle.exclusive = True
            handle.open()
            return ProbeResult(ConnectionStatus.AVAILABLE)
        except Exception as exc:
            if is_busy_error(exc):
                logger.debug(f"Port {port} is busy: {exc}")
                return ProbeResult(ConnectionStatus.BUSY, "Port is in use by another application")
            logger.debug(f"Port {port} probe failed: {exc}")
            return ProbeResult(ConnectionStatus.ERROR, str(exc))
        finally:
            if handle is not None and handle.is_open:
                try:
                    handle.close()
                except Exception as exc:
                    logger.warning(f"Failed to close probe handle for {port}: {exc}")
