# arduino_config/connection.py
import asyncio
import logging
from typing import Optional

import serial_asyncio

from .config import DEFAULT_BAUD_RATE, RESET_DELAY_SECONDS
from .discovery import DiscoveryReconciler
from .errors import PortError, PortUnavailableError
from .models import ConnectionStatus
from .port_probe import is_busy_error

logger = logging.getLogger(__name__)


class BoardConnection:
    """
    The one serial port the application holds open.
    No protocol is spoken yet; the connection only reserves the board and
    reports it as Connected to discovery.
    """

    def __init__(
        self,
        reconciler: DiscoveryReconciler,
        reset_delay: float = RESET_DELAY_SECONDS,
        open_connection=serial_asyncio.open_serial_connection,
    ):
        self.reconciler = reconciler
        self.reset_delay = reset_delay
        self._open_connection = open_connection
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self.active_port: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._writer is not None

    async def connect(self, port: str, baud_rate: int = DEFAULT_BAUD_RATE) -> None:
        """Open ``port``; raises PortUnavailableError or PortError."""
        if self.is_connected:
            await self.disconnect()

        logger.info(f"Connecting to {port} at {baud_rate} baud")
        try:
            self._reader, self._writer = await self._open_connection(url=port, baudrate=baud_rate)
        except Exception as e:
            if is_busy_error(e):
                message = "Port is in use by another application"
                self.reconciler.set_status(port, ConnectionStatus.BUSY, message)
                raise PortUnavailableError(message) from e
            self.reconciler.set_status(port, ConnectionStatus.ERROR, str(e))
            raise PortError(str(e)) from e

        # Scans must not probe the port we now hold
        self.active_port = port
        # Opening the port resets the board
        await asyncio.sleep(self.reset_delay)
        self.reconciler.set_status(port, ConnectionStatus.CONNECTED)
        logger.info(f"Connected to {port}")

    async def disconnect(self) -> None:
        writer, port = self._writer, self.active_port
        self._reader = None
        self._writer = None
        self.active_port = None
        if writer is not None:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception as e:
                logger.error(f"Error closing {port}: {e}")
        if port is not None:
            self.reconciler.set_status(port, ConnectionStatus.AVAILABLE)
            logger.info(f"Disconnected from {port}")

    async def send_test_input(self, input_id: str) -> bool:
        """Placeholder until the firmware protocol exists; nothing is written."""
        if not self.is_connected:
            logger.warning(f"Cannot test input {input_id}: no board connected")
            return False
        logger.info(f"Test input {input_id} on {self.active_port} (not sent, no protocol yet)")
        return True
