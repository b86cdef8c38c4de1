from __future__ import annotations

import logging
import re
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from serial.tools import list_ports

from .boards import classify
from .events import DeviceConnected, DeviceDisconnected, DevicesChanged, DiscoveryEvent, EventBus
from .models import ConnectionStatus, DiscoveredDevice
from .port_probe import PortProber

logger = logging.getLogger(__name__)

# pyserial reports "USB VID:PID=2341:8036 ..."; Windows PnP ids use "VID_2341&PID_8036"
_HWID_PATTERNS = (
    re.compile(r"VID:PID=([0-9A-Fa-f]{4}):([0-9A-Fa-f]{4})"),
    re.compile(r"VID_([0-9A-Fa-f]{4})&PID_([0-9A-Fa-f]{4})"),
)


def parse_usb_ids(port_info) -> Tuple[Optional[str], Optional[str]]:
    hwid = getattr(port_info, "hwid", None) or ""
    for pattern in _HWID_PATTERNS:
        m = pattern.search(hwid)
        if m:
            return m.group(1).upper(), m.group(2).upper()
    vid = getattr(port_info, "vid", None)
    pid = getattr(port_info, "pid", None)
    if vid is not None and pid is not None:
        return f"{vid:04X}", f"{pid:04X}"
    return None, None


class DeviceEnumerator:
    """One-shot scan of the host serial ports, filtered to Arduino boards."""

    def __init__(
        self,
        prober: Optional[PortProber] = None,
        list_ports_fn: Callable[[], Iterable] = list_ports.comports,
        active_port: Optional[Callable[[], Optional[str]]] = None,
    ):
        self.prober = prober or PortProber()
        self._list_ports = list_ports_fn
        self._active_port = active_port

    def scan(self) -> List[DiscoveredDevice]:
        active = self._active_port() if self._active_port else None
        devices: List[DiscoveredDevice] = []
        for port_info in self._list_ports():
            port = getattr(port_info, "device", None)
            if not port:
                continue

            vid, pid = parse_usb_ids(port_info)
            board_type = classify(vid, pid)
            if board_type is None:
                logger.debug(f"Skipping {port} (VID={vid}, PID={pid})")
                continue

            if port == active:
                status, error = ConnectionStatus.CONNECTED, None
            else:
                try:
                    status, error = self.prober.check(port)
                except Exception as e:
                    logger.error(f"Probe of {port} failed: {e}")
                    status, error = ConnectionStatus.ERROR, str(e)

            devices.append(DiscoveredDevice(
                port=port,
                board_type=board_type,
                status=status,
                vendor_id=vid,
                product_id=pid,
                description=getattr(port_info, "description", None) or port,
                error_message=error,
            ))
            logger.debug(f"Found {board_type.value} on {port} ({status.value})")
        return devices


def reconcile(
    previous: Sequence[DiscoveredDevice],
    current: Sequence[DiscoveredDevice],
) -> Tuple[List[DiscoveredDevice], List[DiscoveryEvent]]:
    """
    Diff two scans keyed by port.

    Devices that survive keep their previous instance; a status change is
    written into that instance instead of replacing it. Returns the retained
    list and the events in emission order: disconnections, connections, then
    one DevicesChanged if anything at all moved.
    """
    current_by_port = {d.port: d for d in current}
    events: List[DiscoveryEvent] = []
    retained: List[DiscoveredDevice] = []
    changed = False

    for device in previous:
        if device.port in current_by_port:
            retained.append(device)
        else:
            changed = True
            events.append(DeviceDisconnected(device))

    retained_by_port = {d.port: d for d in retained}
    for device in current:
        existing = retained_by_port.get(device.port)
        if existing is None:
            retained.append(device)
            retained_by_port[device.port] = device
            changed = True
            events.append(DeviceConnected(device))
        elif (existing.status, existing.error_message) != (device.status, device.error_message):
            existing.status = device.status
            existing.error_message = device.error_message
            changed = True

    if changed:
        events.append(DevicesChanged(tuple(retained)))
    return retained, events


class DiscoveryReconciler:
    """Owns the retained device list; readers only ever see copies."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.events: EventBus = bus or EventBus()
        self._devices: List[DiscoveredDevice] = []
        self._lock = threading.RLock()

    @property
    def devices(self) -> List[DiscoveredDevice]:
        with self._lock:
            return [d.model_copy() for d in self._devices]

    def find(self, port: str) -> Optional[DiscoveredDevice]:
        with self._lock:
            for device in self._devices:
                if device.port == port:
                    return device.model_copy()
        return None

    def update(self, current: Sequence[DiscoveredDevice]) -> List[DiscoveryEvent]:
        with self._lock:
            self._devices, events = reconcile(self._devices, current)
            published = [self._detach(e) for e in events]
            for event in published:
                self.events.publish(event)
        return published

    def set_status(
        self,
        port: str,
        status: ConnectionStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        with self._lock:
            for device in self._devices:
                if device.port == port:
                    if device.status == status and device.error_message == error_message:
                        return False
                    device.status = status
                    device.error_message = error_message
                    self.events.publish(DevicesChanged(tuple(d.model_copy() for d in self._devices)))
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._devices = []

    @staticmethod
    def _detach(event: DiscoveryEvent) -> DiscoveryEvent:
        if isinstance(event, DevicesChanged):
            return DevicesChanged(tuple(d.model_copy() for d in event.devices))
        return type(event)(event.device.model_copy())
