import errno
from unittest.mock import MagicMock

import serial

from arduino_config.models import ConnectionStatus
from arduino_config.port_probe import PortProber, is_busy_error


def _prober_with(handle):
    return PortProber(serial_factory=lambda: handle)


def test_free_port_is_available_and_closed_again():
    handle = MagicMock()
    handle.is_open = True

    result = _prober_with(handle).check("/dev/ttyACM0")

    assert result.status == ConnectionStatus.AVAILABLE
    assert result.error is None
    assert handle.port == "/dev/ttyACM0"
    handle.open.assert_called_once_with()
    handle.close.assert_called_once_with()


def test_permission_denied_is_busy():
    handle = MagicMock()
    handle.is_open = False
    handle.open.side_effect = serial.SerialException(
        errno.EACCES, "could not open port /dev/ttyACM0: [Errno 13] Permission denied"
    )

    assert _prober_with(handle).probe("/dev/ttyACM0") == ConnectionStatus.BUSY
    handle.close.assert_not_called()


def test_windows_access_denied_is_busy():
    handle = MagicMock()
    handle.is_open = False
    handle.open.side_effect = serial.SerialException(
        "could not open port 'COM5': PermissionError(13, 'Access is denied.', None, 5)"
    )

    assert _prober_with(handle).probe("COM5") == ConnectionStatus.BUSY


def test_exclusive_lock_failure_is_busy():
    handle = MagicMock()
    handle.is_open = False
    handle.open.side_effect = serial.SerialException(
        "Could not exclusively lock port /dev/ttyACM0: [Errno 11] Resource temporarily unavailable"
    )

    assert _prober_with(handle).probe("/dev/ttyACM0") == ConnectionStatus.BUSY


def test_other_failure_is_error_with_message():
    handle = MagicMock()
    handle.is_open = False
    handle.open.side_effect = serial.SerialException(
        errno.ENOENT, "could not open port /dev/ttyACM9: No such file or directory"
    )

    result = _prober_with(handle).check("/dev/ttyACM9")

    assert result.status == ConnectionStatus.ERROR
    assert "No such file" in result.error


def test_handle_left_open_by_failure_is_closed():
    handle = MagicMock()
    handle.is_open = True
    handle.open.side_effect = OSError("unexpected")

    assert _prober_with(handle).probe("COM3") == ConnectionStatus.ERROR
    handle.close.assert_called_once_with()


def test_is_busy_error_accepts_permission_error():
    assert is_busy_error(PermissionError("nope"))
    assert not is_busy_error(ValueError("bad port name"))
