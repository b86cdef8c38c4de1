"""Static knowledge about supported Arduino boards.

Two tables live here: the USB (vendor id, product id) signatures used to
classify serial devices during discovery, and the per-board pin tables the
editor uses to offer pins and to flag pins shared with the SPI bus.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, NamedTuple, Optional, Tuple

from .models import BoardType


class SpiPins(NamedTuple):
    miso: int
    mosi: int
    sck: int
    ss: int


# (VID, PID) -> board, hex digits upper case
KNOWN_BOARDS: Dict[Tuple[str, str], BoardType] = {
    # SparkFun Pro Micro
    ("1B4F", "9205"): BoardType.PRO_MICRO,
    ("1B4F", "9206"): BoardType.PRO_MICRO,
    # Arduino/Genuino Micro and Leonardo share the ATmega32U4
    ("2341", "8036"): BoardType.PRO_MICRO,
    ("2341", "8037"): BoardType.PRO_MICRO,
    ("2341", "0036"): BoardType.PRO_MICRO,
    # Mega 2560 revisions
    ("2341", "0042"): BoardType.MEGA_2560,
    ("2341", "0010"): BoardType.MEGA_2560,
    ("2341", "0242"): BoardType.MEGA_2560,
    # CH340 clones can be anything
    ("1A86", "7523"): BoardType.UNKNOWN,
}

# Vendors accepted even when the product id is not in KNOWN_BOARDS
KNOWN_VENDORS: FrozenSet[str] = frozenset({"2341", "1B4F", "1A86"})

_BOARD_NAMES = {
    BoardType.PRO_MICRO: "Arduino Pro Micro",
    BoardType.MEGA_2560: "Arduino Mega 2560",
}

_AVAILABLE_PINS: Dict[BoardType, Tuple[int, ...]] = {
    BoardType.PRO_MICRO: (2, 3, 4, 5, 6, 7, 8, 9, 10, 14, 15, 16, 18, 19, 20, 21),
    BoardType.MEGA_2560: tuple(range(2, 54)),
    BoardType.UNKNOWN: (),
}

_SPI_PINS: Dict[BoardType, SpiPins] = {
    BoardType.PRO_MICRO: SpiPins(miso=14, mosi=16, sck=15, ss=10),
    BoardType.MEGA_2560: SpiPins(miso=50, mosi=51, sck=52, ss=53),
}


def _normalize(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return code.strip().upper().zfill(4)


def classify(vendor_id: Optional[str], product_id: Optional[str]) -> Optional[BoardType]:
    """Board type for a USB id pair, or None when the device is not an Arduino."""
    vid = _normalize(vendor_id)
    pid = _normalize(product_id)
    if vid is None or pid is None:
        return None
    board = KNOWN_BOARDS.get((vid, pid))
    if board is not None:
        return board
    if vid in KNOWN_VENDORS:
        return BoardType.UNKNOWN
    return None


def board_name(board_type: BoardType) -> str:
    return _BOARD_NAMES.get(board_type, "Unknown Board")


def available_pins(board_type: BoardType) -> Tuple[int, ...]:
    return _AVAILABLE_PINS.get(board_type, ())


def spi_pins(board_type: BoardType) -> Optional[SpiPins]:
    return _SPI_PINS.get(board_type)


def reserved_pins(board_type: BoardType) -> FrozenSet[int]:
    """Pins shared with the SPI bus; usable, but contended by the displays."""
    spi = _SPI_PINS.get(board_type)
    return frozenset(spi) if spi else frozenset()
