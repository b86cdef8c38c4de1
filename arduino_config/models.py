from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .config import CONFIG_VERSION


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class BoardType(str, Enum):
    UNKNOWN = "Unknown"
    PRO_MICRO = "ProMicro"
    MEGA_2560 = "Mega2560"


class ConnectionStatus(str, Enum):
    AVAILABLE = "Available"
    BUSY = "PortBusy"
    ERROR = "Error"
    CONNECTED = "Connected"


class InputType(str, Enum):
    MOMENTARY_BUTTON = "MomentaryButton"
    LATCHING_BUTTON = "LatchingButton"
    TOGGLE_SWITCH = "ToggleSwitch"
    ROTARY_ENCODER = "RotaryEncoder"


class ActionType(str, Enum):
    SINGLE_KEY = "SingleKey"
    KEY_COMBO = "KeyCombo"
    KEY_SEQUENCE = "KeySequence"
    MEDIA_KEY = "MediaKey"


class _Persisted(BaseModel):
    """Base for everything written to a project file (camelCase on disk)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DiscoveredDevice(BaseModel):
    """A serial port that passed vendor/product filtering during a scan."""

    port: str
    board_type: BoardType = BoardType.UNKNOWN
    status: ConnectionStatus = ConnectionStatus.AVAILABLE
    vendor_id: Optional[str] = None
    product_id: Optional[str] = None
    description: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def board_name(self) -> str:
        from .boards import board_name
        return board_name(self.board_type)

    @property
    def status_text(self) -> str:
        if self.status == ConnectionStatus.ERROR:
            return self.error_message or "Error"
        return {
            ConnectionStatus.AVAILABLE: "Available",
            ConnectionStatus.BUSY: "Port Busy",
            ConnectionStatus.CONNECTED: "Connected",
        }[self.status]


class BoardConfiguration(_Persisted):
    board_type: BoardType = BoardType.PRO_MICRO
    preferred_port: Optional[str] = None
    baud_rate: int = 115200


class InputConfiguration(_Persisted):
    id: str = Field(default_factory=_new_id)
    name: str = "Input"
    type: InputType = InputType.MOMENTARY_BUTTON
    pin: int
    pin2: Optional[int] = None  # encoder DT line
    button_pin: Optional[int] = None  # encoder SW line
    pullup_enabled: bool = True
    debounce_ms: int = Field(default=50, ge=0)

    @model_validator(mode="after")
    def _encoder_needs_second_pin(self) -> "InputConfiguration":
        if self.type == InputType.ROTARY_ENCODER and self.pin2 is None:
            raise ValueError("A rotary encoder needs a secondary pin (pin2)")
        return self

    @property
    def is_encoder(self) -> bool:
        return self.type == InputType.ROTARY_ENCODER

    @property
    def pins(self) -> List[int]:
        pins = [self.pin]
        if self.pin2 is not None:
            pins.append(self.pin2)
        if self.button_pin is not None:
            pins.append(self.button_pin)
        return pins


class EncoderDisplayMapping(_Persisted):
    encoder_id: str = ""
    increment: int = 1
    clockwise_increases: bool = True


class DisplayConfiguration(_Persisted):
    """One MAX7219 seven-segment module on the shared SPI bus."""

    id: str = Field(default_factory=_new_id)
    name: str = "Display"
    cs_pin: int
    num_digits: int = Field(default=8, ge=1, le=8)
    brightness: int = Field(default=8, ge=0, le=15)
    leading_zeros: bool = False
    decimal_position: Optional[int] = Field(default=None, ge=0)  # from the right
    initial_value: int = 0
    min_value: int = 0
    max_value: int = 99999999
    encoder_mappings: List[EncoderDisplayMapping] = Field(default_factory=list)

    def format_value(self, value: int) -> str:
        """Text the module shows for ``value``, clamped to the display range."""
        value = max(self.min_value, min(self.max_value, value))
        text = str(abs(value))
        if self.leading_zeros:
            text = text.zfill(self.num_digits - (1 if value < 0 else 0))
        if value < 0:
            text = "-" + text
        text = text[-self.num_digits:]
        if self.decimal_position is not None and 0 < self.decimal_position < len(text):
            cut = len(text) - self.decimal_position
            text = f"{text[:cut]}.{text[cut:]}"
        return text.rjust(self.num_digits)


class KeyboardAction(_Persisted):
    type: ActionType = ActionType.SINGLE_KEY
    key: str = ""  # e.g. "A", "F1", "Space"
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    win: bool = False
    sequence: Optional[List[str]] = None

    @property
    def is_empty(self) -> bool:
        return not self.key and not self.sequence

    @property
    def display_text(self) -> str:
        if self.type == ActionType.KEY_SEQUENCE and self.sequence:
            return ", ".join(self.sequence)
        parts = []
        if self.ctrl:
            parts.append("Ctrl")
        if self.alt:
            parts.append("Alt")
        if self.shift:
            parts.append("Shift")
        if self.win:
            parts.append("Win")
        parts.append(self.key)
        return "+".join(parts)


class OutputMapping(_Persisted):
    input_id: str
    action: KeyboardAction = Field(default_factory=KeyboardAction)
    # Encoders only; ``action`` is then the push-button action
    clockwise_action: Optional[KeyboardAction] = None
    counter_clockwise_action: Optional[KeyboardAction] = None


class ProjectConfiguration(_Persisted):
    version: str = CONFIG_VERSION
    name: str = "Untitled Configuration"
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)

    board: BoardConfiguration = Field(default_factory=BoardConfiguration)
    inputs: List[InputConfiguration] = Field(default_factory=list)
    displays: List[DisplayConfiguration] = Field(default_factory=list)
    output_mappings: List[OutputMapping] = Field(default_factory=list)

    def find_input(self, input_id: str) -> Optional[InputConfiguration]:
        for item in self.inputs:
            if item.id == input_id:
                return item
        return None

    def find_display(self, display_id: str) -> Optional[DisplayConfiguration]:
        for item in self.displays:
            if item.id == display_id:
                return item
        return None

    def mapping_for(self, input_id: str) -> Optional[OutputMapping]:
        for mapping in self.output_mappings:
            if mapping.input_id == input_id:
                return mapping
        return None

    def used_pins(self, exclude_id: Optional[str] = None) -> Set[int]:
        pins: Set[int] = set()
        for item in self.inputs:
            if item.id != exclude_id:
                pins.update(item.pins)
        for display in self.displays:
            if display.id != exclude_id:
                pins.add(display.cs_pin)
        return pins


class AppSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    theme: str = "Default"
    recent_configurations: List[str] = Field(default_factory=list)
    auto_save_enabled: bool = False
    last_opened_configuration: Optional[str] = None
