from __future__ import annotations

from typing import Iterator, NamedTuple, Optional, Set, Tuple

from .models import ProjectConfiguration


class ValidationResult(NamedTuple):
    is_valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.is_valid


VALID = ValidationResult(True)


def _claimed_pins(config: ProjectConfiguration) -> Iterator[Tuple[int, str, str, str]]:
    """(pin, role, entity kind, entity name) in validation order."""
    for item in config.inputs:
        yield item.pin, "primary", "input", item.name
        if item.pin2 is not None:
            yield item.pin2, "secondary", "input", item.name
        if item.button_pin is not None:
            yield item.button_pin, "button", "input", item.name
    for display in config.displays:
        yield display.cs_pin, "chip-select", "display", display.name


def validate(config: ProjectConfiguration) -> ValidationResult:
    if not config.version:
        return ValidationResult(False, "Configuration version is missing")

    used: Set[int] = set()
    for pin, role, kind, name in _claimed_pins(config):
        if pin in used:
            return ValidationResult(
                False,
                f"Duplicate pin assignment: pin {pin} ({role} pin of {kind} '{name}') "
                f"is already in use",
            )
        used.add(pin)
    return VALID
