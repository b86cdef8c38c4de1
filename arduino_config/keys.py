"""Key tokens and helpers for building keyboard actions.

Tokens are the short names stored in project files ("A", "F5", "PgUp",
"Vol+", "Num3"). Toolkits report key presses with their own names, so
``normalize_key`` maps the common spellings onto tokens before an action is
built from a captured key press.
"""
from __future__ import annotations

import string
from typing import Dict, List, Optional

from .models import ActionType, InputConfiguration, KeyboardAction, OutputMapping, ProjectConfiguration

NOT_MAPPED = "(not mapped)"

MEDIA_KEYS = ("Play", "Pause", "Stop", "Next", "Prev", "Vol+", "Vol-", "Mute")

ALL_KEYS: List[str] = (
    list(string.ascii_uppercase)
    + [str(i) for i in range(10)]
    + [f"F{i}" for i in range(1, 25)]
    + ["Up", "Down", "Left", "Right", "Home", "End", "PgUp", "PgDn"]
    + ["Enter", "Tab", "Esc", "Space", "Backspace", "Delete", "Insert"]
    + list(MEDIA_KEYS)
    + [";", "=", ",", "-", ".", "/", "`", "[", "\\", "]", "'"]
    + [f"Num{i}" for i in range(10)]
    + ["Num+", "Num-", "Num*", "Num/", "Num."]
)

MODIFIER_KEYS = frozenset({
    "control", "ctrl", "leftcontrol", "rightcontrol", "control_l", "control_r",
    "menu", "alt", "leftmenu", "rightmenu", "alt_l", "alt_r",
    "shift", "leftshift", "rightshift", "shift_l", "shift_r",
    "win", "meta", "super", "leftwindows", "rightwindows", "super_l", "super_r",
})

_ALIASES: Dict[str, str] = {
    "escape": "Esc",
    "return": "Enter",
    "back": "Backspace",
    "backspace": "Backspace",
    "pageup": "PgUp",
    "pagedown": "PgDn",
    "add": "Num+",
    "subtract": "Num-",
    "multiply": "Num*",
    "divide": "Num/",
    "decimal": "Num.",
    "semicolon": ";",
    "equal": "=",
    "comma": ",",
    "minus": "-",
    "period": ".",
    "slash": "/",
    "grave": "`",
    "bracketleft": "[",
    "backslash": "\\",
    "bracketright": "]",
    "apostrophe": "'",
    "volumeup": "Vol+",
    "volumedown": "Vol-",
    "volumemute": "Mute",
    "mediaplaypause": "Play",
    "mediastop": "Stop",
    "medianexttrack": "Next",
    "mediaprevioustrack": "Prev",
}

_TOKENS_BY_LOWER = {token.lower(): token for token in ALL_KEYS}


def normalize_key(name: str) -> str:
    """Map a toolkit key name ("Escape", "Number5", "NumberPad3") to a token."""
    raw = name.strip()
    lower = raw.lower()
    if lower in _ALIASES:
        return _ALIASES[lower]
    if lower.startswith("numberpad") and lower[9:].isdigit():
        return f"Num{lower[9:]}"
    if lower.startswith("kp_") and lower[3:].isdigit():
        return f"Num{lower[3:]}"
    if lower.startswith("number") and lower[6:].isdigit():
        return lower[6:]
    if lower in _TOKENS_BY_LOWER:
        return _TOKENS_BY_LOWER[lower]
    return raw


def is_modifier(name: str) -> bool:
    return name.strip().lower() in MODIFIER_KEYS


def action_from_capture(
    key: str,
    ctrl: bool = False,
    alt: bool = False,
    shift: bool = False,
    win: bool = False,
) -> Optional[KeyboardAction]:
    """Action for a captured key press; None while only modifiers are held."""
    if not key or is_modifier(key):
        return None
    token = normalize_key(key)
    if token in MEDIA_KEYS:
        action_type = ActionType.MEDIA_KEY
    elif ctrl or alt or shift or win:
        action_type = ActionType.KEY_COMBO
    else:
        action_type = ActionType.SINGLE_KEY
    return KeyboardAction(type=action_type, key=token, ctrl=ctrl, alt=alt, shift=shift, win=win)


def _label(action: Optional[KeyboardAction]) -> str:
    if action is None or action.is_empty:
        return "-"
    return action.display_text


def describe_mapping(item: InputConfiguration, mapping: Optional[OutputMapping]) -> str:
    if mapping is None:
        return NOT_MAPPED
    if item.is_encoder:
        cw = _label(mapping.clockwise_action)
        ccw = _label(mapping.counter_clockwise_action)
        if cw == "-" and ccw == "-":
            return NOT_MAPPED
        text = f"CW: {cw} | CCW: {ccw}"
        if item.button_pin is not None and not mapping.action.is_empty:
            text += f" | Button: {mapping.action.display_text}"
        return text
    if mapping.action.is_empty:
        return NOT_MAPPED
    return mapping.action.display_text


def find_duplicate_actions(config: ProjectConfiguration) -> Dict[str, List[str]]:
    """Key actions bound more than once, with the inputs that use them."""
    usage: Dict[str, List[str]] = {}

    def record(action: Optional[KeyboardAction], owner: str) -> None:
        if action is None or action.is_empty:
            return
        usage.setdefault(action.display_text, []).append(owner)

    for mapping in config.output_mappings:
        item = config.find_input(mapping.input_id)
        if item is None:
            continue
        if item.is_encoder:
            record(mapping.clockwise_action, f"{item.name} (CW)")
            record(mapping.counter_clockwise_action, f"{item.name} (CCW)")
            if item.button_pin is not None:
                record(mapping.action, f"{item.name} (Button)")
        else:
            record(mapping.action, f"{item.name} (Press)")

    return {key: owners for key, owners in usage.items() if len(owners) > 1}
