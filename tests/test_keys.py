import pytest

from arduino_config import keys
from arduino_config.models import ActionType, InputConfiguration, InputType, KeyboardAction, OutputMapping


@pytest.mark.parametrize("name,token", [
    ("Escape", "Esc"),
    ("Return", "Enter"),
    ("PageUp", "PgUp"),
    ("Next", "Next"),
    ("Back", "Backspace"),
    ("Number5", "5"),
    ("NumberPad3", "Num3"),
    ("KP_7", "Num7"),
    ("f5", "F5"),
    ("space", "Space"),
    ("VolumeUp", "Vol+"),
    ("MediaNextTrack", "Next"),
    ("OemWeird", "OemWeird"),
])
def test_normalize_key(name, token):
    assert keys.normalize_key(name) == token


def test_all_keys_are_unique():
    assert len(keys.ALL_KEYS) == len(set(keys.ALL_KEYS))
    assert set(keys.MEDIA_KEYS) <= set(keys.ALL_KEYS)
    assert "F24" in keys.ALL_KEYS


def test_modifier_only_capture_is_ignored():
    assert keys.action_from_capture("LeftShift", shift=True) is None
    assert keys.action_from_capture("Control_L", ctrl=True) is None
    assert keys.action_from_capture("") is None


def test_capture_builds_action_type():
    single = keys.action_from_capture("F5")
    combo = keys.action_from_capture("a", ctrl=True, shift=True)
    media = keys.action_from_capture("VolumeMute")

    assert (single.type, single.key) == (ActionType.SINGLE_KEY, "F5")
    assert (combo.type, combo.display_text) == (ActionType.KEY_COMBO, "Ctrl+Shift+A")
    assert (media.type, media.key) == (ActionType.MEDIA_KEY, "Mute")


def test_describe_button_mapping():
    item = InputConfiguration(name="Gear", pin=2)
    assert keys.describe_mapping(item, None) == keys.NOT_MAPPED
    assert keys.describe_mapping(item, OutputMapping(input_id=item.id)) == keys.NOT_MAPPED

    mapping = OutputMapping(input_id=item.id, action=KeyboardAction(type=ActionType.KEY_COMBO, key="G", alt=True))
    assert keys.describe_mapping(item, mapping) == "Alt+G"


def test_describe_encoder_mapping():
    item = InputConfiguration(name="Hdg", type=InputType.ROTARY_ENCODER, pin=3, pin2=4, button_pin=5)
    mapping = OutputMapping(
        input_id=item.id,
        action=KeyboardAction(key="H"),
        clockwise_action=KeyboardAction(key="Right"),
    )
    assert keys.describe_mapping(item, mapping) == "CW: Right | CCW: - | Button: H"

    no_turns = OutputMapping(input_id=item.id, action=KeyboardAction(key="H"))
    assert keys.describe_mapping(item, no_turns) == keys.NOT_MAPPED
