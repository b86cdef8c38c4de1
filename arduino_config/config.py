# arduino_config/config.py
import os
import sys
from pathlib import Path

APP_TITLE = "Arduino Config"
APP_DIR_NAME = "ArduinoConfigApp"

def _default_home() -> Path:
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / APP_DIR_NAME
    base = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_DIR_NAME

# Per-user application data directory (settings, recent files)
APP_HOME = Path(os.getenv("ARDUINO_CONFIG_HOME", str(_default_home())))
SETTINGS_PATH = APP_HOME / "appsettings.json"

# Project files
FILE_EXTENSION = ".arduinoconfig"
ACCEPTED_EXTENSIONS = (FILE_EXTENSION, ".json")
CONFIG_VERSION = "1.0"
MAX_RECENT_FILES = 10

# Discovery
POLL_INTERVAL_SECONDS = float(os.getenv("ARDUINO_CONFIG_POLL_INTERVAL", "2.0"))

# Connection (only used when a board is actively opened)
DEFAULT_BAUD_RATE = int(os.getenv("ARDUINO_CONFIG_BAUD_RATE", "115200"))
RESET_DELAY_SECONDS = float(os.getenv("ARDUINO_CONFIG_RESET_DELAY", "2.0"))

LOG_LEVEL = os.getenv("ARDUINO_CONFIG_LOG_LEVEL", "INFO").upper()
