from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from . import boards
from .errors import (
    ArduinoConfigError,
    ConfigIOError,
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    ErrorKind,
    NoFreePinError,
    NoPathError,
)
from .events import (
    ConfigurationChanged,
    ConfigurationEvent,
    ConfigurationLoaded,
    ConfigurationSaved,
    EventBus,
)
from .keys import find_duplicate_actions
from .models import (
    BoardType,
    DisplayConfiguration,
    InputConfiguration,
    InputType,
    OutputMapping,
    ProjectConfiguration,
    utc_now,
)
from .settings import SettingsService, atomic_write
from .validator import ValidationResult, validate

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class StoreState(str, Enum):
    NO_FILE = "NoFile"  # never saved, nothing changed
    DIRTY_NEW = "DirtyNew"
    CLEAN_SAVED = "CleanSaved"
    DIRTY_SAVED = "DirtySaved"


@dataclass(frozen=True)
class StoreResult:
    success: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failed(cls, exc: ArduinoConfigError) -> "StoreResult":
        return cls(False, exc.message, exc.kind)


OK = StoreResult(True)


class ConfigurationStore:
    """
    Sole owner of the open project. Callers get deep copies from ``project``
    and change it only through the mutation helpers below, all of which mark
    the project dirty. Mutations never validate; see validate().
    """

    def __init__(
        self,
        settings: SettingsService,
        events: Optional[EventBus] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.settings = settings
        self.events: EventBus = events or EventBus()
        self._project = ProjectConfiguration()
        self._path: Optional[Path] = None
        self._dirty = False
        self._generation = 0
        self._session = 0  # bumped whenever new() or load() swaps the project
        self._save_lock = threading.RLock()
        self._executor = executor
        self._owns_executor = executor is None
        self._pending_autosave: Optional[Future] = None

    # ---- state ----

    @property
    def project(self) -> ProjectConfiguration:
        return self._project.model_copy(deep=True)

    @property
    def current_path(self) -> Optional[Path]:
        return self._path

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def is_new(self) -> bool:
        return self._path is None

    @property
    def state(self) -> StoreState:
        if self._path is None:
            return StoreState.DIRTY_NEW if self._dirty else StoreState.NO_FILE
        return StoreState.DIRTY_SAVED if self._dirty else StoreState.CLEAN_SAVED

    # ---- lifecycle ----

    def new(self) -> None:
        with self._save_lock:
            self._project = ProjectConfiguration()
            self._path = None
            self._dirty = False
            self._generation += 1
            self._session += 1
        self._publish(ConfigurationChanged(dirty=False))

    def load(self, path: PathLike) -> StoreResult:
        path = Path(path)
        try:
            config = self._read(path)
        except ArduinoConfigError as e:
            logger.warning(f"Failed to load {path}: {e.message}")
            return StoreResult.failed(e)

        with self._save_lock:
            self._project = config
            self._path = path
            self._dirty = False
            self._generation += 1
            self._session += 1
        self.settings.add_recent(path)
        logger.info(f"Loaded configuration '{config.name}' from {path}")

        self._publish(ConfigurationLoaded(path=str(path)))
        self._publish(ConfigurationChanged(dirty=False))
        return OK

    def _read(self, path: Path) -> ProjectConfiguration:
        if not path.exists():
            raise ConfigNotFoundError("File not found")
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigIOError(f"Error loading file: {e}") from e
        try:
            config = ProjectConfiguration.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigParseError(f"Failed to parse configuration file: {e}") from e
        result = validate(config)
        if not result:
            raise ConfigValidationError(result.error or "Invalid configuration")
        return config

    def save(self, path: Optional[PathLike] = None) -> StoreResult:
        return self._save(path)

    def _save(self, path: Optional[PathLike] = None, session: Optional[int] = None) -> StoreResult:
        with self._save_lock:
            # new() or load() replaced the project this save was queued for
            if session is not None and session != self._session:
                logger.debug("Skipping auto-save of a project that is no longer open")
                return OK

            target = Path(path) if path else self._path
            if target is None:
                return StoreResult.failed(NoPathError("No file path specified"))

            generation = self._generation
            self._project.modified_at = utc_now()
            payload = self._project.model_dump_json(by_alias=True, indent=2)
            try:
                atomic_write(target, payload)
            except OSError as e:
                logger.error(f"Failed to save configuration to {target}: {e}")
                return StoreResult.failed(ConfigIOError(f"Error saving file: {e}"))

            self._path = target
            # Edits made while we were serialising keep the project dirty
            if generation == self._generation:
                self._dirty = False
        self.settings.add_recent(target)
        logger.info(f"Saved configuration to {target}")
        self._publish(ConfigurationSaved(path=str(target)))
        return OK

    def mark_modified(self) -> None:
        self._dirty = True
        self._generation += 1
        self._project.modified_at = utc_now()
        self._publish(ConfigurationChanged(dirty=True))

        if self.settings.auto_save_enabled and self._path is not None:
            self._dispatch_autosave()

    def _dispatch_autosave(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="autosave")
        self._pending_autosave = self._executor.submit(self._autosave, self._session)

    def _autosave(self, session: int) -> None:
        try:
            result = self._save(session=session)
        except Exception:
            logger.exception("Auto-save crashed")
            return
        if not result:
            logger.warning(f"Auto-save failed: {result.error}")

    def wait_for_autosave(self, timeout: Optional[float] = None) -> None:
        pending = self._pending_autosave
        if pending is not None:
            pending.result(timeout=timeout)

    def close(self) -> None:
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def validate(self) -> ValidationResult:
        return validate(self._project)

    def recent_files(self) -> List[str]:
        return self.settings.recent()

    def _publish(self, event: ConfigurationEvent) -> None:
        self.events.publish(event)

    # ---- board ----

    @property
    def board_type(self) -> BoardType:
        return self._project.board.board_type

    def available_pins(self) -> List[int]:
        return list(boards.available_pins(self.board_type))

    def reserved_pins(self) -> List[int]:
        return sorted(boards.reserved_pins(self.board_type))

    def free_pins(self, exclude_id: Optional[str] = None) -> List[int]:
        used = self._project.used_pins(exclude_id)
        return [p for p in boards.available_pins(self.board_type) if p not in used]

    def incompatible_inputs(self, board_type: BoardType) -> List[InputConfiguration]:
        allowed = set(boards.available_pins(board_type))
        return [
            item.model_copy(deep=True)
            for item in self._project.inputs
            if any(pin not in allowed for pin in item.pins)
        ]

    def set_board_type(self, board_type: BoardType) -> List[InputConfiguration]:
        """Switch boards, dropping inputs wired to pins the new board lacks."""
        dropped = self.incompatible_inputs(board_type)
        dropped_ids = {item.id for item in dropped}
        self._project.inputs = [i for i in self._project.inputs if i.id not in dropped_ids]
        self._project.output_mappings = [
            m for m in self._project.output_mappings if m.input_id not in dropped_ids
        ]
        self._project.board.board_type = board_type
        if dropped:
            logger.info(f"Removed {len(dropped)} input(s) not available on {boards.board_name(board_type)}")
        self.mark_modified()
        return dropped

    def rename(self, name: str) -> None:
        self._project.name = name
        self.mark_modified()

    # ---- inputs ----

    def create_input(self, input_type: InputType, name: Optional[str] = None) -> InputConfiguration:
        """New, unsaved input on the first free pin(s) of the current board."""
        free = self.free_pins()
        if not free:
            raise NoFreePinError("All pins are already in use. Delete an input to free up pins.")
        pin2 = None
        if input_type == InputType.ROTARY_ENCODER:
            if len(free) < 2:
                raise NoFreePinError("A rotary encoder needs two free pins.")
            pin2 = free[1]
        return InputConfiguration(name=name or "Input", type=input_type, pin=free[0], pin2=pin2)

    def add_input(self, item: InputConfiguration) -> str:
        self._project.inputs.append(item.model_copy(deep=True))
        self.mark_modified()
        return item.id

    def update_input(self, item: InputConfiguration) -> bool:
        for index, existing in enumerate(self._project.inputs):
            if existing.id == item.id:
                self._project.inputs[index] = item.model_copy(deep=True)
                self.mark_modified()
                return True
        return False

    def remove_input(self, input_id: str) -> None:
        self._project.inputs = [i for i in self._project.inputs if i.id != input_id]
        self._project.output_mappings = [
            m for m in self._project.output_mappings if m.input_id != input_id
        ]
        self.mark_modified()

    # ---- displays ----

    def add_display(self, display: DisplayConfiguration) -> str:
        self._project.displays.append(display.model_copy(deep=True))
        self.mark_modified()
        return display.id

    def update_display(self, display: DisplayConfiguration) -> bool:
        for index, existing in enumerate(self._project.displays):
            if existing.id == display.id:
                self._project.displays[index] = display.model_copy(deep=True)
                self.mark_modified()
                return True
        return False

    def remove_display(self, display_id: str) -> None:
        self._project.displays = [d for d in self._project.displays if d.id != display_id]
        self.mark_modified()

    # ---- output mappings ----

    def set_output_mapping(self, mapping: OutputMapping) -> None:
        mapping = mapping.model_copy(deep=True)
        for index, existing in enumerate(self._project.output_mappings):
            if existing.input_id == mapping.input_id:
                self._project.output_mappings[index] = mapping
                break
        else:
            self._project.output_mappings.append(mapping)
        self.mark_modified()

    def remove_output_mapping(self, input_id: str) -> None:
        self._project.output_mappings = [
            m for m in self._project.output_mappings if m.input_id != input_id
        ]
        self.mark_modified()

    def duplicate_actions(self) -> Dict[str, List[str]]:
        return find_duplicate_actions(self._project)
