import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from .config import APP_TITLE, DEFAULT_BAUD_RATE, LOG_LEVEL
from .errors import ArduinoConfigError, ErrorKind
from .events import event_payload
from .keys import action_from_capture, describe_mapping
from .models import (
    BoardType,
    DisplayConfiguration,
    InputConfiguration,
    InputType,
    OutputMapping,
)
from .services import AppServices, build_services
from .settings import THEMES
from .store import StoreResult

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PARSE_ERROR: 422,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.NO_PATH: 400,
    ErrorKind.IO_ERROR: 500,
    ErrorKind.PORT_UNAVAILABLE: 409,
    ErrorKind.PORT_ERROR: 500,
}


class PathRequest(BaseModel):
    path: Optional[str] = None


class ConnectRequest(BaseModel):
    port: str
    baud_rate: int = DEFAULT_BAUD_RATE


class BoardRequest(BaseModel):
    board_type: BoardType


class NewInputRequest(BaseModel):
    type: InputType
    name: Optional[str] = None


class CaptureRequest(BaseModel):
    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    win: bool = False


class SettingsRequest(BaseModel):
    theme: Optional[str] = None
    auto_save_enabled: Optional[bool] = None


class EventRelay:
    """Forwards core events (raised on any thread) to WebSocket clients."""

    def __init__(self) -> None:
        self.clients: Set[WebSocket] = set()
        self.lock = asyncio.Lock()
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def __call__(self, event: object) -> None:
        payload = event_payload(event)
        if payload is None or self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(payload), self.loop)

    async def broadcast(self, message: Dict[str, Any]) -> None:
        dead: List[WebSocket] = []
        async with self.lock:
            for ws in self.clients:
                try:
                    await ws.send_json(message)
                except Exception:
                    dead.append(ws)
            for ws in dead:
                self.clients.discard(ws)


def _raise_for(result: StoreResult) -> None:
    if not result:
        raise HTTPException(status_code=_STATUS_BY_KIND.get(result.kind, 500), detail=result.error)


def _http_error(exc: ArduinoConfigError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_KIND.get(exc.kind, 500), detail=exc.message)


def create_app(services: Optional[AppServices] = None, start_monitoring: bool = True) -> FastAPI:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    services = services or build_services()
    app = FastAPI(title=APP_TITLE)
    app.state.services = services
    relay = EventRelay()
    app.state.relay = relay

    store = services.store
    scheduler = services.scheduler
    reconciler = services.reconciler
    connection = services.connection

    store.events.subscribe(relay)
    reconciler.events.subscribe(relay)

    def _config_payload() -> Dict[str, Any]:
        project = store.project
        return {
            "path": str(store.current_path) if store.current_path else None,
            "dirty": store.dirty,
            "state": store.state.value,
            "configuration": project.model_dump(mode="json", by_alias=True),
        }

    @app.on_event("startup")
    async def startup() -> None:
        relay.loop = asyncio.get_running_loop()
        if start_monitoring:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown() -> None:
        if connection.is_connected:
            await connection.disconnect()
        services.shutdown()

    # ---- boards ----

    @app.get("/api/boards")
    async def list_boards():
        return [d.model_dump(mode="json") for d in reconciler.devices]

    @app.post("/api/boards/refresh")
    async def refresh_boards():
        devices = await asyncio.to_thread(scheduler.refresh_now)
        return [d.model_dump(mode="json") for d in devices]

    @app.post("/api/boards/monitor/start")
    async def start_monitoring_endpoint():
        scheduler.start()
        return {"ok": True, "running": scheduler.running}

    @app.post("/api/boards/monitor/stop")
    async def stop_monitoring_endpoint():
        await asyncio.to_thread(scheduler.stop)
        return {"ok": True, "running": scheduler.running}

    @app.post("/api/boards/connect")
    async def connect_board(req: ConnectRequest):
        try:
            await connection.connect(req.port, req.baud_rate)
        except ArduinoConfigError as e:
            raise _http_error(e)
        return {"ok": True, "port": req.port}

    @app.post("/api/boards/disconnect")
    async def disconnect_board():
        await connection.disconnect()
        return {"ok": True}

    # ---- project ----

    @app.get("/api/config")
    async def get_config():
        return _config_payload()

    @app.post("/api/config/new")
    async def new_config():
        store.new()
        return _config_payload()

    @app.post("/api/config/load")
    async def load_config(req: PathRequest):
        if not req.path:
            raise HTTPException(status_code=400, detail="path is required")
        _raise_for(store.load(req.path))
        return _config_payload()

    @app.post("/api/config/save")
    async def save_config(req: PathRequest):
        _raise_for(store.save(req.path))
        return _config_payload()

    @app.get("/api/config/validate")
    async def validate_config():
        result = store.validate()
        return {"valid": result.is_valid, "error": result.error}

    @app.put("/api/config/board")
    async def set_board(req: BoardRequest):
        dropped = store.set_board_type(req.board_type)
        return {"removed_inputs": [i.model_dump(mode="json", by_alias=True) for i in dropped]}

    @app.get("/api/config/pins")
    async def board_pins(exclude_id: Optional[str] = None):
        return {
            "board_type": store.board_type.value,
            "available": store.available_pins(),
            "reserved": store.reserved_pins(),
            "free": store.free_pins(exclude_id),
        }

    @app.get("/api/recent")
    async def recent_files():
        return {"recent": store.recent_files(), "last_opened": services.settings.last_opened}

    # ---- inputs ----

    @app.post("/api/inputs/allocate")
    async def allocate_input(req: NewInputRequest):
        try:
            item = store.create_input(req.type, req.name)
        except ArduinoConfigError as e:
            raise _http_error(e)
        return item.model_dump(mode="json", by_alias=True)

    @app.post("/api/inputs")
    async def add_input(item: InputConfiguration):
        store.add_input(item)
        return {"ok": True, "id": item.id}

    @app.put("/api/inputs/{input_id}")
    async def update_input(input_id: str, item: InputConfiguration):
        if item.id != input_id:
            raise HTTPException(status_code=400, detail="id in path and body must match")
        if not store.update_input(item):
            raise HTTPException(status_code=404, detail="Input not found")
        return {"ok": True}

    @app.delete("/api/inputs/{input_id}")
    async def remove_input(input_id: str):
        store.remove_input(input_id)
        return {"ok": True}

    @app.post("/api/inputs/{input_id}/test")
    async def test_input(input_id: str):
        return {"ok": await connection.send_test_input(input_id)}

    # ---- displays ----

    @app.post("/api/displays")
    async def add_display(display: DisplayConfiguration):
        store.add_display(display)
        return {"ok": True, "id": display.id}

    @app.put("/api/displays/{display_id}")
    async def update_display(display_id: str, display: DisplayConfiguration):
        if display.id != display_id:
            raise HTTPException(status_code=400, detail="id in path and body must match")
        if not store.update_display(display):
            raise HTTPException(status_code=404, detail="Display not found")
        return {"ok": True}

    @app.delete("/api/displays/{display_id}")
    async def remove_display(display_id: str):
        store.remove_display(display_id)
        return {"ok": True}

    # ---- output mappings ----

    @app.get("/api/mappings")
    async def list_mappings():
        project = store.project
        return [
            {
                "input_id": item.id,
                "input_name": item.name,
                "mapping": describe_mapping(item, project.mapping_for(item.id)),
            }
            for item in project.inputs
        ]

    @app.put("/api/mappings/{input_id}")
    async def set_mapping(input_id: str, mapping: OutputMapping):
        if mapping.input_id != input_id:
            raise HTTPException(status_code=400, detail="inputId in path and body must match")
        store.set_output_mapping(mapping)
        return {"ok": True}

    @app.delete("/api/mappings/{input_id}")
    async def remove_mapping(input_id: str):
        store.remove_output_mapping(input_id)
        return {"ok": True}

    @app.post("/api/mappings/capture")
    async def capture_key(req: CaptureRequest):
        action = action_from_capture(req.key, req.ctrl, req.alt, req.shift, req.win)
        if action is None:
            return {"action": None}
        return {"action": action.model_dump(mode="json", by_alias=True), "display": action.display_text}

    @app.get("/api/mappings/duplicates")
    async def duplicate_mappings():
        return store.duplicate_actions()

    # ---- settings ----

    @app.get("/api/settings")
    async def get_settings():
        return {
            "theme": services.settings.theme,
            "themes": list(THEMES),
            "auto_save_enabled": services.settings.auto_save_enabled,
        }

    @app.put("/api/settings")
    async def update_settings(req: SettingsRequest):
        if req.theme is not None:
            try:
                services.settings.set_theme(req.theme)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        if req.auto_save_enabled is not None:
            services.settings.set_auto_save(req.auto_save_enabled)
        return await get_settings()

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        async with relay.lock:
            relay.clients.add(ws)
        try:
            await ws.send_json({"type": "hello", "title": APP_TITLE})
            await ws.send_json({
                "type": "boards_changed",
                "boards": [d.model_dump(mode="json") for d in reconciler.devices],
            })
            while True:
                msg = await ws.receive_text()
                if msg == "ping":
                    await ws.send_text("pong")
        except WebSocketDisconnect:
            pass
        finally:
            async with relay.lock:
                relay.clients.discard(ws)

    return app
