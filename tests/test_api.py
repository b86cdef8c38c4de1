from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from arduino_config.main import create_app
from arduino_config.services import build_services

from .mocks import FakePorts, ScriptedProber, usb_port


@pytest.fixture()
def ports():
    return FakePorts(usb_port("COM3", "2341", "8036"))


@pytest.fixture()
def services(settings_path, ports):
    return build_services(
        settings_path=settings_path,
        list_ports_fn=ports,
        prober=ScriptedProber(),
        poll_interval=0.05,
        reset_delay=0,
    )


@pytest.fixture()
def client(services):
    app = create_app(services, start_monitoring=False)
    with TestClient(app) as client:
        yield client


def test_refresh_lists_boards(client, ports):
    assert client.get("/api/boards").json() == []

    boards = client.post("/api/boards/refresh").json()

    assert [(b["port"], b["board_type"], b["status"]) for b in boards] == [("COM3", "ProMicro", "Available")]
    assert client.get("/api/boards").json() == boards


def test_monitor_start_stop(client):
    assert client.post("/api/boards/monitor/start").json()["running"] is True
    assert client.post("/api/boards/monitor/stop").json()["running"] is False


def test_connect_and_disconnect(client, services):
    writer = AsyncMock()
    writer.close = lambda: None

    async def fake_open(url, baudrate):
        return AsyncMock(), writer

    services.connection._open_connection = fake_open
    client.post("/api/boards/refresh")

    assert client.post("/api/boards/connect", json={"port": "COM3"}).status_code == 200
    assert client.get("/api/boards").json()[0]["status"] == "Connected"
    # a rescan does not probe the held port
    assert client.post("/api/boards/refresh").json()[0]["status"] == "Connected"

    assert client.post("/api/boards/disconnect").json() == {"ok": True}
    assert client.get("/api/boards").json()[0]["status"] == "Available"


def test_connect_to_busy_port_is_conflict(client, services):
    async def fake_open(url, baudrate):
        raise PermissionError("Access is denied")

    services.connection._open_connection = fake_open
    client.post("/api/boards/refresh")

    response = client.post("/api/boards/connect", json={"port": "COM3"})

    assert response.status_code == 409
    assert client.get("/api/boards").json()[0]["status"] == "PortBusy"


def test_project_lifecycle(client, tmp_path):
    path = tmp_path / "panel.arduinoconfig"

    allocated = client.post("/api/inputs/allocate", json={"type": "RotaryEncoder", "name": "Hdg"}).json()
    assert (allocated["pin"], allocated["pin2"]) == (2, 3)
    assert client.post("/api/inputs", json=allocated).json() == {"ok": True, "id": allocated["id"]}

    config = client.get("/api/config").json()
    assert config["dirty"] is True
    assert config["state"] == "DirtyNew"

    assert client.post("/api/config/save", json={}).status_code == 400
    saved = client.post("/api/config/save", json={"path": str(path)}).json()
    assert saved["state"] == "CleanSaved"
    assert path.exists()

    client.post("/api/config/new")
    loaded = client.post("/api/config/load", json={"path": str(path)}).json()
    assert loaded["configuration"]["inputs"][0]["name"] == "Hdg"
    assert client.get("/api/recent").json()["recent"] == [str(path)]


def test_load_errors_map_to_status_codes(client, tmp_path):
    assert client.post("/api/config/load", json={}).status_code == 400
    assert client.post("/api/config/load", json={"path": str(tmp_path / "nope.json")}).status_code == 404

    broken = tmp_path / "broken.arduinoconfig"
    broken.write_text("garbage", encoding="utf-8")
    assert client.post("/api/config/load", json={"path": str(broken)}).status_code == 422


def test_inputs_mappings_and_duplicates(client):
    gear = client.post("/api/inputs/allocate", json={"type": "MomentaryButton", "name": "Gear"}).json()
    client.post("/api/inputs", json=gear)
    flaps = client.post("/api/inputs/allocate", json={"type": "MomentaryButton", "name": "Flaps"}).json()
    client.post("/api/inputs", json=flaps)
    assert flaps["pin"] == gear["pin"] + 1

    captured = client.post("/api/mappings/capture", json={"key": "g", "ctrl": True}).json()
    assert captured["display"] == "Ctrl+G"
    for item in (gear, flaps):
        body = {"inputId": item["id"], "action": captured["action"]}
        assert client.put(f"/api/mappings/{item['id']}", json=body).status_code == 200

    rows = client.get("/api/mappings").json()
    assert [r["mapping"] for r in rows] == ["Ctrl+G", "Ctrl+G"]
    assert client.get("/api/mappings/duplicates").json() == {"Ctrl+G": ["Gear (Press)", "Flaps (Press)"]}

    client.delete(f"/api/inputs/{gear['id']}")
    assert client.get("/api/mappings/duplicates").json() == {}
    assert client.put(f"/api/inputs/{gear['id']}", json=gear).status_code == 404


def test_duplicate_pins_are_accepted_then_reported(client):
    client.post("/api/inputs", json={"name": "A", "pin": 4})
    client.post("/api/displays", json={"name": "Alt", "csPin": 4})

    result = client.get("/api/config/validate").json()

    assert result["valid"] is False
    assert "chip-select pin of display 'Alt'" in result["error"]


def test_board_switch_and_pins(client):
    client.put("/api/config/board", json={"board_type": "Mega2560"})
    client.post("/api/inputs", json={"name": "High", "pin": 40})

    pins = client.get("/api/config/pins").json()
    assert pins["reserved"] == [50, 51, 52, 53]
    assert 40 not in pins["free"]

    removed = client.put("/api/config/board", json={"board_type": "ProMicro"}).json()["removed_inputs"]
    assert [i["name"] for i in removed] == ["High"]


def test_settings_round_trip(client):
    assert client.put("/api/settings", json={"theme": "Dark", "auto_save_enabled": True}).json()["theme"] == "Dark"
    assert client.get("/api/settings").json()["auto_save_enabled"] is True
    assert client.put("/api/settings", json={"theme": "Neon"}).status_code == 400


def test_websocket_relays_events(client):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "hello"
        assert ws.receive_json() == {"type": "boards_changed", "boards": []}
        ws.send_text("ping")
        assert ws.receive_text() == "pong"

        client.post("/api/config/new")
        assert ws.receive_json() == {"type": "configuration_changed", "dirty": False}
