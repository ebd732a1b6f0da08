from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from pysmartbus import cli
from pysmartbus.client import SmartBusClient
from pysmartbus.config import SmartBusConfig


class RosterTransport:
    def __init__(self, *, stop_success: bool = True) -> None:
        self.stop_success = stop_success
        self.requests: list[tuple[str, str, dict[str, Any] | None]] = []

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.requests.append((method, endpoint, dict(payload) if payload is not None else None))
        if endpoint == "/api/drivers/list":
            return {"success": True, "drivers": [{"driver_id": 1, "driver_name": "Asha"}]}
        if endpoint == "/api/drivers/buses/available":
            return {"success": True, "buses": []}
        if endpoint == "/api/drivers/start-tracking":
            return {"success": True, "session": {"id": 42}}
        if endpoint == "/api/drivers/stop-tracking":
            if self.stop_success:
                return {"success": True, "message": "Tracking stopped"}
            return {"success": False, "message": "No active session"}
        raise AssertionError(f"Unexpected endpoint: {endpoint}")


class LocalSocketClient:
    def __init__(self) -> None:
        self.connected = False
        self.sid: str | None = None
        self.handlers: dict[str, Callable[..., Any]] = {}

    def on(self, event: str, handler: Callable[..., Any] | None = None) -> Any:
        self.handlers[event] = handler
        return handler

    async def connect(self, url: str, *, transports: Sequence[str] | None = None, wait_timeout: float = 1) -> None:
        self.connected = True
        await self.handlers["connect"]()

    async def emit(self, event: str, data: Any = None) -> None:
        return None

    async def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            await self.handlers["disconnect"]("client disconnect")


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> RosterTransport:
    fake = RosterTransport()

    def make_client(config: SmartBusConfig) -> SmartBusClient:
        return SmartBusClient(config, transport=fake, socket_client_factory=LocalSocketClient)

    monkeypatch.setattr(cli, "SmartBusClient", make_client)
    return fake


def test_drivers_command_prints_roster(transport: RosterTransport, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["drivers"]) == 0
    assert "1\tAsha" in capsys.readouterr().out


def test_buses_command_handles_empty_list(transport: RosterTransport, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--base-url", "http://localhost:3000", "buses"]) == 0
    assert "No buses available" in capsys.readouterr().out


def test_stop_command_reports_api_errors(transport: RosterTransport, capsys: pytest.CaptureFixture[str]) -> None:
    transport.stop_success = False
    assert cli.main(["stop", "--driver", "D1"]) == 1
    assert "No active session" in capsys.readouterr().err
    assert transport.requests == [("POST", "/api/drivers/stop-tracking", {"driverId": "D1"})]


def test_invalid_configuration_exits_with_2(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMARTBUS_CONNECT_TIMEOUT", "never")
    assert cli.main(["drivers"]) == 2


def test_replay_source_requires_file() -> None:
    with pytest.raises(SystemExit):
        cli.main(["track", "--driver", "D1", "--bus", "B1", "--source", "replay"])


def test_track_ends_session_when_location_is_unavailable(
    transport: RosterTransport, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    argv = ["track", "--driver", "D1", "--bus", "B1", "--source", "replay", "--replay-file", str(tmp_path / "none.jsonl")]

    assert cli.main(argv) == 1

    assert "Location is unavailable" in capsys.readouterr().err
    assert [endpoint for _method, endpoint, _payload in transport.requests] == [
        "/api/drivers/start-tracking",
        "/api/drivers/stop-tracking",
    ]
