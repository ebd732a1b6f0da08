from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pysmartbus.channels.durable import DurableChannel
from pysmartbus.exceptions import SmartBusTransportError
from pysmartbus.models.location import LocationSample
from pysmartbus.models.tracking import TrackingIdentity


@dataclass
class ScriptedTransport:
    responses: dict[str, Any] = field(default_factory=dict)
    calls: list[tuple[str, str, dict[str, Any] | None]] = field(default_factory=list)

    async def request_json(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append((method, endpoint, dict(payload) if payload is not None else None))
        response = self.responses[endpoint]
        if isinstance(response, Exception):
            raise response
        return response


IDENTITY = TrackingIdentity(driver_id="D1", bus_id="B1")


def _sample(**overrides: Any) -> LocationSample:
    values: dict[str, Any] = {
        "latitude": 12.9,
        "longitude": 77.6,
        "accuracy": 5.0,
        "speed_mps": 2.5,
        "captured_at_ms": 1_771_000_000_000,
    }
    values.update(overrides)
    return LocationSample(**values)


@pytest.mark.asyncio
async def test_send_posts_update_location_body() -> None:
    transport = ScriptedTransport(responses={"/api/drivers/update-location": {"success": True, "message": "ok"}})
    channel = DurableChannel(transport)

    outcome = await channel.send(_sample(), IDENTITY)

    assert outcome.delivered is True
    assert outcome.message == "ok"
    assert transport.calls == [
        (
            "POST",
            "/api/drivers/update-location",
            {"driverId": "D1", "latitude": 12.9, "longitude": 77.6, "speed": 2.5, "bearing": 0},
        )
    ]


@pytest.mark.asyncio
async def test_send_defaults_unknown_speed_and_bearing_to_zero() -> None:
    transport = ScriptedTransport(responses={"/api/drivers/update-location": {"success": True}})
    channel = DurableChannel(transport)

    await channel.send(_sample(speed_mps=None, bearing_deg=None), IDENTITY)

    body = transport.calls[0][2]
    assert body is not None
    assert body["speed"] == 0
    assert body["bearing"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        {"success": False, "message": "Driver not on an active session"},
        {"message": "no success flag"},
        SmartBusTransportError("Request to /api/drivers/update-location failed: boom"),
    ],
    ids=["not-success", "malformed", "network"],
)
async def test_send_failures_become_outcomes(response: Any, caplog: pytest.LogCaptureFixture) -> None:
    transport = ScriptedTransport(responses={"/api/drivers/update-location": response})
    channel = DurableChannel(transport)

    with caplog.at_level("WARNING", logger="pysmartbus.channels.durable"):
        outcome = await channel.send(_sample(), IDENTITY)

    assert outcome.delivered is False
    assert outcome.error
    assert "Location update failed for driver D1" in caplog.text
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_end_session_posts_stop_tracking() -> None:
    transport = ScriptedTransport(responses={"/api/drivers/stop-tracking": {"success": True, "message": "stopped"}})
    channel = DurableChannel(transport)

    outcome = await channel.end_session(IDENTITY)

    assert outcome.delivered is True
    assert transport.calls == [("POST", "/api/drivers/stop-tracking", {"driverId": "D1"})]


@pytest.mark.asyncio
async def test_end_session_failure_is_reported_not_raised() -> None:
    transport = ScriptedTransport(
        responses={"/api/drivers/stop-tracking": {"success": False, "message": "No active session"}}
    )
    channel = DurableChannel(transport)

    outcome = await channel.end_session(IDENTITY)

    assert outcome.delivered is False
    assert outcome.error is not None
    assert "No active session" in outcome.error
