from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

import aiohttp
import pytest
from aiohttp import web

from pysmartbus._transport import JsonTransport
from pysmartbus.channels.durable import DurableChannel
from pysmartbus.config import SmartBusConfig
from pysmartbus.exceptions import SmartBusTransportError
from pysmartbus.models.tracking import TrackingIdentity

IDENTITY = TrackingIdentity(driver_id="D1", bus_id="B1")


@contextlib.asynccontextmanager
async def _serve(body: bytes, *, status: int = 200) -> AsyncIterator[JsonTransport]:
    """Run a one-route backend answering every request with *body*."""

    async def handler(_request: web.Request) -> web.Response:
        return web.Response(body=body, status=status, content_type="application/json", charset="utf-8")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    try:
        async with aiohttp.ClientSession() as http:
            yield JsonTransport(SmartBusConfig(base_url=f"http://{host}:{port}"), http)
    finally:
        await runner.cleanup()


@pytest.mark.asyncio
async def test_request_json_returns_object() -> None:
    async with _serve(b'{"success": true, "message": "Tracking stopped"}') as transport:
        result = await transport.request_json("POST", "/api/drivers/stop-tracking", {"driverId": "D1"})

    assert result == {"success": True, "message": "Tracking stopped"}


@pytest.mark.asyncio
async def test_request_json_passes_failure_bodies_through() -> None:
    async with _serve(b'{"success": false, "message": "No active session"}', status=404) as transport:
        result = await transport.request_json("POST", "/api/drivers/stop-tracking", {"driverId": "D1"})

    assert result["success"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b'{"success": true, "message": "\xff"}', b"<html>Bad gateway</html>", b"[1, 2]"],
    ids=["not-utf8", "not-json", "not-object"],
)
async def test_request_json_rejects_malformed_bodies(body: bytes) -> None:
    async with _serve(body) as transport:
        with pytest.raises(SmartBusTransportError) as excinfo:
            await transport.request_json("POST", "/api/drivers/stop-tracking", {"driverId": "D1"})

    assert excinfo.value.endpoint == "/api/drivers/stop-tracking"


@pytest.mark.asyncio
async def test_request_json_reports_http_errors_without_success_flag() -> None:
    async with _serve(b'{"error": "Internal"}', status=500) as transport:
        with pytest.raises(SmartBusTransportError, match="HTTP 500"):
            await transport.request_json("GET", "/api/drivers/list")


@pytest.mark.asyncio
async def test_end_session_with_undecodable_response_is_an_outcome() -> None:
    async with _serve(b'{"success": true, "message": "\xff"}') as transport:
        outcome = await DurableChannel(transport).end_session(IDENTITY)

    assert outcome.delivered is False
    assert outcome.error is not None
    assert "not UTF-8 JSON" in outcome.error
