"""Driver endpoints under ``/api/drivers``.

Endpoints:
  - GET  /list
  - GET  /buses/available
  - POST /start-tracking
  - POST /stop-tracking
  - POST /update-location
  - GET  /{driverId}/current-session
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from pysmartbus._api._common import drivers_endpoint, parse_items, request_checked
from pysmartbus._transport import Transport
from pysmartbus.exceptions import SmartBusApiError
from pysmartbus.models.requests import StartTrackingRequest, StopTrackingRequest, UpdateLocationRequest
from pysmartbus.models.roster import Bus, Driver
from pysmartbus.models.tracking import ApiAck
from pysmartbus.session import TrackingSession

_logger = logging.getLogger(__name__)

LIST_ENDPOINT = drivers_endpoint("list")
BUSES_ENDPOINT = drivers_endpoint("buses/available")
START_ENDPOINT = drivers_endpoint("start-tracking")
STOP_ENDPOINT = drivers_endpoint("stop-tracking")
UPDATE_LOCATION_ENDPOINT = drivers_endpoint("update-location")


def current_session_endpoint(driver_id: str | int) -> str:
    return drivers_endpoint(f"{quote(str(driver_id), safe='')}/current-session")


def _parse_ack(response: Mapping[str, Any], endpoint: str) -> ApiAck:
    try:
        return ApiAck.model_validate(response)
    except ValidationError as exc:
        raise SmartBusApiError(f"{endpoint} returned a malformed acknowledgement", endpoint=endpoint) from exc


async def list_drivers(transport: Transport) -> list[Driver]:
    """Fetch all drivers that can start a session."""
    response = await request_checked(transport, "GET", LIST_ENDPOINT)
    return parse_items(response, "drivers", Driver, LIST_ENDPOINT)


async def list_available_buses(transport: Transport) -> list[Bus]:
    """Fetch buses not currently assigned to a session."""
    response = await request_checked(transport, "GET", BUSES_ENDPOINT)
    return parse_items(response, "buses", Bus, BUSES_ENDPOINT)


async def start_tracking(transport: Transport, request: StartTrackingRequest) -> TrackingSession:
    """Open a server-side tracking session for ``request.driver_id``."""
    response = await request_checked(transport, "POST", START_ENDPOINT, request.to_payload())
    try:
        session = TrackingSession.model_validate(response.get("session"))
    except ValidationError as exc:
        raise SmartBusApiError(f"{START_ENDPOINT} returned a malformed session", endpoint=START_ENDPOINT) from exc
    _logger.info("Tracking session started for driver %s: %s", request.driver_id, session.session_id)
    return session


async def stop_tracking(transport: Transport, request: StopTrackingRequest) -> ApiAck:
    """Close the driver's server-side tracking session."""
    response = await request_checked(transport, "POST", STOP_ENDPOINT, request.to_payload())
    return _parse_ack(response, STOP_ENDPOINT)


async def update_location(transport: Transport, request: UpdateLocationRequest) -> ApiAck:
    """Record one location on the durable channel."""
    response = await request_checked(transport, "POST", UPDATE_LOCATION_ENDPOINT, request.to_payload())
    return _parse_ack(response, UPDATE_LOCATION_ENDPOINT)


async def get_current_session(transport: Transport, driver_id: str | int) -> TrackingSession | None:
    """Return the driver's open session, or ``None`` when there is none."""
    endpoint = current_session_endpoint(driver_id)
    response = await request_checked(transport, "GET", endpoint)
    raw = response.get("session")
    if raw is None:
        return None
    try:
        return TrackingSession.model_validate(raw)
    except ValidationError as exc:
        raise SmartBusApiError(f"{endpoint} returned a malformed session", endpoint=endpoint) from exc
