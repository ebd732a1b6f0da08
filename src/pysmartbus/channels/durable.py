"""Durable request channel: one HTTP request per sample.

Every call is an independent, stateless attempt. Failures are reported as
a :class:`DeliveryOutcome` and logged; nothing is retried or buffered.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pysmartbus._api import drivers as _drivers_api
from pysmartbus._transport import Transport
from pysmartbus.exceptions import SmartBusError
from pysmartbus.models.location import LocationSample
from pysmartbus.models.requests import StopTrackingRequest, UpdateLocationRequest
from pysmartbus.models.tracking import DeliveryOutcome, TrackingIdentity

_logger = logging.getLogger(__name__)


class DurableChannel:
    """Sends samples and session termination over the REST API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def send(self, sample: LocationSample, identity: TrackingIdentity) -> DeliveryOutcome:
        """Deliver *sample* to ``update-location``; never raises on failure."""
        try:
            request = UpdateLocationRequest.from_sample(sample, identity)
            ack = await _drivers_api.update_location(self._transport, request)
        except (SmartBusError, ValidationError) as exc:
            _logger.warning("Location update failed for driver %s: %s", identity.driver_id, exc)
            return DeliveryOutcome(delivered=False, error=str(exc))
        _logger.debug("Location update delivered for driver %s", identity.driver_id)
        return DeliveryOutcome(delivered=True, message=ack.message)

    async def end_session(self, identity: TrackingIdentity) -> DeliveryOutcome:
        """Ask the backend to close the driver's session; never raises on failure."""
        try:
            ack = await _drivers_api.stop_tracking(self._transport, StopTrackingRequest(driver_id=identity.driver_id))
        except (SmartBusError, ValidationError) as exc:
            _logger.warning("Stop tracking failed for driver %s: %s", identity.driver_id, exc)
            return DeliveryOutcome(delivered=False, error=str(exc))
        _logger.info("Server session ended for driver %s", identity.driver_id)
        return DeliveryOutcome(delivered=True, message=ack.message)
