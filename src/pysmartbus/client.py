"""High-level async client for the SmartBus driver API."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pysmartbus._api import drivers as _drivers_api
from pysmartbus._transport import JsonTransport, Transport
from pysmartbus.channels.durable import DurableChannel
from pysmartbus.channels.live import LiveChannel, SocketClient
from pysmartbus.config import SmartBusConfig
from pysmartbus.exceptions import SmartBusError
from pysmartbus.geolocation.base import GeolocationSource
from pysmartbus.models.requests import StartTrackingRequest, StopTrackingRequest, UpdateLocationRequest
from pysmartbus.models.roster import Bus, Driver
from pysmartbus.models.tracking import ApiAck, TrackingIdentity
from pysmartbus.sampler import Sampler
from pysmartbus.session import TrackingSession
from pysmartbus.supervisor import SensorFailureHandler, TrackingSupervisor

_logger = logging.getLogger(__name__)


class SmartBusClient:
    """Async client for the SmartBus driver API.

    Usage::

        async with SmartBusClient(config) as client:
            drivers = await client.get_drivers()
            session, supervisor = await client.begin_tracking(driver_id, bus_id, source)
    """

    def __init__(
        self,
        config: SmartBusConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        socket_client_factory: Callable[[], SocketClient] | None = None,
    ) -> None:
        self._config = config or SmartBusConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._external_transport = transport is not None
        self._socket_client_factory = socket_client_factory

    @property
    def config(self) -> SmartBusConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SmartBusClient:
        if self._external_transport:
            return self
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = JsonTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise SmartBusError("Client not initialized. Use 'async with SmartBusClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    async def get_drivers(self) -> list[Driver]:
        """Fetch all drivers."""
        return await _drivers_api.list_drivers(self._require_transport())

    async def get_available_buses(self) -> list[Bus]:
        """Fetch buses that are free to be assigned."""
        return await _drivers_api.list_available_buses(self._require_transport())

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start_tracking(self, driver_id: str | int, bus_id: str | int) -> TrackingSession:
        """Open a server-side tracking session."""
        request = StartTrackingRequest(driver_id=driver_id, bus_id=bus_id)
        return await _drivers_api.start_tracking(self._require_transport(), request)

    async def stop_tracking(self, driver_id: str | int) -> ApiAck:
        """Close the driver's server-side tracking session."""
        request = StopTrackingRequest(driver_id=driver_id)
        return await _drivers_api.stop_tracking(self._require_transport(), request)

    async def get_current_session(self, driver_id: str | int) -> TrackingSession | None:
        """Return the driver's open session, if any."""
        return await _drivers_api.get_current_session(self._require_transport(), driver_id)

    async def update_location(
        self,
        driver_id: str | int,
        *,
        latitude: float,
        longitude: float,
        speed: float = 0.0,
        bearing: float = 0.0,
    ) -> ApiAck:
        """Record one location outside a supervised session."""
        request = UpdateLocationRequest(
            driver_id=driver_id,
            latitude=latitude,
            longitude=longitude,
            speed=speed,
            bearing=bearing,
        )
        return await _drivers_api.update_location(self._require_transport(), request)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def create_supervisor(
        self,
        identity: TrackingIdentity,
        source: GeolocationSource,
        *,
        on_sensor_failure: SensorFailureHandler | None = None,
    ) -> TrackingSupervisor:
        """Wire a sampler and both delivery channels for *identity*.

        The supervisor is returned unstarted.
        """
        config = self._config
        sampler = Sampler(source, restart_delay=config.restart_delay, distance_filter=config.distance_filter)
        live = LiveChannel(
            connect_timeout=config.connect_timeout,
            reconnection_attempts=config.reconnection_attempts,
            reconnection_delay=config.reconnection_delay,
            transports=config.push_transports,
            client_factory=self._socket_client_factory,
        )
        return TrackingSupervisor(
            identity,
            sampler=sampler,
            durable=DurableChannel(self._require_transport()),
            live=live,
            push_url=config.resolved_push_url,
            sample_interval=config.sample_interval,
            on_sensor_failure=on_sensor_failure,
        )

    async def begin_tracking(
        self,
        driver_id: str | int,
        bus_id: str | int,
        source: GeolocationSource,
        *,
        on_sensor_failure: SensorFailureHandler | None = None,
    ) -> tuple[TrackingSession, TrackingSupervisor]:
        """Open the server session, then start a supervisor for it."""
        identity = TrackingIdentity(driver_id=driver_id, bus_id=bus_id)
        session = await self.start_tracking(driver_id, bus_id)
        supervisor = self.create_supervisor(identity, source, on_sensor_failure=on_sensor_failure)
        if not await supervisor.start():
            _logger.warning("Location unavailable; tracking session %s has no sampler", session.session_id)
        return session, supervisor
