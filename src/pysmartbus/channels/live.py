"""Live push channel over Socket.IO.

Owns the Socket.IO client, its connection state and the reconnection task.
Callers never see connection exceptions; they observe
:class:`ConnectionStateChange` notifications instead.

Reconnection is driven here rather than by the Socket.IO client so the
policy (initial attempt plus ``reconnection_attempts`` retries spaced by
``reconnection_delay``) is explicit and cancellable: every client and
every connection task is tagged with a generation that ``disconnect()``
bumps, and callbacks from an older generation are ignored.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import aiohttp
import socketio
from socketio import exceptions as socketio_exceptions

from pysmartbus._constants import (
    CONNECT_TIMEOUT_S,
    EVENT_JOIN_ROOM,
    EVENT_LEAVE_ROOM,
    EVENT_LOCATION_UPDATE,
    EVENT_PING,
    PING_TIMEOUT_S,
    PUSH_TRANSPORTS,
    RECONNECTION_ATTEMPTS,
    RECONNECTION_DELAY_S,
)
from pysmartbus.models.location import LocationSample
from pysmartbus.models.push import LocationPush, RoomMembership
from pysmartbus.models.tracking import TrackingIdentity

_logger = logging.getLogger(__name__)

_CONNECT_ERRORS: tuple[type[BaseException], ...] = (
    socketio_exceptions.ConnectionError,
    aiohttp.ClientError,
    OSError,
    TimeoutError,
    ValueError,
)
_EMIT_ERRORS: tuple[type[BaseException], ...] = (
    socketio_exceptions.SocketIOError,
    aiohttp.ClientError,
    OSError,
)


class ChannelConnectionState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ConnectionStateChange:
    """One connection state transition.

    ``attempt`` is 0 for the initial connection and 1..N for reconnection
    attempts.
    """

    state: ChannelConnectionState
    reason: str | None = None
    attempt: int = 0


StateListener = Callable[[ConnectionStateChange], None]


class SocketClient(Protocol):
    """The subset of :class:`socketio.AsyncClient` the channel relies on."""

    connected: bool
    sid: str | None

    def on(self, event: str, handler: Callable[..., Any] | None = None) -> Any:
        ...

    async def connect(self, url: str, *, transports: Sequence[str] | None = None, wait_timeout: float = 1) -> None:
        ...

    async def emit(self, event: str, data: Any = None) -> None:
        ...

    async def call(self, event: str, data: Any = None, *, timeout: float = 60) -> Any:
        ...

    async def disconnect(self) -> None:
        ...


def default_client_factory(connect_timeout: float = CONNECT_TIMEOUT_S) -> Callable[[], SocketClient]:
    """Factory for Socket.IO clients with built-in reconnection disabled."""

    def _factory() -> SocketClient:
        client: SocketClient = socketio.AsyncClient(
            reconnection=False,
            request_timeout=connect_timeout,
            handle_sigint=False,
            logger=False,
            engineio_logger=False,
        )
        return client

    return _factory


class LiveChannel:
    """Persistent Socket.IO connection for low-latency location pushes."""

    def __init__(
        self,
        *,
        connect_timeout: float = CONNECT_TIMEOUT_S,
        reconnection_attempts: int = RECONNECTION_ATTEMPTS,
        reconnection_delay: float = RECONNECTION_DELAY_S,
        transports: Sequence[str] = PUSH_TRANSPORTS,
        client_factory: Callable[[], SocketClient] | None = None,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._reconnection_attempts = reconnection_attempts
        self._reconnection_delay = reconnection_delay
        self._transports = list(transports)
        self._client_factory = client_factory or default_client_factory(connect_timeout)
        self._client: SocketClient | None = None
        self._endpoint: str | None = None
        self._state = ChannelConnectionState.DISCONNECTED
        self._connect_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelConnectionState:
        return self._state

    def get_connection_state(self) -> ChannelConnectionState:
        """Snapshot of the most recent connect/disconnect event."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ChannelConnectionState.CONNECTED

    @property
    def sid(self) -> str | None:
        """Socket.IO session id of the current connection, if connected."""
        if self._client is None or not self.is_connected:
            return None
        return self._client.sid

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for state transitions; return a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    def _set_state(self, state: ChannelConnectionState, *, reason: str | None = None, attempt: int = 0) -> None:
        if state is self._state:
            return
        self._state = state
        change = ConnectionStateChange(state=state, reason=reason, attempt=attempt)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                _logger.warning("Connection state listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, endpoint: str) -> None:
        """Open the connection in the background.

        No-op when already connected or while an attempt is in progress.
        """
        if self._state is ChannelConnectionState.CONNECTED:
            _logger.debug("Live channel already connected")
            return
        if self._connect_task is not None and not self._connect_task.done():
            _logger.debug("Live channel connection already in progress")
            return

        if self._client is None or endpoint != self._endpoint:
            await self._drop_client()
            self._client = self._client_factory()
            self._bind_handlers(self._client, self._generation)
        self._endpoint = endpoint
        self._connect_task = asyncio.create_task(self._connect_loop(self._generation, reconnecting=False))

    async def disconnect(self) -> None:
        """Tear down the connection and cancel any pending reconnection."""
        self._generation += 1
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        was_active = self._state is not ChannelConnectionState.DISCONNECTED
        await self._drop_client()
        self._set_state(ChannelConnectionState.DISCONNECTED, reason="io client disconnect")
        if was_active:
            _logger.info("Live channel disconnected")

    async def _drop_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            await client.disconnect()
        except _EMIT_ERRORS:
            _logger.debug("Socket.IO client disconnect failed", exc_info=True)

    def _bind_handlers(self, client: SocketClient, generation: int) -> None:
        async def on_connect() -> None:
            if generation != self._generation:
                return
            self._set_state(ChannelConnectionState.CONNECTED)

        async def on_disconnect(*args: Any) -> None:
            if generation != self._generation:
                return
            reason = str(args[0]) if args else "transport close"
            if self._state is ChannelConnectionState.DISCONNECTED:
                return
            _logger.info("Live channel disconnected: %s", reason)
            self._set_state(ChannelConnectionState.DISCONNECTED, reason=reason)
            if self._connect_task is None or self._connect_task.done():
                self._connect_task = asyncio.create_task(self._connect_loop(generation, reconnecting=True))

        async def on_connect_error(data: Any = None) -> None:
            if generation != self._generation:
                return
            _logger.warning("Live channel connection error: %s", data)

        client.on("connect", on_connect)
        client.on("disconnect", on_disconnect)
        client.on("connect_error", on_connect_error)

    async def _connect_loop(self, generation: int, *, reconnecting: bool) -> None:
        client = self._client
        endpoint = self._endpoint
        if client is None or endpoint is None:
            return

        attempt = 0
        if reconnecting:
            attempt = 1
            await asyncio.sleep(self._reconnection_delay)

        while generation == self._generation:
            self._set_state(ChannelConnectionState.CONNECTING, attempt=attempt)
            if attempt:
                _logger.info("Live channel reconnection attempt %d/%d", attempt, self._reconnection_attempts)
            try:
                await client.connect(endpoint, transports=self._transports, wait_timeout=self._connect_timeout)
            except _CONNECT_ERRORS as exc:
                if generation != self._generation:
                    return
                _logger.warning("Live channel connection error: %s", exc)
                self._set_state(ChannelConnectionState.DISCONNECTED, reason=str(exc), attempt=attempt)
                if attempt >= self._reconnection_attempts:
                    _logger.error("Live channel reconnection failed after %d attempts", attempt)
                    return
                attempt += 1
                await asyncio.sleep(self._reconnection_delay)
                continue

            if generation != self._generation:
                # disconnect() raced the handshake.
                with contextlib.suppress(*_EMIT_ERRORS):
                    await client.disconnect()
                return
            if attempt:
                _logger.info("Live channel reconnected after %d attempts", attempt)
            else:
                _logger.info("Live channel connected to %s", endpoint)
            self._set_state(ChannelConnectionState.CONNECTED, attempt=attempt)
            return

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _emit(self, event: str, payload: Mapping[str, Any]) -> bool:
        client = self._client
        if client is None or self._state is not ChannelConnectionState.CONNECTED:
            _logger.warning("Cannot emit %s: live channel not connected", event)
            return False
        try:
            await client.emit(event, dict(payload))
        except _EMIT_ERRORS as exc:
            _logger.warning("Emitting %s failed: %s", event, exc)
            return False
        _logger.debug("Emitted %s %s", event, payload)
        return True

    async def join_room(self, driver_id: str | int, bus_id: str | int) -> bool:
        """Join the driver room. Not queued: call again after each reconnect."""
        membership = RoomMembership(driver_id=driver_id, bus_id=bus_id)
        joined = await self._emit(EVENT_JOIN_ROOM, membership.to_payload())
        if joined:
            _logger.info("Joined driver room: %s-%s", driver_id, bus_id)
        return joined

    async def leave_room(self, driver_id: str | int, bus_id: str | int) -> bool:
        if self._state is not ChannelConnectionState.CONNECTED:
            _logger.debug("Not leaving room %s-%s: live channel not connected", driver_id, bus_id)
            return False
        membership = RoomMembership(driver_id=driver_id, bus_id=bus_id)
        left = await self._emit(EVENT_LEAVE_ROOM, membership.to_payload())
        if left:
            _logger.info("Left driver room: %s-%s", driver_id, bus_id)
        return left

    async def push_sample(
        self,
        sample: LocationSample,
        identity: TrackingIdentity,
        accuracy: float | None = None,
        timestamp: datetime | None = None,
    ) -> bool:
        """Push *sample* if connected; otherwise drop it for this channel."""
        push = LocationPush.from_sample(sample, identity, accuracy=accuracy, timestamp=timestamp)
        return await self._emit(EVENT_LOCATION_UPDATE, push.to_payload())

    async def ping(self, timeout: float = PING_TIMEOUT_S) -> float | None:
        """Round-trip a ``ping`` event and return the latency in seconds.

        ``None`` when not connected or when the server does not
        acknowledge within *timeout*.
        """
        client = self._client
        if client is None or self._state is not ChannelConnectionState.CONNECTED:
            return None
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            await client.call(EVENT_PING, {"timestamp": int(time.time() * 1000)}, timeout=timeout)
        except _EMIT_ERRORS as exc:
            _logger.warning("Live channel ping failed: %s", exc)
            return None
        latency = loop.time() - started
        _logger.info("Socket.IO ping: %.0fms", latency * 1000)
        return latency
