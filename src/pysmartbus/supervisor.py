"""Tracking session supervisor.

Composes one :class:`Sampler`, one :class:`DurableChannel` and one
:class:`LiveChannel` for a single driver/bus pair. The supervisor decides
when the components start and stop; it never reaches into their internals.

Each sample is fanned out to both channels as two independent asyncio
tasks, so a slow or failing channel never delays the other one or the
next sample.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Coroutine
from enum import StrEnum
from typing import Any

from pysmartbus._constants import DEFAULT_SAMPLE_INTERVAL_S
from pysmartbus.channels.durable import DurableChannel
from pysmartbus.channels.live import ChannelConnectionState, ConnectionStateChange, LiveChannel
from pysmartbus.exceptions import SmartBusError
from pysmartbus.models.location import LocationSample
from pysmartbus.models.tracking import StopTrackingResult, TrackingIdentity
from pysmartbus.sampler import Sampler, SamplerOptions, SamplerState
from pysmartbus.state.events import SessionEvent, SessionEventKind
from pysmartbus.state.statistics import SessionStatistics

_logger = logging.getLogger(__name__)


class FailureAction(StrEnum):
    """Operator decision after a sensor failure alert."""

    RETRY = "retry"
    STOP = "stop"


SensorFailureHandler = Callable[[Exception], Awaitable[FailureAction | None]]
SessionListener = Callable[[SessionEvent], None]


class TrackingSupervisor:
    """Lifecycle owner of one tracking session.

    Usage::

        async with TrackingSupervisor(identity, sampler=..., durable=..., live=..., push_url=url) as supervisor:
            await stop_requested.wait()
            result = await supervisor.stop_tracking()

    Parameters
    ----------
    identity : TrackingIdentity
        Driver/bus pair forwarded on both channels.
    sampler : Sampler
        Location sampler; the supervisor starts and stops it.
    durable : DurableChannel
        Request/response delivery channel.
    live : LiveChannel
        Push delivery channel.
    push_url : str
        Socket.IO endpoint passed to ``live.connect``.
    sample_interval : float
        Seconds between fixes requested from the sampler.
    on_sensor_failure : SensorFailureHandler or None
        Async handler asked what to do after a sensor failure. Returning
        ``None`` leaves the sampler's automatic restart in charge.
    """

    def __init__(
        self,
        identity: TrackingIdentity,
        *,
        sampler: Sampler,
        durable: DurableChannel,
        live: LiveChannel,
        push_url: str,
        sample_interval: float = DEFAULT_SAMPLE_INTERVAL_S,
        on_sensor_failure: SensorFailureHandler | None = None,
    ) -> None:
        self._identity = identity
        self._sampler = sampler
        self._durable = durable
        self._live = live
        self._push_url = push_url
        self._sample_interval = sample_interval
        self._on_sensor_failure = on_sensor_failure

        self._statistics = SessionStatistics()
        self._listeners: list[SessionListener] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._alert_task: asyncio.Task[None] | None = None
        self._remove_state_listener: Callable[[], None] | None = None
        self._started = False
        self._closed = False
        self._stop_task: asyncio.Task[StopTrackingResult] | None = None

    async def __aenter__(self) -> TrackingSupervisor:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.shutdown()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def identity(self) -> TrackingIdentity:
        return self._identity

    @property
    def statistics(self) -> SessionStatistics:
        return self._statistics

    @property
    def connection_state(self) -> ChannelConnectionState:
        return self._live.get_connection_state()

    @property
    def sampler_state(self) -> SamplerState:
        return self._sampler.state

    @property
    def is_tracking(self) -> bool:
        return self._started and not self._closed and self._sampler.state is not SamplerState.IDLE

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        """Register *listener* for session events; return a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.warning("Session listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Connect the push channel, then start sampling.

        Returns the sampler's result: ``False`` when location is not
        available. The push channel keeps connecting either way.
        """
        if self._closed:
            raise SmartBusError("Tracking session already ended")

        self._statistics = SessionStatistics()
        await self._live.connect(self._push_url)
        if self._remove_state_listener is None:
            self._remove_state_listener = self._live.add_state_listener(self._on_connection_change)
        if self._live.is_connected:
            await self._live.join_room(self._identity.driver_id, self._identity.bus_id)

        self._started = True
        started = await self._sampler.start(self._sampler_options())
        if started:
            _logger.info(
                "Tracking started for driver %s on bus %s",
                self._identity.driver_id,
                self._identity.bus_id,
            )
        return started

    async def restart_sampling(self) -> bool:
        """Start the sampler again with the session's options."""
        if self._closed:
            return False
        return await self._sampler.start(self._sampler_options())

    async def resume(self) -> bool:
        """Return-to-foreground hook: restart sampling and reconnect if needed."""
        if self._closed or not self._started:
            return False
        _logger.info("Resuming tracking for driver %s", self._identity.driver_id)
        started = await self.restart_sampling()
        if not self._live.is_connected:
            await self._live.connect(self._push_url)
        return started

    async def shutdown(self) -> None:
        """Stop sampling, leave the room and disconnect. Safe to call repeatedly.

        Every step runs even if an earlier one fails.
        """
        if self._closed:
            return
        self._closed = True

        try:
            self._sampler.stop()
        except Exception:
            _logger.warning("Stopping the sampler failed", exc_info=True)
        try:
            await self._live.leave_room(self._identity.driver_id, self._identity.bus_id)
        except Exception:
            _logger.warning("Leaving the driver room failed", exc_info=True)
        try:
            await self._live.disconnect()
        except Exception:
            _logger.warning("Disconnecting the push channel failed", exc_info=True)

        if self._remove_state_listener is not None:
            self._remove_state_listener()
            self._remove_state_listener = None

        await self._cancel_background()
        _logger.info("Tracking stopped for driver %s", self._identity.driver_id)

    async def stop_tracking(self) -> StopTrackingResult:
        """Shut down locally, then ask the backend to end the session.

        Local shutdown always completes; ``server_acknowledged`` reports
        whether the backend confirmed. Repeated calls return the first
        result.
        """
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self._stop_tracking())
        return await asyncio.shield(self._stop_task)

    async def _stop_tracking(self) -> StopTrackingResult:
        await self.shutdown()
        outcome = await self._durable.end_session(self._identity)
        if outcome.delivered:
            result = StopTrackingResult(server_acknowledged=True, message=outcome.message)
        else:
            _logger.warning("Session ended locally, but server update failed: %s", outcome.error)
            result = StopTrackingResult(server_acknowledged=False, message=outcome.error)
        self._notify(SessionEvent(kind=SessionEventKind.SESSION_ENDED, result=result))
        return result

    # ------------------------------------------------------------------
    # Component callbacks
    # ------------------------------------------------------------------

    def _sampler_options(self) -> SamplerOptions:
        return SamplerOptions(
            on_sample=self._on_sample,
            on_failure=self._on_failure,
            interval=self._sample_interval,
        )

    def _on_sample(self, sample: LocationSample) -> None:
        if self._closed:
            return
        self._statistics = self._statistics.recorded(sample)
        self._notify(SessionEvent(kind=SessionEventKind.LOCATION, sample=sample))
        self._spawn(self._durable.send(sample, self._identity))
        self._spawn(self._live.push_sample(sample, self._identity))

    def _on_failure(self, error: Exception) -> None:
        if self._closed:
            return
        self._notify(SessionEvent(kind=SessionEventKind.SENSOR_FAILURE, error=str(error)))
        if self._on_sensor_failure is None:
            _logger.warning("GPS error, sampling restarts automatically: %s", error)
            return
        if self._alert_task is not None and not self._alert_task.done():
            _logger.debug("Sensor failure alert already open, not raising another")
            return
        self._alert_task = asyncio.create_task(self._run_alert(error))

    async def _run_alert(self, error: Exception) -> None:
        handler = self._on_sensor_failure
        if handler is None:
            return
        try:
            action = await handler(error)
        except Exception:
            _logger.warning("Sensor failure handler failed", exc_info=True)
            return
        finally:
            self._alert_task = None

        if self._closed:
            return
        if action is FailureAction.RETRY:
            _logger.info("Retrying location sampling")
            await self.restart_sampling()
        elif action is FailureAction.STOP:
            _logger.info("Stopping tracking after sensor failure")
            await self.stop_tracking()

    def _on_connection_change(self, change: ConnectionStateChange) -> None:
        self._notify(
            SessionEvent(
                kind=SessionEventKind.CONNECTIVITY,
                connection_state=change.state,
                reason=change.reason,
            )
        )
        if change.state is ChannelConnectionState.CONNECTED and not self._closed:
            # Room membership does not survive a reconnect.
            self._spawn(self._live.join_room(self._identity.driver_id, self._identity.bus_id))

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Background delivery task failed: %s", exc, exc_info=exc)

    async def _cancel_background(self) -> None:
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current and not task.done()]
        alert = self._alert_task
        self._alert_task = None
        if alert is not None and alert is not current and not alert.done():
            pending.append(alert)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
