"""Location sampler.

Owns the subscription to a :class:`GeolocationSource`, turns raw fixes into
:class:`LocationSample` objects and restarts itself after sensor failures.

State machine::

    IDLE --start()--> ACTIVE --sensor failure--> RESTARTING
      ^                 |                           |
      +----stop()-------+-------------stop()--------+
                        ^                           |
                        +----restart_delay elapsed--+

Every subscription is tagged with a generation number. ``stop()`` and
``start()`` bump the generation, so callbacks from a cleared subscription
and a restart scheduled before the bump are ignored.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pysmartbus._constants import DEFAULT_SAMPLE_INTERVAL_S, DISTANCE_FILTER_M, SENSOR_RESTART_DELAY_S
from pysmartbus.exceptions import LocationPermissionError, SensorError
from pysmartbus.geolocation.base import GeolocationSource, WatchHandle, WatchOptions
from pysmartbus.ingestion.fixes import build_sample_from_fix
from pysmartbus.models.location import LocationSample

_logger = logging.getLogger(__name__)


class SamplerState(enum.StrEnum):
    IDLE = "idle"
    ACTIVE = "active"
    RESTARTING = "restarting"


@dataclass(frozen=True)
class SamplerOptions:
    """Callbacks and cadence for one sampling run."""

    on_sample: Callable[[LocationSample], None]
    on_failure: Callable[[Exception], None]
    interval: float = DEFAULT_SAMPLE_INTERVAL_S


class Sampler:
    """Continuous location sampling with automatic restart."""

    def __init__(
        self,
        source: GeolocationSource,
        *,
        restart_delay: float = SENSOR_RESTART_DELAY_S,
        distance_filter: float = DISTANCE_FILTER_M,
    ) -> None:
        self._source = source
        self._restart_delay = restart_delay
        self._distance_filter = distance_filter
        self._state = SamplerState.IDLE
        self._options: SamplerOptions | None = None
        self._handle: WatchHandle | None = None
        self._restart_task: asyncio.Task[None] | None = None
        self._generation = 0
        self._restart_count = 0

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def restart_count(self) -> int:
        """Automatic restarts performed since construction."""
        return self._restart_count

    async def start(self, options: SamplerOptions) -> bool:
        """Begin sampling; return ``False`` if location is unavailable.

        Any existing subscription or pending restart is cancelled first.
        """
        self._cancel_restart()
        self._clear_subscription()
        self._options = options
        self._generation += 1
        generation = self._generation

        granted = await self._source.request_permission()
        if generation != self._generation:
            # stop() or another start() won while we were waiting.
            return False
        if not granted:
            self._state = SamplerState.IDLE
            _logger.warning("Location permission not granted")
            self._notify_failure(options, LocationPermissionError("Location permission not granted"))
            return False

        watch_options = WatchOptions.for_interval(options.interval, distance_filter=self._distance_filter)
        try:
            self._handle = self._source.watch_position(
                lambda fix: self._handle_fix(generation, fix),
                lambda error: self._handle_error(generation, error),
                watch_options,
            )
        except SensorError as exc:
            self._state = SamplerState.ACTIVE
            self._handle_error(generation, exc)
            return False

        self._state = SamplerState.ACTIVE
        _logger.info("Started location sampling with interval %.1fs", options.interval)
        return True

    def stop(self) -> None:
        """Cancel sampling and any pending restart. Safe to call at any time."""
        self._generation += 1
        self._cancel_restart()
        was_running = self._clear_subscription()
        self._options = None
        if self._state is not SamplerState.IDLE or was_running:
            _logger.info("Stopped location sampling")
        self._state = SamplerState.IDLE

    # ------------------------------------------------------------------
    # Source callbacks
    # ------------------------------------------------------------------

    def _handle_fix(self, generation: int, fix: Mapping[str, Any]) -> None:
        if generation != self._generation or self._state is not SamplerState.ACTIVE:
            return
        options = self._options
        if options is None:
            return
        sample = build_sample_from_fix(fix)
        if sample is None:
            _logger.debug("Discarding fix without finite coordinates: %s", fix)
            return
        _logger.debug("Location update: %s", sample)
        try:
            options.on_sample(sample)
        except Exception:
            _logger.warning("on_sample callback failed", exc_info=True)

    def _handle_error(self, generation: int, error: Exception) -> None:
        if generation != self._generation or self._state is not SamplerState.ACTIVE:
            return
        options = self._options
        _logger.warning("Location sensor failure: %s", error)

        self._clear_subscription()
        self._generation += 1
        self._state = SamplerState.RESTARTING
        if options is not None:
            self._notify_failure(options, error)

        # on_failure may have stopped or restarted us.
        if self._state is SamplerState.RESTARTING and self._options is not None and self._restart_task is None:
            self._restart_task = asyncio.create_task(self._restart_later(self._generation))

    async def _restart_later(self, generation: int) -> None:
        await asyncio.sleep(self._restart_delay)
        # Detach before start() so it does not cancel this very task.
        self._restart_task = None
        if generation != self._generation or self._state is not SamplerState.RESTARTING:
            return
        options = self._options
        if options is None:
            return
        self._restart_count += 1
        _logger.info("Attempting to restart location sampling (restart #%d)", self._restart_count)
        await self.start(options)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _notify_failure(options: SamplerOptions, error: Exception) -> None:
        try:
            options.on_failure(error)
        except Exception:
            _logger.warning("on_failure callback failed", exc_info=True)

    def _clear_subscription(self) -> bool:
        handle = self._handle
        self._handle = None
        if handle is None:
            return False
        with contextlib.suppress(SensorError):
            self._source.clear_watch(handle)
        return True

    def _cancel_restart(self) -> None:
        task = self._restart_task
        self._restart_task = None
        if task is not None and not task.done():
            task.cancel()
