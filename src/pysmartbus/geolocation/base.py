"""Geolocation source contract and shared polling machinery."""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from pysmartbus._constants import DEFAULT_SAMPLE_INTERVAL_S, DISTANCE_FILTER_M, fastest_interval
from pysmartbus.exceptions import LocationPermissionError, PositionError, PositionErrorCode
from pysmartbus.ingestion.fixes import build_sample_from_fix, fix_coordinates
from pysmartbus.models.location import LocationSample

_logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0

WatchHandle = int
FixCallback = Callable[[Mapping[str, Any]], None]
ErrorCallback = Callable[[Exception], None]


@dataclass(frozen=True)
class WatchOptions:
    """Cadence and filtering a source applies to one watch."""

    interval: float
    fastest_interval: float
    distance_filter: float = DISTANCE_FILTER_M
    high_accuracy: bool = True

    @classmethod
    def for_interval(cls, interval: float, *, distance_filter: float = DISTANCE_FILTER_M) -> WatchOptions:
        return cls(
            interval=interval,
            fastest_interval=fastest_interval(interval),
            distance_filter=distance_filter,
        )


class GeolocationSource(Protocol):
    """Device capability producing raw fixes.

    ``watch_position`` must not block: fixes and failures arrive later
    through the callbacks, on the running event loop.
    """

    async def request_permission(self) -> bool:
        ...

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: WatchOptions) -> WatchHandle:
        ...

    def clear_watch(self, handle: WatchHandle) -> None:
        ...


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


class DisplacementFilter:
    """Passes the first fix and then only fixes that moved far enough."""

    def __init__(self, distance_filter: float) -> None:
        self._distance_filter = distance_filter
        self._last: tuple[float, float] | None = None

    def accept(self, fix: Mapping[str, Any]) -> bool:
        coordinates = fix_coordinates(fix)
        if coordinates is None:
            # Unusable fixes go through; the sampler discards them.
            return True
        if self._last is not None and haversine_distance(*self._last, *coordinates) < self._distance_filter:
            return False
        self._last = coordinates
        return True


class PollingSource:
    """Base for sources that produce one fix per poll.

    Each watch is an asyncio task that calls :meth:`_read_fix` every
    ``options.interval`` seconds. A failed read ends the watch and is reported
    through ``on_error``; errors other than :class:`PositionError` are
    reported as ``POSITION_UNAVAILABLE``.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._watches: dict[WatchHandle, asyncio.Task[None]] = {}

    async def request_permission(self) -> bool:
        return True

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: WatchOptions) -> WatchHandle:
        handle = next(self._ids)
        self._watches[handle] = asyncio.create_task(self._poll(handle, on_fix, on_error, options))
        return handle

    def clear_watch(self, handle: WatchHandle) -> None:
        task = self._watches.pop(handle, None)
        if task is not None and not task.done():
            task.cancel()

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    async def get_current_position(self, options: WatchOptions | None = None) -> LocationSample:
        """Read a single fix outside any watch.

        Raises
        ------
        LocationPermissionError
            The source is not available.
        PositionError
            The read failed or produced no usable coordinates.
        """
        if not await self.request_permission():
            raise LocationPermissionError("Location permission not granted")
        try:
            fix = await self._read_fix(options or WatchOptions.for_interval(DEFAULT_SAMPLE_INTERVAL_S))
        except PositionError:
            raise
        except Exception as exc:
            raise PositionError(f"Location read failed: {exc!r}") from exc
        sample = build_sample_from_fix(fix) if fix is not None else None
        if sample is None:
            raise PositionError("No usable location fix")
        return sample

    async def is_location_enabled(self) -> bool:
        """Read the source once; a timeout counts as enabled."""
        try:
            await self.get_current_position()
        except LocationPermissionError:
            return False
        except PositionError as exc:
            return exc.code is PositionErrorCode.TIMEOUT
        return True

    async def _read_fix(self, options: WatchOptions) -> Mapping[str, Any] | None:
        """Return the next fix, ``None`` when there is nothing new, or raise."""
        raise NotImplementedError

    def _exhausted(self) -> bool:
        return False

    def _end_watch(self, handle: WatchHandle, on_error: ErrorCallback, error: PositionError) -> None:
        if self._watches.pop(handle, None) is not None:
            on_error(error)

    async def _poll(self, handle: WatchHandle, on_fix: FixCallback, on_error: ErrorCallback, options: WatchOptions) -> None:
        displacement = DisplacementFilter(options.distance_filter)
        while handle in self._watches:
            try:
                fix = await self._read_fix(options)
            except PositionError as exc:
                self._end_watch(handle, on_error, exc)
                return
            except Exception as exc:
                _logger.debug("Unexpected error reading a fix", exc_info=True)
                self._end_watch(handle, on_error, PositionError(f"Location read failed: {exc!r}"))
                return
            if handle not in self._watches:
                return
            if fix is not None and displacement.accept(fix):
                on_fix(fix)
            elif fix is not None:
                _logger.debug("Fix within %.1fm of the last one, not reported", options.distance_filter)
            if self._exhausted():
                _logger.info("Source exhausted, ending watch %d", handle)
                self._watches.pop(handle, None)
                return
            await asyncio.sleep(options.interval)
