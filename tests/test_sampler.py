from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from pysmartbus.exceptions import LocationPermissionError, PositionError, PositionErrorCode, SensorError
from pysmartbus.geolocation.base import ErrorCallback, FixCallback, WatchOptions
from pysmartbus.models.location import LocationSample
from pysmartbus.sampler import Sampler, SamplerOptions, SamplerState


class FakeSource:
    def __init__(self, *, permission: bool = True) -> None:
        self.permission = permission
        self.permission_gate: asyncio.Event | None = None
        self.watches: dict[int, tuple[FixCallback, ErrorCallback, WatchOptions]] = {}
        self.history: list[tuple[FixCallback, ErrorCallback, WatchOptions]] = []
        self.cleared: list[int] = []
        self.watch_error: SensorError | None = None
        self._next_handle = 0

    async def request_permission(self) -> bool:
        if self.permission_gate is not None:
            await self.permission_gate.wait()
        return self.permission

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: WatchOptions) -> int:
        if self.watch_error is not None:
            raise self.watch_error
        self._next_handle += 1
        self.watches[self._next_handle] = (on_fix, on_error, options)
        self.history.append((on_fix, on_error, options))
        return self._next_handle

    def clear_watch(self, handle: int) -> None:
        self.watches.pop(handle, None)
        self.cleared.append(handle)

    def emit(self, fix: Mapping[str, Any]) -> None:
        for on_fix, _on_error, _options in list(self.watches.values()):
            on_fix(fix)

    def fail(self, error: Exception) -> None:
        for _on_fix, on_error, _options in list(self.watches.values()):
            on_error(error)


class Recorder:
    def __init__(self) -> None:
        self.samples: list[LocationSample] = []
        self.failures: list[Exception] = []

    def options(self, interval: float = 10.0) -> SamplerOptions:
        return SamplerOptions(on_sample=self.samples.append, on_failure=self.failures.append, interval=interval)


@pytest.mark.asyncio
async def test_start_subscribes_with_derived_watch_options() -> None:
    source = FakeSource()
    sampler = Sampler(source)
    recorder = Recorder()

    assert sampler.state is SamplerState.IDLE
    assert await sampler.start(recorder.options(interval=20.0)) is True

    assert sampler.state is SamplerState.ACTIVE
    [(_, _, options)] = list(source.watches.values())
    assert options.interval == 20.0
    assert options.fastest_interval == 10.0
    assert options.distance_filter == 5.0
    assert options.high_accuracy is True
    sampler.stop()


@pytest.mark.asyncio
async def test_fixes_without_finite_coordinates_produce_no_sample() -> None:
    source = FakeSource()
    sampler = Sampler(source)
    recorder = Recorder()
    await sampler.start(recorder.options())

    source.emit({"latitude": float("nan"), "longitude": 77.6})
    source.emit({"latitude": 12.9, "longitude": float("inf")})
    source.emit({"latitude": "12.9", "longitude": "77.6"})
    source.emit({"latitude": True, "longitude": 77.6})
    source.emit({"longitude": 77.6})
    source.emit({"coords": {"latitude": None, "longitude": 77.6}})
    assert recorder.samples == []

    source.emit({"latitude": 12.9, "longitude": 77.6, "accuracy": 5})
    assert len(recorder.samples) == 1
    assert recorder.samples[0].latitude == 12.9
    assert recorder.failures == []
    sampler.stop()


@pytest.mark.asyncio
async def test_permission_denied_reports_failure_and_stays_idle() -> None:
    source = FakeSource(permission=False)
    sampler = Sampler(source)
    recorder = Recorder()

    assert await sampler.start(recorder.options()) is False

    assert sampler.state is SamplerState.IDLE
    assert source.watches == {}
    assert len(recorder.failures) == 1
    assert isinstance(recorder.failures[0], LocationPermissionError)


@pytest.mark.asyncio
async def test_sensor_failure_restarts_exactly_once_after_delay() -> None:
    source = FakeSource()
    sampler = Sampler(source, restart_delay=0.05)
    recorder = Recorder()
    states_seen_in_callback: list[SamplerState] = []

    def on_failure(error: Exception) -> None:
        states_seen_in_callback.append(sampler.state)
        recorder.failures.append(error)

    await sampler.start(SamplerOptions(on_sample=recorder.samples.append, on_failure=on_failure))
    stale_on_fix, stale_on_error, _ = source.history[0]

    source.fail(PositionError("no fix", code=PositionErrorCode.TIMEOUT))

    assert sampler.state is SamplerState.RESTARTING
    assert states_seen_in_callback == [SamplerState.RESTARTING]
    assert len(recorder.failures) == 1
    assert source.watches == {}

    # Late callbacks from the cleared subscription are ignored.
    stale_on_fix({"latitude": 1.0, "longitude": 2.0})
    stale_on_error(PositionError("again"))
    await asyncio.sleep(0.02)
    assert recorder.samples == []
    assert len(recorder.failures) == 1
    assert len(source.history) == 1

    await asyncio.sleep(0.08)
    assert sampler.state is SamplerState.ACTIVE
    assert sampler.restart_count == 1
    assert len(source.history) == 2
    assert len(source.watches) == 1

    await asyncio.sleep(0.1)
    assert len(source.history) == 2
    sampler.stop()


@pytest.mark.asyncio
async def test_stop_during_restart_delay_prevents_restart() -> None:
    source = FakeSource()
    sampler = Sampler(source, restart_delay=0.03)
    recorder = Recorder()
    await sampler.start(recorder.options())

    source.fail(PositionError("gps off"))
    sampler.stop()
    await asyncio.sleep(0.08)

    assert sampler.state is SamplerState.IDLE
    assert sampler.restart_count == 0
    assert len(source.history) == 1
    assert source.watches == {}


@pytest.mark.asyncio
async def test_start_while_restarting_cancels_pending_restart() -> None:
    source = FakeSource()
    sampler = Sampler(source, restart_delay=0.03)
    recorder = Recorder()
    await sampler.start(recorder.options())

    source.fail(PositionError("gps off"))
    assert await sampler.start(recorder.options()) is True
    await asyncio.sleep(0.08)

    assert sampler.restart_count == 0
    assert len(source.history) == 2
    assert len(source.watches) == 1
    sampler.stop()


@pytest.mark.asyncio
async def test_start_twice_never_duplicates_subscription() -> None:
    source = FakeSource()
    sampler = Sampler(source)
    recorder = Recorder()

    await sampler.start(recorder.options())
    await sampler.start(recorder.options())

    assert len(source.watches) == 1
    assert source.cleared == [1]

    source.emit({"latitude": 1.0, "longitude": 2.0})
    assert len(recorder.samples) == 1
    sampler.stop()


def test_stop_is_safe_when_never_started() -> None:
    sampler = Sampler(FakeSource())
    sampler.stop()
    sampler.stop()
    assert sampler.state is SamplerState.IDLE


@pytest.mark.asyncio
async def test_stop_during_permission_check_wins() -> None:
    source = FakeSource()
    source.permission_gate = asyncio.Event()
    sampler = Sampler(source)
    recorder = Recorder()

    start_task = asyncio.create_task(sampler.start(recorder.options()))
    await asyncio.sleep(0)
    sampler.stop()
    source.permission_gate.set()

    assert await start_task is False
    assert source.watches == {}
    assert sampler.state is SamplerState.IDLE


@pytest.mark.asyncio
async def test_watch_position_error_schedules_restart() -> None:
    source = FakeSource()
    source.watch_error = PositionError("provider disabled")
    sampler = Sampler(source, restart_delay=0.02)
    recorder = Recorder()

    assert await sampler.start(recorder.options()) is False
    assert sampler.state is SamplerState.RESTARTING
    assert len(recorder.failures) == 1

    source.watch_error = None
    await asyncio.sleep(0.06)
    assert sampler.state is SamplerState.ACTIVE
    assert len(source.watches) == 1
    sampler.stop()


@pytest.mark.asyncio
async def test_callback_exceptions_do_not_break_sampling(caplog: pytest.LogCaptureFixture) -> None:
    source = FakeSource()
    sampler = Sampler(source)

    def on_sample(_sample: LocationSample) -> None:
        raise RuntimeError("display crashed")

    await sampler.start(SamplerOptions(on_sample=on_sample, on_failure=lambda _e: None))
    with caplog.at_level("WARNING", logger="pysmartbus.sampler"):
        source.emit({"latitude": 1.0, "longitude": 2.0})

    assert sampler.state is SamplerState.ACTIVE
    assert "on_sample callback failed" in caplog.text
    sampler.stop()
