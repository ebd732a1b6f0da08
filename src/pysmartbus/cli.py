"""Command-line entry point: roster queries and a supervised tracking run."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from pysmartbus.client import SmartBusClient
from pysmartbus.config import SmartBusConfig
from pysmartbus.exceptions import SmartBusConfigError, SmartBusError
from pysmartbus.geolocation import GeolocationSource, ReplaySource, TermuxLocationSource
from pysmartbus.state.events import SessionEvent, SessionEventKind
from pysmartbus.state.statistics import format_accuracy, format_coordinate, format_speed_kmh
from pysmartbus.supervisor import FailureAction, SensorFailureHandler

_LOG = logging.getLogger("pysmartbus.cli")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pysmartbus",
        description="SmartBus driver agent: stream GPS fixes to the SmartBus backend.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Backend base URL (default: SMARTBUS_BASE_URL or the production backend).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("drivers", help="List drivers.")
    commands.add_parser("buses", help="List available buses.")

    track = commands.add_parser("track", help="Run a tracking session until interrupted.")
    track.add_argument("--driver", required=True, help="Driver id.")
    track.add_argument("--bus", required=True, help="Bus id.")
    track.add_argument(
        "--source",
        choices=("termux", "replay"),
        default="termux",
        help="Location source (default: termux).",
    )
    track.add_argument("--replay-file", type=Path, default=None, help="JSON-lines fixes for --source replay.")
    track.add_argument(
        "--replay-speedup",
        type=float,
        default=1.0,
        help="Replay time compression factor.",
    )
    track.add_argument("--interval", type=float, default=None, help="Seconds between fixes.")
    track.add_argument(
        "--on-sensor-failure",
        choices=("retry", "stop", "wait"),
        default="wait",
        help="retry immediately, stop tracking, or wait for the automatic restart (default).",
    )

    stop = commands.add_parser("stop", help="End a server-side tracking session.")
    stop.add_argument("--driver", required=True, help="Driver id.")

    args = parser.parse_args(argv)
    if args.command == "track" and args.source == "replay" and args.replay_file is None:
        parser.error("--source replay requires --replay-file")
    return args


def _build_source(args: argparse.Namespace) -> GeolocationSource:
    if args.source == "replay":
        return ReplaySource(args.replay_file, speedup=args.replay_speedup)
    return TermuxLocationSource()


def _failure_handler(policy: str) -> SensorFailureHandler | None:
    if policy == "wait":
        return None
    action = FailureAction(policy)

    async def _handler(error: Exception) -> FailureAction:
        print(f"[track] GPS error: {error} -> {action.value}", file=sys.stderr)
        return action

    return _handler


def _print_event(event: SessionEvent) -> None:
    if event.kind is SessionEventKind.LOCATION and event.sample is not None:
        sample = event.sample
        print(
            f"[track] {format_coordinate(sample.latitude)}, {format_coordinate(sample.longitude)}"
            f" {format_accuracy(sample.accuracy)} {format_speed_kmh(sample.speed_mps)}"
        )
    elif event.kind is SessionEventKind.CONNECTIVITY:
        suffix = f" ({event.reason})" if event.reason else ""
        print(f"[track] live channel {event.connection_state}{suffix}")
    elif event.kind is SessionEventKind.SENSOR_FAILURE:
        print(f"[track] sensor failure: {event.error}", file=sys.stderr)


async def _list_drivers(client: SmartBusClient) -> int:
    drivers = await client.get_drivers()
    if not drivers:
        print("No drivers available")
    for driver in drivers:
        print(f"{driver.driver_id}\t{driver.display_name}")
    return 0


async def _list_buses(client: SmartBusClient) -> int:
    buses = await client.get_available_buses()
    if not buses:
        print("No buses available")
    for bus in buses:
        capacity = bus.capacity if bus.capacity is not None else "-"
        print(f"{bus.bus_id}\t{bus.display_name}\tcapacity={capacity}")
    return 0


async def _stop(client: SmartBusClient, driver_id: str) -> int:
    ack = await client.stop_tracking(driver_id)
    print(ack.message or "Tracking stopped")
    return 0


async def _track(client: SmartBusClient, args: argparse.Namespace) -> int:
    session, supervisor = await client.begin_tracking(
        args.driver,
        args.bus,
        _build_source(args),
        on_sensor_failure=_failure_handler(args.on_sensor_failure),
    )
    if not supervisor.is_tracking:
        print("[track] Location is unavailable; ending the session.", file=sys.stderr)
        result = await supervisor.stop_tracking()
        if not result.server_acknowledged:
            print("[track] Warning: session ended locally, but server update failed.", file=sys.stderr)
        return 1

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_requested.set)

    print(f"[track] session {session.session_id} started; Ctrl+C to stop")
    supervisor.add_listener(_print_event)
    supervisor.add_listener(lambda event: stop_requested.set() if event.kind is SessionEventKind.SESSION_ENDED else None)

    try:
        await stop_requested.wait()
    finally:
        result = await supervisor.stop_tracking()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)

    summary = supervisor.statistics.summary()
    print(f"[track] elapsed {summary['elapsed']}, {summary['samples']} samples")
    if not result.server_acknowledged:
        print("[track] Warning: session ended locally, but server update failed.", file=sys.stderr)
    return 0


async def _run(args: argparse.Namespace, config: SmartBusConfig) -> int:
    async with SmartBusClient(config) as client:
        if args.command == "drivers":
            return await _list_drivers(client)
        if args.command == "buses":
            return await _list_buses(client)
        if args.command == "stop":
            return await _stop(client, args.driver)
        return await _track(client, args)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if getattr(args, "interval", None) is not None:
        overrides["sample_interval"] = args.interval
    try:
        config = SmartBusConfig.from_env(**overrides)
    except SmartBusConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run(args, config))
    except SmartBusError as exc:
        _LOG.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
