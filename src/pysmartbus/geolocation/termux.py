"""Location source backed by the Termux:API ``termux-location`` command."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shutil
import time
from collections.abc import Mapping
from typing import Any

from pysmartbus.exceptions import PositionError, PositionErrorCode
from pysmartbus.geolocation.base import PollingSource, WatchOptions

_logger = logging.getLogger(__name__)


class TermuxLocationSource(PollingSource):
    """Polls ``termux-location -p <provider>`` once per interval.

    ``termux-location`` prints one JSON object per invocation with
    ``latitude``, ``longitude``, ``accuracy``, ``speed`` and ``bearing``.
    It carries no epoch timestamp, so the read time is stamped on the fix.
    """

    def __init__(
        self,
        *,
        provider: str = "gps",
        command: str = "termux-location",
        read_timeout: float = 15.0,
    ) -> None:
        super().__init__()
        self._provider = provider
        self._command = command
        self._read_timeout = read_timeout

    async def request_permission(self) -> bool:
        available = shutil.which(self._command) is not None
        if not available:
            _logger.warning("%s not found on PATH; location is unavailable", self._command)
        return available

    async def _read_fix(self, options: WatchOptions) -> Mapping[str, Any] | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self._command,
                "-p",
                self._provider,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PositionError(f"Cannot run {self._command}: {exc}", code=PositionErrorCode.PERMISSION_DENIED) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), self._read_timeout)
        except TimeoutError as exc:
            await _kill(proc)
            raise PositionError(
                f"{self._command} gave no fix within {self._read_timeout}s",
                code=PositionErrorCode.TIMEOUT,
            ) from exc
        except asyncio.CancelledError:
            # clear_watch() cancelled the read.
            await _kill(proc)
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise PositionError(f"{self._command} exited with {proc.returncode}: {detail[:200]}")

        text = stdout.decode("utf-8", errors="replace").strip()
        if not text:
            raise PositionError(f"{self._command} returned no output")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PositionError(f"{self._command} output is not JSON: {text[:64]}") from exc
        if not isinstance(data, dict):
            raise PositionError(f"{self._command} output is not a JSON object")

        data.setdefault("timestamp", int(time.time() * 1000))
        _logger.debug("termux fix provider=%s %s", self._provider, data)
        return data


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await proc.wait()
