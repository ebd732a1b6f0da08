"""Location source that replays recorded fixes from a JSON-lines file."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from pysmartbus.exceptions import PositionError
from pysmartbus.geolocation.base import ErrorCallback, FixCallback, PollingSource, WatchHandle, WatchOptions

_logger = logging.getLogger(__name__)


class ReplaySource(PollingSource):
    """Replays one fix per line of *path*, one per watch interval.

    Each line is a JSON object in any shape the fix normalizer accepts.
    ``speedup`` divides the waiting time between fixes. Every new watch
    starts from the beginning of the file.
    """

    def __init__(self, path: str | Path, *, speedup: float = 1.0) -> None:
        super().__init__()
        if speedup <= 0:
            raise ValueError(f"speedup must be positive, got {speedup}")
        self._path = Path(path)
        self._speedup = speedup
        self._lines: Iterator[str] | None = None
        self._done = False

    async def request_permission(self) -> bool:
        return self._path.is_file()

    def _load(self) -> Iterator[str]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PositionError(f"Cannot read replay file {self._path}: {exc}") from exc
        return iter(text.splitlines())

    async def _read_fix(self, options: WatchOptions) -> Mapping[str, Any] | None:
        if self._lines is None:
            self._lines = self._load()
            self._done = False
        for line in self._lines:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                _logger.debug("Skipping malformed replay line: %s", line[:64])
                continue
            if isinstance(data, dict):
                return data
        self._done = True
        self._lines = None
        return None

    def _exhausted(self) -> bool:
        return self._done

    async def _poll(self, handle: WatchHandle, on_fix: FixCallback, on_error: ErrorCallback, options: WatchOptions) -> None:
        self._lines = None
        scaled = WatchOptions(
            interval=options.interval / self._speedup,
            fastest_interval=options.fastest_interval / self._speedup,
            distance_filter=options.distance_filter,
            high_accuracy=options.high_accuracy,
        )
        await super()._poll(handle, on_fix, on_error, scaled)

