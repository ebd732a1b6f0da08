"""Normalization helpers.

Centralizes numeric parsing and placeholder handling.
"""

from __future__ import annotations

import math
from typing import Any

# Epoch values below this are seconds, above are milliseconds.
_MS_THRESHOLD = 100_000_000_000
# 2001-09-09 in epoch milliseconds; anything older is a device-relative clock.
_MIN_EPOCH_MS = 1_000_000_000_000


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def finite_number(value: Any) -> float | None:
    """Return *value* as a float only if it already is a finite real number.

    Strings, booleans and ``None`` are rejected: a coordinate that arrives
    as text is as unusable as a missing one.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    result = float(value)
    return result if math.isfinite(result) else None


def non_negative_float(value: Any) -> float | None:
    """Parse an optional measurement where negative values mean "unknown"."""
    parsed = safe_float(value)
    if parsed is None or parsed < 0:
        return None
    return parsed


def normalize_epoch_ms(value: Any) -> int | None:
    """Normalize a fix timestamp to epoch milliseconds.

    - Empty/missing/non-numeric -> None
    - Seconds (< 1e11) -> milliseconds
    - Values that still predate 2001 (uptime clocks) -> None
    """
    parsed = safe_float(value)
    if parsed is None or parsed <= 0:
        return None
    if parsed < _MS_THRESHOLD:
        parsed *= 1000.0
    if parsed < _MIN_EPOCH_MS:
        return None
    return int(parsed)
