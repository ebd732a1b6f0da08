"""Raw fix → :class:`LocationSample` normalization.

Sources hand over whatever their sensor produced: termux JSON, a mobile
``{coords, timestamp}`` position, or a replayed dict. This module is the
only place that interprets those shapes.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from pysmartbus.ingestion.normalize import finite_number, non_negative_float, normalize_epoch_ms, safe_float
from pysmartbus.models.location import LocationSample

_LATITUDE_KEYS = ("latitude", "lat")
_LONGITUDE_KEYS = ("longitude", "lon", "lng")
_BEARING_KEYS = ("bearing", "heading", "course")
_TIMESTAMP_KEYS = ("timestamp", "time")


def _first_present(data: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def flatten_fix(fix: Mapping[str, Any]) -> dict[str, Any]:
    """Merge a nested ``coords`` mapping into the top level."""
    merged = dict(fix)
    coords = fix.get("coords")
    if isinstance(coords, Mapping):
        merged.pop("coords")
        merged.update(coords)
    return merged


def fix_coordinates(fix: Mapping[str, Any]) -> tuple[float, float] | None:
    """Return ``(lat, lon)`` when both are finite numbers, else ``None``."""
    data = flatten_fix(fix)
    latitude = finite_number(_first_present(data, _LATITUDE_KEYS))
    longitude = finite_number(_first_present(data, _LONGITUDE_KEYS))
    if latitude is None or longitude is None:
        return None
    return latitude, longitude


def _bearing(value: Any) -> float | None:
    parsed = safe_float(value)
    if parsed is None or parsed < 0:
        return None
    return parsed % 360.0


def build_sample_from_fix(fix: Any, *, now_ms: int | None = None) -> LocationSample | None:
    """Normalize one raw fix; return ``None`` when it has no usable position."""
    if not isinstance(fix, Mapping):
        return None
    coordinates = fix_coordinates(fix)
    if coordinates is None:
        return None

    data = flatten_fix(fix)
    captured_at_ms = normalize_epoch_ms(_first_present(data, _TIMESTAMP_KEYS))
    if captured_at_ms is None:
        captured_at_ms = now_ms if now_ms is not None else int(time.time() * 1000)

    latitude, longitude = coordinates
    return LocationSample(
        latitude=latitude,
        longitude=longitude,
        accuracy=non_negative_float(data.get("accuracy")),
        speed_mps=non_negative_float(data.get("speed")),
        bearing_deg=_bearing(_first_present(data, _BEARING_KEYS)),
        captured_at_ms=captured_at_ms,
    )
