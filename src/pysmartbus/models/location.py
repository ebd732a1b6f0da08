"""Location sample model."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocationSample(BaseModel):
    """A normalized, validated fix ready for delivery.

    Parameters
    ----------
    latitude : float
        Latitude in degrees. Always finite.
    longitude : float
        Longitude in degrees. Always finite.
    accuracy : float or None
        Horizontal accuracy radius in metres.
    speed_mps : float or None
        Ground speed in metres per second.
    bearing_deg : float or None
        Heading in degrees clockwise from north.
    captured_at_ms : int
        Capture time in epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float
    longitude: float
    accuracy: float | None = None
    speed_mps: float | None = None
    bearing_deg: float | None = None
    captured_at_ms: int = Field(ge=0)

    @field_validator("latitude", "longitude")
    @classmethod
    def _require_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("coordinates must be finite numbers")
        return value

    @property
    def captured_at(self) -> datetime:
        """Capture time as a UTC datetime."""
        return datetime.fromtimestamp(self.captured_at_ms / 1000, tz=UTC)

    @property
    def speed_kmh(self) -> float | None:
        if self.speed_mps is None:
            return None
        return self.speed_mps * 3.6
