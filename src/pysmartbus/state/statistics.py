"""Per-session statistics and their display formatting."""

from __future__ import annotations

import math
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pysmartbus.models.location import LocationSample

NOT_AVAILABLE = "N/A"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class SessionStatistics(BaseModel):
    """Immutable snapshot of one tracking session's progress.

    Parameters
    ----------
    started_at : datetime
        When the supervisor started (UTC).
    sample_count : int
        Samples accepted from the sampler.
    last_update_at : datetime or None
        Capture time of the most recent sample.
    last_sample : LocationSample or None
        The most recent sample.
    """

    model_config = ConfigDict(frozen=True)

    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    sample_count: int = Field(default=0, ge=0)
    last_update_at: datetime | None = None
    last_sample: LocationSample | None = None

    @field_validator("started_at", "last_update_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def recorded(self, sample: LocationSample) -> SessionStatistics:
        """Return a copy that accounts for *sample*."""
        return self.model_copy(
            update={
                "sample_count": self.sample_count + 1,
                "last_update_at": sample.captured_at,
                "last_sample": sample,
            }
        )

    def elapsed(self, now: datetime | None = None) -> float:
        """Seconds since the session started, never negative."""
        now = now or datetime.now(UTC)
        return max(0.0, (now - self.started_at).total_seconds())

    def summary(self, now: datetime | None = None) -> dict[str, str]:
        """Display strings for the current state of the session."""
        sample = self.last_sample
        return {
            "elapsed": format_elapsed(self.elapsed(now)),
            "samples": str(self.sample_count),
            "latitude": format_coordinate(sample.latitude if sample else None),
            "longitude": format_coordinate(sample.longitude if sample else None),
            "accuracy": format_accuracy(sample.accuracy if sample else None),
            "speed": format_speed_kmh(sample.speed_mps if sample else None),
            "last_update": self.last_update_at.strftime("%H:%M:%S") if self.last_update_at else NOT_AVAILABLE,
        }


def _usable(value: float | None) -> bool:
    return value is not None and not isinstance(value, bool) and math.isfinite(value)


def format_elapsed(seconds: float) -> str:
    """``HH:MM:SS`` for *seconds*; hours are not wrapped at 24."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_coordinate(value: float | None) -> str:
    if not _usable(value):
        return NOT_AVAILABLE
    return f"{value:.6f}"


def format_accuracy(value: float | None) -> str:
    if not _usable(value):
        return NOT_AVAILABLE
    return f"±{_round_half_up(value)}m"


def format_speed_kmh(speed_mps: float | None) -> str:
    """Speed given in metres per second, shown as whole km/h."""
    if not _usable(speed_mps):
        return NOT_AVAILABLE
    return f"{_round_half_up(speed_mps * 3.6)} km/h"
