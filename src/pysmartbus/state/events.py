"""Session events delivered to supervisor listeners."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pysmartbus.channels.live import ChannelConnectionState
from pysmartbus.models.location import LocationSample
from pysmartbus.models.tracking import StopTrackingResult


class SessionEventKind(StrEnum):
    LOCATION = "location"
    CONNECTIVITY = "connectivity"
    SENSOR_FAILURE = "sensor_failure"
    SESSION_ENDED = "session_ended"


class SessionEvent(BaseModel):
    """One observable change in a tracking session.

    Only the fields relevant to ``kind`` are set: ``sample`` for
    ``location``, ``connection_state``/``reason`` for ``connectivity``,
    ``error`` for ``sensor_failure`` and ``result`` for ``session_ended``.
    """

    model_config = ConfigDict(frozen=True)

    kind: SessionEventKind
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    sample: LocationSample | None = None
    connection_state: ChannelConnectionState | None = None
    reason: str | None = None
    error: str | None = None
    result: StopTrackingResult | None = None
