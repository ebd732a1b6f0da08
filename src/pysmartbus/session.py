"""Server-side tracking session record."""

from __future__ import annotations

import time
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from pysmartbus.models._base import SmartBusBaseModel


class TrackingSession(SmartBusBaseModel):
    """Session object returned by ``start-tracking``.

    The backend's session payload is treated as opaque: the identifiers
    below are picked out when present and the full dict is kept in ``raw``.

    Parameters
    ----------
    session_id : str or int or None
        Backend session identifier.
    driver_id, bus_id : str or int or None
        Identity echoed back by the backend.
    started_at : str or None
        Server start timestamp, as sent.
    received_at : float
        Monotonic timestamp (``time.monotonic()``) when the session was
        received.  Defaults to *now*.
    """

    session_id: str | int | None = Field(default=None, validation_alias=AliasChoices("session_id", "sessionId", "id"))
    driver_id: str | int | None = Field(default=None, validation_alias=AliasChoices("driver_id", "driverId"))
    bus_id: str | int | None = Field(default=None, validation_alias=AliasChoices("bus_id", "busId"))
    started_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("started_at", "start_time", "startTime", "startedAt"),
    )
    received_at: float = Field(default_factory=time.monotonic)

    @model_validator(mode="before")
    @classmethod
    def _coerce_payload(cls, values: Any) -> Any:
        # Some deployments answer with a bare id instead of an object.
        if isinstance(values, (str, int)) and not isinstance(values, bool):
            return {"session_id": values, "raw": {"session": values}}
        if values is None:
            return {}
        return values

    @property
    def age(self) -> float:
        """Seconds since the session was received."""
        return time.monotonic() - self.received_at
