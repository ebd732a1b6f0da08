"""Tracking identity and acknowledgement models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from pysmartbus.models._base import SmartBusBaseModel


class TrackingIdentity(BaseModel):
    """Driver/bus pair a tracking session is bound to.

    Both identifiers are opaque routing keys and are forwarded verbatim
    (an integer id stays an integer on the wire).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    driver_id: str | int
    bus_id: str | int

    @field_validator("driver_id", "bus_id")
    @classmethod
    def _non_empty(cls, value: str | int) -> str | int:
        if isinstance(value, str) and not value.strip():
            raise ValueError("identifiers must be non-empty")
        return value

    @property
    def room(self) -> str:
        """Server-side room key used by the push channel."""
        return f"{self.driver_id}-{self.bus_id}"


class ApiAck(SmartBusBaseModel):
    """Generic ``{success, message?}`` acknowledgement body."""

    success: bool
    message: str | None = None


class DeliveryOutcome(BaseModel):
    """Result of one durable-channel attempt."""

    model_config = ConfigDict(frozen=True)

    delivered: bool
    message: str | None = None
    error: str | None = None


class StopTrackingResult(BaseModel):
    """Outcome of ending a tracking session.

    ``ended`` is always ``True``: local sampling has stopped whether or not
    the backend acknowledged the request.
    """

    model_config = ConfigDict(frozen=True)

    ended: bool = True
    server_acknowledged: bool
    message: str | None = None
