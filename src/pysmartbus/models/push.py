"""Live push channel payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from pysmartbus.models.location import LocationSample
from pysmartbus.models.tracking import TrackingIdentity


def iso_timestamp(value: datetime) -> str:
    """Format *value* as UTC ISO-8601 with millisecond precision and ``Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RoomMembership(BaseModel):
    """Body of ``join-driver-room`` / ``leave-driver-room``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    driver_id: str | int
    bus_id: str | int

    @classmethod
    def for_identity(cls, identity: TrackingIdentity) -> RoomMembership:
        return cls(driver_id=identity.driver_id, bus_id=identity.bus_id)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class LocationPush(BaseModel):
    """Body of ``driver-location-update``."""

    model_config = ConfigDict(frozen=True)

    bus_id: str | int
    driver_id: str | int
    latitude: float
    longitude: float
    speed: float
    bearing: float
    timestamp: datetime
    accuracy: float | None = None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return iso_timestamp(value)

    @classmethod
    def from_sample(
        cls,
        sample: LocationSample,
        identity: TrackingIdentity,
        *,
        accuracy: float | None = None,
        timestamp: datetime | None = None,
    ) -> LocationPush:
        return cls(
            bus_id=identity.bus_id,
            driver_id=identity.driver_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            speed=sample.speed_mps or 0,
            bearing=sample.bearing_deg or 0,
            timestamp=timestamp if timestamp is not None else datetime.now(UTC),
            accuracy=accuracy if accuracy is not None else sample.accuracy,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()
