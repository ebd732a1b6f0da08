"""Data models for pysmartbus."""

from pysmartbus.models.location import LocationSample
from pysmartbus.models.push import LocationPush, RoomMembership
from pysmartbus.models.requests import StartTrackingRequest, StopTrackingRequest, UpdateLocationRequest
from pysmartbus.models.roster import Bus, Driver
from pysmartbus.models.tracking import ApiAck, DeliveryOutcome, StopTrackingResult, TrackingIdentity

__all__ = [
    "ApiAck",
    "Bus",
    "DeliveryOutcome",
    "Driver",
    "LocationPush",
    "LocationSample",
    "RoomMembership",
    "StartTrackingRequest",
    "StopTrackingRequest",
    "StopTrackingResult",
    "TrackingIdentity",
    "UpdateLocationRequest",
]
