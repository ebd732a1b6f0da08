"""Geolocation sources consumed by the sampler."""

from pysmartbus.geolocation.base import GeolocationSource, WatchHandle, WatchOptions, haversine_distance
from pysmartbus.geolocation.replay import ReplaySource
from pysmartbus.geolocation.termux import TermuxLocationSource

__all__ = [
    "GeolocationSource",
    "ReplaySource",
    "TermuxLocationSource",
    "WatchHandle",
    "WatchOptions",
    "haversine_distance",
]
