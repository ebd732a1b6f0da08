"""Delivery channels for location samples."""

from pysmartbus.channels.durable import DurableChannel
from pysmartbus.channels.live import ChannelConnectionState, ConnectionStateChange, LiveChannel

__all__ = [
    "ChannelConnectionState",
    "ConnectionStateChange",
    "DurableChannel",
    "LiveChannel",
]
