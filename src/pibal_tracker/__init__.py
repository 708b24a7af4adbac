"""
Pibal tracker package.

Polls a TDS01V magnetic/inertial sensor over a serial link and dead-reckons
the track and winds of a pilot balloon.
"""

from .errors import ChannelClosed, InvalidArgument, UnexpectedAck

__all__ = [
    "config",
    "models",
    "errors",
    "channel",
    "device_protocol",
    "scheduler",
    "track",
    "flight_log",
    "plot",
    "alarm",
    "mail",
    "app",
    "tds_sample",
    "ChannelClosed",
    "InvalidArgument",
    "UnexpectedAck",
]
