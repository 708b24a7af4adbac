"""
Error types raised by the device driver and the sampling scheduler.
"""

from __future__ import annotations


class ChannelClosed(ConnectionError):
    """The serial channel ended or timed out before a full reply line."""


class UnexpectedAck(Exception):
    """The device replied with something other than the required acknowledgment."""

    def __init__(self, received: str, expected: object = None):
        self.received = received
        self.expected = expected
        if expected is None:
            super().__init__(f"unexpected reply {received!r}")
        else:
            super().__init__(f"unexpected reply {received!r}, expected {expected!r}")


class InvalidArgument(ValueError):
    """A request that cannot be honoured with the given arguments."""
