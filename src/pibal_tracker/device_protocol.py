"""
Request/acknowledge driver for the TDS01V magnetic/inertial sensor unit.

Every request is the hex encoding of a command byte plus payload, sent as one
CRLF terminated line. Every reply is one hex line as well; fixed commands
answer with a one byte acknowledgment code.
"""

from __future__ import annotations

import struct
from datetime import datetime
from typing import Collection, List, Optional, Union

from .channel import LineChannel, SerialLineChannel
from .config import DEVICE
from .errors import ChannelClosed, InvalidArgument, UnexpectedAck
from .models import Sample

Ack = Union[str, Collection[str]]

RESET_REQ = "0F"
RESET_ACK = "F0"
STATUS_REQ = "2B"
STATUS_IDLE = "00"
ROM_VERSION_REQ = "5F"
CONFIGURE_REQ = "05"
CONFIGURE_ACK = "FA"
SELECT_ALL_REQ = "0DF7"
SELECT_ALL_ACK = "F2"
INIT_MAG_REQ = "27"
INIT_MAG_ACK = "D8"
START_REQ = "21"
START_ACK = "DE"
STOP_REQ = "23"
STOP_ACKS = frozenset({"DC", "23"})
SAMPLE_REQ = "29"

# mag(3), azimuth, acc(3), roll, pitch, pressure
REQUIRED_SAMPLE_WORDS = 10
OPTIONAL_SAMPLE_FIELDS = ("altitude", "temperature", "voltage")


def ack_matches(received: str, expected: Ack) -> bool:
    if isinstance(expected, str):
        return received == expected
    return received in expected


def decode_hex(reply: str) -> bytes:
    try:
        return bytes.fromhex(reply)
    except ValueError as e:
        raise UnexpectedAck(reply) from e


def decode_sample(reply: str, timestamp: Optional[datetime] = None) -> Sample:
    """Decode a sample reply into a Sample.

    The payload is a run of big-endian signed 16-bit words. The first ten are
    always present; altitude, temperature and voltage follow in that order
    and are None when the device revision does not send them.
    """
    payload = decode_hex(reply)
    if len(payload) % 2 or len(payload) < REQUIRED_SAMPLE_WORDS * 2:
        raise UnexpectedAck(reply)
    words = struct.unpack(f">{len(payload) // 2}h", payload)
    extra = dict(zip(OPTIONAL_SAMPLE_FIELDS, words[REQUIRED_SAMPLE_WORDS:]))
    return Sample(
        mag=tuple(words[0:3]),  # type: ignore[arg-type]
        azimuth=words[3],
        acc=tuple(words[4:7]),  # type: ignore[arg-type]
        roll=words[7],
        pitch=words[8],
        pressure=words[9],
        altitude=extra.get("altitude"),
        temperature=extra.get("temperature"),
        voltage=extra.get("voltage"),
        time=timestamp or datetime.now(),
    )


def encode_configure(interval_tenths: int, pressure_hpa: float, declination_deg: float) -> str:
    if not 0 <= interval_tenths <= 0xFF:
        raise InvalidArgument(f"interval {interval_tenths} does not fit in one byte")
    pressure = round(pressure_hpa * 10)
    if not 0 <= pressure <= 0xFFFF:
        raise InvalidArgument(f"pressure {pressure_hpa} hPa out of range")
    declination = int(declination_deg)
    if not -0x8000 <= declination <= 0x7FFF:
        raise InvalidArgument(f"declination {declination_deg} out of range")
    return f"{CONFIGURE_REQ}{interval_tenths:02X}{pressure:04X}{declination & 0xFFFF:04X}"


class DeviceProtocol:
    """
    Typed operations over the sensor's hex line protocol.

    The protocol owns its LineChannel: ``close()`` releases it and is safe to
    call more than once.
    """

    def __init__(
        self,
        channel: LineChannel,
        *,
        break_duration: float = DEVICE["break_duration_s"],
        stop_attempts: int = DEVICE["stop_attempts"],
        status_poll_limit: Optional[int] = DEVICE["status_poll_limit"],
    ):
        self.channel = channel
        self.break_duration = break_duration
        self.stop_attempts = stop_attempts
        self.status_poll_limit = status_poll_limit
        self._closed = False

    @classmethod
    def open(cls, port: Optional[str] = None, **kwargs) -> DeviceProtocol:
        return cls(SerialLineChannel(port), **kwargs)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.channel.close()

    def __enter__(self) -> DeviceProtocol:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def request(self, payload: str, expected_ack: Optional[Ack] = None) -> str:
        """Send one request line and return the reply line.

        Raises ChannelClosed if no complete reply arrives and UnexpectedAck
        if ``expected_ack`` is given and the reply does not match it.
        """
        self.channel.write_line(payload)
        reply = self.channel.read_line()
        if expected_ack is not None and not ack_matches(reply, expected_ack):
            raise UnexpectedAck(reply, expected_ack)
        return reply

    def reset(self) -> bool:
        """Reset the device and wait until it reports idle.

        Returns whether the reset acknowledgment itself was the expected one.
        """
        self.channel.send_break(self.break_duration)
        acknowledged = self.request(RESET_REQ) == RESET_ACK
        polls = 0
        while (status := self.request(STATUS_REQ)) != STATUS_IDLE:
            polls += 1
            if self.status_poll_limit is not None and polls >= self.status_poll_limit:
                raise UnexpectedAck(status, STATUS_IDLE)
        if not acknowledged:
            print("[Device] Reset was not acknowledged, device reported idle anyway")
        return acknowledged

    def rom_version(self) -> List[int]:
        self.reset()
        return list(decode_hex(self.request(ROM_VERSION_REQ)))

    def configure_and_start(
        self,
        interval_tenths: int,
        pressure_hpa: float = 1013.3,
        declination_deg: float = 0,
    ) -> None:
        """Reset, configure and start measuring; any mismatched ack aborts."""
        command = encode_configure(interval_tenths, pressure_hpa, declination_deg)
        self.reset()
        self.request(command, CONFIGURE_ACK)
        self.request(SELECT_ALL_REQ, SELECT_ALL_ACK)
        self.request(INIT_MAG_REQ, INIT_MAG_ACK)
        self.request(START_REQ, START_ACK)

    def sample_once(self) -> Sample:
        reply = self.request(SAMPLE_REQ)
        return decode_sample(reply, datetime.now())

    def stop(self) -> str:
        """Stop measuring, retrying up to ``stop_attempts`` times in total."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return self.request(STOP_REQ, STOP_ACKS)
            except (ChannelClosed, UnexpectedAck) as e:
                if attempt >= self.stop_attempts:
                    raise
                print(f"[Device] Stop attempt {attempt} failed: {e}")
