"""
Line-oriented serial channel to the sensor unit.

The device speaks half-duplex ASCII lines terminated by CRLF. This module
provides the minimal contract the protocol driver needs (write a line, read
a line, send a break, close) and a pyserial implementation of it.
"""

from __future__ import annotations

import glob
from typing import List, Optional

import serial
import serial.tools.list_ports

from .config import DEVICE
from .errors import ChannelClosed

EOL = b"\r\n"


class LineChannel:
    """Contract for a CRLF framed byte channel."""

    def write_line(self, text: str) -> None:
        raise NotImplementedError

    def read_line(self) -> str:
        """Return the next line without its terminator.

        Raises ChannelClosed when the stream ends or the read times out
        before a terminator arrives.
        """
        raise NotImplementedError

    def send_break(self, duration: float) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class SerialLineChannel(LineChannel):
    """LineChannel over a pyserial port."""

    def __init__(
        self,
        port: Optional[str] = None,
        baudrate: int = DEVICE["baudrate"],
        timeout: float = DEVICE["read_timeout_s"],
    ):
        self.port = port or find_default_port()
        self.baudrate = baudrate
        self.timeout = timeout
        try:
            self._serial: Optional[serial.Serial] = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
            )
        except serial.SerialException as e:
            raise ChannelClosed(f"cannot open {self.port}: {e}") from e
        print(f"[Serial] Connected to {self.port} at {self.baudrate} baud")

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def _port(self) -> serial.Serial:
        if not self.is_open:
            raise ChannelClosed(f"{self.port} is closed")
        return self._serial  # type: ignore[return-value]

    def write_line(self, text: str) -> None:
        try:
            port = self._port()
            port.write(text.encode("ascii") + EOL)
            port.flush()
        except serial.SerialException as e:
            raise ChannelClosed(str(e)) from e

    def read_line(self) -> str:
        try:
            data = self._port().read_until(EOL)
        except serial.SerialException as e:
            raise ChannelClosed(str(e)) from e
        if not data.endswith(EOL):
            raise ChannelClosed(f"no reply from {self.port} (got {data!r})")
        return data[: -len(EOL)].decode("ascii", errors="replace")

    def send_break(self, duration: float) -> None:
        try:
            self._port().send_break(duration=duration)
        except serial.SerialException as e:
            raise ChannelClosed(str(e)) from e

    def close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None
            print(f"[Serial] Disconnected from {self.port}")


def list_available_ports() -> List[str]:
    """List all serial ports reported by the OS."""
    return [port.device for port in serial.tools.list_ports.comports()]


def find_default_port() -> str:
    """Pick the sensor port when exactly one candidate is attached."""
    candidates: List[str] = []
    for pattern in DEVICE["port_patterns"]:
        candidates.extend(sorted(glob.glob(pattern)))
    if not candidates and not DEVICE["port_patterns"]:
        candidates = list_available_ports()
    if len(candidates) != 1:
        raise ChannelClosed(
            f"cannot choose a serial port automatically, candidates: {candidates or 'none'}"
        )
    return candidates[0]
