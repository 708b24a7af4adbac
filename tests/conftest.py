"""Shared fakes for the pibal tracker tests.

FakeChannel scripts the device side of the line protocol; FakeProtocol
stands in for DeviceProtocol when testing the scheduler and front-ends.
"""

from __future__ import annotations

import sys
import threading
import time
from collections import deque
from datetime import datetime
from typing import Iterable, List, Optional, Union

import pytest

from pibal_tracker.channel import LineChannel
from pibal_tracker.errors import ChannelClosed
from pibal_tracker.models import Sample


def make_sample(
    azimuth: int = 900,
    pitch: int = 450,
    *,
    mag=(1, 2, 3),
    acc=(0, 0, 100),
    roll: int = 0,
    pressure: int = 10133,
    altitude: Optional[int] = 50,
    temperature: Optional[int] = 215,
    voltage: Optional[int] = 330,
) -> Sample:
    return Sample(
        mag=tuple(mag),
        azimuth=azimuth,
        acc=tuple(acc),
        roll=roll,
        pitch=pitch,
        pressure=pressure,
        altitude=altitude,
        temperature=temperature,
        voltage=voltage,
        time=datetime(2026, 10, 16, 12, 0, 0),
    )


class FakeChannel(LineChannel):
    """Replays scripted reply lines; an exception in the script is raised."""

    def __init__(self, replies: Iterable[Union[str, BaseException]] = ()):
        self.replies = deque(replies)
        self.written: List[str] = []
        self.write_attempts = 0
        self.breaks: List[float] = []
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def write_line(self, text: str) -> None:
        self.write_attempts += 1
        if self.closed:
            raise ChannelClosed("channel closed")
        self.written.append(text)

    def read_line(self) -> str:
        if self.closed or not self.replies:
            raise ChannelClosed("end of stream")
        reply = self.replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def send_break(self, duration: float) -> None:
        self.breaks.append(duration)

    def close(self) -> None:
        self.close_count += 1


class FakeProtocol:
    """DeviceProtocol stand-in producing numbered samples."""

    def __init__(
        self,
        *,
        fail_after: Optional[int] = None,
        sample_delay: float = 0.0,
        stop_error: Optional[BaseException] = None,
        configure_error: Optional[BaseException] = None,
        pitch: int = 450,
    ):
        self.fail_after = fail_after
        self.sample_delay = sample_delay
        self.stop_error = stop_error
        self.configure_error = configure_error
        self.pitch = pitch
        self.configured: List[tuple] = []
        self.sample_times: List[float] = []
        self.stop_count = 0
        self.close_count = 0
        self._lock = threading.Lock()

    @property
    def sample_count(self) -> int:
        with self._lock:
            return len(self.sample_times)

    def rom_version(self) -> List[int]:
        return [1, 2, 3]

    def configure_and_start(self, interval_tenths, pressure_hpa=1013.3, declination_deg=0):
        self.configured.append((interval_tenths, pressure_hpa, declination_deg))
        if self.configure_error is not None:
            raise self.configure_error

    def sample_once(self) -> Sample:
        with self._lock:
            self.sample_times.append(time.monotonic())
            n = len(self.sample_times)
        if self.fail_after is not None and n > self.fail_after:
            raise ChannelClosed("device went away")
        if self.sample_delay:
            time.sleep(self.sample_delay)
        return make_sample(azimuth=n, pitch=self.pitch)

    def stop(self) -> str:
        self.stop_count += 1
        if self.stop_error is not None:
            raise self.stop_error
        return "DC"

    def close(self) -> None:
        self.close_count += 1


@pytest.fixture
def fake_protocol() -> FakeProtocol:
    return FakeProtocol()


# Stands in for ``gnuplot -``: echoes ``print`` lines, writes a fixed GIF when
# ``set output`` is closed and, given a size argument, answers every plot
# command with that many bytes of warning text.
FAKE_GNUPLOT = '''
import sys

noise = int(sys.argv[1]) if len(sys.argv) > 1 else 0
output = None
for line in sys.stdin:
    line = line.strip()
    if line.startswith('set output "'):
        output = line[len('set output "'):-1]
    elif line == "set output" and output:
        with open(output, "wb") as f:
            f.write(b"GIF89a-test")
        output = None
    elif line == "set terminal push":
        print("warning: terminal saved", flush=True)
    elif line.startswith("plot ") and noise:
        print("warning: " + "x" * noise, flush=True)
    elif line.startswith('print "'):
        print(line[len('print "'):-1], flush=True)
'''

FAKE_GNUPLOT_EXITING = '''
print("gnuplot: cannot open display")
'''


@pytest.fixture
def fake_gnuplot(tmp_path) -> List[str]:
    script = tmp_path / "fake_gnuplot.py"
    script.write_text(FAKE_GNUPLOT)
    return [sys.executable, str(script)]


@pytest.fixture
def exiting_gnuplot(tmp_path) -> List[str]:
    script = tmp_path / "exiting_gnuplot.py"
    script.write_text(FAKE_GNUPLOT_EXITING)
    return [sys.executable, str(script)]
