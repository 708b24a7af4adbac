"""
Flight log files.

A log starts with a header line ``<ISO timestamp> (<ascent rate> m/min)``
followed by one TrackEstimator info line per observation. Replay only needs
the leading height, azimuth and elevation columns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, List, Optional, Tuple

from .config import SESSION

HEADER_RE = re.compile(r"^(?P<time>\S+(?: \S+)?) \((?P<rate>\d+(?:\.\d+)?) m/min\)\s*$")

Observation = Tuple[int, float, float]


def format_header(start_time: datetime, ascent_rate_m_min: float) -> str:
    return f"{start_time.isoformat(timespec='seconds')} ({ascent_rate_m_min:g} m/min)"


def parse_header(line: str) -> Tuple[datetime, float]:
    match = HEADER_RE.match(line.strip())
    if not match:
        raise ValueError(f"not a flight log header: {line.strip()!r}")
    return datetime.fromisoformat(match["time"]), float(match["rate"])


def parse_observation(line: str) -> Observation:
    height, azimuth, elevation = line.split(None, 3)[:3]
    return int(height), float(azimuth), float(elevation)


@dataclass
class FlightRecord:
    """A flight read back from a log file."""

    start_time: datetime
    ascent_rate_m_min: float
    observations: List[Observation] = field(default_factory=list)
    path: Optional[Path] = None


def read_flight_log(path: Path) -> FlightRecord:
    path = Path(path)
    with open(path, "r", encoding="ascii") as f:
        header = f.readline()
        if not header:
            raise ValueError(f"{path}: empty flight log")
        start_time, rate = parse_header(header)
        record = FlightRecord(start_time, rate, path=path)
        for lineno, line in enumerate(f, start=2):
            if not line.strip():
                continue
            try:
                record.observations.append(parse_observation(line))
            except ValueError as e:
                raise ValueError(f"{path}:{lineno}: {e}") from e
    return record


class FlightLog:
    """Line-buffered writer for one flight's log file."""

    def __init__(self, path: Path, start_time: datetime, ascent_rate_m_min: float):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file: Optional[IO[str]] = open(
            self.path, "w", encoding="ascii", newline="\n", buffering=1
        )
        self._file.write(format_header(start_time, ascent_rate_m_min) + "\n")
        print(f"[pibal] Logging to {self.path}")

    @classmethod
    def create(
        cls,
        start_time: datetime,
        ascent_rate_m_min: float,
        log_dir: Path = Path(SESSION["log_dir"]),
    ) -> FlightLog:
        name = start_time.strftime(SESSION["log_name"])
        return cls(Path(log_dir) / name, start_time, ascent_rate_m_min)

    def write(self, line: str) -> None:
        if self._file is None:
            raise ValueError(f"{self.path} is closed")
        self._file.write(line + "\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> FlightLog:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
