"""
Polar track plot rendered by a gnuplot subprocess.
"""

from __future__ import annotations

import os
import queue
import subprocess
import tempfile
import threading
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .config import PLOT
from .models import TrackPoint
from .track import TrackEstimator

PLOT_COMMAND = 'plot [-scale:scale][-scale:scale] "-" using 1:2:3:4 with vector lw 2 notitle'
END_OF_DATA = "e"
EMPTY_VECTOR = "0 0 0 0"
SYNC_MARKER = "__pibal_sync__"


def track_vectors(points: Sequence[TrackPoint], unit: float = 1) -> np.ndarray:
    """(x, y, dx, dy) rows of every sighting, in display units."""
    rows = [(p.x, p.y, p.dx, p.dy) for p in points if p.is_sighting]
    if not rows:
        return np.zeros((0, 4))
    return np.asarray(rows, dtype=float) / unit


def plot_feed(estimator: TrackEstimator) -> List[str]:
    """gnuplot input drawing the track as displacement vectors."""
    scale, unit = estimator.display_scale()
    lines = [f"scale = {scale:g}", PLOT_COMMAND]
    vectors = track_vectors(estimator.points, unit)
    lines.extend("%8.2f %8.2f %8.2f %8.2f" % tuple(row) for row in vectors)
    if not len(vectors):
        lines.append(EMPTY_VECTOR)
    lines.append(END_OF_DATA)
    return lines


class GnuplotRenderer:
    """Drives ``gnuplot -`` over a pipe; started on first use.

    gnuplot's output is drained by a reader thread: sync markers are handed
    to ``sync()``, anything else is printed as a diagnostic.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        preset: Optional[Iterable[str]] = None,
        sync_timeout: float = PLOT["sync_timeout_s"],
    ):
        self.command_line = list(command or PLOT["command"])
        self.preset = list(PLOT["preset"] if preset is None else preset)
        self.sync_timeout = sync_timeout
        self._process: Optional[subprocess.Popen[str]] = None
        self._reader: Optional[threading.Thread] = None
        self._markers: queue.Queue = queue.Queue()

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def open(self) -> subprocess.Popen[str]:
        if self._process is None:
            self._process = subprocess.Popen(
                self.command_line,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
            self._markers = queue.Queue()
            self._reader = threading.Thread(
                target=self._read_output, args=(self._process.stdout,), daemon=True
            )
            self._reader.start()
            self.command(['set print "-"', *self.preset])
        return self._process

    def _read_output(self, stream) -> None:
        try:
            for line in stream:
                if line.strip() == SYNC_MARKER:
                    self._markers.put(True)
                else:
                    print(f"[Gnuplot] {line.rstrip()}")
        finally:
            self._markers.put(None)

    def command(self, lines: Iterable[str]) -> None:
        process = self.open()
        assert process.stdin is not None
        for line in lines:
            process.stdin.write(line.strip() + "\n")
        process.stdin.flush()

    def sync(self) -> None:
        """Block until gnuplot has executed everything sent so far."""
        self.command([f'print "{SYNC_MARKER}"'])
        try:
            marker = self._markers.get(timeout=self.sync_timeout)
        except queue.Empty:
            raise TimeoutError(f"gnuplot did not answer within {self.sync_timeout:g} s") from None
        if marker is None:
            self._markers.put(None)  # later syncs see the end of output too
            raise BrokenPipeError("gnuplot exited")

    def plot(self, estimator: TrackEstimator) -> None:
        self.command(plot_feed(estimator))

    def gif(
        self,
        estimator: TrackEstimator,
        size: Sequence[int] = PLOT["gif_size"],
        font: Sequence[object] = PLOT["gif_font"],
    ) -> bytes:
        """Render the current plot to GIF bytes."""
        fd, path = tempfile.mkstemp(prefix="pibal", suffix=".gif")
        os.close(fd)
        try:
            self.command([
                "set terminal push",
                'set terminal gif crop font "%s" size %s' % (
                    ",".join(map(str, font)), ",".join(map(str, size))),
                f'set output "{path}"',
            ])
            self.plot(estimator)
            self.command(["set output", "set terminal pop"])
            self.sync()
            with open(path, "rb") as f:
                return f.read()
        finally:
            os.unlink(path)

    def close(self) -> None:
        if self._process is None:
            return
        process, self._process = self._process, None
        reader, self._reader = self._reader, None
        try:
            if process.stdin:
                process.stdin.close()
            process.wait(timeout=3)
        except (OSError, subprocess.TimeoutExpired):
            process.kill()
            process.wait()
        finally:
            if reader is not None:
                reader.join(timeout=3)
            if process.stdout:
                process.stdout.close()
