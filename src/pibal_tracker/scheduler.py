"""
Background sampling of the sensor at a fixed cadence.

A single polling thread issues sample requests on absolute deadlines
``t0 + k * interval`` so per-iteration overhead never accumulates into drift.
Samples reach the consumer through an unbounded FIFO queue; the end of the
stream is marked by a sentinel, never by an exception.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Iterator, Optional, Union

from .device_protocol import DeviceProtocol
from .errors import ChannelClosed, InvalidArgument, UnexpectedAck
from .models import Sample

_END = object()


class SampleSource:
    """Iterable over the samples produced by a running scheduler.

    Iteration blocks until the next sample arrives and stops when the stream
    is closed. ``close()`` (or leaving a ``with`` block) shuts the session
    down and releases the device.
    """

    def __init__(self, scheduler: SampleScheduler, protocol: DeviceProtocol, interval_tenths: int):
        self._scheduler = scheduler
        self.protocol = protocol
        self.interval_tenths = interval_tenths
        self._queue: queue.Queue = queue.Queue()
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._shutdown_lock = threading.Lock()
        self._shut_down = False
        self._ended = False
        self.error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def ended(self) -> bool:
        """True once the consumer has seen the end of the stream."""
        return self._ended

    def __iter__(self) -> Iterator[Sample]:
        return self

    def __next__(self) -> Sample:
        if self._ended:
            raise StopIteration
        item = self._queue.get()
        if item is _END:
            self._ended = True
            raise StopIteration
        return item

    def close(self) -> None:
        self._scheduler.stop(self)

    def __enter__(self) -> SampleSource:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, args=(time.monotonic(),), daemon=True
        )
        self._thread.start()

    def _shutdown(self) -> None:
        """Cancel polling, stop the device and release it; only the first call acts."""
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True
        self._cancel.set()
        try:
            if self._thread is not None:
                self._thread.join()
            try:
                self.protocol.stop()
            except UnexpectedAck as e:
                print(f"[Scheduler] Ignoring stop reply: {e}")
        finally:
            self.protocol.close()
            print("[Scheduler] Stopped")

    def _run(self, start_time: float) -> None:
        period = self.interval_tenths / 10
        k = 0
        try:
            while not self._cancel.is_set():
                k += 1
                delay = start_time + k * period - time.monotonic()
                if delay > 0 and self._cancel.wait(delay):
                    break
                self._queue.put(self.protocol.sample_once())
        except Exception as e:
            self.error = e
            print(f"[Scheduler] Sampling stopped: {e}")
        finally:
            self._queue.put(_END)


class SampleScheduler:
    """Starts and stops background sampling sessions."""

    def __init__(self, pressure_hpa: float = 1013.3, declination_deg: float = 0):
        self.pressure_hpa = pressure_hpa
        self.declination_deg = declination_deg

    def start(
        self,
        protocol: DeviceProtocol,
        interval_tenths: Optional[int] = None,
        callback: Optional[Callable[[Sample], object]] = None,
    ) -> Union[SampleSource, Sample, None]:
        """Configure the device and begin sampling.

        With a positive interval this returns a running SampleSource, or,
        when ``callback`` is given, feeds every sample to it and shuts the
        session down once the stream ends or the callback raises. With a zero
        or missing interval one sample is taken synchronously and returned.

        The scheduler owns ``protocol`` from here on and closes it on every
        exit path.
        """
        if interval_tenths is not None and interval_tenths < 0:
            protocol.close()
            raise InvalidArgument(f"negative sampling interval {interval_tenths}")
        if not interval_tenths:
            if callback is not None:
                protocol.close()
                raise InvalidArgument("one-shot sampling does not take a callback")
            return self._sample_once(protocol)

        try:
            protocol.configure_and_start(interval_tenths, self.pressure_hpa, self.declination_deg)
        except BaseException:
            protocol.close()
            raise

        source = SampleSource(self, protocol, interval_tenths)
        source._start()
        print(f"[Scheduler] Sampling every {interval_tenths / 10:g} s")
        if callback is None:
            return source
        with source:
            for sample in source:
                callback(sample)
        return None

    def _sample_once(self, protocol: DeviceProtocol) -> Sample:
        try:
            protocol.configure_and_start(0, self.pressure_hpa, self.declination_deg)
            sample = protocol.sample_once()
            # the sample is already read; a failing stop only gets reported
            try:
                protocol.stop()
            except (ChannelClosed, UnexpectedAck) as e:
                print(f"[Scheduler] Stop after single sample failed: {e}")
            return sample
        finally:
            protocol.close()

    def stop(self, source: SampleSource) -> None:
        """Cancel polling, stop the device and release it.

        Only the first call does any work. An UnexpectedAck from the final
        stop command is ignored since the device may already be idle;
        ChannelClosed propagates after the channel has been released.
        """
        source._shutdown()
