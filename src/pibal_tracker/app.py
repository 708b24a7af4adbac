"""
Pibal flight tracker.

Without log arguments the sensor is polled live: one observation is tracked
every ``--interval`` seconds, logged, plotted and finally mailed as a report.
With log files as arguments the recorded flights are replayed instead.
"""

from __future__ import annotations

import argparse
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .alarm import AlarmPlayer
from .config import MAIL, PLOT, SESSION
from .device_protocol import DeviceProtocol
from .errors import ChannelClosed, UnexpectedAck
from .flight_log import FlightLog, read_flight_log
from .mail import MailSettings, MailSpool
from .plot import GnuplotRenderer
from .scheduler import SampleScheduler
from .track import TrackEstimator

CLEAR_LINE = "\r\x1b[K"


def ask(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        return ""


def ask_continue() -> bool:
    return ask("Continue? [Y/n] ").lower() in ("", "y", "yes")


class FlightTracker:
    """Runs flights against one estimator, plotter, alarm and mail spool."""

    def __init__(
        self,
        estimator: TrackEstimator,
        spool: MailSpool,
        renderer: Optional[GnuplotRenderer] = None,
        alarm: Optional[AlarmPlayer] = None,
        *,
        port: Optional[str] = None,
        pressure_hpa: float = SESSION["pressure_hpa"],
        declination_deg: float = SESSION["declination_deg"],
        sample_tenths: int = SESSION["sample_tenths"],
        alarm_s: int = SESSION["alarm_s"],
        log_dir: Path = Path(SESSION["log_dir"]),
        tty: Optional[bool] = None,
        view: bool = True,
    ):
        self.estimator = estimator
        self.spool = spool
        self.renderer = renderer
        self.alarm = alarm or AlarmPlayer(enabled=False)
        self.port = port
        self.pressure_hpa = pressure_hpa
        self.declination_deg = declination_deg
        self.sample_tenths = sample_tenths
        self.alarm_s = alarm_s
        self.log_dir = Path(log_dir)
        self.tty = sys.stdout.isatty() if tty is None else tty
        self.view = view

    @property
    def samples_per_observation(self) -> int:
        return max(1, round(self.estimator.interval * 10 / self.sample_tenths))

    def plot(self) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer.plot(self.estimator)
        except OSError as e:
            print(f"[Gnuplot] Plotting disabled: {e}")
            self.renderer.close()
            self.renderer = None

    def report(self, start_time: datetime) -> None:
        gif = None
        if self.renderer is not None:
            try:
                gif = self.renderer.gif(self.estimator)
            except OSError as e:
                print(f"[Gnuplot] No plot attached: {e}")
                self.renderer.close()
                self.renderer = None
        self.spool.send_report(self.estimator.results(), start_time, gif)

    def run_live(self) -> None:
        """Track one flight until Ctrl+C or the device stream ends."""
        protocol = DeviceProtocol.open(self.port)
        try:
            version = protocol.rom_version()
            print(f"ROM version = {'.'.join(map(str, version))}")
            if self.view:
                self.plot()
            print(self.estimator.title())
            start_time = datetime.now()
            log = FlightLog.create(start_time, self.estimator.ascent_rate_m_min, self.log_dir)
        except BaseException:
            protocol.close()
            raise

        per_observation = self.samples_per_observation
        alarm_samples = min(self.alarm_s * 10 // self.sample_tenths, per_observation - 1)
        clear_line = CLEAR_LINE if self.tty else ""
        scheduler = SampleScheduler(self.pressure_hpa, self.declination_deg)
        with log:
            try:
                source = scheduler.start(protocol, self.sample_tenths)
                with source:
                    if self.tty:
                        print("Press Ctrl+C to finish.")
                    for i, sample in enumerate(source, start=1):
                        print(clear_line, end="")
                        n = i % per_observation
                        if n == 0:
                            self.alarm.observation()
                            # logged heights are whole meters, track the same value
                            point = self.estimator.add(
                                round(self.estimator.height_at(i // per_observation)),
                                sample.azimuth_deg,
                                sample.pitch_deg,
                            )
                            if self.view:
                                self.plot()
                            info = self.estimator.info(point)
                            print(info)
                            log.write(info)
                        elif self.tty:
                            if per_observation - n <= alarm_samples:
                                self.alarm.tick()
                            print(sample, end="\r", flush=True)
                if source.error is not None:
                    print(f"[pibal] Device stream ended: {source.error}")
            except KeyboardInterrupt:
                print(f"{clear_line}[pibal] Flight finished")
            except (ChannelClosed, UnexpectedAck) as e:
                print(f"{clear_line}[pibal] Device error: {e}")
        self.report(start_time)

    def replay(
        self, path: Path, view: Optional[bool] = None, delay: float = PLOT["replay_delay_s"]
    ) -> None:
        """Re-run a logged flight; ``view`` (default: the tracker's) plots every step."""
        if view is None:
            view = self.view
        record = read_flight_log(path)
        self.estimator = TrackEstimator(
            self.estimator.interval, record.ascent_rate_m_min, self.estimator.initial_scale
        )
        print(f"[pibal] {path}: flight of {record.start_time.isoformat(timespec='seconds')}")
        print(self.estimator.title())
        for height, azimuth, elevation in record.observations:
            self.estimator.add(height, azimuth, elevation)
            print(self.estimator.info())
            if view:
                self.plot()
                time.sleep(delay)
        self.report(record.start_time)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Track a pilot balloon with a TDS01V sensor, or replay flight logs."
    )
    parser.add_argument("logs", nargs="*", type=Path, help="Flight logs to replay")
    parser.add_argument("--port", default=None, help="Serial port (auto-detected if omitted)")
    parser.add_argument(
        "--interval",
        type=int,
        default=SESSION["interval_s"],
        help="Seconds between observations",
    )
    parser.add_argument(
        "--speed",
        type=int,
        choices=SESSION["ascent_rate_choices"],
        default=SESSION["ascent_rate_m_min"],
        help="Balloon ascent rate (m/min)",
    )
    parser.add_argument(
        "--alarm",
        type=int,
        default=SESSION["alarm_s"],
        help="Tick during the last N seconds before an observation",
    )
    parser.add_argument(
        "--view",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Show the track with gnuplot while tracking (reports always carry the plot)",
    )
    parser.add_argument("--to", dest="to_addrs", action="append", default=[], help="Report recipient")
    parser.add_argument("--from", dest="from_addr", default=MAIL["from_addr"], help="Report sender")
    parser.add_argument("--mail-dir", type=Path, default=Path(MAIL["spool_dir"]), help="Report spool directory")
    parser.add_argument("--log-dir", type=Path, default=Path(SESSION["log_dir"]), help="Flight log directory")
    parser.add_argument("--pressure", type=float, default=SESSION["pressure_hpa"], help="Reference pressure (hPa)")
    parser.add_argument("--declination", type=float, default=SESSION["declination_deg"], help="Magnetic declination (deg)")
    return parser


def build_tracker(args: argparse.Namespace) -> FlightTracker:
    settings = MailSettings(args.from_addr, list(args.to_addrs), args.mail_dir)
    return FlightTracker(
        TrackEstimator(args.interval, args.speed),
        MailSpool(settings),
        GnuplotRenderer(),
        AlarmPlayer(),
        port=args.port,
        pressure_hpa=args.pressure,
        declination_deg=args.declination,
        alarm_s=min(args.alarm, args.interval - 1),
        log_dir=args.log_dir,
        view=args.view,
    )


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    if args.interval <= 0:
        raise SystemExit("--interval must be positive")
    tracker = build_tracker(args)
    try:
        if args.logs:
            for path in args.logs:
                tracker.replay(path)
                if args.view:
                    ask("Hit return to go next.")
        else:
            while True:
                tracker.run_live()
                if not ask_continue():
                    break
                tracker.estimator.clear()
    except KeyboardInterrupt:
        print("\n[pibal] Interrupted by user.")
    except ChannelClosed as exc:
        print(f"[pibal] Device error: {exc}")
    finally:
        if tracker.renderer is not None:
            tracker.renderer.close()


if __name__ == "__main__":
    main()
