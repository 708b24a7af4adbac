"""Tests for the pibal and tds-sample front-ends."""

from __future__ import annotations

import email
import email.policy
from datetime import datetime
from pathlib import Path

import pytest

from conftest import FakeProtocol
from pibal_tracker import app as app_module
from pibal_tracker import tds_sample
from pibal_tracker.flight_log import FlightLog, read_flight_log
from pibal_tracker.mail import MailSettings, MailSpool
from pibal_tracker.models import Sample
from pibal_tracker.plot import GnuplotRenderer
from pibal_tracker.track import TrackEstimator


def make_tracker(tmp_path: Path, estimator: TrackEstimator, **kwargs) -> app_module.FlightTracker:
    spool = MailSpool(MailSettings(to_addrs=["wx@example.org"], spool_dir=tmp_path / "mail"))
    return app_module.FlightTracker(estimator, spool, None, log_dir=tmp_path / "logs", tty=False, **kwargs)


def test_arg_parser_defaults():
    args = app_module.build_arg_parser().parse_args([])

    assert args.logs == []
    assert args.interval == 30
    assert args.speed == 100
    assert args.alarm == 3
    assert args.view is True
    assert args.to_addrs == []


def test_arg_parser_options():
    args = app_module.build_arg_parser().parse_args(
        ["--interval", "60", "--speed", "50", "--no-view", "--to", "a@x", "--to", "b@x", "f.log"]
    )

    assert (args.interval, args.speed, args.view) == (60, 50, False)
    assert args.to_addrs == ["a@x", "b@x"]
    assert args.logs == [Path("f.log")]


def test_arg_parser_rejects_unknown_ascent_rate():
    with pytest.raises(SystemExit):
        app_module.build_arg_parser().parse_args(["--speed", "75"])


def test_build_tracker_caps_alarm_below_interval():
    args = app_module.build_arg_parser().parse_args(["--interval", "2", "--alarm", "5", "--no-view"])

    tracker = app_module.build_tracker(args)

    assert tracker.alarm_s == 1
    assert isinstance(tracker.renderer, GnuplotRenderer)
    assert tracker.view is False
    assert tracker.estimator.ascent_rate_m_min == 100


def test_replay_reports_flight(tmp_path):
    start = datetime(2026, 10, 16, 9, 30, 5)
    with FlightLog.create(start, 50, tmp_path) as log:
        log.write("    25  90.0  45.0")
        log.write("    50  80.0  30.0")
    tracker = make_tracker(tmp_path, TrackEstimator())

    tracker.replay(log.path, view=False)

    assert tracker.estimator.ascent_rate_m_min == 50
    assert [p.z for p in tracker.estimator.points] == [25, 50]
    report = (tmp_path / "mail" / "mail-1.txt").read_text()
    assert "Subject: pibal 09:30:05" in report
    assert "~0025   90" in report


def test_live_flight_tracks_every_nth_sample(tmp_path, monkeypatch):
    protocol = FakeProtocol(fail_after=5, pitch=450)
    monkeypatch.setattr(app_module.DeviceProtocol, "open", classmethod(lambda cls, port=None: protocol))
    # 0.2 s at 1000 m/min puts the nominal heights at 3.33 m and 6.67 m
    tracker = make_tracker(tmp_path, TrackEstimator(interval_s=0.2, ascent_rate_m_min=1000), sample_tenths=1)

    tracker.run_live()

    points = tracker.estimator.points
    assert tracker.samples_per_observation == 2
    assert [p.z for p in points] == [3, 7]
    assert [p.azimuth for p in points] == [pytest.approx(0.2), pytest.approx(0.4)]
    assert protocol.stop_count == 1
    assert protocol.close_count == 1

    (log_path,) = (tmp_path / "logs").glob("pibal-*.log")
    record = read_flight_log(log_path)
    assert record.ascent_rate_m_min == 1000
    assert len(record.observations) == 2
    assert (tmp_path / "mail" / "mail-1.txt").exists()


def test_replayed_live_log_reproduces_the_track(tmp_path, monkeypatch):
    protocol = FakeProtocol(fail_after=7, pitch=300)
    monkeypatch.setattr(app_module.DeviceProtocol, "open", classmethod(lambda cls, port=None: protocol))
    tracker = make_tracker(tmp_path, TrackEstimator(interval_s=0.2, ascent_rate_m_min=1000), sample_tenths=1)
    tracker.run_live()
    live_lines = [tracker.estimator.info(p) for p in tracker.estimator.points]

    (log_path,) = (tmp_path / "logs").glob("pibal-*.log")
    record = read_flight_log(log_path)
    replayed = TrackEstimator(interval_s=0.2, ascent_rate_m_min=record.ascent_rate_m_min)
    for observation in record.observations:
        replayed.add(*observation)

    assert len(live_lines) == 3
    assert [replayed.info(p) for p in replayed.points] == live_lines
    assert log_path.read_text().splitlines()[1:] == live_lines


def test_replay_without_view_still_attaches_plot(tmp_path, fake_gnuplot):
    start = datetime(2026, 10, 16, 9, 30, 5)
    with FlightLog.create(start, 100, tmp_path) as log:
        log.write("    50  90.0  45.0")
        log.write("   100  80.0  30.0")
    args = app_module.build_arg_parser().parse_args(
        ["--no-view", "--mail-dir", str(tmp_path / "mail"), "--to", "wx@example.org"]
    )
    tracker = app_module.build_tracker(args)
    renderer = tracker.renderer = GnuplotRenderer(command=fake_gnuplot)
    try:
        tracker.replay(log.path)
    finally:
        renderer.close()

    message = email.message_from_bytes(
        (tmp_path / "mail" / "mail-1.txt").read_bytes(), policy=email.policy.default
    )
    assert message.is_multipart()
    (attachment,) = [p for p in message.iter_attachments() if p.get_content_type() == "image/gif"]
    assert attachment.get_filename() == "pibal.gif"
    assert attachment.get_content() == b"GIF89a-test"


def test_report_without_gnuplot_is_sent_as_text(tmp_path):
    tracker = make_tracker(tmp_path, TrackEstimator())
    tracker.renderer = GnuplotRenderer(command=[str(tmp_path / "no-such-gnuplot")])
    tracker.estimator.add(50, 90, 45)

    tracker.report(datetime(2026, 10, 16, 9, 30, 5))

    assert tracker.renderer is None
    message = email.message_from_bytes(
        (tmp_path / "mail" / "mail-1.txt").read_bytes(), policy=email.policy.default
    )
    assert not message.is_multipart()


def test_ask_continue_defaults_to_yes(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "")
    assert app_module.ask_continue()

    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    assert not app_module.ask_continue()


def test_tds_sample_dumps_requested_count(capsys):
    protocol = FakeProtocol()

    samples = tds_sample.dump_samples(protocol, 1, 3)

    assert [s.azimuth for s in samples] == [1, 2, 3]
    assert protocol.close_count == 1
    out = capsys.readouterr().out
    assert "ROM version = 1.2.3" in out
    assert out.count("<Sample") == 3


def test_tds_sample_one_shot():
    protocol = FakeProtocol()

    samples = tds_sample.dump_samples(protocol, 0, 10)

    assert len(samples) == 1
    assert isinstance(samples[0], Sample)
    assert protocol.close_count == 1
