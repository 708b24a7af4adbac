"""
Global configuration for the pibal tracker.
"""

from __future__ import annotations

import sys

# Serial link to the TDS01V sensor unit.
DEVICE = {
    "baudrate": 9600,
    "read_timeout_s": 1.0,
    "break_duration_s": 0.25,
    "port_patterns": (
        ["/dev/tty.usbserial-*"] if sys.platform == "darwin"
        else [] if sys.platform.startswith("win")
        else ["/dev/ttyUSB*"]
    ),
    "stop_attempts": 3,  # Total attempts for the stop command
    "status_poll_limit": None,  # None = poll status until idle
}

# Flight session parameters.
SESSION = {
    "interval_s": 30,  # Seconds between tracked observations
    "ascent_rate_m_min": 100,
    "ascent_rate_choices": (50, 100),
    "alarm_s": 3,  # Ticks during the last N seconds before an observation
    "sample_tenths": 10,  # Device polling cadence
    "pressure_hpa": 1013.3,
    "declination_deg": 0,
    "initial_scale": 100.0,
    "log_dir": ".",
    "log_name": "pibal-%Y%m%d_%H%M%S.log",
}

# gnuplot rendering.
PLOT = {
    "command": ["gnuplot", "-"],
    "preset": [
        "set angles degree",
        "set grid polar 45",
        "set size square",
        "set zeroaxis",
        'set xtics axis nomirror scale 0 format ""',
        'set ytics axis nomirror scale 0 textcolor rgbcolor "#808080"',
        "set border 0",
    ],
    "gif_size": (240, 240),
    "gif_font": ("arial", 10),
    "replay_delay_s": 0.2,
    "sync_timeout_s": 10.0,
}

# Alarm sounds: player command and [tick, observation] sound files.
if sys.platform == "darwin":
    SOUNDS = {
        "player": ["afplay"],
        "files": [
            "/System/Library/Sounds/Ping.aiff",
            "/System/Library/Sounds/Glass.aiff",
        ],
    }
else:
    SOUNDS = {"player": [], "files": []}

# Report mail spooling.
MAIL = {
    "from_addr": "pibal@example.com",
    "spool_dir": ".",
    "file_name": "mail-{count}.txt",
    "attachment_name": "pibal.gif",
}
