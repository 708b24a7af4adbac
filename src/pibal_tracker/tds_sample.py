"""
Dump the ROM version and a few samples from a TDS01V sensor.
"""

from __future__ import annotations

import argparse
from typing import List, Optional

from .config import SESSION
from .device_protocol import DeviceProtocol
from .errors import ChannelClosed, UnexpectedAck
from .models import Sample
from .scheduler import SampleScheduler


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print samples read from a TDS01V sensor.")
    parser.add_argument("-p", "--port", default=None, help="Serial port (auto-detected if omitted)")
    parser.add_argument("-n", "--num", type=int, default=10, help="Number of samples to print")
    parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=SESSION["sample_tenths"],
        help="Sampling interval in tenths of a second (0 for a single sample)",
    )
    return parser


def dump_samples(protocol: DeviceProtocol, interval: int, count: int) -> List[Sample]:
    """Print the ROM version and up to ``count`` samples; the protocol is closed afterwards."""
    try:
        version = protocol.rom_version()
    except BaseException:
        protocol.close()
        raise
    print(f"ROM version = {'.'.join(map(str, version))}")

    result = SampleScheduler().start(protocol, interval)
    if isinstance(result, Sample):
        print(repr(result))
        return [result]
    samples: List[Sample] = []
    with result as source:
        for sample in source:
            print(repr(sample))
            samples.append(sample)
            if len(samples) >= count:
                break
    return samples


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    try:
        dump_samples(DeviceProtocol.open(args.port), args.interval, args.num)
    except KeyboardInterrupt:
        print("\n[tds-sample] Interrupted by user.")
    except (ChannelClosed, UnexpectedAck) as exc:
        raise SystemExit(f"[tds-sample] Device error: {exc}")


if __name__ == "__main__":
    main()
