"""Turn a log of "<time> <bytes>" lines into a throughput time series.

Samples are bucketed into 10 ms windows.  Each emitted point is the time of
the last sample of a window and the window's throughput, in KB/s (or in IO/s
when counting operations); empty windows in between are emitted as zeros.
"""

from __future__ import annotations

import sys
from typing import Iterable, Iterator, Optional

WINDOW = 0.01


def _parse_line(line: str) -> tuple[float, int]:
    fields = line.split()
    if len(fields) < 2:
        raise ValueError(f"expected '<time> <size>', got {line!r}")
    return float(fields[0]), int(fields[1])


def parse_log(lines: Iterable[str], iops: bool) -> Iterator[tuple[float, float]]:
    """Yield ``(time, throughput)`` points for the given log lines.

    With ``iops`` every line counts as one operation; otherwise its size is
    summed and reported in kilobytes.
    """
    total_time = 0.0
    last_time = 0.0
    times_read = WINDOW
    total_data = 0
    for line in lines:
        if not line.strip():
            continue
        time, data = _parse_line(line)
        total_data += 1 if iops else data
        total_time += time - last_time
        if total_time >= times_read:
            while times_read < total_time - WINDOW:
                yield times_read, 0
                times_read += WINDOW
            value = total_data / 2.0 * 100.0
            if not iops:
                value /= 1024.0
            yield total_time, value
            times_read = time + WINDOW
            total_data = 0
        last_time = time


def _fmt(number: float) -> str:
    return f"{number:g}"


def main(argv: Optional[list[str]] = None) -> int:
    """Command entry point: ``parse_log <file> <iops flag>``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) < 2:
        print("usage: parse_log <file> <iops (0 or 1)>", file=sys.stderr)
        return 2
    try:
        iops = int(args[1]) != 0
    except ValueError:
        print(f"invalid iops flag: {args[1]!r}", file=sys.stderr)
        return 2
    try:
        with open(args[0], encoding="utf-8") as source:
            for time, value in parse_log(source, iops):
                print(f"{_fmt(time)} {_fmt(value)}")
    except OSError:
        print("Can't open Data!", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())