from __future__ import annotations

from functools import reduce
from typing import Iterable, Optional, Tuple

from .models import SilenceInterval


START_MARKER = "silence_start:"
END_MARKER = "silence_end:"
FIELD_DELIMITER = "|"

# (pending start, intervals emitted so far)
ScanState = Tuple[Optional[float], Tuple[SilenceInterval, ...]]


def parse_timestamp(raw: str) -> float | None:
    """Parse the first field of an ffmpeg silencedetect value.

    ``"45.60 | silence_duration: 33.26"`` -> ``45.6``. Returns ``None`` when the
    value is not a number.
    """
    token = raw.split(FIELD_DELIMITER, 1)[0].strip()
    if not token:
        return None
    try:
        return float(token.split()[0])
    except ValueError:
        return None


def _marker_value(line: str, marker: str) -> str | None:
    _, found, value = line.partition(marker)
    if not found:
        return None
    return value


def _step(state: ScanState, line: str) -> ScanState:
    pending, intervals = state

    start_value = _marker_value(line, START_MARKER)
    if start_value is not None:
        start = parse_timestamp(start_value)
        if start is None:
            return state
        return start, intervals

    end_value = _marker_value(line, END_MARKER)
    if end_value is None or pending is None:
        return state

    end = parse_timestamp(end_value)
    if end is None:
        return state
    if end <= pending:
        return None, intervals
    return None, intervals + (SilenceInterval(start=pending, end=end),)


def parse_silence_events(lines: Iterable[str]) -> list[SilenceInterval]:
    """Turn ffmpeg ``silencedetect`` output into silence intervals.

    Lines that carry neither marker, or carry an unparsable timestamp, are
    ignored. A ``silence_start`` that is never closed by a ``silence_end`` does
    not produce an interval.
    """
    initial: ScanState = (None, ())
    _pending, intervals = reduce(_step, lines, initial)
    return list(intervals)
