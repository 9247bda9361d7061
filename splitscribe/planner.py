from __future__ import annotations

import math
from typing import Sequence

from .models import ChunkSpec, SilenceInterval


WINDOW_LOW = 0.5
WINDOW_HIGH = 1.5

# ffmpeg receives offsets with millisecond precision; a shorter tail renders empty.
MIN_TAIL_SEC = 0.001

FALLBACK_TARGET = "target"
FALLBACK_STOP = "stop"
FALLBACK_POLICIES = (FALLBACK_TARGET, FALLBACK_STOP)


def desired_chunk_count(total_size: float, size_limit: float) -> int:
    return int(math.floor(total_size / size_limit)) + 1


def validate_silences(silences: Sequence[SilenceInterval]) -> None:
    previous: SilenceInterval | None = None
    for interval in silences:
        if interval.end <= interval.start:
            raise ValueError(f"Silence interval ends before it starts: {interval.start:.3f}-{interval.end:.3f}")
        if previous is not None:
            if interval.start < previous.start:
                raise ValueError("Silence intervals must be sorted by start time")
            if interval.start < previous.end:
                raise ValueError(
                    f"Silence intervals overlap: {previous.start:.3f}-{previous.end:.3f} "
                    f"and {interval.start:.3f}-{interval.end:.3f}"
                )
        previous = interval


def _nearest_silence_end(
    silences: Sequence[SilenceInterval],
    target: float,
    after: float,
) -> float | None:
    low = target * WINDOW_LOW
    high = target * WINDOW_HIGH
    best: float | None = None
    best_diff = math.inf

    for interval in silences:
        end = interval.end
        if end <= after or end < low or end > high:
            continue
        diff = abs(end - target)
        if diff < best_diff:
            best = end
            best_diff = diff

    return best


def plan_split_points(
    total_duration: float,
    total_size: float,
    size_limit: float,
    silences: Sequence[SilenceInterval],
    *,
    fallback: str = FALLBACK_TARGET,
) -> list[float]:
    """Pick cut timestamps so each chunk stays under ``size_limit``.

    Aims for ``floor(total_size / size_limit) + 1`` chunks of equal length and
    moves each cut to the end of the silence closest to its target, searching
    50%-150% of the target time. When no silence falls in that window the
    ``fallback`` policy decides: ``"target"`` cuts at the raw target time,
    ``"stop"`` ends planning and leaves the remainder as one chunk.
    """
    if total_duration <= 0:
        raise ValueError("total_duration must be > 0")
    if size_limit <= 0:
        raise ValueError("size_limit must be > 0")
    if total_size <= size_limit:
        raise ValueError("total_size must exceed size_limit to plan a split")
    if fallback not in FALLBACK_POLICIES:
        raise ValueError(f"Unknown split fallback: {fallback}")
    validate_silences(silences)

    ideal = total_duration / desired_chunk_count(total_size, size_limit)
    split_points: list[float] = []
    previous = 0.0
    target = ideal

    while target < total_duration:
        split = _nearest_silence_end(silences, target, previous)
        if split is None:
            if fallback == FALLBACK_STOP:
                break
            split = target

        if split >= total_duration - MIN_TAIL_SEC:
            break

        split_points.append(split)
        previous = split
        target = split + ideal

    return split_points


def build_chunk_specs(split_points: Sequence[float]) -> list[ChunkSpec]:
    """Partition the timeline at ``split_points``; the last chunk is unbounded."""
    specs: list[ChunkSpec] = []
    start = 0.0
    for idx, split in enumerate(split_points):
        specs.append(ChunkSpec(index=idx, start_offset=start, end_offset=split))
        start = split
    specs.append(ChunkSpec(index=len(split_points), start_offset=start, end_offset=None))
    return specs
