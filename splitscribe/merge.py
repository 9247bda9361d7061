from __future__ import annotations

from typing import Sequence

from .models import ChunkSpec, TranscriptionResult, TranscriptSegment


# Assumed span of a chunk that came back without timing information.
PLACEHOLDER_SEGMENT_SEC = 10.0


def _offset_segments(
    result: TranscriptionResult,
    spec: ChunkSpec,
    next_id: int,
) -> list[TranscriptSegment]:
    offset = spec.start_offset
    shifted: list[TranscriptSegment] = []

    for segment in result.segments:
        shifted.append(
            TranscriptSegment(
                id=next_id + len(shifted),
                start=segment.start + offset,
                end=segment.end + offset,
                text=segment.text,
            )
        )

    if not shifted and spec.index > 0:
        shifted.append(
            TranscriptSegment(
                id=next_id,
                start=offset,
                end=offset + PLACEHOLDER_SEGMENT_SEC,
                text=result.text,
            )
        )

    return shifted


def merge_results(
    results: Sequence[TranscriptionResult],
    specs: Sequence[ChunkSpec],
) -> TranscriptionResult:
    """Stitch per-chunk results into one transcript on the source timeline.

    Segment times are shifted by their chunk's start offset and renumbered from
    1. A chunk other than the first that returned no segments gets a single
    placeholder segment covering ``PLACEHOLDER_SEGMENT_SEC`` from its offset.
    """
    if len(results) != len(specs):
        raise ValueError(f"Got {len(results)} results for {len(specs)} chunks")

    language = ""
    text_parts: list[str] = []
    segments: list[TranscriptSegment] = []

    for result, spec in zip(results, specs):
        if not language and result.language:
            language = result.language

        if result.text:
            text_parts.append(result.text if result.text.endswith("\n") else result.text + "\n")

        segments.extend(_offset_segments(result, spec, next_id=len(segments) + 1))

    return TranscriptionResult(
        text="".join(text_parts),
        language=language,
        segments=segments,
        duration=segments[-1].end if segments else 0.0,
    )
