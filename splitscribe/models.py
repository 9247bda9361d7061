from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class SilenceInterval:
    start: float
    end: float


@dataclass(frozen=True, slots=True)
class ChunkSpec:
    index: int
    start_offset: float
    # None marks the last chunk, which runs to the end of the file.
    end_offset: float | None = None

    @property
    def bounded(self) -> bool:
        return self.end_offset is not None

    def length(self, total_duration: float) -> float:
        end = total_duration if self.end_offset is None else self.end_offset
        return max(0.0, end - self.start_offset)


@dataclass(slots=True)
class AudioChunk:
    spec: ChunkSpec
    path: Path


@dataclass(slots=True)
class TranscriptSegment:
    id: int
    start: float
    end: float
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "start": self.start, "end": self.end, "text": self.text}


@dataclass(slots=True)
class TranscriptionResult:
    text: str
    language: str = ""
    segments: list[TranscriptSegment] = field(default_factory=list)
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "language": self.language,
            "segments": [segment.to_dict() for segment in self.segments],
            "duration": self.duration,
        }
