from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from .base import MediaTool
from .models import AudioChunk, ChunkSpec


logger = logging.getLogger(__name__)


class ChunkExtractionError(RuntimeError):
    def __init__(self, chunk_index: int, message: str):
        super().__init__(message)
        self.chunk_index = chunk_index


def chunk_filename(spec: ChunkSpec) -> str:
    return f"chunk_{spec.index:04d}.wav"


def _remove(path: Path) -> None:
    path.unlink(missing_ok=True)


@contextmanager
def extract_chunks(
    media: MediaTool,
    source: Path,
    specs: Sequence[ChunkSpec],
    workdir: Path,
) -> Iterator[list[AudioChunk]]:
    """Render one audio file per chunk spec and delete them all on exit.

    Either every chunk is rendered or none is kept: a failure on chunk ``i``
    removes chunks ``0..i-1`` before :class:`ChunkExtractionError` propagates.
    """
    workdir.mkdir(parents=True, exist_ok=True)

    with ExitStack() as stack:
        chunks: list[AudioChunk] = []
        for spec in specs:
            out_path = workdir / chunk_filename(spec)
            stack.callback(_remove, out_path)
            end_label = f"{spec.end_offset:.2f}" if spec.bounded else "end"
            logger.info("Creating chunk %d: %.2f - %s sec", spec.index + 1, spec.start_offset, end_label)
            try:
                media.render_chunk(source, out_path, spec.start_offset, spec.end_offset)
            except Exception as exc:  # noqa: BLE001 - media adapters raise their own types
                raise ChunkExtractionError(
                    spec.index,
                    f"Creating chunk {spec.index + 1}/{len(specs)} failed: {exc}",
                ) from exc
            chunks.append(AudioChunk(spec=spec, path=out_path))

        yield chunks
