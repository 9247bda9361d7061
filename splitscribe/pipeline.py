from __future__ import annotations

import logging
import tempfile
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Callable

from .audio import file_size_mb, is_video_file
from .base import MediaTool, Transcriber
from .chunking import extract_chunks
from .config import Config
from .merge import merge_results
from .models import ChunkSpec, TranscriptionResult
from .paths import temp_dir
from .planner import build_chunk_specs, desired_chunk_count, plan_split_points
from .silence import parse_silence_events


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[dict[str, object]], None]


class ChunkTranscriptionError(RuntimeError):
    def __init__(self, chunk_index: int, total: int, cause: Exception):
        super().__init__(f"Transcribing chunk {chunk_index + 1}/{total} failed: {cause}")
        self.chunk_index = chunk_index


def progress_payload(
    *,
    stage: str,
    percent: float,
    chunks_done: int,
    chunks_total: int,
    message: str,
) -> dict[str, object]:
    return {
        "stage": stage,
        "percent": round(max(0.0, min(100.0, percent)), 2),
        "chunksDone": chunks_done,
        "chunksTotal": chunks_total,
        "message": message,
    }


def _noop(_payload: dict[str, object]) -> None:
    return None


def plan_chunks(media: MediaTool, audio_path: Path, size_mb: float, config: Config) -> list[ChunkSpec]:
    duration = media.probe_duration(audio_path)
    count = desired_chunk_count(size_mb, config.max_file_size_mb)
    logger.info(
        "Duration %.2f sec, size %.2f MB, planning %d chunks of ~%.2f sec",
        duration,
        size_mb,
        count,
        duration / count,
    )

    report = media.silence_report(
        audio_path,
        threshold=config.silence_threshold,
        min_duration=config.silence_duration,
    )
    silences = parse_silence_events(report)
    logger.info("Detected %d silence intervals", len(silences))

    split_points = plan_split_points(
        duration,
        size_mb,
        config.max_file_size_mb,
        silences,
        fallback=config.split_fallback,
    )
    logger.info("Split points: %s", ", ".join(f"{point:.2f}" for point in split_points) or "none")
    return build_chunk_specs(split_points)


def transcribe_chunked(
    *,
    media: MediaTool,
    transcriber: Transcriber,
    audio_path: Path,
    specs: list[ChunkSpec],
    workdir: Path,
    on_progress: ProgressCallback = _noop,
) -> TranscriptionResult:
    total = len(specs)
    results: list[TranscriptionResult] = []

    with extract_chunks(media, audio_path, specs, workdir) as chunks:
        started = time.monotonic()
        for chunk in chunks:
            on_progress(
                progress_payload(
                    stage="transcribe",
                    percent=10 + (len(results) / max(total, 1)) * 80,
                    chunks_done=len(results),
                    chunks_total=total,
                    message=f"Transcribing chunk {chunk.spec.index + 1}/{total}",
                )
            )
            try:
                results.append(transcriber.transcribe(chunk.path))
            except Exception as exc:  # noqa: BLE001 - any service error fails the job
                raise ChunkTranscriptionError(chunk.spec.index, total, exc) from exc

        logger.info("Transcribed %d chunks in %.1fs", total, time.monotonic() - started)

    on_progress(
        progress_payload(
            stage="merge",
            percent=94,
            chunks_done=total,
            chunks_total=total,
            message="Merging chunk transcripts...",
        )
    )
    return merge_results(results, specs)


def transcribe_file(
    source: Path,
    config: Config,
    *,
    media: MediaTool,
    transcriber: Transcriber,
    on_progress: ProgressCallback = _noop,
) -> TranscriptionResult:
    """Transcribe ``source``, splitting it on silences when it exceeds the size limit.

    Temporary audio and chunk files live in a per-job scratch directory that is
    removed on every exit path.
    """
    media.ensure_available()

    with ExitStack() as stack:
        workdir = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="splitscribe_", dir=temp_dir())))

        audio_path = source
        if is_video_file(source):
            on_progress(
                progress_payload(stage="preprocess", percent=3, chunks_done=0, chunks_total=0, message="Extracting audio...")
            )
            audio_path = workdir / "audio.wav"
            media.extract_audio(source, audio_path)

        size_mb = file_size_mb(audio_path)
        if size_mb <= config.max_file_size_mb:
            logger.info("File is %.2f MB, transcribing directly", size_mb)
            on_progress(
                progress_payload(stage="transcribe", percent=10, chunks_done=0, chunks_total=1, message="Transcribing...")
            )
            return transcriber.transcribe(audio_path)

        logger.info("File is %.2f MB, above the %.2f MB limit; splitting", size_mb, config.max_file_size_mb)
        on_progress(
            progress_payload(stage="split", percent=5, chunks_done=0, chunks_total=0, message="Planning chunks on silences...")
        )
        specs = plan_chunks(media, audio_path, size_mb, config)
        return transcribe_chunked(
            media=media,
            transcriber=transcriber,
            audio_path=audio_path,
            specs=specs,
            workdir=workdir / "chunks",
            on_progress=on_progress,
        )
