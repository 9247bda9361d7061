from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path

from .base import MediaTool


logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHANNELS = 1
AUDIO_CODEC = "pcm_s16le"

VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".flv", ".wmv", ".webm", ".m4v"}


class MediaToolMissingError(RuntimeError):
    pass


class MediaToolError(RuntimeError):
    pass


def ffmpeg_bin() -> str:
    return os.environ.get("FFMPEG_BIN", "ffmpeg")


def ffprobe_bin() -> str:
    return os.environ.get("FFPROBE_BIN", "ffprobe")


def is_video_file(path: Path) -> bool:
    return path.suffix.lower() in VIDEO_EXTENSIONS


def file_size_mb(path: Path) -> float:
    return path.stat().st_size / (1024 * 1024)


def run(cmd: list[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError as exc:
        raise MediaToolMissingError(f"{cmd[0]} not found. Install ffmpeg first.") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
        tail = stderr.splitlines()[-1] if stderr else f"exit code {exc.returncode}"
        raise MediaToolError(f"{Path(cmd[0]).name} failed: {tail}") from exc


def _normalized_output_args(out_path: Path) -> list[str]:
    return [
        "-vn",
        "-ac",
        str(CHANNELS),
        "-ar",
        str(SAMPLE_RATE),
        "-c:a",
        AUDIO_CODEC,
        "-y",
        str(out_path),
    ]


class FfmpegMediaTool(MediaTool):
    def ensure_available(self) -> None:
        for binary in (ffmpeg_bin(), ffprobe_bin()):
            if shutil.which(binary) is None:
                raise MediaToolMissingError(f"{binary} not found. Install ffmpeg first.")

    def extract_audio(self, source: Path, out_path: Path) -> None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Extracting audio: %s -> %s", source, out_path)
        run([ffmpeg_bin(), "-i", str(source), *_normalized_output_args(out_path)])

    def probe_duration(self, source: Path) -> float:
        cmd = [
            ffprobe_bin(),
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "json",
            str(source),
        ]
        completed = run(cmd)
        try:
            payload = json.loads(completed.stdout.decode("utf-8"))
            duration = float(payload.get("format", {}).get("duration", 0) or 0)
        except (ValueError, AttributeError) as exc:
            raise MediaToolError(f"Could not read duration of {source} via ffprobe") from exc
        if duration <= 0:
            raise MediaToolError(f"Could not read duration of {source} via ffprobe")
        return duration

    def silence_report(self, source: Path, *, threshold: str, min_duration: float) -> list[str]:
        cmd = [
            ffmpeg_bin(),
            "-nostdin",
            "-i",
            str(source),
            "-af",
            f"silencedetect=noise={threshold}:d={min_duration:.2f}",
            "-f",
            "null",
            "-",
        ]
        logger.info("Detecting silence in %s (noise=%s, d=%.2f)", source, threshold, min_duration)
        completed = run(cmd)
        # silencedetect reports on stderr.
        return completed.stderr.decode("utf-8", errors="replace").splitlines()

    def render_chunk(self, source: Path, out_path: Path, start_sec: float, end_sec: float | None) -> None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [ffmpeg_bin(), "-i", str(source), "-ss", f"{start_sec:.3f}"]
        if end_sec is not None:
            cmd += ["-to", f"{end_sec:.3f}"]
        cmd += _normalized_output_args(out_path)
        run(cmd)
