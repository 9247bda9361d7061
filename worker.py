#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Ensure local package is importable when running from source.
SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from splitscribe.audio import FfmpegMediaTool, MediaToolMissingError
from splitscribe.chunking import ChunkExtractionError
from splitscribe.config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from splitscribe.exporters import UnsupportedFormatError, export
from splitscribe.models import TranscriptionResult
from splitscribe.openai_engine import OpenAITranscriber
from splitscribe.paths import output_dir, output_path
from splitscribe.pipeline import ChunkTranscriptionError, transcribe_file


logger = logging.getLogger("splitscribe")


def emit(event_type: str, payload: object) -> None:
    print(json.dumps({"type": event_type, "payload": payload}, ensure_ascii=False), flush=True)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s │ %(levelname)-7s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def parse_formats(raw: str) -> list[str]:
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


def save_outputs(
    result: TranscriptionResult,
    *,
    source_path: Path,
    out_dir: Path,
    formats: list[str],
) -> list[str]:
    written: list[str] = []
    now = datetime.now()
    for fmt in formats:
        if fmt == "srt" and not result.segments:
            logger.warning("No segments in transcript, skipping SRT output")
            continue

        target = output_path(source_path, out_dir, fmt, now=now)
        try:
            export(result, fmt, target, source_name=source_path.name)
        except UnsupportedFormatError as exc:
            logger.warning("%s", exc)
            continue
        except OSError as exc:
            logger.warning("Saving %s failed: %s", fmt.upper(), exc)
            continue

        logger.info("Saved %s", target)
        written.append(str(target))
    return written


def command_run(args: argparse.Namespace) -> int:
    source_path = Path(args.input).expanduser().resolve()
    if not source_path.exists():
        emit("error", {"message": f"Input file does not exist: {source_path}"})
        return 1

    try:
        config = load_config(Path(args.config)).with_overrides(
            language=args.language,
            model=args.model,
            output_dir=args.output,
            auto_detect=args.auto_detect,
        )
    except ConfigError as exc:
        emit("error", {"message": str(exc)})
        return 1

    if not config.api_key:
        emit("error", {"message": "API key is missing. Set api_key in the config file or OPENAI_API_KEY."})
        return 1

    logger.info(
        "Base URL: %s, model: %s, language: %s (auto-detect: %s), max file size: %.0f MB",
        config.api_base_url or "default",
        config.model,
        config.language,
        config.auto_detect,
        config.max_file_size_mb,
    )

    try:
        transcriber = OpenAITranscriber(
            config.api_key,
            base_url=config.api_base_url or None,
            model=config.model,
            language=config.language,
            auto_detect=config.auto_detect,
            timeout=config.request_timeout_sec,
            max_retries=config.max_retries,
        )
        result = transcribe_file(
            source_path,
            config,
            media=FfmpegMediaTool(),
            transcriber=transcriber,
            on_progress=lambda payload: emit("progress", payload),
        )
    except MediaToolMissingError as exc:
        emit("error", {"message": str(exc)})
        return 1
    except (ChunkExtractionError, ChunkTranscriptionError) as exc:
        emit("error", {"message": str(exc), "chunkIndex": exc.chunk_index})
        return 1
    except Exception as exc:  # noqa: BLE001 - report any job failure as an error event
        logger.debug("Job failed", exc_info=True)
        emit("error", {"message": str(exc)})
        return 1

    written = save_outputs(
        result,
        source_path=source_path,
        out_dir=output_dir(config.output_dir),
        formats=parse_formats(args.formats),
    )

    emit(
        "result",
        {
            "sourcePath": str(source_path),
            "language": result.language,
            "textLength": len(result.text),
            "segments": len(result.segments),
            "durationSec": round(result.duration, 3),
            "outputFiles": written,
        },
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transcribe audio/video, splitting large files on silences")
    parser.add_argument("input", help="audio or video file to transcribe")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="path to the JSON config file")
    parser.add_argument("--language", default="", help="language code, e.g. zh, en, ja")
    parser.add_argument("--auto-detect", action="store_true", help="let the service detect the language")
    parser.add_argument("--model", default="", help="transcription model name")
    parser.add_argument("--output", default="", help="output directory")
    parser.add_argument("--formats", default="txt,srt,json", help="comma-separated output formats (txt, srt, json, docx)")
    parser.add_argument("--verbose", action="store_true", help="log progress details to stderr")
    parser.set_defaults(func=command_run)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
