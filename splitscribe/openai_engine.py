from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Any

from .base import Transcriber
from .models import TranscriptionResult, TranscriptSegment


logger = logging.getLogger(__name__)

DEFAULT_MODEL = "whisper-large-v3"
RESPONSE_FORMAT = "verbose_json"
REQUEST_TIMEOUT_SEC = 600.0


class TranscriptionError(RuntimeError):
    pass


def _to_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump()  # pydantic style
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return dict(value)


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_transcription(payload: dict[str, Any]) -> TranscriptionResult:
    segments: list[TranscriptSegment] = []
    for raw in payload.get("segments") or []:
        if not isinstance(raw, dict):
            raw = _to_dict(raw)

        start = _as_float(raw.get("start"), 0.0)
        end = _as_float(raw.get("end"), start)
        segments.append(
            TranscriptSegment(
                id=len(segments) + 1,
                start=start,
                end=max(start, end),
                text=str(raw.get("text") or ""),
            )
        )

    return TranscriptionResult(
        text=str(payload.get("text") or ""),
        language=str(payload.get("language") or ""),
        segments=segments,
        duration=_as_float(payload.get("duration"), 0.0),
    )


class OpenAITranscriber(Transcriber):
    """Whisper transcription through any OpenAI-compatible endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        model: str = DEFAULT_MODEL,
        language: str | None = None,
        auto_detect: bool = False,
        timeout: float = REQUEST_TIMEOUT_SEC,
        max_retries: int = 1,
    ):
        try:
            from openai import OpenAI
        except ImportError as exc:  # pragma: no cover - env dependent
            raise RuntimeError("The openai package is missing. Run: pip install openai") from exc

        if not api_key:
            raise RuntimeError("API key is missing. Set api_key in the config file or OPENAI_API_KEY.")

        client_kwargs: dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = OpenAI(**client_kwargs)
        self.model = model
        self.language = None if auto_detect else (language or None)
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))

    def _request(self, file_path: Path) -> Any:
        with file_path.open("rb") as audio_file:
            kwargs: dict[str, Any] = {
                "model": self.model,
                "file": audio_file,
                "response_format": RESPONSE_FORMAT,
                "timeout": self.timeout,
            }
            if self.language:
                kwargs["language"] = self.language
            return self.client.audio.transcriptions.create(**kwargs)

    def transcribe(self, file_path: Path) -> TranscriptionResult:
        logger.info("Transcribing %s with %s", file_path, self.model)
        backoff = 1.0
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self._request(file_path)
            except Exception as exc:  # noqa: BLE001 - retry on provider errors
                last_error = exc
                if attempt >= self.max_retries:
                    break
                logger.warning("Transcription attempt %d/%d failed: %s", attempt, self.max_retries, exc)
                jitter = random.uniform(0.05, 0.4)
                time.sleep(backoff + jitter)
                backoff = min(backoff * 2, 12.0)
                continue

            result = parse_transcription(_to_dict(response))
            logger.info(
                "Transcribed %s: language=%s, segments=%d, chars=%d",
                file_path.name,
                result.language or "?",
                len(result.segments),
                len(result.text),
            )
            return result

        raise TranscriptionError(
            f"Transcription failed after {self.max_retries} attempt(s): {last_error}"
        ) from last_error
