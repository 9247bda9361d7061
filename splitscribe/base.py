"""
Capability interfaces for the external collaborators of a transcription job.

The pipeline only talks to media tooling and the speech-recognition service
through these, so tests can hand in deterministic fakes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from .models import TranscriptionResult


class MediaTool(ABC):
    """Audio extraction, probing, silence detection and slicing."""

    def ensure_available(self) -> None:
        """Raise if the underlying tooling cannot be used."""

    @abstractmethod
    def extract_audio(self, source: Path, out_path: Path) -> None:
        """Write the audio track of ``source`` to ``out_path`` in the normalized format."""
        ...

    @abstractmethod
    def probe_duration(self, source: Path) -> float:
        ...

    @abstractmethod
    def silence_report(self, source: Path, *, threshold: str, min_duration: float) -> list[str]:
        """
        Run silence detection over ``source``

        :return: the detector's diagnostic output, one entry per line
        """
        ...

    @abstractmethod
    def render_chunk(self, source: Path, out_path: Path, start_sec: float, end_sec: float | None) -> None:
        """Materialize ``[start_sec, end_sec)`` of ``source``; ``end_sec=None`` runs to the end."""
        ...


class Transcriber(ABC):
    """Speech-recognition service."""

    @abstractmethod
    def transcribe(self, file_path: Path) -> TranscriptionResult:
        """
        Transcribe one audio file that fits within the service's size limit

        :param file_path: audio file path
        :return: text, detected language and chunk-local segments
        """
        ...
