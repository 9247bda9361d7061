from __future__ import annotations

import sys
import types
from pathlib import Path

import pytest

from splitscribe import openai_engine


class FakeTranscriptions:
    def __init__(self, actions: list[object]):
        self.actions = actions
        self.calls: list[dict[str, object]] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.actions:
            raise RuntimeError("no more actions configured")
        action = self.actions.pop(0)
        if isinstance(action, Exception):
            raise action
        return action


class FakeClient:
    def __init__(self, actions: list[object]):
        self.audio = types.SimpleNamespace(transcriptions=FakeTranscriptions(actions))


class FakeResponse:
    def __init__(self, payload: dict[str, object]):
        self.payload = payload

    def model_dump(self) -> dict[str, object]:
        return self.payload


def _install_fake_openai(monkeypatch, client: FakeClient) -> list[dict[str, object]]:
    constructed: list[dict[str, object]] = []

    class FakeOpenAIClass:
        def __init__(self, **kwargs):
            constructed.append(kwargs)
            self.audio = client.audio

    fake_module = types.SimpleNamespace(OpenAI=FakeOpenAIClass)
    monkeypatch.setitem(sys.modules, "openai", fake_module)
    return constructed


def _write_dummy_chunk(tmp_path: Path) -> Path:
    chunk_path = tmp_path / "chunk_0000.wav"
    chunk_path.write_bytes(b"fake-audio")
    return chunk_path


def test_openai_transcriber_parses_verbose_json(monkeypatch, tmp_path: Path):
    client = FakeClient(
        [
            FakeResponse(
                {
                    "text": " Hej fra whisper. Anden linje.",
                    "language": "danish",
                    "duration": 6.5,
                    "segments": [
                        {"id": 0, "start": 0.0, "end": 2.0, "text": " Hej fra whisper."},
                        {"id": 1, "start": "2.5", "end": None, "text": " Anden linje."},
                    ],
                }
            )
        ]
    )
    constructed = _install_fake_openai(monkeypatch, client)

    transcriber = openai_engine.OpenAITranscriber(
        "test-key",
        base_url="https://api.example.test/v1",
        model="whisper-large-v3",
        language="da",
    )
    result = transcriber.transcribe(_write_dummy_chunk(tmp_path))

    assert constructed == [{"api_key": "test-key", "base_url": "https://api.example.test/v1"}]
    assert result.language == "danish"
    assert result.duration == 6.5
    assert [seg.id for seg in result.segments] == [1, 2]
    assert (result.segments[1].start, result.segments[1].end) == (2.5, 2.5)
    assert result.segments[0].text == " Hej fra whisper."

    call = client.audio.transcriptions.calls[0]
    assert call["model"] == "whisper-large-v3"
    assert call["response_format"] == "verbose_json"
    assert call["language"] == "da"


def test_openai_transcriber_auto_detect_omits_language(monkeypatch, tmp_path: Path):
    client = FakeClient([{"text": "hello", "language": "english"}])
    constructed = _install_fake_openai(monkeypatch, client)

    transcriber = openai_engine.OpenAITranscriber("test-key", language="zh", auto_detect=True)
    result = transcriber.transcribe(_write_dummy_chunk(tmp_path))

    assert constructed == [{"api_key": "test-key"}]
    assert "language" not in client.audio.transcriptions.calls[0]
    assert result.text == "hello"
    assert result.segments == []


def test_openai_transcriber_does_not_retry_by_default(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(openai_engine.time, "sleep", lambda _seconds: None)
    client = FakeClient([RuntimeError("The request timed out."), {"text": "late"}])
    _install_fake_openai(monkeypatch, client)

    transcriber = openai_engine.OpenAITranscriber("test-key")
    with pytest.raises(openai_engine.TranscriptionError, match="timed out"):
        transcriber.transcribe(_write_dummy_chunk(tmp_path))

    assert len(client.audio.transcriptions.calls) == 1


def test_openai_transcriber_retries_when_configured(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(openai_engine.time, "sleep", lambda _seconds: None)
    client = FakeClient([RuntimeError("The request timed out."), {"text": "Test", "segments": []}])
    _install_fake_openai(monkeypatch, client)

    transcriber = openai_engine.OpenAITranscriber("test-key", max_retries=2)
    result = transcriber.transcribe(_write_dummy_chunk(tmp_path))

    assert result.text == "Test"
    assert len(client.audio.transcriptions.calls) == 2


def test_openai_transcriber_raises_after_retry_exhaustion(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(openai_engine.time, "sleep", lambda _seconds: None)
    client = FakeClient([RuntimeError("The request timed out."), RuntimeError("The request timed out.")])
    _install_fake_openai(monkeypatch, client)

    transcriber = openai_engine.OpenAITranscriber("test-key", max_retries=2)
    try:
        transcriber.transcribe(_write_dummy_chunk(tmp_path))
    except openai_engine.TranscriptionError as exc:
        message = str(exc)
        assert "failed after 2 attempt(s)" in message
        assert "timed out" in message.lower()
    else:
        raise AssertionError("Expected TranscriptionError after retries")

    assert len(client.audio.transcriptions.calls) == 2


def test_openai_transcriber_requires_api_key(monkeypatch):
    _install_fake_openai(monkeypatch, FakeClient([]))

    with pytest.raises(RuntimeError, match="API key"):
        openai_engine.OpenAITranscriber("")
