from pathlib import Path

import pytest

from fakes import FakeMediaTool, FakeTranscriber
from splitscribe.audio import MediaToolMissingError
from splitscribe.chunking import ChunkExtractionError
from splitscribe.config import Config
from splitscribe.models import TranscriptionResult, TranscriptSegment
from splitscribe.pipeline import ChunkTranscriptionError, plan_chunks, transcribe_file


SILENCE_REPORT = [
    "[silencedetect @ 0x1] silence_start: 93.2",
    "[silencedetect @ 0x1] silence_end: 95 | silence_duration: 1.8",
    "[silencedetect @ 0x1] silence_start: 204.1",
    "[silencedetect @ 0x1] silence_end: 205 | silence_duration: 0.9",
]


@pytest.fixture(autouse=True)
def scratch_dir(tmp_path: Path, monkeypatch) -> Path:
    scratch = tmp_path / "scratch"
    monkeypatch.setenv("SPLITSCRIBE_TMP_DIR", str(scratch))
    return scratch


def _write_audio(tmp_path: Path, size_mb: float, name: str = "talk.wav") -> Path:
    path = tmp_path / name
    path.write_bytes(b"\0" * int(size_mb * 1024 * 1024))
    return path


def _segment_result(text: str, start: float, end: float, language: str = "en") -> TranscriptionResult:
    return TranscriptionResult(
        text=text,
        language=language,
        segments=[TranscriptSegment(id=1, start=start, end=end, text=text)],
        duration=end,
    )


def _scratch_files(scratch: Path) -> list[Path]:
    return [path for path in scratch.rglob("*") if path.is_file()]


def test_small_file_is_transcribed_directly(tmp_path: Path, scratch_dir: Path):
    media = FakeMediaTool()
    direct = _segment_result("whole file", 0.0, 12.0)
    transcriber = FakeTranscriber([direct])
    source = _write_audio(tmp_path, 0.5)

    result = transcribe_file(source, Config(max_file_size_mb=1), media=media, transcriber=transcriber)

    assert result is direct
    assert transcriber.seen == [source]
    assert media.calls == ["ensure_available"]


def test_large_file_is_split_on_silences_and_merged(tmp_path: Path, scratch_dir: Path):
    media = FakeMediaTool(duration=300.0, silence_lines=SILENCE_REPORT)
    transcriber = FakeTranscriber(
        [
            _segment_result("first", 1.0, 90.0),
            TranscriptionResult(text="no timing", language=""),
            _segment_result("third", 0.5, 80.0, language="de"),
        ]
    )
    events: list[dict[str, object]] = []
    # 2.5 MB over a 1 MB limit -> 3 planned chunks of 100 sec.
    source = _write_audio(tmp_path, 2.5)

    result = transcribe_file(
        source,
        Config(max_file_size_mb=1),
        media=media,
        transcriber=transcriber,
        on_progress=events.append,
    )

    assert [(start, end) for _path, start, end in media.rendered] == [(0.0, 95.0), (95.0, 205.0), (205.0, None)]
    assert [seg.id for seg in result.segments] == [1, 2, 3]
    assert [(seg.start, seg.end) for seg in result.segments] == [(1.0, 90.0), (95.0, 105.0), (205.5, 285.0)]
    assert result.language == "en"
    assert result.text == "first\nno timing\nthird\n"
    assert result.duration == 285.0

    assert [event["stage"] for event in events][-1] == "merge"
    assert _scratch_files(scratch_dir) == []


def test_transcription_failure_reports_chunk_and_removes_files(tmp_path: Path, scratch_dir: Path):
    media = FakeMediaTool(duration=300.0, silence_lines=SILENCE_REPORT)
    transcriber = FakeTranscriber(
        [
            _segment_result("first", 1.0, 90.0),
            RuntimeError("502 Bad Gateway"),
        ]
    )
    source = _write_audio(tmp_path, 2.5)

    with pytest.raises(ChunkTranscriptionError) as excinfo:
        transcribe_file(source, Config(max_file_size_mb=1), media=media, transcriber=transcriber)

    assert excinfo.value.chunk_index == 1
    assert "chunk 2/3" in str(excinfo.value)
    assert "502 Bad Gateway" in str(excinfo.value)
    assert len(transcriber.seen) == 2
    assert _scratch_files(scratch_dir) == []


def test_extraction_failure_aborts_before_transcription(tmp_path: Path, scratch_dir: Path):
    media = FakeMediaTool(duration=300.0, silence_lines=SILENCE_REPORT, fail_on_chunk=1)
    transcriber = FakeTranscriber([])
    source = _write_audio(tmp_path, 2.5)

    with pytest.raises(ChunkExtractionError) as excinfo:
        transcribe_file(source, Config(max_file_size_mb=1), media=media, transcriber=transcriber)

    assert excinfo.value.chunk_index == 1
    assert transcriber.seen == []
    assert _scratch_files(scratch_dir) == []


def test_missing_media_tool_aborts_before_any_work(tmp_path: Path):
    media = FakeMediaTool(available=False)
    transcriber = FakeTranscriber([])
    source = _write_audio(tmp_path, 2.5)

    with pytest.raises(MediaToolMissingError):
        transcribe_file(source, Config(max_file_size_mb=1), media=media, transcriber=transcriber)

    assert media.calls == ["ensure_available"]
    assert transcriber.seen == []


def test_video_source_is_converted_and_temp_audio_removed(tmp_path: Path, scratch_dir: Path):
    media = FakeMediaTool()
    transcriber = FakeTranscriber([_segment_result("from video", 0.0, 3.0)])
    source = _write_audio(tmp_path, 0.1, name="clip.mp4")

    result = transcribe_file(source, Config(max_file_size_mb=1), media=media, transcriber=transcriber)

    assert result.text == "from video"
    assert media.calls == ["ensure_available", "extract_audio"]
    assert transcriber.seen == media.extracted
    assert not media.extracted[0].exists()
    assert _scratch_files(scratch_dir) == []


def test_stop_fallback_yields_single_chunk_without_silences(tmp_path: Path):
    media = FakeMediaTool(duration=300.0, silence_lines=[])
    transcriber = FakeTranscriber([_segment_result("everything", 0.0, 299.0)])
    source = _write_audio(tmp_path, 2.5)

    result = transcribe_file(
        source,
        Config(max_file_size_mb=1, split_fallback="stop"),
        media=media,
        transcriber=transcriber,
    )

    assert [(start, end) for _path, start, end in media.rendered] == [(0.0, None)]
    assert [(seg.start, seg.end) for seg in result.segments] == [(0.0, 299.0)]


def test_plan_chunks_returns_specs_cut_at_silence_ends(tmp_path: Path):
    media = FakeMediaTool(duration=300.0, silence_lines=SILENCE_REPORT)

    specs = plan_chunks(media, tmp_path / "talk.wav", 2.5, Config(max_file_size_mb=1))

    assert [(spec.start_offset, spec.end_offset) for spec in specs] == [(0.0, 95.0), (95.0, 205.0), (205.0, None)]
    assert media.calls == ["probe_duration", "silence_report"]
