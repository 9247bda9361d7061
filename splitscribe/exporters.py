from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from .models import TranscriptionResult


SUPPORTED_FORMATS = ("txt", "srt", "json", "docx")

TIME_COL_WIDTH_CM = 5.2
TEXT_COL_WIDTH_CM = 11.8


class UnsupportedFormatError(ValueError):
    pass


def format_srt_time(seconds: float) -> str:
    # Truncate to whole milliseconds; the epsilon keeps 3661.234 from becoming 233 ms.
    total_ms = max(0, int(math.floor(seconds * 1000 + 1e-6)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def render_txt(result: TranscriptionResult) -> str:
    if result.segments:
        return "".join(f"{segment.text}\n" for segment in result.segments)
    return result.text


def render_srt(result: TranscriptionResult) -> str:
    blocks: list[str] = []
    for segment in result.segments:
        blocks.append(
            f"{segment.id}\n"
            f"{format_srt_time(segment.start)} --> {format_srt_time(segment.end)}\n"
            f"{segment.text}\n\n"
        )
    return "".join(blocks)


def render_json(result: TranscriptionResult) -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2)


def export_txt(result: TranscriptionResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_txt(result), encoding="utf-8")


def export_srt(result: TranscriptionResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_srt(result), encoding="utf-8")


def export_json(result: TranscriptionResult, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_json(result), encoding="utf-8")


def _header_lines(result: TranscriptionResult, source_name: str) -> list[str]:
    return [
        f'File: "{Path(source_name).stem}"',
        f"Language: {result.language or 'unknown'}",
        f"Duration: {format_srt_time(result.duration)}",
        "",
    ]


def export_docx(result: TranscriptionResult, output_path: Path, *, source_name: str = "") -> None:
    try:
        from docx import Document
        from docx.enum.table import WD_TABLE_ALIGNMENT
        from docx.shared import Cm, Pt
    except ImportError as exc:  # pragma: no cover - env dependent
        raise RuntimeError("python-docx is missing. Run: pip install python-docx") from exc

    def _format_paragraph(paragraph: Any) -> None:
        paragraph.paragraph_format.space_after = Pt(0)
        paragraph.paragraph_format.space_before = Pt(0)
        paragraph.paragraph_format.line_spacing = 1.0

    doc = Document()
    style = doc.styles["Normal"]
    style.font.size = Pt(11)
    style.paragraph_format.space_after = Pt(0)
    style.paragraph_format.space_before = Pt(0)

    for line in _header_lines(result, source_name or output_path.name):
        _format_paragraph(doc.add_paragraph(line))

    if result.segments:
        table = doc.add_table(rows=0, cols=2)
        table.style = "Table Grid"
        table.autofit = False
        table.alignment = WD_TABLE_ALIGNMENT.LEFT
        table.columns[0].width = Cm(TIME_COL_WIDTH_CM)
        table.columns[1].width = Cm(TEXT_COL_WIDTH_CM)

        for segment in result.segments:
            row = table.add_row()
            row.cells[0].width = Cm(TIME_COL_WIDTH_CM)
            row.cells[1].width = Cm(TEXT_COL_WIDTH_CM)
            time_p = row.cells[0].paragraphs[0]
            _format_paragraph(time_p)
            time_p.add_run(f"{format_srt_time(segment.start)} --> {format_srt_time(segment.end)}")
            text_p = row.cells[1].paragraphs[0]
            _format_paragraph(text_p)
            text_p.add_run(segment.text.strip())
    else:
        for line in result.text.splitlines():
            _format_paragraph(doc.add_paragraph(line))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    doc.save(output_path)


def export(result: TranscriptionResult, fmt: str, output_path: Path, *, source_name: str = "") -> None:
    fmt = fmt.strip().lower()
    if fmt == "txt":
        export_txt(result, output_path)
    elif fmt == "srt":
        export_srt(result, output_path)
    elif fmt == "json":
        export_json(result, output_path)
    elif fmt == "docx":
        export_docx(result, output_path, source_name=source_name)
    else:
        raise UnsupportedFormatError(f"Unsupported output format: {fmt}")
