"""Tests for PDF, Markdown and SRT rendering."""
import pytest

from core.postprocessing.markdown_generator import render_markdown
from core.postprocessing.srt_generator import render_srt
from core.postprocessing.timestamps import format_clock, format_srt_time, wrap_text
from flask_app.services.postprocessing import DocumentService
from models.segment import TimedSegment
from utils.exceptions import RenderError

SEGMENTS = [
    TimedSegment(0.0, 3.2, "Welcome to this educational video"),
    TimedSegment(61.5, 65.25, "Today we will talk about Arabic"),
]


@pytest.mark.parametrize("seconds, expected", [
    (0, "0:00"), (3.9, "0:03"), (61.5, "1:01"), (3599, "59:59"), (3600, "60:00"),
])
def test_format_clock(seconds, expected):
    assert format_clock(seconds) == expected


@pytest.mark.parametrize("seconds, expected", [
    (0, "00:00:00,000"), (3.2, "00:00:03,200"), (65.25, "00:01:05,250"), (3723.5, "01:02:03,500"),
])
def test_format_srt_time(seconds, expected):
    assert format_srt_time(seconds) == expected


def test_wrap_text_respects_width():
    text = " ".join(["word"] * 40)
    lines = wrap_text(text, 20)
    assert all(len(line) <= 20 for line in lines)
    assert " ".join(lines) == text
    assert wrap_text("x" * 30, 10) == ["x" * 30]
    assert wrap_text("") == []


def test_markdown_layout():
    markdown = render_markdown(SEGMENTS, 'My: "Video"')

    assert markdown == (
        "# My Video\n\n"
        "## English Transcript with Timestamps\n\n"
        "**[0:00 - 0:03]** Welcome to this educational video\n\n"
        "**[1:01 - 1:05]** Today we will talk about Arabic\n\n"
    )


def test_markdown_applies_time_offset():
    markdown = render_markdown(SEGMENTS[:1], "Clip", time_offset=120)
    assert "**[2:00 - 2:03]**" in markdown


def test_srt_layout():
    assert render_srt(SEGMENTS) == (
        "1\n00:00:00,000 --> 00:00:03,200\nWelcome to this educational video\n"
        "\n"
        "2\n00:01:01,500 --> 00:01:05,250\nToday we will talk about Arabic\n"
    )


def test_srt_applies_time_offset():
    assert "00:00:10,000 --> 00:00:13,200" in render_srt(SEGMENTS[:1], time_offset=10)


@pytest.mark.parametrize("file_type, suffix", [("pdf", ".pdf"), ("markdown", ".md"), ("srt", ".srt")])
def test_document_service_writes_each_type(tmp_path, file_type, suffix):
    output = tmp_path / file_type / f"Lecture_1{suffix}"

    path = DocumentService().render(file_type, SEGMENTS, "Lecture", output)

    assert path == output
    assert output.exists() and output.stat().st_size > 0


def test_pdf_handles_non_latin_text(tmp_path):
    segments = [TimedSegment(0.0, 2.0, "مرحبا " * 40)]

    path = DocumentService().render("pdf", segments, "عنوان", tmp_path / "arabic.pdf")

    assert path.read_bytes().startswith(b"%PDF")


def test_document_service_rejects_unknown_type(tmp_path):
    with pytest.raises(RenderError):
        DocumentService().render("docx", SEGMENTS, "Lecture", tmp_path / "out.docx")
