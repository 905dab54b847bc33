# audioscribe/services/export.py
"""Plain-text and PDF renderings of a stored transcription."""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

import fitz  # PyMuPDF

from audioscribe.core.errors import BadRequest

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 50
LINE_GAP = 5


class ExportFormat(str, enum.Enum):
    TXT = "txt"
    PDF = "pdf"


MEDIA_TYPES = {
    ExportFormat.TXT: "text/plain",
    ExportFormat.PDF: "application/pdf",
}


@dataclass(frozen=True)
class TextStyle:
    font: str  # PyMuPDF base-14 font alias
    size: float


TITLE = TextStyle("hebo", 16)
HEADER = TextStyle("hebo", 14)
META = TextStyle("helv", 12)
BODY = TextStyle("helv", 10)


@dataclass(frozen=True)
class PlacedLine:
    page: int
    y: float  # baseline, measured up from the bottom edge
    text: str
    style: TextStyle


Measure = Callable[[str, TextStyle], float]


def text_width(text: str, style: TextStyle) -> float:
    return fitz.get_text_length(text, fontname=style.font, fontsize=style.size)


def format_time(seconds: float) -> str:
    """M:SS under an hour, H:MM:SS from an hour on."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_duration(segments: Sequence) -> str:
    """End time of the last segment, or 0:00 when there are none."""
    if not segments:
        return "0:00"
    return format_time(segments[-1].end_time)


def format_date(created_at) -> str:
    return f"{created_at.month}/{created_at.day}/{created_at.year}"


def segment_line(segment) -> str:
    speaker = f"[{segment.speaker}] " if segment.speaker else ""
    return f"{format_time(segment.start_time)} {speaker}{segment.text}"


def _ordered(segments: Sequence) -> list:
    return sorted(segments, key=lambda seg: seg.start_time)


def render_text(transcription) -> str:
    segments = _ordered(transcription.segments)
    content = f"Transcription: {transcription.original_name}\n"
    content += f"Date: {format_date(transcription.created_at)}\n"
    content += f"Duration: {format_duration(segments)}\n\n"

    if transcription.summary:
        content += f"SUMMARY:\n{transcription.summary}\n\n"

    content += "TRANSCRIPT:\n\n"
    for segment in segments:
        content += f"{segment_line(segment)}\n\n"
    return content


def wrap_words(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """
    Greedy word wrap: each line takes as many whole words as fit in ``max_width``.
    Words are never split; a word wider than the line gets a line of its own.
    """
    lines = []
    line = ""
    for word in text.split(" "):
        test_line = f"{line} {word}" if line else word
        if measure(test_line) > max_width and line:
            lines.append(line)
            line = word
        else:
            line = test_line
    if line:
        lines.append(line)
    return lines


class PageLayout:
    """Places wrapped lines top to bottom, opening a new page at the bottom margin."""

    def __init__(self, measure: Measure = text_width, page_width: float = PAGE_WIDTH,
                 page_height: float = PAGE_HEIGHT, margin: float = MARGIN):
        self.measure = measure
        self.page_height = page_height
        self.margin = margin
        self.content_width = page_width - 2 * margin
        self.page = 0
        self.y = page_height - margin
        self.lines: List[PlacedLine] = []

    @property
    def page_count(self) -> int:
        return self.page + 1

    def add_text(self, text: str, style: TextStyle) -> None:
        for paragraph in text.split("\n"):
            for line in wrap_words(paragraph, self.content_width, lambda s: self.measure(s, style)):
                self._place(line, style)

    def skip(self, points: float) -> None:
        self.y -= points

    def _place(self, line: str, style: TextStyle) -> None:
        if self.y < self.margin:
            self.page += 1
            self.y = self.page_height - self.margin
        self.lines.append(PlacedLine(self.page, self.y, line, style))
        self.y -= style.size + LINE_GAP


def layout_document(transcription, measure: Measure = text_width) -> PageLayout:
    segments = _ordered(transcription.segments)
    layout = PageLayout(measure)

    layout.add_text(f"Transcription: {transcription.original_name}", TITLE)
    layout.skip(10)
    layout.add_text(f"Date: {format_date(transcription.created_at)}", META)
    layout.add_text(f"Duration: {format_duration(segments)}", META)
    layout.skip(20)

    if transcription.summary:
        layout.add_text("SUMMARY:", HEADER)
        layout.skip(5)
        layout.add_text(transcription.summary, META)
        layout.skip(20)

    layout.add_text("TRANSCRIPT:", HEADER)
    layout.skip(10)
    for segment in segments:
        layout.add_text(segment_line(segment), BODY)
        layout.skip(10)
    return layout


def render_pdf(transcription) -> bytes:
    layout = layout_document(transcription)
    doc = fitz.open()
    try:
        pages = [doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT) for _ in range(layout.page_count)]
        for line in layout.lines:
            # PyMuPDF measures y down from the top edge
            pages[line.page].insert_text(
                (layout.margin, PAGE_HEIGHT - line.y),
                line.text,
                fontname=line.style.font,
                fontsize=line.style.size,
            )
        data = doc.tobytes()
    finally:
        doc.close()
    logger.info(f"Rendered PDF for transcription {transcription.id}: {layout.page_count} page(s), {len(layout.lines)} lines")
    return data


def parse_format(value: str) -> ExportFormat:
    try:
        return ExportFormat(value.lower())
    except ValueError:
        raise BadRequest("Invalid format") from None


def export_transcription(transcription, export_format: ExportFormat) -> Tuple[bytes, str, str]:
    """Returns (content, media type, download file name)."""
    if export_format is ExportFormat.PDF:
        content = render_pdf(transcription)
    else:
        content = render_text(transcription).encode("utf-8")
    # Header values must stay ASCII
    name = transcription.original_name.encode("ascii", "ignore").decode().replace('"', "") or "transcription"
    filename = f"{name}.{export_format.value}"
    return content, MEDIA_TYPES[export_format], filename
