"""
PDF export of a lab record (reportlab canvas).

Layout works on a millimetre cursor that moves down the page: a section
starts on a new page when the cursor is past ``page height - 47mm`` (250mm
on portrait A4) and a content line wraps to a new page past
``page height - 27mm`` (270mm). The layout is computed first as a list of
pages of drawing operations, then painted onto the canvas.
"""
from __future__ import annotations

import dataclasses
import logging
from io import BytesIO
from typing import List, Sequence, Union

from reportlab.lib.pagesizes import A4, landscape, portrait
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from app.models.database_models import Section, SectionType
from app.models.section_content import StudentDetails, decode_section_content
from app.services.document_selection import select_visible_sections
from app.utils.errors import SectionContentError

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class TextOp:
    x: float  # mm from the left edge
    y: float  # mm from the top edge (baseline)
    text: str
    font: str
    size: float
    centered: bool = False


@dataclasses.dataclass
class RuleOp:
    x1: float
    y: float
    x2: float
    width: float = 0.5


DrawOp = Union[TextOp, RuleOp]


@dataclasses.dataclass
class PdfLayout:
    page_width: float  # mm
    page_height: float  # mm
    pages: List[List[DrawOp]]

    def texts(self) -> List[str]:
        """Every text run in drawing order across all pages."""
        return [op.text for page in self.pages for op in page if isinstance(op, TextOp)]


class PdfExporter:
    """Lays out and renders visible sections to an A4 PDF."""

    MARGIN_LEFT = 20.0
    MARGIN_RIGHT = 20.0
    MARGIN_TOP = 20.0
    CONTENT_INDENT = 5.0
    SECTION_BREAK_GAP = 47.0
    LINE_BREAK_GAP = 27.0

    TITLE_FONT = ("Helvetica-Bold", 20)
    HEADING_FONT = ("Helvetica-Bold", 16)
    BODY_FONT = ("Helvetica", 11)
    CODE_FONT = ("Courier", 10)

    def __init__(self, orientation: str = "portrait") -> None:
        self.orientation = orientation
        pagesize = landscape(A4) if orientation == "landscape" else portrait(A4)
        self.pagesize = pagesize
        self.page_width = pagesize[0] / mm
        self.page_height = pagesize[1] / mm

    @property
    def text_width(self) -> float:
        return self.page_width - self.MARGIN_LEFT - self.MARGIN_RIGHT

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def layout(self, title: str, sections: Sequence[Section]) -> PdfLayout:
        pages: List[List[DrawOp]] = [[]]
        section_limit = self.page_height - self.SECTION_BREAK_GAP
        line_limit = self.page_height - self.LINE_BREAK_GAP
        y = self.MARGIN_TOP

        def new_page() -> float:
            pages.append([])
            return self.MARGIN_TOP

        font, size = self.TITLE_FONT
        pages[-1].append(TextOp(self.page_width / 2, y, title, font, size, centered=True))
        y += 15
        pages[-1].append(RuleOp(self.MARGIN_LEFT, y, self.page_width - self.MARGIN_RIGHT))
        y += 10

        for section in select_visible_sections(sections):
            if y > section_limit:
                y = new_page()

            font, size = self.HEADING_FONT
            pages[-1].append(TextOp(self.MARGIN_LEFT, y, section.title, font, size))
            y += 8

            if section.section_type == SectionType.STUDENT_DETAILS.value:
                for line in self._student_detail_lines(section):
                    if y > line_limit:
                        y = new_page()
                    font, size = self.BODY_FONT
                    pages[-1].append(TextOp(self.MARGIN_LEFT + self.CONTENT_INDENT, y, line, font, size))
                    y += 6
            else:
                is_code = section.section_type == SectionType.CODE.value
                font, size = self.CODE_FONT if is_code else self.BODY_FONT
                for line in self._wrap(section.content or "", font, size, verbatim=is_code):
                    if y > line_limit:
                        y = new_page()
                    pages[-1].append(TextOp(self.MARGIN_LEFT + self.CONTENT_INDENT, y, line, font, size))
                    y += 5

            y += 8

        return PdfLayout(self.page_width, self.page_height, pages)

    def _student_detail_lines(self, section: Section) -> List[str]:
        try:
            details = decode_section_content(section.section_type, section.content)
        except SectionContentError as exc:
            logger.warning("Skipping student details of section %s: %s", section.id, exc)
            return []
        if not isinstance(details, StudentDetails):
            return []
        return [f"{label}: {value}" for label, value in details.labelled_fields()]

    def _wrap(self, text: str, font: str, size: float, verbatim: bool = False) -> List[str]:
        """Wrap to the text width; verbatim lines keep their spacing and break by character."""
        lines: List[str] = []
        max_width = self.text_width * mm
        per_line = max(1, int(max_width // stringWidth("M", font, size)))
        for raw_line in text.split("\n"):
            if verbatim:
                chunks = [raw_line[i:i + per_line] for i in range(0, len(raw_line), per_line)]
                lines.extend(chunks or [""])
            else:
                lines.extend(simpleSplit(raw_line, font, size, max_width) or [""])
        return lines

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, title: str, sections: Sequence[Section]) -> bytes:
        """PDF bytes for the visible sections of a record."""
        plan = self.layout(title, sections)
        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=self.pagesize)
        pdf.setTitle(title)

        for index, page in enumerate(plan.pages):
            if index:
                pdf.showPage()
            for op in page:
                self._draw(pdf, op)

        pdf.save()
        logger.info("Rendered PDF %r: %d pages", title, len(plan.pages))
        return buffer.getvalue()

    def _draw(self, pdf: canvas.Canvas, op: DrawOp) -> None:
        top = self.page_height
        if isinstance(op, RuleOp):
            pdf.setLineWidth(op.width)
            pdf.line(op.x1 * mm, (top - op.y) * mm, op.x2 * mm, (top - op.y) * mm)
            return
        pdf.setFont(op.font, op.size)
        if op.centered:
            pdf.drawCentredString(op.x * mm, (top - op.y) * mm, op.text)
        else:
            pdf.drawString(op.x * mm, (top - op.y) * mm, op.text)
