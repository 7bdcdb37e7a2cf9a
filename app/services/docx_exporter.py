"""
Word (.docx) export of a lab record (python-docx).
"""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Sequence

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from app.models.database_models import Section, SectionType
from app.models.section_content import StudentDetails, decode_section_content
from app.services.document_selection import select_visible_sections
from app.utils.errors import SectionContentError

logger = logging.getLogger(__name__)


class DocxExporter:
    """Builds a paragraph sequence mirroring the PDF traversal."""

    def __init__(self, orientation: str = "portrait") -> None:
        self.orientation = orientation

    def build(self, title: str, sections: Sequence[Section]) -> Document:
        doc = Document()
        style = doc.styles["Normal"]
        style.font.name = "Calibri"
        style.font.size = Pt(11)

        if self.orientation == "landscape":
            page = doc.sections[0]
            page.orientation = WD_ORIENT.LANDSCAPE
            page.page_width, page.page_height = page.page_height, page.page_width

        heading = doc.add_paragraph(title, style="Title")
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        heading.paragraph_format.space_after = Pt(20)

        for section in select_visible_sections(sections):
            h = doc.add_heading(section.title, level=1)
            h.paragraph_format.space_before = Pt(15)
            h.paragraph_format.space_after = Pt(10)

            if section.section_type == SectionType.STUDENT_DETAILS.value:
                self._add_student_details(doc, section)
            else:
                self._add_lines(doc, section)

            spacer = doc.add_paragraph("")
            spacer.paragraph_format.space_after = Pt(10)

        return doc

    def _add_student_details(self, doc: Document, section: Section) -> None:
        try:
            details = decode_section_content(section.section_type, section.content)
        except SectionContentError as exc:
            logger.warning("Skipping student details of section %s: %s", section.id, exc)
            return
        if not isinstance(details, StudentDetails):
            return
        for label, value in details.labelled_fields():
            p = doc.add_paragraph()
            run = p.add_run(f"{label}: ")
            run.bold = True
            p.add_run(value)
            p.paragraph_format.space_after = Pt(5)

    def _add_lines(self, doc: Document, section: Section) -> None:
        is_code = section.section_type == SectionType.CODE.value
        for line in (section.content or "").split("\n"):
            p = doc.add_paragraph()
            run = p.add_run(line)
            if is_code:
                run.font.name = "Consolas"
                run.font.size = Pt(9)
            p.paragraph_format.space_after = Pt(5)

    def render(self, title: str, sections: Sequence[Section]) -> bytes:
        """DOCX bytes for the visible sections of a record."""
        buffer = BytesIO()
        self.build(title, sections).save(buffer)
        logger.info("Rendered DOCX %r", title)
        return buffer.getvalue()
