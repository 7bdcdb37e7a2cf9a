"""
Typed views of a section's ``content`` column.

The column is free text for ``text`` and ``code`` sections and a JSON object
for ``student_details`` sections. ``decode_section_content`` turns the raw
column into one of the variants below; ``encode_section_content`` does the
reverse.
"""
from __future__ import annotations

import json
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.models.database_models import SectionType
from app.utils.errors import SectionContentError


class TextContent(BaseModel):
    """Markdown prose."""

    text: str = ""


class CodeContent(BaseModel):
    """Program listing rendered verbatim in a monospace block."""

    source: str = ""


class StudentDetails(BaseModel):
    """Structured header block identifying the student."""

    name: Optional[str] = None
    roll_no: Optional[str] = Field(None, alias="rollNo")
    class_: Optional[str] = Field(None, alias="class")
    date: Optional[str] = None
    subject: Optional[str] = None
    batch: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def labelled_fields(self) -> List[Tuple[str, str]]:
        """Non-empty fields as (label, value) pairs in display order."""
        pairs = [
            ("Name", self.name),
            ("Roll No", self.roll_no),
            ("Class", self.class_),
            ("Date", self.date),
            ("Subject", self.subject),
            ("Batch", self.batch),
        ]
        return [(label, value) for label, value in pairs if value]


SectionContent = Union[TextContent, CodeContent, StudentDetails]


def decode_section_content(section_type: str, content: Optional[str]) -> SectionContent:
    """
    Decode raw section content according to its type.

    Raises:
        SectionContentError: student-details content is not a JSON object
            with string fields.
    """
    content = content or ""
    if section_type == SectionType.CODE.value:
        return CodeContent(source=content)
    if section_type == SectionType.STUDENT_DETAILS.value:
        if not content.strip():
            return StudentDetails()
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise SectionContentError(f"Student details are not valid JSON: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise SectionContentError("Student details must be a JSON object")
        try:
            return StudentDetails.model_validate(data)
        except ValidationError as exc:
            raise SectionContentError(f"Invalid student details: {exc.errors()[0]['msg']}") from exc
    return TextContent(text=content)


def encode_section_content(value: SectionContent) -> str:
    """Serialize a content variant back to the string stored in the column."""
    if isinstance(value, StudentDetails):
        return json.dumps(value.model_dump(by_alias=True, exclude_none=True))
    if isinstance(value, CodeContent):
        return value.source
    return value.text


def validate_section_content(section_type: str, content: Optional[str]) -> None:
    """Raise SectionContentError when *content* does not decode for *section_type*."""
    decode_section_content(section_type, content)
