"""
Default section sets that seed a new lab record.
"""
from __future__ import annotations

import dataclasses
from typing import Dict, List

from app.models.database_models import SectionType, TemplateType


@dataclasses.dataclass(frozen=True)
class TemplateSection:
    title: str
    section_type: str = SectionType.TEXT.value
    content: str = ""
    is_hidden: bool = False


_SCIENCE_SECTIONS: List[TemplateSection] = [
    TemplateSection("Student Details", SectionType.STUDENT_DETAILS.value, "{}"),
    TemplateSection("Aim"),
    TemplateSection("Apparatus"),
    TemplateSection("Theory"),
    TemplateSection("Procedure"),
    TemplateSection("Observations"),
    TemplateSection("Results"),
    TemplateSection("Conclusion"),
]

TEMPLATES: Dict[str, List[TemplateSection]] = {
    TemplateType.PHYSICS.value: _SCIENCE_SECTIONS,
    TemplateType.CHEMISTRY.value: _SCIENCE_SECTIONS,
    TemplateType.COMPUTER.value: [
        TemplateSection("Student Details", SectionType.STUDENT_DETAILS.value, "{}"),
        TemplateSection("Aim"),
        TemplateSection("Theory"),
        TemplateSection("Code", SectionType.CODE.value),
        TemplateSection("Output"),
        TemplateSection("Conclusion"),
    ],
}


def default_sections(template_type: str) -> List[dict]:
    """
    Section rows (without ids) for *template_type*, ordered 0..n-1.

    Raises:
        KeyError: unknown template type.
    """
    return [
        {
            "title": section.title,
            "content": section.content,
            "order": index,
            "is_hidden": section.is_hidden,
            "section_type": section.section_type,
        }
        for index, section in enumerate(TEMPLATES[template_type])
    ]
