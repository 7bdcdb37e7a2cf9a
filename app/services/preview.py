"""
HTML preview of a lab record.

Mirrors the printed page: title, then every visible section in order with
its images inline. Student details render as label/value pairs, code as a
literal monospace block, everything else as markdown.
"""
from __future__ import annotations

import html
import logging
from typing import Dict, List, Optional, Sequence

import markdown
from markdown.treeprocessors import Treeprocessor

from app.models.database_models import Section, SectionImage, SectionType
from app.models.section_content import StudentDetails, decode_section_content
from app.services.document_selection import select_visible_sections
from app.utils.errors import SectionContentError

logger = logging.getLogger(__name__)

_MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "sane_lists"]

_ALIGN_STYLE = {
    "left": "margin-right:auto;",
    "center": "margin-left:auto;margin-right:auto;",
    "right": "margin-left:auto;",
}

_UNSAFE_URL_SCHEMES = ("javascript:", "vbscript:", "data:")


class _SafeLinks(Treeprocessor):
    """Blank out link and image targets that would run script."""

    def run(self, root):
        for element in root.iter():
            for attribute in ("href", "src"):
                value = element.get(attribute)
                if value and value.strip().lower().startswith(_UNSAFE_URL_SCHEMES):
                    element.set(attribute, "")


def _markdown_renderer() -> markdown.Markdown:
    """Markdown without raw HTML passthrough; tags in the source come out escaped."""
    md = markdown.Markdown(extensions=_MARKDOWN_EXTENSIONS)
    md.preprocessors.deregister("html_block")
    md.inlinePatterns.deregister("html")
    md.treeprocessors.register(_SafeLinks(md), "safe_links", 1)
    return md


def _render_student_details(section: Section) -> str:
    try:
        details = decode_section_content(section.section_type, section.content)
    except SectionContentError as exc:
        logger.warning("Skipping student details of section %s: %s", section.id, exc)
        return ""
    if not isinstance(details, StudentDetails):
        return ""
    rows = "".join(
        f'<div class="field"><strong>{html.escape(label)}: </strong>'
        f"<span>{html.escape(value)}</span></div>"
        for label, value in details.labelled_fields()
    )
    return f'<div class="student-details">{rows}</div>'


def _render_code(section: Section) -> str:
    return f"<pre><code>{html.escape(section.content or '')}</code></pre>"


def _render_markdown(section: Section) -> str:
    return f'<div class="prose">{_markdown_renderer().convert(section.content or "")}</div>'


def _render_image(image: SectionImage) -> str:
    style = f"width:{image.width}%;{_ALIGN_STYLE.get(image.alignment, _ALIGN_STYLE['center'])}"
    caption = (
        f"<figcaption>{html.escape(image.caption)}</figcaption>" if image.caption else ""
    )
    return (
        f'<figure class="section-image align-{html.escape(image.alignment)}" style="{style}">'
        f'<img src="{html.escape(image.image_url, quote=True)}" alt="{html.escape(image.caption or "")}" '
        f'style="width:100%" onerror="this.style.display=\'none\'">'
        f"{caption}</figure>"
    )


def render_section_body(section: Section) -> str:
    if section.section_type == SectionType.STUDENT_DETAILS.value:
        return _render_student_details(section)
    if section.section_type == SectionType.CODE.value:
        return _render_code(section)
    return _render_markdown(section)


def render_preview_html(
    title: str,
    sections: Sequence[Section],
    images: Optional[Dict[str, List[SectionImage]]] = None,
) -> str:
    """Full HTML document for the visible, order-sorted sections of a record."""
    images = images or {}
    parts = [
        "<!DOCTYPE html>",
        '<html><head><meta charset="utf-8">',
        f"<title>{html.escape(title)}</title></head>",
        '<body><article class="lab-record">',
        f'<header><h1 class="record-title">{html.escape(title)}</h1></header>',
    ]
    for section in select_visible_sections(sections):
        parts.append(f'<section data-section-id="{html.escape(section.id)}">')
        parts.append(f"<h2>{html.escape(section.title)}</h2>")
        parts.append(render_section_body(section))
        parts.extend(_render_image(image) for image in images.get(section.id, []))
        parts.append("</section>")
    parts.append("</article></body></html>")
    return "\n".join(parts)
