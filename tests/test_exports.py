"""Tests for the HTML preview and the PDF / DOCX exports.

Hidden sections never appear in any output, sections follow ``order``, and
malformed student details are skipped instead of failing the export.
"""
import io
import json

import pytest
from docx import Document as load_docx
from httpx import AsyncClient

from app.models.database_models import Section, SectionImage
from app.services.docx_exporter import DocxExporter
from app.services.pdf_exporter import PdfExporter
from app.services.preview import render_preview_html
from tests.conftest import PASSWORD, bearer, create_record, list_sections, register

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _section(sid, title, content="", order=0, hidden=False, section_type="text"):
    return Section(
        id=sid,
        lab_record_id="rec-1",
        title=title,
        content=content,
        order=order,
        is_hidden=hidden,
        section_type=section_type,
    )


def _sample_sections():
    return [
        _section("s3", "Theory", "V = I * R", order=3),
        _section(
            "s0", "Student Details",
            json.dumps({"name": "Alice", "rollNo": "42", "subject": ""}),
            order=0, section_type="student_details",
        ),
        _section("s2", "Apparatus", "Ammeter\nVoltmeter", order=2, hidden=True),
        _section("s1", "Aim", "To verify **Ohm's law**.", order=1),
        _section("s4", "Code", "for i in range(3):\n    print(i)", order=4, section_type="code"),
    ]


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------

def test_pdf_layout_skips_hidden_and_follows_order():
    layout = PdfExporter().layout("Ohm's Law", _sample_sections())
    texts = layout.texts()

    assert texts[0] == "Ohm's Law"
    assert "Apparatus" not in texts
    assert "Ammeter" not in texts
    headings = [t for t in texts if t in {"Student Details", "Aim", "Theory", "Code"}]
    assert headings == ["Student Details", "Aim", "Theory", "Code"]
    assert "Name: Alice" in texts
    assert "Roll No: 42" in texts
    assert not any(t.startswith("Subject:") for t in texts)
    assert "    print(i)" in texts


def test_pdf_long_content_breaks_pages():
    long_text = "\n".join(f"Reading {i}" for i in range(120))
    layout = PdfExporter().layout("Observations", [_section("s1", "Observations", long_text)])
    assert len(layout.pages) > 1
    line_limit = layout.page_height - PdfExporter.LINE_BREAK_GAP
    for page in layout.pages:
        assert all(op.y <= line_limit for op in page)


def test_pdf_landscape_dimensions():
    portrait = PdfExporter("portrait").layout("T", [])
    landscape = PdfExporter("landscape").layout("T", [])
    assert round(portrait.page_height) == 297
    assert round(landscape.page_height) == 210
    assert round(portrait.page_height - PdfExporter.SECTION_BREAK_GAP) == 250


def test_pdf_render_produces_pdf_bytes():
    payload = PdfExporter().render("Ohm's Law", _sample_sections())
    assert payload.startswith(b"%PDF")


def test_malformed_student_details_are_skipped():
    sections = [_section("s0", "Student Details", "{broken", section_type="student_details")]
    texts = PdfExporter().layout("T", sections).texts()
    assert texts == ["T", "Student Details"]

    html = render_preview_html("T", sections)
    assert "Student Details" in html
    assert "{broken" not in html


def test_docx_paragraphs():
    doc = DocxExporter().build("Ohm's Law", _sample_sections())
    texts = [p.text for p in doc.paragraphs]

    assert texts[0] == "Ohm's Law"
    assert doc.paragraphs[0].style.name == "Title"
    assert "Apparatus" not in texts
    assert "Ammeter" not in texts
    assert texts.index("Student Details") < texts.index("Aim") < texts.index("Theory")
    assert "Name: Alice" in texts

    details = next(p for p in doc.paragraphs if p.text == "Name: Alice")
    assert details.runs[0].bold
    assert details.runs[0].text == "Name: "

    code_line = next(p for p in doc.paragraphs if p.text == "    print(i)")
    assert code_line.runs[0].font.name == "Consolas"


def test_docx_landscape():
    doc = DocxExporter("landscape").build("T", [])
    page = doc.sections[0]
    assert page.page_width > page.page_height


def test_preview_html():
    images = {
        "s1": [SectionImage(
            id="i1", section_id="s1", image_url="/uploads/a.png",
            caption="Circuit <diagram>", alignment="right", width=50, order=0,
        )],
    }
    html = render_preview_html("Ohm's Law", _sample_sections(), images)

    assert "<h1" in html and "Ohm&#x27;s Law" in html
    assert "Apparatus" not in html
    assert "<strong>Ohm" in html
    assert "<pre><code>for i in range(3):" in html
    assert "Name: </strong><span>Alice</span>" in html
    assert 'src="/uploads/a.png"' in html
    assert "width:50%" in html
    assert "Circuit &lt;diagram&gt;" in html
    assert html.index("Student Details") < html.index("<h2>Aim") < html.index("<h2>Theory")


def test_preview_escapes_code():
    sections = [_section("s1", "Code", "<script>alert(1)</script>", section_type="code")]
    html = render_preview_html("T", sections)
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_preview_escapes_raw_html_in_prose():
    sections = [
        _section("s1", "Aim", "<script>alert(document.cookie)</script>", order=0),
        _section("s2", "Theory", 'Ohm <img src=x onerror="alert(1)"> law', order=1),
        _section("s3", "Notes", "[click](javascript:alert(1)) and [docs](https://example.com)", order=2),
    ]
    html = render_preview_html("T", sections)

    assert "<script>" not in html
    assert "&lt;script&gt;alert(document.cookie)&lt;/script&gt;" in html
    assert "<img src=x" not in html
    assert "javascript:" not in html
    assert 'href="https://example.com"' in html


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

async def _record_with_hidden_apparatus(client: AsyncClient, headers):
    record = await create_record(client, headers)
    sections = await list_sections(client, headers, record["id"])
    apparatus = next(s for s in sections if s["title"] == "Apparatus")
    await client.patch(
        f"/api/sections/{apparatus['id']}",
        json={"isHidden": True, "content": "Rheostat"},
        headers=headers,
    )
    aim = next(s for s in sections if s["title"] == "Aim")
    await client.patch(f"/api/sections/{aim['id']}", json={"content": "Verify V = IR"}, headers=headers)
    return record


@pytest.mark.asyncio
async def test_export_docx_endpoint(client: AsyncClient, auth_headers):
    record = await _record_with_hidden_apparatus(client, auth_headers)

    resp = await client.get(
        f"/api/lab-records/{record['id']}/export",
        params={"format": "docx", "fileName": "ohms-law"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == DOCX_MEDIA_TYPE
    assert resp.headers["content-disposition"] == 'attachment; filename="ohms-law.docx"'

    texts = [p.text for p in load_docx(io.BytesIO(resp.content)).paragraphs]
    assert "Aim" in texts
    assert "Verify V = IR" in texts
    assert "Apparatus" not in texts
    assert "Rheostat" not in texts


@pytest.mark.asyncio
async def test_export_pdf_endpoint_defaults(client: AsyncClient, auth_headers):
    record = await _record_with_hidden_apparatus(client, auth_headers)

    resp = await client.get(f"/api/lab-records/{record['id']}/export", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.headers["content-disposition"] == 'attachment; filename="Ohm\'s Law.pdf"'
    assert resp.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_register_login_hide_apparatus_then_export_pdf(client: AsyncClient, monkeypatch):
    await register(client, email="carol@example.com", first_name="Carol", last_name="Chen")
    resp = await client.post(
        "/api/auth/login", json={"email": "carol@example.com", "password": PASSWORD}
    )
    assert resp.status_code == 200
    headers = bearer(resp.json()["token"])

    record = await create_record(client, headers, title="Ohm's Law", template_type="physics")
    sections = await list_sections(client, headers, record["id"])
    assert [s["title"] for s in sections] == [
        "Student Details", "Aim", "Apparatus", "Theory",
        "Procedure", "Observations", "Results", "Conclusion",
    ]
    apparatus = next(s for s in sections if s["title"] == "Apparatus")
    resp = await client.patch(f"/api/sections/{apparatus['id']}", json={"isHidden": True}, headers=headers)
    assert resp.status_code == 200

    plans = []
    layout = PdfExporter.layout

    def recording_layout(self, title, sections):
        plan = layout(self, title, sections)
        plans.append(plan)
        return plan

    monkeypatch.setattr(PdfExporter, "layout", recording_layout)

    resp = await client.get(f"/api/lab-records/{record['id']}/export", headers=headers)
    assert resp.status_code == 200
    assert resp.content.startswith(b"%PDF")

    assert len(plans) == 1
    texts = plans[0].texts()
    assert texts[0] == "Ohm's Law"
    assert "Apparatus" not in texts
    assert "Aim" in texts and "Conclusion" in texts


@pytest.mark.asyncio
async def test_export_rejects_unknown_format(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    resp = await client.get(
        f"/api/lab-records/{record['id']}/export", params={"format": "odt"}, headers=auth_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_preview_endpoint(client: AsyncClient, auth_headers):
    record = await _record_with_hidden_apparatus(client, auth_headers)

    resp = await client.get(f"/api/lab-records/{record['id']}/preview", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "Verify V = IR" in resp.text
    assert "Apparatus" not in resp.text
    assert "Rheostat" not in resp.text


@pytest.mark.asyncio
async def test_preview_endpoint_escapes_section_html(client: AsyncClient, auth_headers):
    record = await create_record(client, auth_headers)
    aim = next(s for s in await list_sections(client, auth_headers, record["id"]) if s["title"] == "Aim")
    await client.patch(
        f"/api/sections/{aim['id']}",
        json={"content": "<script>alert(document.cookie)</script>"},
        headers=auth_headers,
    )

    resp = await client.get(f"/api/lab-records/{record['id']}/preview", headers=auth_headers)
    assert resp.status_code == 200
    assert "<script>" not in resp.text
    assert "&lt;script&gt;" in resp.text
