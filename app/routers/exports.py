"""
Preview and download endpoints.

GET /api/lab-records/{record_id}/preview - HTML preview of visible sections
GET /api/lab-records/{record_id}/export  - PDF or DOCX attachment
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, Response

from app.dependencies.auth import Identity, get_authorized_record, get_storage, require_authenticated
from app.models.database_models import LabRecord
from app.models.schemas import ExportFormat, PageOrientation
from app.services.docx_exporter import DocxExporter
from app.services.pdf_exporter import PdfExporter
from app.services.preview import render_preview_html
from app.services.storage import LabRecordStorage
from app.utils.helpers import content_disposition, safe_filename

logger = logging.getLogger(__name__)

router = APIRouter()

_MEDIA_TYPES = {
    ExportFormat.PDF: "application/pdf",
    ExportFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


@router.get("/{record_id}/preview", response_class=HTMLResponse)
async def preview_lab_record(
    record: LabRecord = Depends(get_authorized_record),
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> HTMLResponse:
    """Render the record as it will print, images included."""
    sections = await storage.get_sections(record.id, identity.user_id) or []
    images = await storage.get_images_for_sections([s.id for s in sections if not s.is_hidden])
    return HTMLResponse(render_preview_html(record.title, sections, images))


@router.get("/{record_id}/export")
async def export_lab_record(
    format: ExportFormat = Query(ExportFormat.PDF),
    orientation: PageOrientation = Query(PageOrientation.PORTRAIT),
    file_name: Optional[str] = Query(None, alias="fileName"),
    record: LabRecord = Depends(get_authorized_record),
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> Response:
    """Download the visible sections as PDF or Word."""
    sections = await storage.get_sections(record.id, identity.user_id) or []

    if format == ExportFormat.PDF:
        payload = PdfExporter(orientation.value).render(record.title, sections)
    else:
        payload = DocxExporter(orientation.value).render(record.title, sections)

    filename = f"{safe_filename(file_name or record.title)}.{format.value}"
    logger.info("Exported lab record %s as %s (%d bytes)", record.id, filename, len(payload))
    return Response(
        content=payload,
        media_type=_MEDIA_TYPES[format],
        headers={"Content-Disposition": content_disposition(filename)},
    )
