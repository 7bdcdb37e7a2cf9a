"""
Lab record endpoints.

Route summary
-------------
GET    /api/lab-records                              - list own records, newest first
POST   /api/lab-records                              - create record seeded from its template
GET    /api/lab-records/{record_id}                  - record detail
PATCH  /api/lab-records/{record_id}                  - partial update
DELETE /api/lab-records/{record_id}                  - delete record (cascades)
POST   /api/lab-records/{record_id}/duplicate        - copy record + sections

GET    /api/lab-records/{record_id}/sections         - list sections by order
POST   /api/lab-records/{record_id}/sections         - add section
POST   /api/lab-records/{record_id}/sections/reorder - renumber sections by position
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import (
    Identity,
    get_authorized_record,
    get_storage,
    require_authenticated,
)
from app.models.database_models import LabRecord
from app.models.schemas import (
    LabRecordCreate,
    LabRecordResponse,
    LabRecordUpdate,
    SectionCreate,
    SectionReorderRequest,
    SectionResponse,
)
from app.models.section_content import validate_section_content
from app.services import uploads
from app.services.storage import LabRecordStorage
from app.services.templates import default_sections
from app.utils.errors import SectionContentError

logger = logging.getLogger(__name__)

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# LAB RECORD CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("", response_model=List[LabRecordResponse])
async def list_lab_records(
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> List[LabRecordResponse]:
    """List all lab records belonging to the authenticated user."""
    records = await storage.get_lab_records(identity.user_id)
    return [LabRecordResponse.model_validate(r) for r in records]


@router.post("", response_model=LabRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_lab_record(
    body: LabRecordCreate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> LabRecordResponse:
    """Create a lab record with the default sections of its template."""
    record = await storage.create_lab_record(
        user_id=identity.user_id,
        title=body.title,
        template_type=body.template_type,
        customization=body.customization,
        sections=default_sections(body.template_type),
    )
    return LabRecordResponse.model_validate(record)


@router.get("/{record_id}", response_model=LabRecordResponse)
async def get_lab_record(
    record: LabRecord = Depends(get_authorized_record),
) -> LabRecordResponse:
    """Get lab record details."""
    return LabRecordResponse.model_validate(record)


@router.patch("/{record_id}", response_model=LabRecordResponse)
async def update_lab_record(
    record_id: str,
    body: LabRecordUpdate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> LabRecordResponse:
    """Update title, template type or customization."""
    record = await storage.update_lab_record(
        record_id, identity.user_id, body.model_dump(exclude_unset=True)
    )
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab record not found")
    return LabRecordResponse.model_validate(record)


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_lab_record(
    record_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> None:
    """Delete a lab record with its sections and images."""
    record = await storage.get_lab_record(record_id, identity.user_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab record not found")

    image_urls = await storage.image_urls_for_record(record.id)
    await storage.delete_lab_record(record.id, identity.user_id)
    await storage.db.commit()
    for image_url in image_urls:
        uploads.remove_image(image_url)


@router.post(
    "/{record_id}/duplicate",
    response_model=LabRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_lab_record(
    record_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> LabRecordResponse:
    """Copy a record and its sections (images are not copied)."""
    copy = await storage.duplicate_lab_record(record_id, identity.user_id)
    if copy is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab record not found")
    return LabRecordResponse.model_validate(copy)


# ═══════════════════════════════════════════════════════════════════════════════
# RECORD-SCOPED SECTION ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{record_id}/sections", response_model=List[SectionResponse])
async def list_sections(
    record: LabRecord = Depends(get_authorized_record),
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> List[SectionResponse]:
    """List the sections of a record ordered by ``order``."""
    sections = await storage.get_sections(record.id, identity.user_id) or []
    return [SectionResponse.model_validate(s) for s in sections]


@router.post(
    "/{record_id}/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_section(
    record_id: str,
    body: SectionCreate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> SectionResponse:
    """Add a section; without an explicit order it is appended."""
    try:
        validate_section_content(body.section_type, body.content)
    except SectionContentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    section = await storage.create_section(record_id, identity.user_id, body.model_dump())
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab record not found")
    return SectionResponse.model_validate(section)


@router.post(
    "/{record_id}/sections/reorder",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def reorder_sections(
    record_id: str,
    body: SectionReorderRequest,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> None:
    """Set each listed section's order to its position in ``sectionOrders``."""
    try:
        ordered = await storage.update_sections_order(
            record_id, identity.user_id, [item.id for item in body.section_orders]
        )
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Section {exc.args[0]} does not belong to this lab record",
        )
    if ordered is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lab record not found")
    logger.info("Reordered %d sections of lab record %s", len(ordered), record_id)
