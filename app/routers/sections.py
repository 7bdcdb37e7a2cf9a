"""
Section and section-image endpoints.

PATCH  /api/sections/{section_id}          - partial update (optional ``version`` check)
DELETE /api/sections/{section_id}          - delete section and its images
GET    /api/sections/{section_id}/images   - list images by order
POST   /api/sections/{section_id}/images   - upload one image (multipart field ``image``)
DELETE /api/section-images/{image_id}      - delete image and its file

Every operation re-checks that the section's lab record belongs to the caller.
Image files are removed from disk only after the row deletion is committed.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError

from app.dependencies.auth import Identity, get_storage, require_authenticated
from app.models.schemas import (
    SectionImageMetadata,
    SectionImageResponse,
    SectionResponse,
    SectionUpdate,
)
from app.models.section_content import validate_section_content
from app.services import uploads
from app.services.storage import LabRecordStorage
from app.utils.errors import SectionContentError, StaleSectionError, UploadRejectedError

logger = logging.getLogger(__name__)

router = APIRouter()
images_router = APIRouter()


@router.patch("/{section_id}", response_model=SectionResponse)
async def update_section(
    section_id: str,
    body: SectionUpdate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> SectionResponse:
    """Merge the given fields into the section."""
    section = await storage.get_section(section_id, identity.user_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")

    updates = body.model_dump(exclude_unset=True, exclude={"version"})
    if "content" in updates or "section_type" in updates:
        try:
            validate_section_content(
                updates.get("section_type", section.section_type),
                updates.get("content", section.content),
            )
        except SectionContentError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    try:
        updated = await storage.update_section(
            section_id, identity.user_id, updates, expected_version=body.version
        )
    except StaleSectionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    return SectionResponse.model_validate(updated)


@router.delete(
    "/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_section(
    section_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> None:
    """Delete a section and the files of its images."""
    section = await storage.get_section(section_id, identity.user_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")

    image_urls = await storage.image_urls_for_section(section.id)
    await storage.delete_section(section.id, identity.user_id)
    await storage.db.commit()
    for image_url in image_urls:
        uploads.remove_image(image_url)


# ═══════════════════════════════════════════════════════════════════════════════
# SECTION IMAGES
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{section_id}/images", response_model=List[SectionImageResponse])
async def list_section_images(
    section_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> List[SectionImageResponse]:
    """List the images of a section."""
    images = await storage.get_section_images(section_id, identity.user_id)
    if images is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    return [SectionImageResponse.model_validate(i) for i in images]


@router.post(
    "/{section_id}/images",
    response_model=SectionImageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_section_image(
    section_id: str,
    image: Optional[UploadFile] = File(None),
    caption: Optional[str] = Form(None),
    alignment: Optional[str] = Form(None),
    width: Optional[str] = Form(None),
    order: Optional[str] = Form(None),
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> SectionImageResponse:
    """Store one uploaded image and attach it to the section."""
    section = await storage.get_section(section_id, identity.user_id)
    if section is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Section not found")
    if image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image file provided")

    form = {"caption": caption, "alignment": alignment, "width": width, "order": order}
    try:
        values = {key: value for key, value in form.items() if value not in (None, "")}
        for key in ("width", "order"):
            if key in values:
                values[key] = int(values[key])
        metadata = SectionImageMetadata.model_validate(values)
    except (ValueError, ValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid image metadata",
        ) from exc

    try:
        image_url = await uploads.save_image(image)
    except UploadRejectedError as exc:
        logger.info("Rejected upload %r for section %s: %s", image.filename, section.id, exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    try:
        created = await storage.create_section_image(
            section_id=section.id,
            image_url=image_url,
            caption=metadata.caption,
            alignment=metadata.alignment,
            width=metadata.width,
            order=metadata.order,
        )
        await storage.db.commit()
    except Exception:
        uploads.remove_image(image_url)
        raise
    logger.info("Attached image %s to section %s", created.id, section.id)
    return SectionImageResponse.model_validate(created)


@images_router.delete(
    "/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_section_image(
    image_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> None:
    """Delete an image row and its file."""
    image = await storage.get_section_image(image_id, identity.user_id)
    if image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    image_url = image.image_url
    await storage.delete_section_image(image.id, identity.user_id)
    await storage.db.commit()
    uploads.remove_image(image_url)
