"""
Template catalogue.
"""
from typing import List

from fastapi import APIRouter, Depends

from app.dependencies.auth import Identity, require_authenticated
from app.models.schemas import TemplateResponse, TemplateSectionResponse
from app.services.templates import TEMPLATES, default_sections

router = APIRouter()


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    identity: Identity = Depends(require_authenticated),
) -> List[TemplateResponse]:
    """Every template with the sections a new record receives."""
    return [
        TemplateResponse(
            template_type=template_type,
            sections=[TemplateSectionResponse(**s) for s in default_sections(template_type)],
        )
        for template_type in TEMPLATES
    ]
