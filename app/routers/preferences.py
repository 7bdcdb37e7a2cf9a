"""
User preference endpoints.

GET   /api/user/preferences - stored preferences, or the defaults
PATCH /api/user/preferences - upsert
"""
import logging

from fastapi import APIRouter, Depends

from app.dependencies.auth import Identity, get_storage, require_authenticated
from app.models.schemas import UserPreferencesResponse, UserPreferencesUpdate
from app.services.storage import LabRecordStorage

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/preferences", response_model=UserPreferencesResponse)
async def get_preferences(
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> UserPreferencesResponse:
    """Return saved preferences, falling back to en / Inter / academic."""
    prefs = await storage.get_user_preferences(identity.user_id)
    if prefs is None:
        return UserPreferencesResponse()
    return UserPreferencesResponse.model_validate(prefs)


@router.patch("/preferences", response_model=UserPreferencesResponse)
async def update_preferences(
    body: UserPreferencesUpdate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> UserPreferencesResponse:
    """Create or update the caller's preferences."""
    prefs = await storage.upsert_user_preferences(
        identity.user_id, body.model_dump(exclude_unset=True)
    )
    logger.info("Saved preferences for user %s", identity.user_id)
    return UserPreferencesResponse.model_validate(prefs)
