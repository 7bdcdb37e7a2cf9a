"""
Account endpoints.

POST   /api/auth/register  - create account, returns {user, token}
POST   /api/auth/login     - password login, returns {user, token}
POST   /api/auth/logout    - destroy the cookie session
GET    /api/auth/user      - current identity
PATCH  /api/auth/user      - update profile fields
DELETE /api/auth/user      - delete account and everything it owns

Logging out only destroys the server-side cookie session; bearer tokens
are stateless and stay valid until they expire.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import Identity, get_storage, require_authenticated
from app.models.database_models import User
from app.models.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
    UserUpdate,
)
from app.services import uploads
from app.services.auth_service import AuthService, issue_token
from app.services.session_store import SessionStore
from app.services.storage import LabRecordStorage
from app.utils.errors import DuplicateUserError, InvalidCredentialsError

logger = logging.getLogger(__name__)

router = APIRouter()


async def _start_session(response: Response, db: AsyncSession, user: User) -> AuthResponse:
    session = await SessionStore(db).create({"userId": user.id})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.sid,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return AuthResponse(user=UserResponse.model_validate(user), token=issue_token(user.id))


@router.post("/register", response_model=AuthResponse)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create a password account and sign it in."""
    try:
        user = await AuthService(db).register(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
        )
    except DuplicateUserError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    logger.info("Registered user id=%s", user.id)
    return await _start_session(response, db, user)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate with email and password."""
    try:
        user = await AuthService(db).login(body.email, body.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _start_session(response, db, user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    identity: Identity = Depends(require_authenticated),
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Destroy the cookie session (the bearer token is left untouched)."""
    if session_id:
        await SessionStore(db).destroy(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    logger.info("User %s logged out", identity.user_id)
    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=UserResponse)
async def current_user(
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> UserResponse:
    """Return the authenticated user."""
    user = await storage.get_user(identity.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.patch("/user", response_model=UserResponse)
async def update_current_user(
    body: UserUpdate,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> UserResponse:
    """Update first/last name or profile image."""
    user = await storage.update_user(identity.user_id, body.model_dump(exclude_unset=True))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(user)


@router.delete("/user", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def delete_current_user(
    response: Response,
    identity: Identity = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete the account; lab records, sections, images and preferences go with it."""
    storage = LabRecordStorage(db)
    image_urls = await storage.image_urls_for_user(identity.user_id)
    if not await storage.delete_user(identity.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await SessionStore(db).destroy_for_user(identity.user_id)
    await db.commit()
    for image_url in image_urls:
        uploads.remove_image(image_url)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
