"""
Authentication dependencies for FastAPI routes.

``attach_identity`` reads an ``Authorization: Bearer <token>`` header when
present and stores the resolved user on ``request.state.identity``. A
missing or invalid token is not an error at that stage; routes that need a
user depend on ``require_authenticated``, which answers 401.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.database_models import LabRecord, User
from app.services.auth_service import AuthService
from app.services.storage import LabRecordStorage

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclasses.dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to a request."""

    user_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
        )


async def attach_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Identity]:
    """Resolve the bearer token, if any, into an Identity on the request state."""
    identity: Optional[Identity] = None
    if credentials is not None and credentials.credentials:
        user = await AuthService(db).resolve_token(credentials.credentials)
        if user is not None:
            identity = Identity.from_user(user)
    request.state.identity = identity
    return identity


async def require_authenticated(
    identity: Optional[Identity] = Depends(attach_identity),
) -> Identity:
    """Reject the request with 401 unless an identity was attached."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def get_storage(db: AsyncSession = Depends(get_db)) -> LabRecordStorage:
    return LabRecordStorage(db)


async def get_authorized_record(
    record_id: str,
    identity: Identity = Depends(require_authenticated),
    storage: LabRecordStorage = Depends(get_storage),
) -> LabRecord:
    """
    Verify that the given lab record belongs to the current user.
    Returns the LabRecord ORM object or raises 404.
    """
    record = await storage.get_lab_record(record_id, identity.user_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lab record not found",
        )
    return record
