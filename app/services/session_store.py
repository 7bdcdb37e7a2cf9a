"""
Database-backed cookie sessions (the ``sessions`` table).
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import UserSession

logger = logging.getLogger(__name__)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive timestamps
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class SessionStore:
    """Create, read and destroy server-side sessions keyed by a random sid."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, data: Dict[str, Any]) -> UserSession:
        session = UserSession(
            sid=secrets.token_urlsafe(32),
            sess=data,
            user_id=data.get("userId"),
            expire=datetime.now(timezone.utc) + timedelta(days=settings.SESSION_TTL_DAYS),
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def get(self, sid: str) -> Optional[UserSession]:
        """Live session for *sid*; expired sessions are deleted and reported as missing."""
        result = await self.db.execute(select(UserSession).where(UserSession.sid == sid))
        session = result.scalar_one_or_none()
        if session is None:
            return None
        if _as_aware(session.expire) <= datetime.now(timezone.utc):
            await self.destroy(sid)
            return None
        return session

    async def destroy(self, sid: str) -> bool:
        result = await self.db.execute(delete(UserSession).where(UserSession.sid == sid))
        await self.db.flush()
        return result.rowcount > 0

    async def destroy_for_user(self, user_id: str) -> int:
        """Drop every session that belongs to *user_id*."""
        result = await self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        await self.db.flush()
        return result.rowcount

    async def purge_expired(self) -> int:
        result = await self.db.execute(
            delete(UserSession).where(UserSession.expire <= datetime.now(timezone.utc))
        )
        await self.db.flush()
        if result.rowcount:
            logger.info("Purged %d expired sessions", result.rowcount)
        return result.rowcount
