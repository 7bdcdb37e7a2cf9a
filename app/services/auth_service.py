"""
Password authentication and bearer-token issuance.

Tokens are stateless HS256 JWTs: there is no revocation list, so a token
stays valid until it expires even after the user logs out.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import User
from app.services.storage import LabRecordStorage
from app.utils.errors import DuplicateUserError, InvalidCredentialsError, InvalidTokenError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash *password* with bcrypt (cost factor from BCRYPT_ROUNDS unless given)."""
    password_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time comparison of *password* against a stored bcrypt hash."""
    password_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def issue_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Signed bearer token for *user_id* (7 days by default)."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.TOKEN_EXPIRE_DAYS))
    claims: Dict[str, Any] = {"sub": user_id, "iat": now, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> str:
    """
    Validate *token* and return the user id it was issued for.

    Raises:
        InvalidTokenError: bad signature, expired, or missing subject.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("Token has expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("Invalid token") from exc

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidTokenError("Token has no subject")
    return user_id


class AuthService:
    """Registration and login on top of LabRecordStorage."""

    def __init__(self, db: AsyncSession) -> None:
        self.storage = LabRecordStorage(db)

    async def register(self, email: str, password: str, first_name: str, last_name: str) -> User:
        """
        Create a password account.

        Raises:
            DuplicateUserError: the email is already registered.
        """
        if await self.storage.get_user_by_email(email) is not None:
            logger.info("Registration rejected: email %s already registered", email)
            raise DuplicateUserError("User already exists with this email")

        return await self.storage.create_user(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )

    async def login(self, email: str, password: str) -> User:
        """
        Authenticate an email/password pair.

        Raises:
            InvalidCredentialsError: unknown email, account without a
                password, or wrong password (indistinguishable to the caller).
        """
        user = await self.storage.get_user_by_email(email)
        if user is None or not user.password_hash:
            logger.warning("Login failed for %s", email)
            raise InvalidCredentialsError()
        if not verify_password(password, user.password_hash):
            logger.warning("Login failed for %s", email)
            raise InvalidCredentialsError()
        return user

    async def resolve_token(self, token: str) -> Optional[User]:
        """User behind a valid token, or ``None`` if the token is invalid or the user is gone."""
        try:
            user_id = verify_token(token)
        except InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            return None
        return await self.storage.get_user(user_id)
