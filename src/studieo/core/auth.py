"""
Authentication Module

Resolves the caller of a request into a Principal. Tokens are issued by
the external identity provider; this module only verifies them (via
security.py) and looks the subject up in the users table to learn the
caller's role and company.

A request without credentials resolves to None. The application service
turns a missing principal into an authentication error, so every
operation reports it the same way.

SECURITY NOTE:
- Development mode auth bypass is ONLY enabled when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production to disable it
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.core.config import settings
from studieo.core.database import get_db
from studieo.core.security import decode_token
from studieo.modules.users.models import User, UserRole
from studieo.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token issued by the identity provider",
)


@dataclass
class Principal:
    """
    The authenticated caller.

    Attributes:
        id: User's unique identifier
        email: User's email address
        role: STUDENT or COMPANY
        company_id: Company the user belongs to (company users only)
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: UserRole
    company_id: UUID | None = None
    name: str | None = None

    def __str__(self) -> str:
        return f"Principal(id={self.id}, role={self.role.value})"

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            company_id=user.company_id,
            name=user.name,
        )

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def belongs_to_company(self, company_id: UUID) -> bool:
        """True if this is a company user of ``company_id``."""
        return self.role == UserRole.COMPANY and self.company_id == company_id


def _is_dev_mode_safe() -> bool:
    """
    Check if development mode is safe to enable.

    Requires settings.is_development, not settings.is_production, and a
    PYTHON_ENV that is neither "production" nor "staging".
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var != "production"
        and env_var != "staging"
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


# Development mode flag - accepts raw user IDs as tokens for LOCAL testing ONLY
_DEVELOPMENT_MODE = _is_dev_mode_safe()


def _invalid_token(message: str = "Invalid or expired authentication token.") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_TOKEN",
            "message": message,
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def _resolve_user_id(token: str) -> UUID:
    """
    Validate a bearer token and return the user ID it names.

    Raises:
        HTTPException 401: If the token is invalid, expired or has no usable subject
    """
    # In development mode, accept a user's UUID as the token
    if _DEVELOPMENT_MODE:
        try:
            return UUID(token)
        except ValueError:
            pass

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _invalid_token()

    subject = payload.get("sub")
    if not subject:
        logger.warning("JWT token missing 'sub' claim")
        raise _invalid_token("Invalid token: missing user identifier.")

    try:
        return UUID(subject)
    except ValueError as e:
        logger.warning("JWT 'sub' claim is not a valid UUID")
        raise _invalid_token("Invalid token: malformed user identifier.") from e


async def get_optional_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal | None:
    """
    FastAPI dependency resolving the caller, or None without credentials.

    Raises:
        HTTPException 401: If credentials are present but invalid, or name
            a user that does not exist
    """
    if credentials is None:
        return None

    user_id = _resolve_user_id(credentials.credentials)
    user = await UserRepository.get_by_id(db, user_id)

    if user is None:
        logger.warning(f"Token subject {user_id} has no user record")
        raise _invalid_token("Unknown user.")

    return Principal.from_user(user)


__all__ = [
    "Principal",
    "get_optional_principal",
    "security",
]
