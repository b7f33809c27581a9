"""
User Repository

Database operations for marketplace users.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studieo.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        role: UserRole,
        name: str | None = None,
        company_id: UUID | None = None,
        company_role: str | None = None,
    ) -> User:
        """
        Create a new user record.

        Args:
            db: Database session
            email: User's email address (unique)
            role: STUDENT or COMPANY
            name: Display name (optional)
            company_id: Company the user belongs to (company users only)
            company_role: Free-form role within the company

        Returns:
            Created User instance
        """
        user = User(
            email=email,
            role=role,
            name=name,
            company_id=company_id,
            company_role=company_role,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        """
        Get a user by ID.

        Args:
            db: Database session
            user_id: User UUID

        Returns:
            User instance or None if not found
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_ids(db: AsyncSession, user_ids: Iterable[UUID]) -> list[User]:
        """Get all users whose ID is in ``user_ids``. Missing IDs are simply absent."""
        ids = list(user_ids)
        if not ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())
