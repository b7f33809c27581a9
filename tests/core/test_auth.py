"""
Tests for bearer token verification and principal resolution.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from studieo.core.auth import Principal, get_optional_principal
from studieo.core.security import create_access_token, decode_token
from studieo.modules.users.models import UserRole


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def _user(role: UserRole = UserRole.STUDENT, company_id=None):
    user = MagicMock()
    user.id = uuid4()
    user.email = "lead@uni.edu"
    user.role = role
    user.company_id = company_id
    user.name = "Lena Lead"
    return user


class TestTokens:
    """Tests for create_access_token and decode_token."""

    def test_round_trip(self):
        user_id = uuid4()

        payload = decode_token(create_access_token(user_id))

        assert payload["sub"] == str(user_id)
        assert payload["type"] == "access"

    def test_expired_token(self):
        token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_foreign_signature(self):
        token = jwt.encode({"sub": str(uuid4())}, "someone-else", algorithm="HS256")

        assert decode_token(token) is None


class TestGetOptionalPrincipal:
    """Tests for the get_optional_principal dependency."""

    @pytest.mark.asyncio
    async def test_no_credentials(self):
        assert await get_optional_principal(credentials=None, db=AsyncMock()) is None

    @pytest.mark.asyncio
    async def test_valid_token_resolves_user(self):
        user = _user()
        token = create_access_token(user.id)

        with patch(
            "studieo.core.auth.UserRepository.get_by_id", new=AsyncMock(return_value=user)
        ):
            principal = await get_optional_principal(credentials=_bearer(token), db=AsyncMock())

        assert principal.id == user.id
        assert principal.is_student
        assert principal.name == "Lena Lead"

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        token = create_access_token(uuid4())

        with patch("studieo.core.auth.UserRepository.get_by_id", new=AsyncMock(return_value=None)):
            with pytest.raises(HTTPException) as exc_info:
                await get_optional_principal(credentials=_bearer(token), db=AsyncMock())

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["message"] == "Unknown user."

    @pytest.mark.asyncio
    async def test_garbage_token(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_optional_principal(credentials=_bearer("not-a-jwt"), db=AsyncMock())

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_subject_must_be_a_uuid(self):
        token = create_access_token("lena")

        with pytest.raises(HTTPException) as exc_info:
            await get_optional_principal(credentials=_bearer(token), db=AsyncMock())

        assert exc_info.value.detail["message"] == "Invalid token: malformed user identifier."


class TestPrincipal:
    """Tests for Principal role checks."""

    def test_company_membership(self):
        company_id = uuid4()
        user = _user(role=UserRole.COMPANY, company_id=company_id)
        principal = Principal.from_user(user)

        assert principal.belongs_to_company(company_id)
        assert not principal.belongs_to_company(uuid4())
        assert not principal.is_student

    def test_student_never_belongs_to_a_company(self):
        company_id = uuid4()
        principal = Principal(
            id=uuid4(), email="s@uni.edu", role=UserRole.STUDENT, company_id=company_id
        )

        assert not principal.belongs_to_company(company_id)
