"""Tests for bearer-token and cron-secret authentication."""

import jwt
import pytest
from fastapi import HTTPException

from access_backend.src.lifecycle.endpoints.dependencies import CurrentUser, get_current_user, verify_cron_secret
from access_backend.tests.factories import make_token


class TestGetCurrentUser:
    """Tests for ``get_current_user``."""

    @pytest.mark.asyncio
    async def test_valid_token_returns_caller(self):
        user = await get_current_user(f"Bearer {make_token('user-1', 'user@example.com')}")

        assert user == CurrentUser(id='user-1', email='user@example.com')

    @pytest.mark.asyncio
    async def test_missing_header_is_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == 'Missing authorization header'

    @pytest.mark.asyncio
    async def test_expired_token_is_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(f"Bearer {make_token('user-1', expires_in=-60)}")

        assert exc_info.value.detail == 'Invalid or expired token'

    @pytest.mark.asyncio
    async def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode({'sub': 'user-1'}, 'another-secret-key-of-sufficient-length', algorithm='HS256')

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(f'Bearer {token}')

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_subject_is_rejected(self):
        from access_backend.core.conf import settings

        token = jwt.encode({'email': 'user@example.com'}, settings.TOKEN_SECRET_KEY, algorithm='HS256')

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(f'Bearer {token}')

        assert exc_info.value.status_code == 401


class TestVerifyCronSecret:
    """Tests for ``verify_cron_secret``."""

    @pytest.mark.asyncio
    async def test_matching_secret_passes(self):
        assert await verify_cron_secret('cron-secret') is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize('secret', [None, '', 'wrong-secret'])
    async def test_wrong_secret_is_rejected(self, secret):
        with pytest.raises(HTTPException) as exc_info:
            await verify_cron_secret(secret)

        assert exc_info.value.status_code == 401
