"""
Tests for bearer-token authentication and the admin guard.

Tests: issue/decode round trip, expiry, issuer, require_authenticated_user,
require_admin role lookup.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from config import settings
from domain.errors import PermissionDeniedError


class TestAccessTokens:

    @pytest.mark.unit
    def test_issue_and_decode(self):
        from middleware.auth import decode_access_token, issue_access_token

        token = issue_access_token(user_id="user-1", role="customer")
        payload = decode_access_token(token)
        assert payload["sub"] == "user-1"
        assert payload["role"] == "customer"
        assert payload["iss"] == settings.jwt_issuer

    @pytest.mark.unit
    def test_expired_token(self):
        from middleware.auth import decode_access_token

        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "iss": settings.jwt_issuer,
                "sub": "user-1",
                "iat": int(past.timestamp()),
                "exp": int((past + timedelta(minutes=5)).timestamp()),
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401
        assert "expired" in exc_info.value.detail.lower()

    @pytest.mark.unit
    def test_wrong_issuer(self):
        from middleware.auth import decode_access_token

        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "iss": "someone-else",
                "sub": "user-1",
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(minutes=5)).timestamp()),
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_missing_secret_is_server_error(self, monkeypatch):
        from middleware.auth import issue_access_token

        monkeypatch.setattr(settings, "jwt_secret", "")
        with pytest.raises(HTTPException) as exc_info:
            issue_access_token(user_id="user-1", role="customer")
        assert exc_info.value.status_code == 500


class TestRequireAuthenticatedUser:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid_bearer(self):
        from middleware.auth import issue_access_token, require_authenticated_user

        token = issue_access_token(user_id="user-1", role="customer")
        assert await require_authenticated_user(authorization=f"Bearer {token}") == "user-1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_header_raises_401(self):
        from middleware.auth import require_authenticated_user

        with pytest.raises(HTTPException) as exc_info:
            await require_authenticated_user(authorization=None)
        assert exc_info.value.status_code == 401
        assert "Authentication required" in exc_info.value.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_bearer_scheme_raises_401(self):
        from middleware.auth import require_authenticated_user

        with pytest.raises(HTTPException) as exc_info:
            await require_authenticated_user(authorization="Basic dXNlcjpwYXNz")
        assert exc_info.value.status_code == 401


class TestRequireAdmin:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_admin_passes(self, db_session, admin_profile):
        from deps import require_admin

        assert await require_admin(user_id=admin_profile.id, db=db_session) == admin_profile.id

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_customer_rejected(self, db_session, customer_profile):
        from deps import require_admin

        with pytest.raises(PermissionDeniedError):
            await require_admin(user_id=customer_profile.id, db=db_session)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_profile_rejected(self, db_session):
        from deps import require_admin

        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_admin(user_id="ghost", db=db_session)
        assert exc_info.value.status_code == 403
