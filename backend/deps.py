"""
Shared FastAPI dependencies.

Centralizes common dependencies so routers import from a single place
(DB session, auth guards, pagination).
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Profile
from domain.enums import UserRole
from domain.errors import PermissionDeniedError
from middleware.auth import require_authenticated_user


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


async def require_admin(
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> str:
    """
    Require that the authenticated user is an admin.

    The role is read from the profiles table, never from the token. A missing
    profile is treated as non-admin.
    """
    profile = await db.get(Profile, user_id)
    if not profile:
        raise PermissionDeniedError("Profile not found for user.")
    if profile.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Admin role required for this endpoint.")
    return user_id


async def is_admin(db: AsyncSession, user_id: str) -> bool:
    profile = await db.get(Profile, user_id)
    return bool(profile and profile.role == UserRole.ADMIN.value)
