"""
Notification service — in-app messages for customers.

Rows are written with the service's own credentials; customers can only
read their own notifications through the API.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Notification
from domain.enums import NotificationType

logger = logging.getLogger(__name__)


async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    title: str,
    message: str,
    type: NotificationType | str = NotificationType.INFO,
) -> dict:
    """
    Insert a notification inside a SAVEPOINT.

    A failed insert rolls back only the savepoint, never the caller's
    transaction. Returns {"success": bool, "error"?: str}.
    """
    try:
        async with db.begin_nested():
            db.add(
                Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=NotificationType(type).value,
                )
            )
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"Notification create error for user {user_id}: {e}")
        return {"success": False, "error": str(e)}
    return {"success": True}


async def list_user_notifications(
    db: AsyncSession,
    *,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Notification], int]:
    total = await db.scalar(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    res = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total or 0
