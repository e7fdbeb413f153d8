"""
Shipping log service — append-only audit trail of shipping status changes.
"""
import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import ShippingLog

logger = logging.getLogger(__name__)


async def create_shipping_log(
    db: AsyncSession,
    *,
    shipping_id: str,
    status: str,
    message: str | None = None,
    raw_data: dict | None = None,
) -> dict:
    """Append one log row inside a SAVEPOINT. Returns {"success": bool, "error"?: str}."""
    try:
        async with db.begin_nested():
            db.add(
                ShippingLog(
                    shipping_id=shipping_id,
                    status=status,
                    message=message,
                    raw_data=json.dumps(raw_data, default=str) if raw_data is not None else None,
                )
            )
    except SQLAlchemyError as e:
        logger.error(f"Shipping log create error for shipping {shipping_id}: {e}")
        return {"success": False, "error": str(e)}
    return {"success": True}


async def list_shipping_logs(db: AsyncSession, *, shipping_id: str) -> list[ShippingLog]:
    res = await db.execute(
        select(ShippingLog)
        .where(ShippingLog.shipping_id == shipping_id)
        .order_by(ShippingLog.created_at.asc(), ShippingLog.id.asc())
    )
    return res.scalars().all()
