"""
Notification endpoints — order-owned notification and email triggers,
plus the caller's notification inbox.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, pagination_params
from domain.errors import PermissionDeniedError
from domain.responses import paginated_response, success_response
from middleware.auth import require_authenticated_user
from middleware.rate_limit import rate_limit
from models import CreateOrderNotificationRequest, NotificationResponse, SendOrderEmailRequest
from services import email_service, notification_service, order_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _require_owned_order(db: AsyncSession, order_id: str, user_id: str):
    order = await order_service.get_user_order(db, order_id=order_id, user_id=user_id)
    if not order:
        raise PermissionDeniedError("Order not found or access denied")
    return order


@router.post("/create-for-order", dependencies=[Depends(rate_limit(max_requests=30, window_seconds=60))])
async def create_order_notification(
    request: CreateOrderNotificationRequest,
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a notification for the owner of an order (caller must own it)."""
    order = await _require_owned_order(db, request.order_id, user_id)

    result = await notification_service.create_notification(
        db,
        user_id=order.user_id,
        title=request.title,
        message=request.message,
        type=request.type,
    )
    if not result["success"]:
        raise HTTPException(status_code=500, detail="Failed to create notification")
    await db.commit()
    return success_response(data={"orderId": order.id, "created": True})


@router.post("/order-email", dependencies=[Depends(rate_limit(max_requests=10, window_seconds=60))])
async def send_order_email(
    request: SendOrderEmailRequest,
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Send (or re-send) an order email for an order the caller owns."""
    order = await _require_owned_order(db, request.order_id, user_id)

    result = await email_service.send_order_email(db, order.id, request.type)
    if not result["success"]:
        logger.error(f"Order email {request.type.value} failed for {order.id[:8]}: {result.get('error')}")
        raise HTTPException(status_code=500, detail=result.get("error") or "Failed to send email")
    return success_response(
        data={
            "orderId": order.id,
            "type": request.type.value,
            "skipped": bool(result.get("skipped")),
        }
    )


@router.get("")
async def list_my_notifications(
    user_id: str = Depends(require_authenticated_user),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await notification_service.list_user_notifications(
        db, user_id=user_id, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        items=[NotificationResponse.model_validate(n).to_wire() for n in rows],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )
