"""
Admin order endpoints — status transitions, cancellation, order listing.

Every endpoint requires an admin profile (see deps.require_admin).
Primary-path errors raise before commit, so nothing is persisted.
"""
import json
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, pagination_params, require_admin
from domain.enums import OrderStatus
from domain.errors import NotFoundError, ValidationError
from domain.responses import paginated_response, success_response
from models import (
    CancelOrderRequest,
    CancelOrderResponse,
    ShippingLogResponse,
    UpdateOrderStatusRequest,
    UpdateOrderStatusResponse,
    order_to_wire,
)
from services import order_service, shipping_log_service
from utils.validators import validated_order_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.post("/update-status")
async def update_order_status(
    request: UpdateOrderStatusRequest,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Move an order to a new admin-settable status and sync shipping."""
    result = await order_service.update_order_status(
        db, order_id=request.order_id, new_status=request.new_status
    )
    await db.commit()

    order = result["order"]
    if result["changed"]:
        logger.info(f"Admin {admin_id[:8]} set order {order.id[:8]} to {order.order_status}")
    return success_response(
        data=UpdateOrderStatusResponse(
            order_id=order.id,
            order_status=order.order_status,
            payment_status=order.payment_status,
            shipping_status=result["shipping_status"],
            changed=result["changed"],
            side_effect_errors=result["side_effect_errors"],
        ).to_wire()
    )


@router.post("/cancel")
async def cancel_order(
    request: CancelOrderRequest,
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an order, restore its stock and notify the customer."""
    result = await order_service.cancel_order(db, order_id=request.order_id)
    await db.commit()

    order = result["order"]
    logger.info(f"Admin {admin_id[:8]} cancelled order {order.id[:8]}")
    return success_response(
        data=CancelOrderResponse(
            order_id=order.id,
            order_status=order.order_status,
            restored_items=result["restored_items"],
            side_effect_errors=result["side_effect_errors"],
        ).to_wire()
    )


@router.get("")
async def list_orders(
    status: str | None = Query(None, description="Filter by order status"),
    admin_id: str = Depends(require_admin),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    if status and status not in {s.value for s in OrderStatus}:
        raise ValidationError("Unknown order status", field="status")
    orders, total = await order_service.list_orders(
        db, status=status, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        items=[order_to_wire(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/{order_id}/shipping-logs")
async def list_shipping_logs(
    order_id: str = Depends(validated_order_id),
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Shipping audit trail for an order, oldest first."""
    order = await order_service.get_order(db, order_id)
    if not order:
        raise NotFoundError("Order", order_id)
    if not order.shipping:
        return success_response(data=[])

    logs = await shipping_log_service.list_shipping_logs(db, shipping_id=order.shipping.id)
    return success_response(
        data=[
            ShippingLogResponse(
                id=log.id,
                status=log.status,
                message=log.message,
                raw_data=json.loads(log.raw_data) if log.raw_data else None,
                created_at=log.created_at,
            ).to_wire()
            for log in logs
        ]
    )
