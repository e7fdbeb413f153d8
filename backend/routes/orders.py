"""
Customer order endpoints — checkout, order history, self-service cancel.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, is_admin, pagination_params
from domain.enums import OrderStatus, PaymentStatus
from domain.errors import NotFoundError, ValidationError
from domain.responses import paginated_response, success_response
from middleware.auth import require_authenticated_user
from models import CancelOrderResponse, CreateOrderRequest, order_to_wire
from services import order_service, outbox_service
from utils.validators import validated_order_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("")
async def create_order(
    request: CreateOrderRequest,
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Place an order: deduct stock, create order/shipping/payment, queue email."""
    order, event_ids = await order_service.create_order(
        db,
        user_id=user_id,
        items=[{"variant_id": i.variant_id, "quantity": i.quantity} for i in request.items],
        payment_method=request.payment_method,
        shipping_info=request.shipping_info.model_dump(),
    )
    await db.commit()
    order_id = order.id

    # Confirmation email goes out after commit; failures stay queued for retry
    dispatch = await outbox_service.dispatch_after_commit(db, event_ids, order_id=order_id)

    detail = await order_service.get_order(db, order_id)
    return success_response(
        data=order_to_wire(detail),
        meta={"emailsSent": dispatch["sent"], "emailsPending": dispatch["pending"]},
    )


@router.get("")
async def list_my_orders(
    status: str | None = Query(None, description="Filter by order status"),
    payment_status: str | None = Query(None, alias="paymentStatus"),
    user_id: str = Depends(require_authenticated_user),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    if status and status not in {s.value for s in OrderStatus}:
        raise ValidationError("Unknown order status", field="status")
    if payment_status and payment_status not in {s.value for s in PaymentStatus}:
        raise ValidationError("Unknown payment status", field="paymentStatus")

    orders, total = await order_service.list_orders(
        db,
        user_id=user_id,
        status=status,
        payment_status=payment_status,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        items=[order_to_wire(o) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
    )


@router.get("/{order_id}")
async def get_order(
    order_id: str = Depends(validated_order_id),
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Order detail for its owner (admins may read any order)."""
    if await is_admin(db, user_id):
        order = await order_service.get_order(db, order_id)
    else:
        order = await order_service.get_user_order(db, order_id=order_id, user_id=user_id)
    if not order:
        raise NotFoundError("Order", order_id)
    return success_response(data=order_to_wire(order))


@router.post("/{order_id}/cancel")
async def cancel_my_order(
    order_id: str = Depends(validated_order_id),
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Customer cancel: same status rules as admin cancel, no notification."""
    result = await order_service.cancel_order(
        db, order_id=order_id, user_id=user_id, notify_customer=False
    )
    await db.commit()

    order = result["order"]
    return success_response(
        data=CancelOrderResponse(
            order_id=order.id,
            order_status=order.order_status,
            restored_items=result["restored_items"],
            side_effect_errors=result["side_effect_errors"],
        ).to_wire()
    )
