"""
Payment endpoints — gateway callback and payment lookup.
"""
import json
import logging

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import is_admin
from domain.errors import NotFoundError, UnauthorizedError, ValidationError
from domain.responses import success_response
from middleware.auth import require_authenticated_user
from middleware.rate_limit import rate_limit
from models import PaymentCallbackRequest, PaymentResponse
from services import order_service, outbox_service, payment_service
from utils.validators import validated_order_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/callback", dependencies=[Depends(rate_limit(max_requests=60, window_seconds=60))])
async def payment_callback(
    request: Request,
    x_payment_signature: str | None = Header(None, alias="X-Payment-Signature"),
    db: AsyncSession = Depends(get_db),
):
    """
    Gateway callback. The signature is checked over the raw body before the
    body is parsed; unsigned or mis-signed callbacks are rejected with 401.
    """
    payload = await request.body()
    if not payment_service.verify_callback_signature(payload, x_payment_signature):
        logger.warning("Payment callback rejected: invalid signature")
        raise UnauthorizedError("Invalid payment callback signature")

    try:
        body = PaymentCallbackRequest.model_validate(json.loads(payload or b"null"))
    except (ValueError, PydanticValidationError):
        raise ValidationError("Malformed payment callback body")

    result = await payment_service.process_callback(
        db,
        order_id=body.order_id,
        status=body.status,
        transaction_code=body.transaction_code,
    )
    await db.commit()

    payment = result["payment"]
    order = result["order"]
    data = {
        "status": result["status"],
        "orderId": order.id,
        "orderStatus": order.order_status,
        "paymentStatus": order.payment_status,
        "payment": PaymentResponse.model_validate(payment).to_wire(),
        "sideEffectErrors": result["side_effect_errors"],
    }

    # Rendered before dispatch: a dispatch failure rolls the session back
    dispatch = await outbox_service.dispatch_after_commit(
        db, result["event_ids"], order_id=data["orderId"]
    )
    return success_response(
        data=data,
        meta={"emailsSent": dispatch["sent"], "emailsPending": dispatch["pending"]},
    )


@router.get("/{order_id}")
async def get_payment(
    order_id: str = Depends(validated_order_id),
    user_id: str = Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    """Payment row for an order (owner or admin)."""
    if not await is_admin(db, user_id):
        order = await order_service.get_user_order(db, order_id=order_id, user_id=user_id)
        if not order:
            raise NotFoundError("Payment", order_id)
    payment = await payment_service.get_payment_by_order_id(db, order_id)
    if not payment:
        raise NotFoundError("Payment", order_id)
    return success_response(data=PaymentResponse.model_validate(payment).to_wire())
