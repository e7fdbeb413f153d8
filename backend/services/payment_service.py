"""
Payment service — gateway callback handling for online payments.

The gateway (MoMo / VNPay / card processor) POSTs the outcome of a payment
to /payment/callback. The raw body is signed with HMAC-SHA256 using the
shared PAYMENT_CALLBACK_SECRET and the hex digest is sent in the
X-Payment-Signature header.

Callbacks are idempotent: gateways retry until they get a 2xx, so a payment
that is already successful is acknowledged without touching anything.
"""
import hashlib
import hmac
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, Payment
from domain.constants import is_transition_allowed, payment_success_notification
from domain.enums import (
    NotificationType,
    OrderEmailType,
    OrderStatus,
    PaymentRecordStatus,
    PaymentStatus,
)
from domain.errors import NotFoundError, ValidationError
from services import notification_service, outbox_service

logger = logging.getLogger(__name__)

CALLBACK_STATUSES = (PaymentRecordStatus.SUCCESS.value, PaymentRecordStatus.FAILED.value)


def sign_callback(payload: bytes, secret: str | None = None) -> str:
    """Hex HMAC-SHA256 of a callback body (used by the gateway and by tests)."""
    key = secret if secret is not None else settings.payment_callback_secret
    return hmac.new(key.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_callback_signature(payload: bytes, signature: str | None) -> bool:
    """
    Verify a gateway callback signature.

    FAILS CLOSED when PAYMENT_CALLBACK_SECRET is not configured.
    """
    if not settings.payment_callback_secret:
        logger.error(
            "PAYMENT_CALLBACK_SECRET not configured — rejecting payment callback. "
            "Set PAYMENT_CALLBACK_SECRET in .env to accept gateway callbacks."
        )
        return False

    if not signature:
        logger.warning("Payment callback received without signature header")
        return False

    return hmac.compare_digest(sign_callback(payload), signature.strip().lower())


async def get_payment_by_order_id(db: AsyncSession, order_id: str) -> Payment | None:
    res = await db.execute(select(Payment).where(Payment.order_id == order_id))
    return res.scalar_one_or_none()


async def process_callback(
    db: AsyncSession,
    *,
    order_id: str,
    status: str,
    transaction_code: str | None = None,
) -> dict:
    """
    Apply a verified gateway callback. Does not commit.

    Returns:
        {"status": "processed" | "already_processed",
         "payment": Payment, "order": Order,
         "event_ids": [int], "side_effect_errors": [str]}
    """
    if status not in CALLBACK_STATUSES:
        raise ValidationError(
            f"Unsupported payment status '{status}'",
            field="status",
            details={"allowed": list(CALLBACK_STATUSES)},
        )

    payment = await get_payment_by_order_id(db, order_id)
    if not payment:
        raise NotFoundError("Payment", order_id)
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order", order_id)

    if payment.status == PaymentRecordStatus.SUCCESS.value:
        logger.info(f"Payment callback for order {order_id[:8]} already processed, ignoring")
        return {
            "status": "already_processed",
            "payment": payment,
            "order": order,
            "event_ids": [],
            "side_effect_errors": [],
        }

    if transaction_code:
        payment.transaction_code = transaction_code

    if status == PaymentRecordStatus.FAILED.value:
        payment.status = PaymentRecordStatus.FAILED.value
        await db.flush()
        logger.warning(f"💳 Payment failed for order {order_id[:8]} (txn={transaction_code})")
        return {
            "status": "processed",
            "payment": payment,
            "order": order,
            "event_ids": [],
            "side_effect_errors": [],
        }

    payment.status = PaymentRecordStatus.SUCCESS.value
    payment.paid_at = datetime.utcnow()
    order.payment_status = PaymentStatus.PAID.value

    current = OrderStatus(order.order_status)
    if current != OrderStatus.PAID:
        if is_transition_allowed(current, OrderStatus.PAID):
            order.order_status = OrderStatus.PAID.value
        else:
            logger.warning(
                f"Payment succeeded for order {order_id[:8]} in status {current.value}; "
                f"order status left unchanged"
            )
    await db.flush()
    logger.info(f"💳 Payment success for order {order_id[:8]} (txn={transaction_code})")

    errors: list[str] = []
    notice = payment_success_notification(order.id)
    result = await notification_service.create_notification(
        db,
        user_id=order.user_id,
        title=notice["title"],
        message=notice["message"],
        type=NotificationType.SUCCESS,
    )
    if not result["success"]:
        logger.warning(f"Payment notification failed for order {order_id[:8]}: {result.get('error')}")
        errors.append(f"Notification: {result.get('error')}")

    event_ids: list[int] = []
    try:
        async with db.begin_nested():
            event = await outbox_service.enqueue_order_email(
                db, order_id=order.id, email_type=OrderEmailType.ORDER_SUCCESS
            )
        event_ids.append(event.id)
    except Exception as e:
        logger.warning(f"Could not queue payment email for order {order_id[:8]}: {e}")
        errors.append(f"Email: {e}")

    return {
        "status": "processed",
        "payment": payment,
        "order": order,
        "event_ids": event_ids,
        "side_effect_errors": errors,
    }
