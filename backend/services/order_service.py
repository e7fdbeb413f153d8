"""
Order service — checkout, reads, admin status transitions and cancellation.

Transactions: functions here only flush. The calling route commits, so a
primary-path exception (validation, not found, bad transition, stock) leaves
nothing behind. Secondary writes (shipping update, shipping log, notification,
stock restore) run in SAVEPOINTs; their failures are logged and reported in
``side_effect_errors`` without undoing the primary change.
"""
import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db_models import Order, OrderItem, Payment, ProductVariant, ShippingOrder
from domain.constants import (
    ADMIN_SETTABLE_STATUSES,
    CANCELLABLE_STATUSES,
    CHECKOUT_PAYMENT_METHODS,
    SHIPPING_LOG_LABELS,
    SHIPPING_PROVIDER_MANUAL,
    SHIPPING_STATUS_FOR_ORDER_STATUS,
    cancellation_notification,
    is_shipping_transition_allowed,
    is_transition_allowed,
    status_notification,
)
from domain.enums import (
    NotificationType,
    OrderEmailType,
    OrderStatus,
    PaymentRecordStatus,
    PaymentStatus,
    ShippingStatus,
)
from domain.errors import InvalidStatusTransitionError, NotFoundError, ValidationError
from services import inventory_service, notification_service, outbox_service, shipping_log_service

logger = logging.getLogger(__name__)


def _detail_options():
    return (
        selectinload(Order.items)
        .selectinload(OrderItem.variant)
        .selectinload(ProductVariant.product),
        selectinload(Order.shipping),
        selectinload(Order.payment),
    )


def _note_failure(errors: list[str], label: str, order_id: str, error: str | None) -> None:
    logger.warning(f"{label} failed for order {order_id[:8]} (non-blocking): {error}")
    errors.append(f"{label}: {error}")


# ════════════════════════════════════════════════════════════════════
# Checkout
# ════════════════════════════════════════════════════════════════════


async def create_order(
    db: AsyncSession,
    *,
    user_id: str,
    items: list[dict],
    payment_method: str,
    shipping_info: dict,
) -> tuple[Order, list[int]]:
    """
    Place an order in one transaction.

    items: [{variant_id:str, quantity:int}]
    shipping_info: {receiver_name, receiver_phone, receiver_address}

    Returns the order and the outbox event ids to dispatch after commit.
    """
    if not items:
        raise ValidationError("Cart is empty")

    method = (payment_method or "").lower()
    if method not in CHECKOUT_PAYMENT_METHODS:
        raise ValidationError(
            f"Unsupported payment method '{payment_method}'",
            field="paymentMethod",
            details={"allowed": sorted(CHECKOUT_PAYMENT_METHODS)},
        )

    # Merge duplicate lines for the same variant, keeping first-seen order
    quantities: dict[str, int] = {}
    for item in items:
        vid = str(item["variant_id"])
        quantities[vid] = quantities.get(vid, 0) + int(item["quantity"])

    res = await db.execute(
        select(ProductVariant).where(ProductVariant.id.in_(list(quantities)))
    )
    variants = {v.id: v for v in res.scalars().all()}
    for vid in quantities:
        if vid not in variants:
            raise NotFoundError("Variant", vid)

    # Prices are captured before stock moves
    prices = {vid: variants[vid].price for vid in quantities}

    await inventory_service.deduct_stock(
        db, [{"variant_id": vid, "quantity": qty} for vid, qty in quantities.items()]
    )

    total = sum(prices[vid] * qty for vid, qty in quantities.items())
    order = Order(
        user_id=user_id,
        total_price=round(total, 2),
        payment_method=CHECKOUT_PAYMENT_METHODS[method],
        payment_status=PaymentStatus.UNPAID.value,
        order_status=OrderStatus.PENDING_PAYMENT.value,
        created_at=datetime.utcnow(),
    )
    db.add(order)
    await db.flush()

    for vid, qty in quantities.items():
        db.add(OrderItem(order_id=order.id, variant_id=vid, price=prices[vid], quantity=qty))

    db.add(
        ShippingOrder(
            order_id=order.id,
            provider=SHIPPING_PROVIDER_MANUAL,
            receiver_name=shipping_info["receiver_name"],
            receiver_phone=shipping_info["receiver_phone"],
            receiver_address=shipping_info["receiver_address"],
            status=ShippingStatus.CREATED.value,
        )
    )
    db.add(
        Payment(
            order_id=order.id,
            method=method,
            status=PaymentRecordStatus.PENDING.value,
        )
    )

    event = await outbox_service.enqueue_order_email(
        db, order_id=order.id, email_type=OrderEmailType.ORDER_PLACED
    )
    logger.info(
        f"🛒 Order {order.id[:8]} placed by {user_id[:8]}: "
        f"{len(quantities)} line(s), total {order.total_price:.2f} ({method})"
    )
    return order, [event.id]


# ════════════════════════════════════════════════════════════════════
# Reads
# ════════════════════════════════════════════════════════════════════


async def get_order(db: AsyncSession, order_id: str) -> Order | None:
    res = await db.execute(
        select(Order).where(Order.id == order_id).options(*_detail_options())
    )
    return res.scalar_one_or_none()


async def get_user_order(db: AsyncSession, *, order_id: str, user_id: str) -> Order | None:
    """Get a single order, ensuring it belongs to the user."""
    res = await db.execute(
        select(Order)
        .where(Order.id == order_id, Order.user_id == user_id)
        .options(*_detail_options())
    )
    return res.scalar_one_or_none()


async def list_orders(
    db: AsyncSession,
    *,
    user_id: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    filters = []
    if user_id is not None:
        filters.append(Order.user_id == user_id)
    if status:
        filters.append(Order.order_status == status)
    if payment_status:
        filters.append(Order.payment_status == payment_status)

    total = await db.scalar(select(func.count()).select_from(Order).where(*filters))
    res = await db.execute(
        select(Order)
        .where(*filters)
        .options(*_detail_options())
        .order_by(Order.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total or 0


# ════════════════════════════════════════════════════════════════════
# Admin Status Transition
# ════════════════════════════════════════════════════════════════════


def parse_admin_status(new_status: str) -> OrderStatus:
    """Reject anything outside the admin-settable vocabulary."""
    allowed = sorted(s.value for s in ADMIN_SETTABLE_STATUSES)
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise ValidationError("Invalid status", field="newStatus", details={"allowed": allowed})
    if target not in ADMIN_SETTABLE_STATUSES:
        raise ValidationError("Invalid status", field="newStatus", details={"allowed": allowed})
    return target


async def _sync_shipping(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    errors: list[str],
) -> ShippingStatus | None:
    """Move the shipping record along with the order and log the change."""
    shipping = order.shipping
    shipping_status = SHIPPING_STATUS_FOR_ORDER_STATUS.get(target)
    if shipping is None or shipping_status is None:
        return None

    current = ShippingStatus(shipping.status)
    if not is_shipping_transition_allowed(current, shipping_status):
        _note_failure(
            errors, "Shipping update", order.id,
            f"transition {current.value} -> {shipping_status.value} not allowed",
        )
        return None

    now = datetime.utcnow()
    try:
        async with db.begin_nested():
            shipping.status = shipping_status.value
            if shipping_status == ShippingStatus.SHIPPING and shipping.shipped_at is None:
                shipping.shipped_at = now
            if shipping_status == ShippingStatus.DELIVERED and shipping.delivered_at is None:
                shipping.delivered_at = now
    except SQLAlchemyError as e:
        await db.refresh(shipping)
        _note_failure(errors, "Shipping update", order.id, str(e))
        return None

    label = SHIPPING_LOG_LABELS.get(shipping_status)
    if label:
        result = await shipping_log_service.create_shipping_log(
            db,
            shipping_id=shipping.id,
            status=shipping_status.value,
            message=label,
            raw_data={
                "order_id": order.id,
                "order_status": target.value,
                "updated_at": now.isoformat(),
            },
        )
        if not result["success"]:
            _note_failure(errors, "Shipping log", order.id, result.get("error"))

    return shipping_status


async def update_order_status(db: AsyncSession, *, order_id: str, new_status: str) -> dict:
    """
    Apply an admin status change.

    Raises ValidationError (unknown status), NotFoundError (no order) or
    InvalidStatusTransitionError (not in the transition table) before any
    write. Re-applying the current status is a no-op.
    """
    target = parse_admin_status(new_status)

    res = await db.execute(
        select(Order).where(Order.id == order_id).options(selectinload(Order.shipping))
    )
    order = res.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)

    current = OrderStatus(order.order_status)
    if current == target:
        return {
            "order": order,
            "changed": False,
            "shipping_status": order.shipping.status if order.shipping else None,
            "side_effect_errors": [],
        }
    if not is_transition_allowed(current, target):
        raise InvalidStatusTransitionError(
            f"Cannot change order from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )

    order.order_status = target.value
    if target != OrderStatus.PENDING_PAYMENT:
        order.payment_status = PaymentStatus.PAID.value
    await db.flush()
    logger.info(f"📦 Order {order_id[:8]}: {current.value} -> {target.value}")

    errors: list[str] = []
    shipping_status = None
    try:
        shipping_status = await _sync_shipping(db, order, target, errors)
    except Exception as e:
        _note_failure(errors, "Shipping sync", order_id, str(e))

    notice = status_notification(target, order.id)
    if notice and order.user_id:
        try:
            result = await notification_service.create_notification(
                db,
                user_id=order.user_id,
                title=notice["title"],
                message=notice["message"],
                type=NotificationType.SUCCESS,
            )
            if not result["success"]:
                _note_failure(errors, "Notification", order_id, result.get("error"))
        except Exception as e:
            _note_failure(errors, "Notification", order_id, str(e))

    return {
        "order": order,
        "changed": True,
        "shipping_status": shipping_status.value if shipping_status else None,
        "side_effect_errors": errors,
    }


# ════════════════════════════════════════════════════════════════════
# Cancellation
# ════════════════════════════════════════════════════════════════════


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: str,
    user_id: str | None = None,
    notify_customer: bool = True,
) -> dict:
    """
    Cancel an order and put its stock back.

    user_id restricts the cancel to the order's owner (customer cancel);
    None means an admin cancel. Only pending_payment / paid / processing
    orders can be cancelled, so a second cancel is rejected and never
    restores stock twice.
    """
    query = select(Order).where(Order.id == order_id).options(selectinload(Order.items))
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    res = await db.execute(query)
    order = res.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)

    current = OrderStatus(order.order_status)
    if current not in CANCELLABLE_STATUSES:
        raise InvalidStatusTransitionError(
            "Cannot cancel order in current status",
            current=current.value,
            target=OrderStatus.CANCELLED.value,
        )

    order.order_status = OrderStatus.CANCELLED.value
    await db.flush()
    logger.info(
        f"❌ Order {order_id[:8]} cancelled by {'customer' if user_id else 'admin'} "
        f"(was {current.value})"
    )

    errors: list[str] = []
    items_to_restore = [
        {"variant_id": item.variant_id, "quantity": item.quantity} for item in order.items
    ]
    stock_result = {"success": True, "restored": 0, "error": None}
    if items_to_restore:
        try:
            stock_result = await inventory_service.restore_stock(db, items_to_restore)
        except Exception as e:
            stock_result = {"success": False, "restored": 0, "error": str(e)}
        if not stock_result["success"]:
            _note_failure(errors, "Stock restore", order_id, stock_result["error"])

    if notify_customer and order.user_id:
        notice = cancellation_notification(order.id)
        try:
            result = await notification_service.create_notification(
                db,
                user_id=order.user_id,
                title=notice["title"],
                message=notice["message"],
                type=NotificationType.WARNING,
            )
            if not result["success"]:
                _note_failure(errors, "Notification", order_id, result.get("error"))
        except Exception as e:
            _note_failure(errors, "Notification", order_id, str(e))

    return {
        "order": order,
        "restored_items": stock_result["restored"],
        "side_effect_errors": errors,
    }
