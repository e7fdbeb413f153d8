"""
Order lifecycle tables: transitions, status mappings and customer-facing copy.
"""

from domain.enums import OrderStatus, PaymentMethod, ShippingStatus

# Statuses the admin dashboard may request through update-status.
ADMIN_SETTABLE_STATUSES = frozenset({
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPING,
    OrderStatus.DELIVERED,
})

# current_status -> set of allowed next statuses (forward only)
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({
        OrderStatus.PAID,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPING,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAID: frozenset({
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPING,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.SHIPPING,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPING: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.RETURNED,
    }),
    OrderStatus.DELIVERED: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.RETURNED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items()
    if OrderStatus.CANCELLED in targets
)

SHIPPING_TRANSITIONS: dict[ShippingStatus, frozenset[ShippingStatus]] = {
    ShippingStatus.CREATED: frozenset({
        ShippingStatus.PICKING,
        ShippingStatus.SHIPPING,
        ShippingStatus.DELIVERED,
        ShippingStatus.FAILED,
    }),
    ShippingStatus.PICKING: frozenset({
        ShippingStatus.SHIPPING,
        ShippingStatus.DELIVERED,
        ShippingStatus.FAILED,
    }),
    ShippingStatus.SHIPPING: frozenset({
        ShippingStatus.DELIVERED,
        ShippingStatus.FAILED,
        ShippingStatus.RETURNED,
    }),
    ShippingStatus.DELIVERED: frozenset({ShippingStatus.RETURNED}),
    ShippingStatus.FAILED: frozenset({ShippingStatus.RETURNED}),
    ShippingStatus.RETURNED: frozenset(),
}

SHIPPING_STATUS_FOR_ORDER_STATUS: dict[OrderStatus, ShippingStatus] = {
    OrderStatus.PENDING_PAYMENT: ShippingStatus.CREATED,
    OrderStatus.PAID: ShippingStatus.CREATED,
    OrderStatus.PROCESSING: ShippingStatus.CREATED,
    OrderStatus.SHIPPING: ShippingStatus.SHIPPING,
    OrderStatus.DELIVERED: ShippingStatus.DELIVERED,
    OrderStatus.COMPLETED: ShippingStatus.DELIVERED,
}

# Shipping statuses that get an audit row, with their display label.
SHIPPING_LOG_LABELS: dict[ShippingStatus, str] = {
    ShippingStatus.CREATED: "Đơn hàng đã được tạo",
    ShippingStatus.SHIPPING: "Đang giao hàng",
    ShippingStatus.DELIVERED: "Đã giao hàng",
}

# Checkout payment choices -> the order-level payment method.
CHECKOUT_PAYMENT_METHODS = {
    "cod": PaymentMethod.COD.value,
    "momo": PaymentMethod.ONLINE.value,
    "vnpay": PaymentMethod.ONLINE.value,
    "card": PaymentMethod.ONLINE.value,
}

SHIPPING_PROVIDER_MANUAL = "manual"

OUTBOX_KIND_ORDER_EMAIL = "order_email"


def order_code(order_id: str) -> str:
    """Short customer-facing order reference, e.g. ``#3F2A9C1D``."""
    return str(order_id)[:8].upper()


def is_transition_allowed(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def is_shipping_transition_allowed(current: ShippingStatus, target: ShippingStatus) -> bool:
    if current == target:
        return True
    return target in SHIPPING_TRANSITIONS.get(current, frozenset())


def status_notification(status: OrderStatus, order_id: str) -> dict | None:
    """Customer message for an admin status change, or None when silent."""
    code = order_code(order_id)
    messages = {
        OrderStatus.PROCESSING: {
            "title": "Đơn hàng đang xử lý",
            "message": f"Đơn hàng #{code} đang được chuẩn bị.",
        },
        OrderStatus.SHIPPING: {
            "title": "Đơn hàng đang giao",
            "message": f"Đơn hàng #{code} đã được gửi đi và đang trên đường giao đến bạn.",
        },
        OrderStatus.DELIVERED: {
            "title": "Đơn hàng đã giao",
            "message": f"Đơn hàng #{code} đã được giao thành công. Cảm ơn bạn đã mua sắm!",
        },
    }
    return messages.get(status)


def cancellation_notification(order_id: str) -> dict:
    return {
        "title": "Đơn hàng đã bị hủy",
        "message": f"Đơn hàng #{order_code(order_id)} đã được hủy bởi quản trị viên.",
    }


def payment_success_notification(order_id: str) -> dict:
    return {
        "title": "Thanh toán thành công",
        "message": f"Đơn hàng #{order_code(order_id)} đã được thanh toán thành công.",
    }
