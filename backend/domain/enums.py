"""
Domain enums for the order lifecycle.

All enums subclass ``str`` so they compare equal to the raw column values.
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(str, Enum):
    PAID = "paid"
    UNPAID = "unpaid"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    COD = "cod"


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ShippingStatus(str, Enum):
    CREATED = "created"
    PICKING = "picking"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    FAILED = "failed"
    RETURNED = "returned"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class OrderEmailType(str, Enum):
    ORDER_PLACED = "order_placed"
    ORDER_SUCCESS = "order_success"


class UserRole(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
