"""
SQLAlchemy ORM models for the Storefront Order Service.

Tables:
    profiles          — customers and admins (id = auth subject)
    products          — catalogue entries (read-only here)
    product_variants  — size/color variants carrying price and stock
    orders            — customer orders and their lifecycle status
    order_items       — price-at-purchase lines, immutable after checkout
    shipping_orders   — 1:1 fulfilment record per order
    shipping_logs     — append-only shipping audit trail
    notifications     — in-app messages for customers
    payments          — 1:1 payment record per order
    outbox_events     — external side effects awaiting dispatch
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey,
    CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    """Customer or admin account mirrored from the identity provider."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    role = Column(String(20), nullable=False, default="customer")  # "admin" | "customer"
    created_at = Column(DateTime, default=datetime.utcnow)


# ════════════════════════════════════════════════════════════════════
# Catalogue
# ════════════════════════════════════════════════════════════════════

class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=True, unique=True)
    base_price = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="active")  # "active" | "hidden"
    created_at = Column(DateTime, default=datetime.utcnow)

    variants = relationship("ProductVariant", back_populates="product", lazy="select")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(String(36), primary_key=True, default=_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    size = Column(String(20), nullable=True)
    color = Column(String(50), nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    stock = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="variants", lazy="select")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_variants_stock_non_negative"),
    )


# ════════════════════════════════════════════════════════════════════
# Orders
# ════════════════════════════════════════════════════════════════════

class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    total_price = Column(Float, nullable=False, default=0.0)
    payment_method = Column(String(20), nullable=False, default="cod")  # online | cod
    payment_status = Column(String(20), nullable=False, default="unpaid")  # paid | unpaid
    order_status = Column(String(30), nullable=False, default="pending_payment", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", lazy="select")
    shipping = relationship("ShippingOrder", back_populates="order", uselist=False, lazy="select")
    payment = relationship("Payment", back_populates="order", uselist=False, lazy="select")

    __table_args__ = (
        # For customer order history: filter by user_id, order by created_at DESC
        Index("ix_orders_user_created", "user_id", "created_at"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    variant_id = Column(String(36), ForeignKey("product_variants.id"), nullable=False, index=True)
    price = Column(Float, nullable=False, default=0.0)  # unit price at purchase
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant", lazy="select")


class ShippingOrder(Base):
    __tablename__ = "shipping_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    provider = Column(String(30), nullable=False, default="manual")
    shipping_code = Column(String(100), nullable=True)
    shipping_fee = Column(Float, nullable=False, default=0.0)
    receiver_name = Column(String(200), nullable=False)
    receiver_phone = Column(String(30), nullable=False)
    receiver_address = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="created")
    shipped_at = Column(DateTime, nullable=True)    # first entry into "shipping"
    delivered_at = Column(DateTime, nullable=True)  # first entry into "delivered"
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="shipping")
    logs = relationship("ShippingLog", back_populates="shipping", lazy="select")


class ShippingLog(Base):
    """Append-only audit row; never updated or deleted."""
    __tablename__ = "shipping_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    shipping_id = Column(String(36), ForeignKey("shipping_orders.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    message = Column(Text, nullable=True)
    raw_data = Column(Text, nullable=True)  # JSON snapshot
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    shipping = relationship("ShippingOrder", back_populates="logs")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    method = Column(String(20), nullable=True)  # momo | vnpay | card | cod
    status = Column(String(20), nullable=False, default="pending")  # pending | success | failed
    transaction_code = Column(String(100), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="payment")


# ════════════════════════════════════════════════════════════════════
# Side Channels
# ════════════════════════════════════════════════════════════════════

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="info")  # info | success | warning | error
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
    )


class OutboxEvent(Base):
    """
    External side effect recorded in the same transaction as the change
    that caused it.

    Lifecycle:
        1. Written as status=pending alongside the order/payment mutation
        2. A dispatcher claims it (status=sending, claimed_at) and commits
           before sending, so only one dispatcher sends it
        3. Failures go back to pending and are retried by the background
           worker; a claim older than OUTBOX_CLAIM_TIMEOUT_SECONDS is
           considered abandoned and may be taken over
        4. After OUTBOX_MAX_ATTEMPTS the row is marked failed
    """
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(50), nullable=False, index=True)
    payload = Column(Text, nullable=False)  # JSON
    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    claimed_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_outbox_status_created", "status", "created_at"),
    )
