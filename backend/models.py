"""
Pydantic models for request/response validation.

Wire format is camelCase; models accept either the alias or the Python name.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

from domain.enums import NotificationType, OrderEmailType


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or alias, and from ORM rows."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ── Admin Order Models ──────────────────────────────────────────────

class UpdateOrderStatusRequest(ApiModel):
    """Admin status change. newStatus is checked against the admin vocabulary."""
    order_id: str = Field(..., alias="orderId", min_length=1)
    new_status: str = Field(..., alias="newStatus", min_length=1)


class CancelOrderRequest(ApiModel):
    order_id: str = Field(..., alias="orderId", min_length=1)


class UpdateOrderStatusResponse(ApiModel):
    order_id: str = Field(..., alias="orderId")
    order_status: str = Field(..., alias="orderStatus")
    payment_status: str = Field(..., alias="paymentStatus")
    shipping_status: Optional[str] = Field(None, alias="shippingStatus")
    changed: bool = True
    side_effect_errors: List[str] = Field(default_factory=list, alias="sideEffectErrors")


class CancelOrderResponse(ApiModel):
    order_id: str = Field(..., alias="orderId")
    order_status: str = Field(..., alias="orderStatus")
    restored_items: int = Field(0, alias="restoredItems")
    side_effect_errors: List[str] = Field(default_factory=list, alias="sideEffectErrors")


# ── Inventory Models ────────────────────────────────────────────────

class UpdateStockRequest(ApiModel):
    stock: int = Field(..., description="Absolute stock level, must not be negative")


class VariantStockResponse(ApiModel):
    variant_id: str = Field(..., alias="variantId")
    stock: int
    in_stock: bool = Field(..., alias="inStock")


# ── Checkout Models ─────────────────────────────────────────────────

class CheckoutItem(ApiModel):
    variant_id: str = Field(..., alias="variantId", min_length=1)
    quantity: int = Field(..., ge=1, le=100)


class ShippingInfo(ApiModel):
    receiver_name: str = Field(..., alias="receiverName", min_length=1, max_length=200)
    receiver_phone: str = Field(..., alias="receiverPhone", min_length=3, max_length=30)
    receiver_address: str = Field(..., alias="receiverAddress", min_length=1, max_length=1000)


class CreateOrderRequest(ApiModel):
    items: List[CheckoutItem] = Field(..., min_length=1, max_length=50)
    payment_method: str = Field(..., alias="paymentMethod", description="cod | momo | vnpay | card")
    shipping_info: ShippingInfo = Field(..., alias="shippingInfo")


# ── Order Read Models ───────────────────────────────────────────────

class OrderItemResponse(ApiModel):
    id: str
    variant_id: str = Field(..., alias="variantId")
    price: float
    quantity: int
    product_name: Optional[str] = Field(None, alias="productName")
    size: Optional[str] = None
    color: Optional[str] = None


class ShippingResponse(ApiModel):
    id: str
    provider: str
    shipping_code: Optional[str] = Field(None, alias="shippingCode")
    shipping_fee: float = Field(0.0, alias="shippingFee")
    receiver_name: str = Field(..., alias="receiverName")
    receiver_phone: str = Field(..., alias="receiverPhone")
    receiver_address: str = Field(..., alias="receiverAddress")
    status: str
    shipped_at: Optional[datetime] = Field(None, alias="shippedAt")
    delivered_at: Optional[datetime] = Field(None, alias="deliveredAt")


class PaymentResponse(ApiModel):
    id: str
    order_id: str = Field(..., alias="orderId")
    method: Optional[str] = None
    status: str
    transaction_code: Optional[str] = Field(None, alias="transactionCode")
    paid_at: Optional[datetime] = Field(None, alias="paidAt")


class OrderSummaryResponse(ApiModel):
    id: str
    user_id: str = Field(..., alias="userId")
    total_price: float = Field(..., alias="totalPrice")
    payment_method: str = Field(..., alias="paymentMethod")
    payment_status: str = Field(..., alias="paymentStatus")
    order_status: str = Field(..., alias="orderStatus")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class OrderDetailResponse(OrderSummaryResponse):
    items: List[OrderItemResponse] = Field(default_factory=list)
    shipping: Optional[ShippingResponse] = None
    payment: Optional[PaymentResponse] = None


def order_to_wire(order) -> dict:
    """Serialize an Order row whose items/shipping/payment are eager-loaded."""
    items = []
    for item in order.items:
        variant = item.variant
        items.append(
            OrderItemResponse(
                id=item.id,
                variant_id=item.variant_id,
                price=item.price,
                quantity=item.quantity,
                product_name=variant.product.name if variant and variant.product else None,
                size=variant.size if variant else None,
                color=variant.color if variant else None,
            )
        )
    summary = OrderSummaryResponse.model_validate(order)
    return OrderDetailResponse(
        **summary.model_dump(),
        items=items,
        shipping=ShippingResponse.model_validate(order.shipping) if order.shipping else None,
        payment=PaymentResponse.model_validate(order.payment) if order.payment else None,
    ).to_wire()


# ── Payment Models ──────────────────────────────────────────────────

class PaymentCallbackRequest(ApiModel):
    """Gateway callback body (signature travels in X-Payment-Signature)."""
    order_id: str = Field(..., alias="orderId", min_length=1)
    status: str = Field(..., description="success | failed")
    transaction_code: Optional[str] = Field(None, alias="transactionCode", max_length=100)


# ── Notification Models ─────────────────────────────────────────────

class CreateOrderNotificationRequest(ApiModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: NotificationType = NotificationType.INFO


class SendOrderEmailRequest(ApiModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    type: OrderEmailType


class NotificationResponse(ApiModel):
    id: int
    title: str
    message: str
    type: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class ShippingLogResponse(ApiModel):
    id: int
    status: str
    message: Optional[str] = None
    raw_data: Optional[dict] = Field(None, alias="rawData")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
