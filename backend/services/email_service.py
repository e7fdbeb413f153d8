"""
Email service — order confirmation emails sent through Resend.

Resend is a hosted transactional email API:
  - POST https://api.resend.com/emails with a Bearer API key
  - JSON body {from, to, subject, html}

When RESEND_API_KEY is not configured every send is skipped and reported
as a success, so local development and tests never need a mail account.
"""
import html
import logging

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config import settings
from db_models import Order, OrderItem, Profile, ProductVariant
from domain.enums import OrderEmailType

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Templates
# ════════════════════════════════════════════════════════════════════


def _items_rows(data: dict) -> str:
    rows = []
    for item in data["items"]:
        rows.append(
            f"""
    <tr>
      <td style="padding: 8px; border-bottom: 1px solid #eee;">{html.escape(item["product_name"])} ({html.escape(item["variant_info"])})</td>
      <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: center;">{item["quantity"]}</td>
      <td style="padding: 8px; border-bottom: 1px solid #eee; text-align: right;">${item["price"]:.2f}</td>
    </tr>"""
        )
    return "".join(rows)


def _page(header_bg: str, heading: str, subheading: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: {header_bg}; color: white; padding: 24px; border-radius: 8px 8px 0 0;">
    <h1 style="margin: 0; font-size: 24px;">{heading}</h1>
    <p style="margin: 8px 0 0 0; opacity: 0.9;">{subheading}</p>
  </div>
  <div style="background: #f9f9f9; padding: 24px; border: 1px solid #eee; border-top: none; border-radius: 0 0 8px 8px;">
{body}
  </div>
</body>
</html>"""


def _items_table(data: dict) -> str:
    return f"""    <h3 style="margin-top: 24px;">Chi tiết đơn hàng</h3>
    <table style="width: 100%; border-collapse: collapse; background: white; border-radius: 8px; overflow: hidden;">
      <thead>
        <tr style="background: #f0f0f0;">
          <th style="padding: 12px; text-align: left;">Sản phẩm</th>
          <th style="padding: 12px; text-align: center;">SL</th>
          <th style="padding: 12px; text-align: right;">Giá</th>
        </tr>
      </thead>
      <tbody>{_items_rows(data)}</tbody>
    </table>

    <p style="margin-top: 16px; font-size: 18px; font-weight: bold;">Tổng cộng: ${data["total_price"]:.2f}</p>"""


def build_order_placed_html(data: dict) -> str:
    order_id = html.escape(data["order_id"])
    body = f"""    <p>Xin chào <strong>{html.escape(data["customer_name"])}</strong>,</p>
    <p>Cảm ơn bạn đã đặt hàng! Chúng tôi đã nhận được đơn hàng của bạn và đang xử lý.</p>

{_items_table(data)}

    <h3 style="margin-top: 24px;">Thông tin giao hàng</h3>
    <p><strong>Người nhận:</strong> {html.escape(data["receiver_name"])}</p>
    <p><strong>Điện thoại:</strong> {html.escape(data["receiver_phone"])}</p>
    <p><strong>Địa chỉ:</strong> {html.escape(data["receiver_address"])}</p>

    <p style="margin-top: 24px; color: #666; font-size: 14px;">
      Nếu bạn chọn thanh toán online, vui lòng hoàn tất thanh toán để đơn hàng được xử lý.
    </p>"""
    return _page(
        "linear-gradient(135deg, #1a1a1a 0%, #333 100%)",
        "Đơn hàng đã được đặt thành công",
        f"Mã đơn hàng: <strong>{order_id}</strong>",
        body,
    )


def build_order_success_html(data: dict) -> str:
    order_id = html.escape(data["order_id"])
    body = f"""    <p>Xin chào <strong>{html.escape(data["customer_name"])}</strong>,</p>
    <p>Đơn hàng của bạn đã được thanh toán thành công. Chúng tôi sẽ bắt đầu chuẩn bị và giao hàng sớm nhất.</p>

{_items_table(data)}

    <h3 style="margin-top: 24px;">Địa chỉ giao hàng</h3>
    <p><strong>{html.escape(data["receiver_name"])}</strong><br>{html.escape(data["receiver_phone"])}<br>{html.escape(data["receiver_address"])}</p>

    <p style="margin-top: 24px; color: #666; font-size: 14px;">
      Cảm ơn bạn đã mua sắm! Chúc bạn có trải nghiệm tuyệt vời với sản phẩm.
    </p>"""
    return _page(
        "linear-gradient(135deg, #22c55e 0%, #16a34a 100%)",
        "Thanh toán thành công!",
        f"Đơn hàng <strong>{order_id}</strong> đã được thanh toán",
        body,
    )


def build_subject(email_type: OrderEmailType, order_id: str) -> str:
    short_id = order_id[:8]
    if email_type == OrderEmailType.ORDER_PLACED:
        return f"[{settings.store_name}] Xác nhận đơn hàng #{short_id}"
    return f"[{settings.store_name}] Thanh toán thành công - Đơn hàng #{short_id}"


# ════════════════════════════════════════════════════════════════════
# Data Loading
# ════════════════════════════════════════════════════════════════════


async def load_order_email_data(db: AsyncSession, order_id: str) -> dict | None:
    """Collect everything the templates need, or None if the order is gone."""
    res = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(
            selectinload(Order.items)
            .selectinload(OrderItem.variant)
            .selectinload(ProductVariant.product),
            selectinload(Order.shipping),
        )
    )
    order = res.scalar_one_or_none()
    if not order:
        return None

    profile = await db.get(Profile, order.user_id)
    customer_email = profile.email if profile else None
    customer_name = (
        (profile.full_name if profile else None)
        or (customer_email.split("@")[0] if customer_email else "")
    )

    shipping = order.shipping
    items = []
    for item in order.items:
        variant = item.variant
        product_name = variant.product.name if variant and variant.product else "Sản phẩm"
        variant_info = " / ".join(v for v in (variant.color, variant.size) if v) if variant else ""
        items.append(
            {
                "product_name": product_name,
                "variant_info": variant_info or "-",
                "quantity": item.quantity,
                "price": item.price * item.quantity,
            }
        )

    return {
        "order_id": order.id,
        "customer_name": customer_name,
        "customer_email": customer_email,
        "total_price": order.total_price,
        "items": items,
        "receiver_name": shipping.receiver_name if shipping else customer_name,
        "receiver_phone": shipping.receiver_phone if shipping else "",
        "receiver_address": shipping.receiver_address if shipping else "",
    }


# ════════════════════════════════════════════════════════════════════
# Sending
# ════════════════════════════════════════════════════════════════════


async def send_email(*, to: str, subject: str, html_body: str) -> dict:
    """POST one email to Resend. Returns {"success": bool, "error"?: str, "id"?: str}."""
    if not settings.email_enabled:
        logger.warning(f"RESEND_API_KEY not set, skipping email '{subject}'")
        return {"success": True, "skipped": True}

    try:
        async with httpx.AsyncClient(timeout=settings.email_timeout_seconds) as client:
            response = await client.post(
                settings.resend_api_url,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to,
                    "subject": subject,
                    "html": html_body,
                },
            )
        if response.status_code >= 400:
            logger.error(f"Resend rejected email '{subject}': {response.status_code} {response.text}")
            return {"success": False, "error": f"Resend HTTP {response.status_code}"}
        try:
            email_id = response.json().get("id")
        except (ValueError, AttributeError):
            # Accepted but the body is not the usual {"id": ...} object
            email_id = None
        return {"success": True, "id": email_id}
    except httpx.HTTPError as e:
        logger.error(f"Email send error for '{subject}': {e}")
        return {"success": False, "error": str(e)}


async def send_order_email(db: AsyncSession, order_id: str, email_type: OrderEmailType | str) -> dict:
    """Render and send an order email. Returns {"success": bool, "error"?: str}."""
    email_type = OrderEmailType(email_type)

    data = await load_order_email_data(db, order_id)
    if not data:
        return {"success": False, "error": "Order not found"}
    if not data["customer_email"]:
        return {"success": False, "error": "User email not found"}

    if email_type == OrderEmailType.ORDER_PLACED:
        html_body = build_order_placed_html(data)
    else:
        html_body = build_order_success_html(data)

    result = await send_email(
        to=data["customer_email"],
        subject=build_subject(email_type, order_id),
        html_body=html_body,
    )
    if result["success"]:
        logger.info(f"📧 {email_type.value} email handled for order {order_id[:8]}")
    return result
