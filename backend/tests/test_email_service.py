"""
Unit tests for email service.

Tests template rendering, subjects, and the Resend HTTP call (httpx mocked).
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from config import settings
from domain.enums import OrderEmailType
from services import email_service

SAMPLE_DATA = {
    "order_id": "3f2a9c1d-0000-4000-8000-000000000000",
    "customer_name": "<Lan>",
    "customer_email": "lan@example.com",
    "total_price": 250.0,
    "items": [
        {"product_name": "Linen Shirt", "variant_info": "White / M", "quantity": 2, "price": 200.0},
    ],
    "receiver_name": "Nguyen Lan",
    "receiver_phone": "0901234567",
    "receiver_address": "12 Ly Thuong Kiet & Co",
}


def _response(status_code: int, body: dict | None = None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error"
    response.json.return_value = body or {}
    return response


class TestTemplates:

    @pytest.mark.unit
    def test_order_placed_html_escapes_user_input(self):
        html = email_service.build_order_placed_html(SAMPLE_DATA)
        assert "&lt;Lan&gt;" in html
        assert "<Lan>" not in html
        assert "12 Ly Thuong Kiet &amp; Co" in html
        assert "$200.00" in html
        assert "$250.00" in html

    @pytest.mark.unit
    def test_order_success_html(self):
        html = email_service.build_order_success_html(SAMPLE_DATA)
        assert "Thanh toán thành công!" in html
        assert SAMPLE_DATA["order_id"] in html

    @pytest.mark.unit
    def test_subjects(self, monkeypatch):
        monkeypatch.setattr(settings, "store_name", "Shop")
        order_id = SAMPLE_DATA["order_id"]
        assert email_service.build_subject(OrderEmailType.ORDER_PLACED, order_id) == (
            "[Shop] Xác nhận đơn hàng #3f2a9c1d"
        )
        assert email_service.build_subject(OrderEmailType.ORDER_SUCCESS, order_id) == (
            "[Shop] Thanh toán thành công - Đơn hàng #3f2a9c1d"
        )


class TestSendEmail:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_skipped_without_api_key(self):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as post:
            result = await email_service.send_email(to="a@b.c", subject="s", html_body="<p/>")
        assert result == {"success": True, "skipped": True}
        post.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_posts_to_resend(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        post = AsyncMock(return_value=_response(200, {"id": "email_1"}))
        with patch("httpx.AsyncClient.post", post):
            result = await email_service.send_email(to="a@b.c", subject="Hi", html_body="<p/>")

        assert result == {"success": True, "id": "email_1"}
        args, kwargs = post.call_args
        assert args[0] == settings.resend_api_url
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"
        assert kwargs["json"]["to"] == "a@b.c"
        assert kwargs["json"]["subject"] == "Hi"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_status(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_response(422))):
            result = await email_service.send_email(to="a@b.c", subject="Hi", html_body="<p/>")
        assert result["success"] is False
        assert "422" in result["error"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        boom = AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))
        with patch("httpx.AsyncClient.post", boom):
            result = await email_service.send_email(to="a@b.c", subject="Hi", html_body="<p/>")
        assert result == {"success": False, "error": "timed out"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accepted_with_non_json_body(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", "re_test")
        accepted = _response(202)
        accepted.json.side_effect = ValueError("Expecting value")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=accepted)):
            result = await email_service.send_email(to="a@b.c", subject="Hi", html_body="<p/>")
        assert result == {"success": True, "id": None}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_order_email_data(db_session, make_order, customer_profile, variant_a, variant_b):
    order = await make_order(customer_profile, [(variant_a, 2), (variant_b, 1)])

    data = await email_service.load_order_email_data(db_session, order.id)

    assert data["customer_email"] == "lan@example.com"
    assert data["customer_name"] == "Nguyen Lan"
    assert data["total_price"] == 250.0
    assert sorted((i["variant_info"], i["quantity"], i["price"]) for i in data["items"]) == [
        ("Navy / L", 1, 50.0),
        ("White / M", 2, 200.0),
    ]
    assert data["receiver_address"] == "12 Ly Thuong Kiet, Ha Noi"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_order_email_errors(db_session, make_order, variant_a):
    from db_models import Profile

    result = await email_service.send_order_email(db_session, "ghost", "order_placed")
    assert result == {"success": False, "error": "Order not found"}

    no_email = Profile(full_name="No Mail", role="customer")
    db_session.add(no_email)
    await db_session.commit()
    order = await make_order(no_email, [(variant_a, 1)])

    result = await email_service.send_order_email(db_session, order.id, "order_success")
    assert result == {"success": False, "error": "User email not found"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_order_email_renders_and_sends(db_session, make_order, customer_profile, variant_a, monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    order = await make_order(customer_profile, [(variant_a, 1)])

    post = AsyncMock(return_value=_response(200, {"id": "email_2"}))
    with patch("httpx.AsyncClient.post", post):
        result = await email_service.send_order_email(db_session, order.id, OrderEmailType.ORDER_PLACED)

    assert result["success"] is True
    sent = post.call_args.kwargs["json"]
    assert sent["to"] == "lan@example.com"
    assert f"#{order.id[:8]}" in sent["subject"]
    assert "Linen Shirt" in sent["html"]
