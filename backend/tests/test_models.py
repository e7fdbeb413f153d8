"""
Tests for Pydantic request/response models.

Tests: field validation, camelCase aliases, serialization.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime

import pytest
from pydantic import ValidationError
from models import (
    CreateOrderRequest,
    PaymentResponse,
    SendOrderEmailRequest,
    UpdateOrderStatusRequest,
    UpdateOrderStatusResponse,
)


class TestRequests:

    @pytest.mark.unit
    def test_update_status_accepts_alias_and_name(self):
        by_alias = UpdateOrderStatusRequest.model_validate({"orderId": "o1", "newStatus": "paid"})
        by_name = UpdateOrderStatusRequest(order_id="o1", new_status="paid")
        assert by_alias == by_name

    @pytest.mark.unit
    def test_update_status_requires_fields(self):
        with pytest.raises(ValidationError):
            UpdateOrderStatusRequest.model_validate({"orderId": "o1"})

    @pytest.mark.unit
    def test_checkout_quantity_must_be_positive(self):
        body = {
            "items": [{"variantId": "v1", "quantity": 0}],
            "paymentMethod": "cod",
            "shippingInfo": {"receiverName": "A", "receiverPhone": "0901", "receiverAddress": "B"},
        }
        with pytest.raises(ValidationError):
            CreateOrderRequest.model_validate(body)

    @pytest.mark.unit
    def test_checkout_requires_items(self):
        with pytest.raises(ValidationError):
            CreateOrderRequest.model_validate(
                {
                    "items": [],
                    "paymentMethod": "cod",
                    "shippingInfo": {"receiverName": "A", "receiverPhone": "0901", "receiverAddress": "B"},
                }
            )

    @pytest.mark.unit
    def test_email_type_vocabulary(self):
        assert SendOrderEmailRequest.model_validate({"orderId": "o1", "type": "order_success"}).type.value == "order_success"
        with pytest.raises(ValidationError):
            SendOrderEmailRequest.model_validate({"orderId": "o1", "type": "newsletter"})


class TestResponses:

    @pytest.mark.unit
    def test_wire_format_is_camel_case(self):
        wire = UpdateOrderStatusResponse(
            order_id="o1", order_status="paid", payment_status="paid", shipping_status="created"
        ).to_wire()
        assert wire == {
            "orderId": "o1",
            "orderStatus": "paid",
            "paymentStatus": "paid",
            "shippingStatus": "created",
            "changed": True,
            "sideEffectErrors": [],
        }

    @pytest.mark.unit
    def test_from_attributes(self):
        class Row:
            id = "p1"
            order_id = "o1"
            method = "momo"
            status = "success"
            transaction_code = "T1"
            paid_at = datetime(2024, 1, 2, 3, 4, 5)

        wire = PaymentResponse.model_validate(Row()).to_wire()
        assert wire["orderId"] == "o1"
        assert wire["paidAt"] == "2024-01-02T03:04:05"
