"""
Tests for the pricing request/response serializers.
"""

import pytest
from decimal import Decimal

from orders.serializers import (
    CartLineInputSerializer,
    OrderCalculationRequestSerializer,
    OrderCalculationSerializer,
)
from payments.currency import CurrencyConverter


def request_payload(**overrides):
    payload = {
        "restaurant_id": "r1",
        "order_type": "delivery",
        "lines": [
            {
                "menu_item_id": "pizza",
                "name": "Margherita",
                "base_price": "10.00",
                "quantity": 2,
                "selections": [{"choice_id": "extra-cheese"}],
                "rules": [{"kind": "addition", "value": "1.50", "trigger": {"choice_ids": ["extra-cheese"]}}],
            },
        ],
        "delivery_fee": "3.00",
        "tip": "5.00",
        "driver_tip": "2.00",
        "financial_settings": {
            "currencyCode": "USD",
            "platformFeeUSD": "1.95",
            "taxRules": [{"name": "State", "rate": "0.07"}, {"name": "City", "rate": "0.02"}],
        },
    }
    payload.update(overrides)
    return payload


class TestOrderCalculationRequestSerializer:
    """Boundary validation."""

    def test_valid_request_prices_order(self):
        serializer = OrderCalculationRequestSerializer(data=request_payload())
        assert serializer.is_valid(), serializer.errors

        calc = serializer.save()
        assert calc.subtotal == Decimal("23.00")
        assert calc.tax_total == Decimal("2.07")
        # 23.00 + 2.07 + 3.00 + 1.95 + 5.00 + 2.00
        assert calc.total == Decimal("37.02")

    def test_default_platform_fee_from_django_settings(self, settings):
        settings.PLATFORM_FEE_USD = Decimal("0.50")
        payload = request_payload(financial_settings={})
        serializer = OrderCalculationRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors

        calc = serializer.save()
        assert calc.platform_fee_usd == Decimal("0.50")
        assert calc.tax_lines == ()

    def test_converter_injection(self):
        payload = request_payload(financial_settings={"currencyCode": "BRL", "platformFeeUSD": "1.95"})
        serializer = OrderCalculationRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors

        calc = serializer.save(converter=CurrencyConverter({"USD": 1, "BRL": 5}))
        assert calc.platform_fee == Decimal("9.75")

    @pytest.mark.parametrize("field", ["delivery_fee", "tip", "driver_tip"])
    def test_negative_amounts_rejected(self, field):
        serializer = OrderCalculationRequestSerializer(data=request_payload(**{field: "-1.00"}))
        assert not serializer.is_valid()
        assert field in serializer.errors

    def test_delivery_charges_rejected_for_pickup(self):
        serializer = OrderCalculationRequestSerializer(data=request_payload(order_type="pickup"))
        assert not serializer.is_valid()
        assert "delivery_fee" in serializer.errors
        assert "driver_tip" in serializer.errors

    def test_pickup_without_delivery_charges(self):
        payload = request_payload(order_type="pickup", delivery_fee="0", driver_tip="0")
        serializer = OrderCalculationRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors

    def test_unknown_order_type(self):
        serializer = OrderCalculationRequestSerializer(data=request_payload(order_type="drive_thru"))
        assert not serializer.is_valid()
        assert "order_type" in serializer.errors

    def test_empty_cart_is_valid(self):
        payload = request_payload(lines=[], delivery_fee="0", tip="0", driver_tip="0",
                                  financial_settings={"platformFeeUSD": "0"})
        serializer = OrderCalculationRequestSerializer(data=payload)
        assert serializer.is_valid(), serializer.errors
        assert serializer.save().total == Decimal("0.00")


class TestCartLineInputSerializer:
    """Per-line validation."""

    def test_zero_quantity_rejected(self):
        serializer = CartLineInputSerializer(data={"menu_item_id": "x", "base_price": "1.00", "quantity": 0})
        assert not serializer.is_valid()
        assert serializer.errors["quantity"] == ["Quantity must be a positive integer."]

    def test_negative_base_price_rejected(self):
        serializer = CartLineInputSerializer(data={"menu_item_id": "x", "base_price": "-1.00", "quantity": 1})
        assert not serializer.is_valid()
        assert "base_price" in serializer.errors

    def test_selection_quantity_rejected(self):
        serializer = CartLineInputSerializer(data={
            "menu_item_id": "x", "base_price": "1.00", "quantity": 1,
            "selections": [{"choice_id": "a", "quantity": 0}],
        })
        assert not serializer.is_valid()
        assert "selections" in serializer.errors


class TestOrderCalculationSerializer:
    """Output rendering."""

    def test_money_rendered_as_exact_strings(self):
        request = OrderCalculationRequestSerializer(data=request_payload())
        assert request.is_valid(), request.errors
        data = OrderCalculationSerializer(request.save()).data

        assert data["subtotal"] == "23.00"
        assert data["total"] == "37.02"
        assert data["platform_fee_usd"] == "1.95"
        assert data["tax_lines"][0] == {"name": "State", "rate": "0.07", "amount": "1.61", "kind": "percentage"}
        assert data["items"][0]["unit_price"] == "11.50"
        assert data["items"][0]["extended_price"] == "23.00"
        assert data["currency"] == "USD"
        assert data["warnings"] == []
