from decimal import Decimal

from rest_framework import serializers

from cart.models import Cart, CartLine
from settings.config import PricingSettings

from .services import OrderCalculationService, OrderType


class MoneyField(serializers.Field):
    """Read-only Decimal rendered as its exact string ("9.75", "1235")."""

    def __init__(self, **kwargs):
        kwargs["read_only"] = True
        super().__init__(**kwargs)

    def to_representation(self, value):
        return str(value)


class SelectionSerializer(serializers.Serializer):
    choice_id = serializers.CharField()
    option_id = serializers.CharField(required=False, allow_null=True, default=None)
    quantity = serializers.IntegerField(required=False, default=1)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be a positive integer.")
        return value


class CartLineInputSerializer(serializers.Serializer):
    id = serializers.CharField(required=False)
    menu_item_id = serializers.CharField()
    name = serializers.CharField(required=False, allow_blank=True, default="")
    base_price = serializers.DecimalField(max_digits=14, decimal_places=3)
    quantity = serializers.IntegerField()
    selections = SelectionSerializer(many=True, required=False, default=list)
    rules = serializers.ListField(child=serializers.DictField(), required=False, default=list)
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_base_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Base price cannot be negative.")
        return value

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be a positive integer.")
        return value


class OrderCalculationRequestSerializer(serializers.Serializer):
    """
    Validates a checkout/cart-preview pricing request.

    Negative amounts are rejected here, before they reach the engine.
    """

    restaurant_id = serializers.CharField()
    order_type = serializers.ChoiceField(choices=OrderType.CHOICES, default=OrderType.DELIVERY)
    lines = CartLineInputSerializer(many=True, required=False, default=list)
    delivery_fee = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, default=Decimal("0"))
    tip = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, default=Decimal("0"))
    driver_tip = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, default=Decimal("0"))
    financial_settings = serializers.DictField(required=False, default=dict)

    def _validate_non_negative(self, value, label):
        if value < 0:
            raise serializers.ValidationError(f"{label} cannot be negative.")
        return value

    def validate_delivery_fee(self, value):
        return self._validate_non_negative(value, "Delivery fee")

    def validate_tip(self, value):
        return self._validate_non_negative(value, "Tip")

    def validate_driver_tip(self, value):
        return self._validate_non_negative(value, "Driver tip")

    def validate(self, attrs):
        if attrs.get("order_type") != OrderType.DELIVERY:
            errors = {}
            if attrs.get("delivery_fee"):
                errors["delivery_fee"] = "Delivery fee only applies to delivery orders."
            if attrs.get("driver_tip"):
                errors["driver_tip"] = "Driver tip only applies to delivery orders."
            if errors:
                raise serializers.ValidationError(errors)
        return attrs

    def to_cart(self) -> Cart:
        lines = []
        for line_data in self.validated_data.get("lines", []):
            data = dict(line_data)
            data["selections"] = [dict(s) for s in data.get("selections", [])]
            lines.append(CartLine.from_dict(data))
        return Cart(restaurant_id=self.validated_data["restaurant_id"], lines=tuple(lines))

    def save(self, **kwargs):
        """
        Run the pricing pipeline for the validated request.

        Accepts an optional 'converter' keyword (a CurrencyConverter) so views
        can reuse a live-rate converter across requests.
        """
        data = self.validated_data
        financial_settings = PricingSettings().financial_settings(data.get("financial_settings"))
        return OrderCalculationService.calculate_order(
            cart=self.to_cart(),
            financial_settings=financial_settings,
            order_type=data["order_type"],
            delivery_fee=data["delivery_fee"],
            tip=data["tip"],
            driver_tip=data["driver_tip"],
            converter=kwargs.get("converter"),
        )


class TaxLineSerializer(serializers.Serializer):
    name = serializers.CharField(read_only=True)
    rate = MoneyField()
    amount = MoneyField()
    kind = serializers.CharField(read_only=True)


class CalculatedItemSerializer(serializers.Serializer):
    line_id = serializers.CharField(read_only=True)
    menu_item_id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    quantity = serializers.IntegerField(read_only=True)
    unit_price = MoneyField()
    extended_price = MoneyField()
    warnings = serializers.ListField(child=serializers.CharField(), read_only=True)


class OrderCalculationSerializer(serializers.Serializer):
    """Output shape of an OrderCalculation for checkout and order snapshots."""

    subtotal = MoneyField()
    tax_lines = TaxLineSerializer(many=True, read_only=True)
    tax_total = MoneyField()
    delivery_fee = MoneyField()
    platform_fee = MoneyField()
    platform_fee_usd = MoneyField()
    tip = MoneyField()
    driver_tip = MoneyField()
    total = MoneyField()
    currency = serializers.CharField(read_only=True)
    currency_symbol = serializers.CharField(read_only=True)
    warnings = serializers.ListField(child=serializers.CharField(), read_only=True)
    items = CalculatedItemSerializer(many=True, read_only=True)
