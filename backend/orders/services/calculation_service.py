from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import time

from cart.models import Cart
from cart.services import CartCalculator
from orders.exceptions import InvalidPricingInput
from payments.currency import CurrencyConverter, ExchangeRates
from payments.money import Numeric, ZERO, currency_symbol as symbol_for, quantize, to_decimal
from settings.config import FinancialSettings, PlatformFeePolicy

from .tax_service import TaxLine, TaxResult, compute_taxes

logger = logging.getLogger(__name__)


class OrderType:
    PICKUP = "pickup"
    DELIVERY = "delivery"
    DINE_IN = "dine_in"

    CHOICES = (PICKUP, DELIVERY, DINE_IN)


@dataclass(frozen=True)
class CalculatedItem:
    line_id: str
    menu_item_id: str
    name: str
    quantity: int
    unit_price: Decimal
    extended_price: Decimal
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderCalculation:
    """
    Final price breakdown for one order.

    total == subtotal + tax_total + delivery_fee + platform_fee + tip + driver_tip
    """

    subtotal: Decimal
    tax_lines: Tuple[TaxLine, ...]
    tax_total: Decimal
    delivery_fee: Decimal
    platform_fee: Decimal
    platform_fee_usd: Decimal
    tip: Decimal
    driver_tip: Decimal
    total: Decimal
    currency: str = "USD"
    currency_symbol: str = "$"
    warnings: Tuple[str, ...] = ()
    items: Tuple[CalculatedItem, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot shape stored on checkout and read back by analytics."""
        return {
            "subtotal": self.subtotal,
            "tax_lines": [line.to_dict() for line in self.tax_lines],
            "tax_total": self.tax_total,
            "delivery_fee": self.delivery_fee,
            "platform_fee": self.platform_fee,
            "platform_fee_usd": self.platform_fee_usd,
            "tip": self.tip,
            "driver_tip": self.driver_tip,
            "total": self.total,
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "warnings": list(self.warnings),
        }


def _non_negative(name: str, value: Numeric) -> Decimal:
    value = to_decimal(value)
    if value < 0:
        raise InvalidPricingInput(name, value)
    return value


class OrderCalculationService:
    """Service for assembling order totals from subtotal, taxes and fees."""

    @staticmethod
    def compute_order_total(
        subtotal: Numeric,
        tax_result: TaxResult,
        delivery_fee: Numeric,
        platform_fee_policy: Union[PlatformFeePolicy, Numeric],
        tip: Numeric = ZERO,
        driver_tip: Numeric = ZERO,
        merchant_currency: str = "USD",
        rates: Optional[ExchangeRates] = None,
        converter: Optional[CurrencyConverter] = None,
        currency_symbol: Optional[str] = None,
        warnings: Tuple[str, ...] = (),
        items: Tuple[CalculatedItem, ...] = (),
    ) -> OrderCalculation:
        """
        Combine the order components into an OrderCalculation.

        The USD platform fee is converted to the merchant currency for display;
        the USD figure is kept as platform_fee_usd. Delivery fee and driver tip
        are taken as given (callers pass 0 for pickup and dine-in).

        Raises:
            InvalidPricingInput: If subtotal, delivery_fee, tip or driver_tip is negative
        """
        currency = (merchant_currency or "USD").upper()
        subtotal = quantize(currency, _non_negative("subtotal", subtotal))
        delivery_fee = quantize(currency, _non_negative("delivery_fee", delivery_fee))
        tip = quantize(currency, _non_negative("tip", tip))
        driver_tip = quantize(currency, _non_negative("driver_tip", driver_tip))

        if isinstance(platform_fee_policy, PlatformFeePolicy):
            fee_usd = platform_fee_policy.amount_usd
        else:
            fee_usd = platform_fee_policy
        platform_fee_usd = quantize("USD", _non_negative("platform_fee_usd", fee_usd))

        converter = converter or CurrencyConverter(rates)
        conversion = converter.platform_fee_to_local(platform_fee_usd, currency)
        platform_fee = quantize(currency, conversion.amount)

        all_warnings = list(warnings)
        if conversion.warning:
            all_warnings.append(conversion.warning)

        tax_total = quantize(currency, tax_result.total)
        total = quantize(currency, subtotal + tax_total + delivery_fee + platform_fee + tip + driver_tip)

        return OrderCalculation(
            subtotal=subtotal,
            tax_lines=tuple(tax_result.lines),
            tax_total=tax_total,
            delivery_fee=delivery_fee,
            platform_fee=platform_fee,
            platform_fee_usd=platform_fee_usd,
            tip=tip,
            driver_tip=driver_tip,
            total=total,
            currency=currency,
            currency_symbol=currency_symbol or symbol_for(currency),
            warnings=tuple(all_warnings),
            items=tuple(items),
        )

    @staticmethod
    def calculate_tip(subtotal: Numeric, percentage: Numeric, currency: str = "USD") -> Decimal:
        """Tip for a preset percentage (e.g. 15 for 15%) of the subtotal."""
        subtotal = _non_negative("subtotal", subtotal)
        percentage = _non_negative("percentage", percentage)
        return quantize(currency, subtotal * percentage / Decimal("100"))

    @staticmethod
    def calculate_order(
        cart: Cart,
        financial_settings: FinancialSettings,
        order_type: str = OrderType.DELIVERY,
        delivery_fee: Numeric = ZERO,
        tip: Numeric = ZERO,
        driver_tip: Numeric = ZERO,
        converter: Optional[CurrencyConverter] = None,
        rates: Optional[ExchangeRates] = None,
    ) -> OrderCalculation:
        """
        Price a whole cart: lines, subtotal, taxes, fees and tips.

        Delivery fee and driver tip only apply to delivery orders; for pickup
        and dine-in they are forced to zero.
        """
        start_time = time.monotonic()
        currency = financial_settings.currency_code

        if order_type not in OrderType.CHOICES:
            raise InvalidPricingInput("order_type", order_type, f"Unknown order type '{order_type}'")

        if order_type != OrderType.DELIVERY and (to_decimal(delivery_fee) or to_decimal(driver_tip)):
            logger.info(
                f"Ignoring delivery_fee={delivery_fee} driver_tip={driver_tip} for {order_type} order"
            )
            delivery_fee = ZERO
            driver_tip = ZERO

        calculator = CartCalculator(cart.lines, currency)
        items = []
        line_warnings: List[str] = []
        for line in cart.lines:
            price = calculator.line_price(line)
            line_warnings.extend(price.warnings)
            items.append(CalculatedItem(
                line_id=line.id,
                menu_item_id=line.menu_item_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=price.unit_price,
                extended_price=price.extended_price,
                warnings=price.warnings,
            ))
        subtotal = sum((item.extended_price for item in items), quantize(currency, ZERO))

        tax_result = compute_taxes(
            subtotal, financial_settings.active_tax_rules, delivery_fee, currency, items=items,
        )

        calculation = OrderCalculationService.compute_order_total(
            subtotal=subtotal,
            tax_result=tax_result,
            delivery_fee=delivery_fee,
            platform_fee_policy=financial_settings.platform_fee,
            tip=tip,
            driver_tip=driver_tip,
            merchant_currency=currency,
            rates=rates,
            converter=converter,
            currency_symbol=financial_settings.currency_symbol,
            warnings=tuple(line_warnings),
            items=tuple(items),
        )

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "OrderCalculationService.calculate_order restaurant_id=%s lines=%d taxes=%d total=%s %s warnings=%d elapsed_ms=%.2f",
            cart.restaurant_id,
            len(items),
            len(tax_result.lines),
            calculation.total,
            currency,
            len(calculation.warnings),
            elapsed_ms,
        )
        return calculation


compute_order_total = OrderCalculationService.compute_order_total
calculate_tip = OrderCalculationService.calculate_tip
