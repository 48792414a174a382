from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from orders.exceptions import InvalidPricingInput
from payments.money import Numeric, ZERO, quantize, round2, to_decimal
from settings.config import TaxBase, TaxKind, TaxRule, TaxScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxLine:
    """One visible tax on the receipt. Fixed taxes carry no rate."""

    name: str
    rate: Optional[Decimal]
    amount: Decimal
    kind: str = TaxKind.PERCENTAGE

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "rate": self.rate, "amount": self.amount, "kind": self.kind}


@dataclass(frozen=True)
class TaxResult:
    lines: Tuple[TaxLine, ...] = ()
    total: Decimal = Decimal("0.00")

    def to_dict(self) -> Dict[str, Any]:
        return {"lines": [line.to_dict() for line in self.lines], "total": self.total}


def _as_rule(rule) -> TaxRule:
    return rule if isinstance(rule, TaxRule) else TaxRule.from_dict(rule)


def _taxable_items(items: Iterable[Any]) -> List[Tuple[Decimal, int]]:
    """(line total, quantity) pairs from priced items or mappings."""
    taxable = []
    for item in items:
        if isinstance(item, Mapping):
            total = item.get("extended_price", item.get("total", 0))
            quantity = item.get("quantity", 1)
        else:
            total = item.extended_price
            quantity = item.quantity
        taxable.append((to_decimal(total), int(quantity)))
    return taxable


class TaxCalculationService:
    """Multi-line tax computation over a merchant's configured tax rules."""

    @staticmethod
    def compute_taxes(
        subtotal: Numeric,
        tax_rules: Iterable[Any],
        delivery_fee: Numeric = ZERO,
        currency: str = "USD",
        items: Optional[Iterable[Any]] = None,
    ) -> TaxResult:
        """
        Apply each enabled tax rule to its base.

        Order-wide percentage lines are rounded for display. The total is
        rounded once from the unrounded products; when the rounded lines
        don't add up to it, the difference goes to the last such line. A
        line is never pushed below zero: whatever it cannot absorb moves on
        to the line before it. Fixed and per-item lines are already exact in
        the currency's minor unit and are left as computed.

        Args:
            subtotal: Pre-tax item subtotal
            tax_rules: TaxRule objects or mappings, in merchant-configured order
            delivery_fee: Added to the base of order-wide percentage rules
                applying to subtotal_and_delivery
            currency: Currency whose minor unit amounts are rounded to
            items: Priced lines (objects with extended_price and quantity, or
                mappings), required by per-item rules

        Returns:
            TaxResult with ordered lines and total

        Raises:
            InvalidPricingInput: On negative amounts, or per-item rules without items
        """
        subtotal = to_decimal(subtotal)
        delivery_fee = to_decimal(delivery_fee)
        if subtotal < 0:
            raise InvalidPricingInput("subtotal", subtotal)
        if delivery_fee < 0:
            raise InvalidPricingInput("delivery_fee", delivery_fee)

        active_rules = [rule for rule in (_as_rule(r) for r in tax_rules or ()) if rule.enabled]
        if not active_rules:
            return TaxResult(lines=(), total=quantize(currency, ZERO))

        taxable_items = _taxable_items(items) if items is not None else None
        if taxable_items is None and any(rule.is_per_item for rule in active_rules):
            raise InvalidPricingInput("items", None, "Per-item tax rules need the priced order items")

        lines: List[TaxLine] = []
        rounded_indexes: List[int] = []
        raw_total = ZERO
        for rule in active_rules:
            rate = to_decimal(rule.rate)
            if rule.is_fixed:
                fixed = quantize(currency, rate)
                units = sum(quantity for _, quantity in taxable_items) if rule.is_per_item else 1
                amount = raw_amount = fixed * units
                lines.append(TaxLine(name=rule.name, rate=None, amount=amount, kind=TaxKind.FIXED))
            elif rule.is_per_item:
                amount = raw_amount = sum(
                    (quantize(currency, item_total * rate) for item_total, _ in taxable_items),
                    quantize(currency, ZERO),
                )
                lines.append(TaxLine(name=rule.name, rate=rate, amount=amount))
            else:
                base = subtotal + delivery_fee if rule.applies_to == TaxBase.SUBTOTAL_AND_DELIVERY else subtotal
                raw_amount = base * rate
                rounded_indexes.append(len(lines))
                lines.append(TaxLine(name=rule.name, rate=rate, amount=quantize(currency, raw_amount)))
            raw_total += raw_amount

        total = quantize(currency, raw_total)
        remainder = total - sum((line.amount for line in lines), ZERO)
        for index in reversed(rounded_indexes):
            if not remainder:
                break
            line = lines[index]
            adjusted = max(line.amount + remainder, ZERO)
            logger.debug(f"Tax rounding remainder {adjusted - line.amount} assigned to '{line.name}'")
            remainder -= adjusted - line.amount
            lines[index] = replace(line, amount=adjusted)

        return TaxResult(lines=tuple(lines), total=total)

    @staticmethod
    def effective_tax_rate(subtotal: Numeric, tax_total: Numeric) -> Decimal:
        """Tax as a percentage of the subtotal, to 2 places (0 for an empty subtotal)."""
        subtotal = to_decimal(subtotal)
        if subtotal <= 0:
            return round2(ZERO)
        return round2(to_decimal(tax_total) / subtotal * 100)

    @staticmethod
    def tax_refund(
        original_subtotal: Numeric,
        refund_subtotal: Numeric,
        original_tax: Numeric,
        currency: str = "USD",
    ) -> Decimal:
        """
        Tax to return for a partial refund, proportional to the refunded subtotal.

        Never exceeds the tax originally charged.
        """
        original_subtotal = to_decimal(original_subtotal)
        refund_subtotal = to_decimal(refund_subtotal)
        original_tax = to_decimal(original_tax)
        if original_subtotal <= 0 or refund_subtotal <= 0:
            return quantize(currency, ZERO)

        refund = quantize(currency, original_tax * refund_subtotal / original_subtotal)
        return min(refund, quantize(currency, original_tax))

    @staticmethod
    def validate_tax_rules(tax_rules: Sequence[Any]) -> List[str]:
        """Check tax rule configuration. Returns error strings, empty when valid."""
        errors = []
        for index, raw in enumerate(tax_rules or ()):
            try:
                rule = _as_rule(raw)
            except (InvalidOperation, TypeError, ValueError) as e:
                errors.append(f"Tax rule at index {index}: invalid rate ({e})")
                continue
            label = rule.name or f"at index {index}"
            if not rule.name or not str(rule.name).strip():
                errors.append(f"Tax rule at index {index}: name is required")
            if rule.kind not in TaxKind.CHOICES:
                errors.append(f"Tax rule {label}: unknown type '{rule.kind}'")
            elif rule.is_fixed and rule.rate < 0:
                errors.append(f"Tax rule {label}: fixed amount cannot be negative, got {rule.rate}")
            elif not rule.is_fixed and (rule.rate < 0 or rule.rate > 1):
                errors.append(f"Tax rule {label}: rate must be between 0 and 1, got {rule.rate}")
            if rule.scope not in TaxScope.CHOICES:
                errors.append(f"Tax rule {label}: unknown scope '{rule.scope}'")
            if rule.applies_to not in TaxBase.CHOICES:
                errors.append(f"Tax rule {label}: unknown base '{rule.applies_to}'")
        return errors


compute_taxes = TaxCalculationService.compute_taxes
