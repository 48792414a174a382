"""
Item price calculator for modifier rules.

This module turns a menu item's base price, its frozen modifier rules and the
customer's selections into an effective unit price and extended price. Cart
previews, checkout and order snapshots all price lines through here.

Evaluation order (fixed, so results are reproducible):
- FixedRule:      overrides the running price, last matching rule wins
- MultiplierRule: scales the running price, in declaration order (compounding)
- AdditionRule:   adds amount * selection quantity (or amount once)

Usage:
    from orders.calculators import compute_item_price
    price = compute_item_price(Decimal("10.00"), rules, selections, quantity=2)
    price.unit_price, price.extended_price
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from orders.exceptions import InvalidPricingInput, MalformedRuleError
from payments.money import Numeric, ZERO, quantize, to_decimal
from products.rules import (
    AdditionRule,
    FixedRule,
    ModifierRule,
    MultiplierRule,
    Selection,
    parse_modifier_rule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedAdjustment:
    """One rule that fired while pricing an item."""

    kind: str
    value: Decimal
    quantity: int
    price_after: Decimal


@dataclass(frozen=True)
class ItemPrice:
    unit_price: Decimal
    extended_price: Decimal
    warnings: Tuple[str, ...] = ()
    applied_rules: Tuple[AppliedAdjustment, ...] = ()

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def _coerce_selections(selections: Optional[Iterable[Any]]) -> List[Selection]:
    coerced = []
    for selection in selections or ():
        if isinstance(selection, Selection):
            coerced.append(selection)
        elif isinstance(selection, str):
            coerced.append(Selection(choice_id=selection))
        else:
            coerced.append(Selection.from_dict(selection))
    return coerced


class ModifierPriceCalculator:
    """
    Evaluates one item's modifier rules.

    Rules are parsed up front so a malformed rule is detected before any
    price is produced; the caller then gets the base price and a warning
    instead of a partially-adjusted figure.
    """

    def __init__(self, base_price: Numeric, rules: Sequence[Any], currency: str = "USD"):
        self.base_price = to_decimal(base_price)
        self.raw_rules = list(rules or ())
        self.currency = currency

    def _parsed_rules(self) -> List[ModifierRule]:
        return [parse_modifier_rule(rule) for rule in self.raw_rules]

    def evaluate(self, selections: Sequence[Selection]) -> Tuple[Decimal, List[AppliedAdjustment]]:
        """
        Run the rules against the selections.

        Returns:
            tuple: (running price before clamping/rounding, applied adjustments)

        Raises:
            MalformedRuleError: If any rule cannot be interpreted
        """
        rules = self._parsed_rules()
        running = self.base_price
        applied = []

        fixed = [r for r in rules if isinstance(r, FixedRule)]
        multipliers = [r for r in rules if isinstance(r, MultiplierRule)]
        additions = [r for r in rules if isinstance(r, AdditionRule)]

        for rule in fixed:
            quantity = rule.trigger.matched_quantity(selections)
            if quantity is None:
                continue
            running = to_decimal(rule.price)
            applied.append(AppliedAdjustment(rule.kind, rule.price, quantity, running))

        for rule in multipliers:
            quantity = rule.trigger.matched_quantity(selections)
            if quantity is None:
                continue
            running = running * to_decimal(rule.factor)
            applied.append(AppliedAdjustment(rule.kind, rule.factor, quantity, running))

        for rule in additions:
            quantity = rule.trigger.matched_quantity(selections)
            if quantity is None:
                continue
            multiplier = quantity if rule.per_quantity else 1
            running = running + to_decimal(rule.amount) * multiplier
            applied.append(AppliedAdjustment(rule.kind, rule.amount, quantity, running))

        logger.debug(
            f"Evaluated {len(rules)} modifier rules ({len(applied)} applied): "
            f"{self.base_price} -> {running}"
        )
        return running, applied

    def price(self, selections: Optional[Iterable[Any]] = None, quantity: int = 1) -> ItemPrice:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidPricingInput("quantity", quantity, f"Quantity must be a positive integer, got {quantity}")
        if self.base_price < 0:
            raise InvalidPricingInput("base_price", self.base_price)

        if not self.raw_rules:
            return ItemPrice(
                unit_price=self.base_price,
                extended_price=quantize(self.currency, self.base_price * quantity),
            )

        try:
            running, applied = self.evaluate(_coerce_selections(selections))
        except (MalformedRuleError, InvalidOperation, TypeError, ValueError) as e:
            warning = f"Could not apply modifier pricing, using base price {self.base_price}: {e}"
            logger.warning(warning)
            return ItemPrice(
                unit_price=self.base_price,
                extended_price=quantize(self.currency, self.base_price * quantity),
                warnings=(warning,),
            )

        if running < 0:
            logger.warning(f"Modifier rules produced a negative price ({running}), clamping to zero")
            running = ZERO

        # Extended price rounds once from the unrounded running price; the
        # rounded unit price is for display.
        return ItemPrice(
            unit_price=quantize(self.currency, running),
            extended_price=quantize(self.currency, running * quantity),
            applied_rules=tuple(applied),
        )


def compute_item_price(
    base_price: Numeric,
    rules: Sequence[Any],
    selections: Optional[Iterable[Any]] = None,
    quantity: int = 1,
    currency: str = "USD",
) -> ItemPrice:
    """
    Price one cart line.

    Args:
        base_price: Menu item base price (>= 0)
        rules: ModifierRule dataclasses or rule mappings, in declaration order
        selections: Selection objects, mappings or bare choice ids
        quantity: Line quantity (positive integer)
        currency: Currency whose minor unit prices are rounded to

    Returns:
        ItemPrice. Malformed rules fall back to the base price with a warning
        rather than raising.

    Raises:
        InvalidPricingInput: If quantity < 1 or base_price is negative
    """
    return ModifierPriceCalculator(base_price, rules, currency).price(selections, quantity)
