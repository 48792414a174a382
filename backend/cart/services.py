"""
Cart service layer.

This service handles:
- Adding/updating/removing lines (a cart holds one restaurant at a time)
- Per-line and cart-level price queries over each line's frozen rules

Carts are immutable; every mutation returns a new Cart.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from .models import Cart, CartLine
from orders.calculators import ItemPrice, compute_item_price
from payments.money import ZERO, quantize
from products.rules import MenuItem, Selection

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing cart operations."""

    @staticmethod
    def add_item(
        cart: Cart,
        restaurant_id: str,
        item: MenuItem,
        quantity: int = 1,
        selections: Optional[Sequence[Any]] = None,
        special_instructions: str = "",
    ) -> Cart:
        """
        Add an item to the cart.

        Adding an item from a different restaurant replaces the entire cart
        with a new one for that restaurant.

        Returns:
            Cart: The updated cart
        """
        line = CartLine.from_menu_item(item, quantity, selections or (), special_instructions)

        if cart.restaurant_id is not None and cart.restaurant_id != restaurant_id:
            logger.info(
                f"Replacing cart for restaurant {cart.restaurant_id} "
                f"({len(cart.lines)} lines) with restaurant {restaurant_id}"
            )
            return Cart(restaurant_id=restaurant_id, lines=(line,))

        return Cart(restaurant_id=restaurant_id, lines=cart.lines + (line,))

    @staticmethod
    def remove_item(cart: Cart, line_id: str) -> Cart:
        lines = tuple(line for line in cart.lines if line.id != line_id)
        if len(lines) == len(cart.lines):
            logger.warning(f"Cart line {line_id} not found, nothing removed")
        return replace(cart, lines=lines)

    @staticmethod
    def update_quantity(cart: Cart, line_id: str, quantity: int) -> Cart:
        """Set a line's quantity. A quantity below 1 removes the line."""
        if quantity < 1:
            return CartService.remove_item(cart, line_id)
        return replace(cart, lines=tuple(
            line.with_quantity(quantity) if line.id == line_id else line
            for line in cart.lines
        ))

    @staticmethod
    def update_item(
        cart: Cart,
        line_id: str,
        selections: Optional[Sequence[Any]] = None,
        special_instructions: Optional[str] = None,
    ) -> Cart:
        """Change a line's selections and/or instructions, keeping its rule snapshot."""
        updated = []
        for line in cart.lines:
            if line.id == line_id:
                changes = {}
                if selections is not None:
                    changes["selections"] = tuple(
                        s if isinstance(s, Selection) else Selection.from_dict(s) for s in selections
                    )
                if special_instructions is not None:
                    changes["special_instructions"] = special_instructions
                line = replace(line, **changes)
            updated.append(line)
        return replace(cart, lines=tuple(updated))

    @staticmethod
    def clear(cart: Cart) -> Cart:
        return Cart()


class CartCalculator:
    """
    Price queries over a cart's lines.

    Line totals are rounded per line by the item calculator; the subtotal
    is then exact Decimal addition, so it does not depend on line order.
    """

    def __init__(self, lines: Iterable[CartLine], currency: str = "USD"):
        self.lines = list(lines)
        self.currency = currency

    def line_price(self, line: CartLine) -> ItemPrice:
        return compute_item_price(line.base_price, line.rules, line.selections, line.quantity, self.currency)

    def line_total(self, line: CartLine) -> Decimal:
        return self.line_price(line).extended_price

    def prices(self) -> List[ItemPrice]:
        return [self.line_price(line) for line in self.lines]

    def subtotal(self) -> Decimal:
        # Start with a quantized zero so an empty cart still has the currency's precision
        return sum((price.extended_price for price in self.prices()), quantize(self.currency, ZERO))

    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def warnings(self) -> List[str]:
        return [warning for price in self.prices() for warning in price.warnings]

    def calculate_totals(self) -> Dict[str, Any]:
        """
        Calculate all cart totals in one pass.

        Returns:
            dict: {
                'subtotal': Decimal,
                'item_count': int,
                'warnings': list,
            }
        """
        prices = self.prices()
        return {
            "subtotal": sum((p.extended_price for p in prices), quantize(self.currency, ZERO)),
            "item_count": self.item_count(),
            "warnings": [w for p in prices for w in p.warnings],
        }


def subtotal(lines: Iterable[CartLine], currency: str = "USD") -> Decimal:
    return CartCalculator(lines, currency).subtotal()


def line_total(line: CartLine, currency: str = "USD") -> Decimal:
    return CartCalculator((), currency).line_total(line)


def item_count(lines: Iterable[CartLine]) -> int:
    return CartCalculator(lines).item_count()
