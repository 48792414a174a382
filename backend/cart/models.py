"""
Cart value objects.

Carts are built client-side and priced on every mutation, so they are plain
immutable values rather than database rows. Each line freezes the item's
modifier rules at add time; later menu edits never reprice an open cart.
"""

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from django.utils import timezone

from payments.money import to_decimal
from products.rules import MenuItem, Selection


@dataclass(frozen=True)
class CartLine:
    menu_item_id: str
    name: str
    base_price: Decimal
    quantity: int = 1
    selections: Tuple[Selection, ...] = ()
    rules: Tuple[Any, ...] = ()
    special_instructions: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    added_at: datetime = field(default_factory=timezone.now)

    def __post_init__(self):
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError(f"Cart line quantity must be a positive integer, got {self.quantity!r}")

    @classmethod
    def from_menu_item(
        cls,
        item: MenuItem,
        quantity: int = 1,
        selections=(),
        special_instructions: str = "",
    ) -> "CartLine":
        """Create a line, snapshotting the item's rules as they are right now."""
        return cls(
            menu_item_id=item.id,
            name=item.name,
            base_price=item.base_price,
            quantity=quantity,
            selections=tuple(
                s if isinstance(s, Selection) else Selection.from_dict(s) for s in selections
            ),
            rules=tuple(copy.deepcopy(item.pricing_rules())),
            special_instructions=special_instructions,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartLine":
        extra = {}
        if data.get("id"):
            extra["id"] = str(data["id"])
        return cls(
            menu_item_id=data.get("menu_item_id", data.get("menuItemId")),
            name=data.get("name", ""),
            base_price=to_decimal(data.get("base_price", data.get("basePrice", 0))),
            quantity=int(data.get("quantity", 1)),
            selections=tuple(
                Selection.from_dict(s)
                for s in data.get("selections", data.get("selectedOptions")) or ()
            ),
            rules=tuple(copy.deepcopy(list(data.get("rules", data.get("modifierRules")) or ()))),
            special_instructions=data.get("special_instructions", data.get("specialInstructions", "")) or "",
            **extra,
        )

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)


@dataclass(frozen=True)
class Cart:
    """A cart scoped to exactly one restaurant."""

    restaurant_id: Optional[str] = None
    lines: Tuple[CartLine, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def get_line(self, line_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.id == line_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "restaurant_id": self.restaurant_id,
            "lines": [
                {
                    "id": line.id,
                    "menu_item_id": line.menu_item_id,
                    "name": line.name,
                    "quantity": line.quantity,
                    "special_instructions": line.special_instructions,
                }
                for line in self.lines
            ],
        }
