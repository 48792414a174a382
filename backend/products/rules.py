"""
Menu snapshot types and modifier pricing rules.

Modifier rules are a closed set of three kinds:

- MultiplierRule: scales the running price by a factor
- AdditionRule:   adds a flat amount (optionally once per selected quantity)
- FixedRule:      overrides the running price outright

Each rule carries a RuleTrigger naming the option choice(s) that switch it on.
Rules arrive from the menu subsystem either as these dataclasses or as plain
mappings; parse_modifier_rule() turns mappings into dataclasses and raises
MalformedRuleError for anything it cannot interpret.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from orders.exceptions import MalformedRuleError
from payments.money import to_decimal


class AdjustmentKind:
    MULTIPLIER = "multiplier"
    ADDITION = "addition"
    FIXED = "fixed"

    CHOICES = (MULTIPLIER, ADDITION, FIXED)


@dataclass(frozen=True)
class Selection:
    """A customer's chosen option choice (quantity > 1 for repeatable add-ons)."""

    choice_id: str
    option_id: Optional[str] = None
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Selection":
        return cls(
            choice_id=data.get("choice_id", data.get("choiceId")),
            option_id=data.get("option_id", data.get("optionId")),
            quantity=int(data.get("quantity") or 1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"choice_id": self.choice_id, "option_id": self.option_id, "quantity": self.quantity}


@dataclass(frozen=True)
class RuleTrigger:
    """
    The selected choices that switch a rule on.

    With choice_ids, every listed choice must be selected (optionally within
    option_id). With only option_id, any choice of that option matches.
    """

    choice_ids: Tuple[str, ...] = ()
    option_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.choice_ids and not self.option_id

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleTrigger":
        choice_ids = data.get("choice_ids", data.get("choiceIds"))
        if choice_ids is None:
            single = data.get("choice_id", data.get("choiceId", data.get("targetChoiceId")))
            choice_ids = [single] if single else []
        elif isinstance(choice_ids, str):
            choice_ids = [choice_ids]
        option_id = data.get("option_id", data.get("optionId", data.get("targetOptionId")))
        return cls(choice_ids=tuple(str(c) for c in choice_ids), option_id=option_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"choice_ids": list(self.choice_ids), "option_id": self.option_id}

    def _in_scope(self, selection: Selection) -> bool:
        return self.option_id is None or selection.option_id in (None, self.option_id)

    def matched_quantity(self, selections: Sequence[Selection]) -> Optional[int]:
        """
        Quantity the trigger fires with, or None when it does not fire.

        For multi-choice triggers this is the number of complete combinations
        (the smallest quantity among the triggering choices).
        """
        if self.is_empty:
            raise MalformedRuleError(self, "Rule trigger references no choice or option")

        if not self.choice_ids:
            quantity = sum(s.quantity for s in selections if s.option_id == self.option_id)
            return quantity or None

        quantities = []
        for choice_id in self.choice_ids:
            quantity = sum(
                s.quantity for s in selections
                if s.choice_id == choice_id and self._in_scope(s)
            )
            if quantity <= 0:
                return None
            quantities.append(quantity)
        return min(quantities)


@dataclass(frozen=True)
class MultiplierRule:
    factor: Decimal
    trigger: RuleTrigger
    kind: str = field(default=AdjustmentKind.MULTIPLIER, init=False)

    @property
    def value(self) -> Decimal:
        return self.factor


@dataclass(frozen=True)
class AdditionRule:
    amount: Decimal
    trigger: RuleTrigger
    per_quantity: bool = True
    kind: str = field(default=AdjustmentKind.ADDITION, init=False)

    @property
    def value(self) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class FixedRule:
    price: Decimal
    trigger: RuleTrigger
    kind: str = field(default=AdjustmentKind.FIXED, init=False)

    @property
    def value(self) -> Decimal:
        return self.price


ModifierRule = Union[MultiplierRule, AdditionRule, FixedRule]
RULE_TYPES = (MultiplierRule, AdditionRule, FixedRule)


def parse_modifier_rule(data: Union[ModifierRule, Mapping[str, Any]]) -> ModifierRule:
    """
    Build a ModifierRule from menu data.

    Accepts {"kind"|"adjustmentType": ..., "value": ..., "trigger": {...}} or
    the trigger keys inline. Raises MalformedRuleError for unknown kinds,
    missing or non-numeric values and triggers that reference nothing.
    """
    if isinstance(data, RULE_TYPES):
        if data.trigger.is_empty:
            raise MalformedRuleError(data, "Rule trigger references no choice or option")
        return data

    if not isinstance(data, Mapping):
        raise MalformedRuleError(data)

    kind = data.get("kind", data.get("adjustmentType", data.get("type")))
    if kind not in AdjustmentKind.CHOICES:
        raise MalformedRuleError(data, f"Unrecognized modifier rule kind: {kind!r}")

    if data.get("value") is None:
        raise MalformedRuleError(data, "Modifier rule has no value")
    try:
        value = to_decimal(data["value"])
    except (InvalidOperation, TypeError, ValueError):
        raise MalformedRuleError(data, f"Modifier rule value is not numeric: {data['value']!r}")
    if not value.is_finite():
        raise MalformedRuleError(data, f"Modifier rule value is not finite: {value}")

    trigger_data = data.get("trigger")
    trigger = RuleTrigger.from_dict(trigger_data if isinstance(trigger_data, Mapping) else data)
    if trigger.is_empty:
        raise MalformedRuleError(data, "Modifier rule is missing its trigger reference")

    if kind == AdjustmentKind.MULTIPLIER:
        return MultiplierRule(factor=value, trigger=trigger)
    if kind == AdjustmentKind.ADDITION:
        return AdditionRule(amount=value, trigger=trigger, per_quantity=bool(data.get("per_quantity", True)))
    return FixedRule(price=value, trigger=trigger)


def rule_to_dict(rule: ModifierRule) -> Dict[str, Any]:
    data = {"kind": rule.kind, "value": str(rule.value), "trigger": rule.trigger.to_dict()}
    if isinstance(rule, AdditionRule):
        data["per_quantity"] = rule.per_quantity
    return data


@dataclass(frozen=True)
class PriceAdjustment:
    kind: str = AdjustmentKind.ADDITION
    value: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, data: Union[Mapping[str, Any], int, str, Decimal, None]) -> "PriceAdjustment":
        # Plain numbers are the common "+$1.50" surcharge case
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            return cls(value=to_decimal(data))
        return cls(kind=data.get("kind", AdjustmentKind.ADDITION), value=to_decimal(data.get("value", 0)))


@dataclass(frozen=True)
class OptionChoice:
    id: str
    name: str
    option_id: Optional[str] = None
    price_adjustment: PriceAdjustment = field(default_factory=PriceAdjustment)
    is_available: bool = True
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], option_id: Optional[str] = None) -> "OptionChoice":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            option_id=data.get("option_id", data.get("optionId", option_id)),
            price_adjustment=PriceAdjustment.from_dict(
                data.get("price_adjustment", data.get("priceAdjustment"))
            ),
            is_available=data.get("is_available", data.get("isAvailable", True)),
            is_default=data.get("is_default", data.get("isDefault", False)),
        )

    def as_rule(self) -> Optional[ModifierRule]:
        """The choice's own surcharge expressed as a rule triggered by itself."""
        adjustment = self.price_adjustment
        if adjustment.kind == AdjustmentKind.ADDITION and adjustment.value == 0:
            return None
        return parse_modifier_rule({
            "kind": adjustment.kind,
            "value": adjustment.value,
            "trigger": {"choice_ids": [self.id], "option_id": self.option_id},
        })


@dataclass(frozen=True)
class OptionGroup:
    id: str
    name: str
    choices: Tuple[OptionChoice, ...] = ()
    allow_multiple: bool = False
    required: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptionGroup":
        group_id = data["id"]
        return cls(
            id=group_id,
            name=data.get("name", ""),
            choices=tuple(OptionChoice.from_dict(c, option_id=group_id) for c in data.get("choices", [])),
            allow_multiple=data.get("allow_multiple", data.get("allowMultiple", False)),
            required=data.get("required", False),
        )


@dataclass(frozen=True)
class MenuItem:
    """Snapshot of a menu item at pricing time."""

    id: str
    name: str
    base_price: Decimal
    modifier_rules: Tuple[Any, ...] = ()
    option_groups: Tuple[OptionGroup, ...] = ()
    is_available: bool = True
    is_visible: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MenuItem":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            base_price=to_decimal(data.get("base_price", data.get("basePrice", 0))),
            modifier_rules=tuple(data.get("modifier_rules", data.get("modifierRules")) or ()),
            option_groups=tuple(
                OptionGroup.from_dict(g) for g in data.get("option_groups", data.get("optionGroups")) or ()
            ),
            is_available=data.get("is_available", data.get("isAvailable", True)),
            is_visible=data.get("is_visible", data.get("isVisible", True)),
        )

    def pricing_rules(self) -> List[Any]:
        """Item rules followed by the rules implied by each choice's own surcharge."""
        return list(self.modifier_rules) + rules_from_choices(self.option_groups)


def rules_from_choices(option_groups: Iterable[OptionGroup]) -> List[ModifierRule]:
    rules = []
    for group in option_groups:
        for choice in group.choices:
            rule = choice.as_rule()
            if rule is not None:
                rules.append(rule)
    return rules


def validate_menu_rules(rules: Iterable[Any]) -> List[str]:
    """
    Check modifier rules without raising.

    Returns:
        list: Human-readable error strings (empty when every rule is valid)
    """
    errors = []
    for index, rule in enumerate(rules):
        try:
            parsed = parse_modifier_rule(rule)
        except MalformedRuleError as e:
            errors.append(f"Rule at index {index}: {e}")
            continue
        if isinstance(parsed, MultiplierRule) and parsed.factor < 0:
            errors.append(f"Rule at index {index}: multiplier factor cannot be negative ({parsed.factor})")
        if isinstance(parsed, FixedRule) and parsed.price < 0:
            errors.append(f"Rule at index {index}: fixed price cannot be negative ({parsed.price})")
    return errors


def get_default_selections(option_groups: Iterable[OptionGroup]) -> List[Selection]:
    """Pre-selected choices for a new cart line: defaults that are available."""
    return [
        Selection(choice_id=choice.id, option_id=group.id, quantity=1)
        for group in option_groups
        for choice in group.choices
        if choice.is_default and choice.is_available
    ]


def validate_selections(option_groups: Iterable[OptionGroup], selections: Sequence[Selection]) -> List[str]:
    """
    Check selections against the item's option groups.

    Enforces one choice per group unless the group allows multiples, required
    groups being answered, and choices being available.
    """
    errors = []
    for group in option_groups:
        choice_ids = {choice.id for choice in group.choices}
        chosen = [s for s in selections if s.choice_id in choice_ids and s.option_id in (None, group.id)]

        if group.required and not chosen:
            errors.append(f"Option '{group.name}' requires a selection")
        if not group.allow_multiple and len({s.choice_id for s in chosen}) > 1:
            errors.append(f"Option '{group.name}' allows only one choice")

        for selection in chosen:
            choice = next(c for c in group.choices if c.id == selection.choice_id)
            if not choice.is_available:
                errors.append(f"Choice '{choice.name}' is not available")
    return errors
