"""
Merchant financial configuration consumed by the pricing engine.

The settings subsystem owns and persists these values; pricing only reads an
immutable snapshot. Instances are passed explicitly into the calculation
services instead of being looked up through a process-wide singleton, so
tenants and tests never share configuration by accident.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging

from django.conf import settings

from payments.money import currency_symbol, to_decimal

logger = logging.getLogger(__name__)


class TaxBase:
    SUBTOTAL = "subtotal"
    SUBTOTAL_AND_DELIVERY = "subtotal_and_delivery"

    CHOICES = (SUBTOTAL, SUBTOTAL_AND_DELIVERY)


class TaxKind:
    PERCENTAGE = "percentage"
    FIXED = "fixed"

    CHOICES = (PERCENTAGE, FIXED)


class TaxScope:
    ENTIRE_ORDER = "entire_order"
    PER_ITEM = "per_item"

    CHOICES = (ENTIRE_ORDER, PER_ITEM)


@dataclass(frozen=True)
class TaxRule:
    """
    A named tax applied to the order.

    For percentage taxes rate is a fraction (0.0825 = 8.25%). For fixed taxes
    rate is an amount in the merchant currency, charged once per order or
    once per unit when scope is per_item. Per-item percentage taxes are
    rounded item by item.
    """

    name: str
    rate: Decimal
    applies_to: str = TaxBase.SUBTOTAL
    enabled: bool = True
    kind: str = TaxKind.PERCENTAGE
    scope: str = TaxScope.ENTIRE_ORDER

    @property
    def is_fixed(self) -> bool:
        return self.kind == TaxKind.FIXED

    @property
    def is_per_item(self) -> bool:
        return self.scope == TaxScope.PER_ITEM

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaxRule":
        return cls(
            name=data.get("name", ""),
            rate=to_decimal(data.get("rate", 0)),
            applies_to=data.get("applies_to", data.get("appliesTo", TaxBase.SUBTOTAL)),
            enabled=data.get("enabled", True),
            kind=data.get("kind", data.get("type", TaxKind.PERCENTAGE)),
            scope=data.get("scope", data.get("apply_to", data.get("applyTo", TaxScope.ENTIRE_ORDER))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rate": str(self.rate),
            "applies_to": self.applies_to,
            "enabled": self.enabled,
            "kind": self.kind,
            "scope": self.scope,
        }


class DistanceUnit:
    MILES = "miles"
    KM = "km"

    CHOICES = (MILES, KM)


@dataclass(frozen=True)
class DeliveryPricingTier:
    """Base fee up to distance_covered, then additional_fee_per_unit for each unit beyond it."""

    name: str
    distance_covered: Decimal
    base_fee: Decimal
    additional_fee_per_unit: Decimal = Decimal("0.00")
    is_default: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeliveryPricingTier":
        return cls(
            name=data.get("name", ""),
            distance_covered=to_decimal(data.get("distance_covered", data.get("distanceCovered", 0))),
            base_fee=to_decimal(data.get("base_fee", data.get("baseFee", 0))),
            additional_fee_per_unit=to_decimal(
                data.get("additional_fee_per_unit", data.get("additionalFeePerUnit", 0))
            ),
            is_default=bool(data.get("is_default", data.get("isDefault", False))),
        )


@dataclass(frozen=True)
class DeliverySettings:
    """Restaurant-run delivery: radius and distance-based pricing tiers."""

    enabled: bool = True
    distance_unit: str = DistanceUnit.MILES
    maximum_radius: Decimal = Decimal("0")
    pricing_tiers: Tuple[DeliveryPricingTier, ...] = ()

    @property
    def default_tier(self) -> Optional[DeliveryPricingTier]:
        """The tier flagged as default, else the first configured tier."""
        for tier in self.pricing_tiers:
            if tier.is_default:
                return tier
        return self.pricing_tiers[0] if self.pricing_tiers else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeliverySettings":
        raw_tiers = data.get("pricing_tiers", data.get("pricingTiers")) or []
        return cls(
            enabled=data.get("enabled", True),
            distance_unit=data.get("distance_unit", data.get("distanceUnit", DistanceUnit.MILES)),
            maximum_radius=to_decimal(data.get("maximum_radius", data.get("maximumRadius", 0))),
            pricing_tiers=tuple(
                tier if isinstance(tier, DeliveryPricingTier) else DeliveryPricingTier.from_dict(tier)
                for tier in raw_tiers
            ),
        )


@dataclass(frozen=True)
class PlatformFeePolicy:
    """Fixed per-order platform fee, always denominated in USD."""

    amount_usd: Decimal = Decimal("0.00")

    @classmethod
    def default(cls) -> "PlatformFeePolicy":
        return cls(amount_usd=to_decimal(getattr(settings, "PLATFORM_FEE_USD", "0.00")))


@dataclass(frozen=True)
class FinancialSettings:
    currency_code: str = "USD"
    currency_symbol: str = "$"
    platform_fee: PlatformFeePolicy = field(default_factory=PlatformFeePolicy)
    tax_rules: Tuple[TaxRule, ...] = ()

    @property
    def active_tax_rules(self) -> List[TaxRule]:
        return [rule for rule in self.tax_rules if rule.enabled]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FinancialSettings":
        """
        Build settings from the settings subsystem's payload.

        Accepts both camelCase (currencyCode, taxRules, platformFeeUSD) and
        snake_case keys. A missing platform fee falls back to the
        PLATFORM_FEE_USD Django setting.
        """
        currency_code = (data.get("currency_code") or data.get("currencyCode") or
                         getattr(settings, "DEFAULT_CURRENCY", "USD")).upper()
        symbol = data.get("currency_symbol") or data.get("currencySymbol") or currency_symbol(currency_code)

        fee_value = data.get("platform_fee_usd", data.get("platformFeeUSD"))
        if fee_value is None:
            platform_fee = PlatformFeePolicy.default()
        else:
            platform_fee = PlatformFeePolicy(amount_usd=to_decimal(fee_value))

        raw_rules = data.get("tax_rules", data.get("taxRules")) or []
        tax_rules = tuple(
            rule if isinstance(rule, TaxRule) else TaxRule.from_dict(rule)
            for rule in raw_rules
        )

        return cls(
            currency_code=currency_code,
            currency_symbol=symbol,
            platform_fee=platform_fee,
            tax_rules=tax_rules,
        )

    def get_financial_settings(self) -> dict:
        """
        Get financial settings as a dictionary.
        Useful for checkout displays and order snapshots.
        """
        return {
            "currency": self.currency_code,
            "currency_symbol": self.currency_symbol,
            "platform_fee_usd": self.platform_fee.amount_usd,
            "tax_rules": [rule.to_dict() for rule in self.tax_rules],
        }

    def __str__(self) -> str:
        return (
            f"FinancialSettings(currency={self.currency_code}, "
            f"platform_fee_usd={self.platform_fee.amount_usd}, "
            f"taxes={len(self.active_tax_rules)})"
        )


class PricingSettings:
    """
    Read-only view over the pricing knobs in Django settings.

    Build one per request or test; it holds no state of its own beyond the
    settings object it reads from.
    """

    def __init__(self, source=None):
        self._source = source if source is not None else settings

    @property
    def platform_fee_usd(self) -> Decimal:
        return to_decimal(getattr(self._source, "PLATFORM_FEE_USD", "0.00"))

    @property
    def default_currency(self) -> str:
        return getattr(self._source, "DEFAULT_CURRENCY", "USD")

    @property
    def exchange_rate_api_url(self) -> str:
        return getattr(self._source, "EXCHANGE_RATE_API_URL", "")

    @property
    def exchange_rate_timeout(self) -> float:
        return float(getattr(self._source, "EXCHANGE_RATE_TIMEOUT", 3))

    @property
    def live_rates_enabled(self) -> bool:
        return bool(self.exchange_rate_api_url)

    def financial_settings(self, data: Optional[Mapping[str, Any]] = None) -> FinancialSettings:
        """FinancialSettings for a merchant payload, with defaults filled from Django settings."""
        data = dict(data or {})
        if "currencyCode" not in data:
            data.setdefault("currency_code", self.default_currency)
        if "platformFeeUSD" not in data:
            data.setdefault("platform_fee_usd", self.platform_fee_usd)
        return FinancialSettings.from_dict(data)
