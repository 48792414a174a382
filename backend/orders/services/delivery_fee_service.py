"""
Delivery fee quotes for restaurant-run delivery.

The caller measures the distance (geocoding is not done here) and passes the
quoted fee into the order calculation as delivery_fee.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional, Sequence
import logging

from orders.exceptions import InvalidPricingInput
from payments.money import Numeric, ZERO, quantize, to_decimal
from settings.config import DeliveryPricingTier, DeliverySettings, DistanceUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryFeeQuote:
    delivery_fee: Decimal
    distance: Decimal
    distance_unit: str
    within_radius: bool
    tier_used: Optional[str] = None
    details: str = ""
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.error is None


def _as_settings(delivery_settings) -> DeliverySettings:
    if isinstance(delivery_settings, DeliverySettings):
        return delivery_settings
    return DeliverySettings.from_dict(delivery_settings)


class DeliveryFeeService:
    """Distance-tiered delivery pricing."""

    @staticmethod
    def calculate_local_delivery_fee(
        distance: Numeric,
        pricing_tiers: Sequence[DeliveryPricingTier],
        distance_unit: str = DistanceUnit.MILES,
        currency: str = "USD",
    ) -> DeliveryFeeQuote:
        """
        Fee from the default tier (or the first one).

        Up to distance_covered the base fee applies; beyond it each extra unit
        adds additional_fee_per_unit. With no tiers the fee is 0 and the quote
        carries an error.
        """
        distance = to_decimal(distance)
        if distance < 0:
            raise InvalidPricingInput("distance", distance)

        tier = DeliverySettings(pricing_tiers=tuple(pricing_tiers or ())).default_tier
        if tier is None:
            logger.warning("No delivery pricing tier configured, quoting 0")
            return DeliveryFeeQuote(
                delivery_fee=quantize(currency, ZERO),
                distance=distance,
                distance_unit=distance_unit,
                within_radius=True,
                tier_used=None,
                details="No pricing tier available",
                error="No pricing tier available",
            )

        if distance <= tier.distance_covered:
            fee = quantize(currency, tier.base_fee)
            details = f"Base fee for distances up to {tier.distance_covered} {distance_unit}: {fee}"
        else:
            extra_distance = distance - tier.distance_covered
            fee = quantize(currency, tier.base_fee + extra_distance * tier.additional_fee_per_unit)
            details = (
                f"Base fee ({tier.base_fee}) + {extra_distance} {distance_unit} x "
                f"{tier.additional_fee_per_unit} = {fee}"
            )

        logger.debug(f"Delivery fee {fee} {currency} from tier '{tier.name}' for {distance} {distance_unit}")
        return DeliveryFeeQuote(
            delivery_fee=fee,
            distance=distance,
            distance_unit=distance_unit,
            within_radius=True,
            tier_used=tier.name,
            details=details,
        )

    @staticmethod
    def quote(distance: Numeric, delivery_settings: Any, currency: str = "USD") -> DeliveryFeeQuote:
        """
        Quote delivery for a measured distance.

        Disabled delivery and addresses beyond the maximum radius produce a
        zero-fee quote with an error instead of raising.
        """
        delivery_settings = _as_settings(delivery_settings)
        distance = to_decimal(distance)
        unit = delivery_settings.distance_unit

        if not delivery_settings.enabled:
            return DeliveryFeeQuote(quantize(currency, ZERO), distance, unit, False, error="Delivery not enabled")

        if distance > delivery_settings.maximum_radius:
            return DeliveryFeeQuote(
                quantize(currency, ZERO),
                distance,
                unit,
                False,
                error=f"Delivery address is outside the {delivery_settings.maximum_radius} {unit} delivery radius",
            )

        return DeliveryFeeService.calculate_local_delivery_fee(
            distance, delivery_settings.pricing_tiers, unit, currency
        )

    @staticmethod
    def validate_delivery_settings(delivery_settings: Any) -> List[str]:
        """Check delivery configuration. Returns error strings, empty when valid."""
        delivery_settings = _as_settings(delivery_settings)
        errors = []

        if delivery_settings.distance_unit not in DistanceUnit.CHOICES:
            errors.append('Invalid distance unit (must be "miles" or "km")')
        if delivery_settings.maximum_radius <= 0:
            errors.append("Maximum radius must be greater than 0")

        if not delivery_settings.pricing_tiers:
            errors.append("At least one pricing tier is required for local delivery")
        for index, tier in enumerate(delivery_settings.pricing_tiers, start=1):
            if tier.base_fee < 0:
                errors.append(f"Tier {index}: Base fee cannot be negative")
            if tier.distance_covered <= 0:
                errors.append(f"Tier {index}: Distance covered must be greater than 0")
            if tier.additional_fee_per_unit < 0:
                errors.append(f"Tier {index}: Additional fee per unit cannot be negative")
        return errors


calculate_local_delivery_fee = DeliveryFeeService.calculate_local_delivery_fee
