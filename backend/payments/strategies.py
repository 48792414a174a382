from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

import stripe
from django.conf import settings

from .money import to_minor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentRequest:
    """
    What the payment provider needs to charge an order.

    Amounts are integer minor units (cents, or whole pesos for CLP).
    application_fee_amount is the platform's cut, in the charge currency.
    """

    amount: int
    currency: str
    application_fee_amount: int = 0
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_calculation(cls, calculation, metadata: Optional[Dict[str, Any]] = None) -> "PaymentRequest":
        currency = calculation.currency
        return cls(
            amount=to_minor(currency, calculation.total),
            currency=currency.lower(),
            application_fee_amount=to_minor(currency, calculation.platform_fee),
            metadata={key: str(value) for key, value in (metadata or {}).items()},
        )


@dataclass(frozen=True)
class PaymentConfirmation:
    success: bool
    reference: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class PaymentProvider(ABC):
    """
    The Abstract Base Class for a payment provider.
    The pricing engine only builds PaymentRequests; checkout hands them here.
    """

    @abstractmethod
    def create_payment(self, request: PaymentRequest) -> PaymentConfirmation:
        """
        Submit the charge to the provider.
        Must return a PaymentConfirmation rather than raise on provider errors.
        """
        pass


class StripePaymentProvider(PaymentProvider):
    """
    Creates PaymentIntents on the platform account, routing the order
    amount minus the application fee to the merchant's connected account.
    """

    def __init__(self, api_key: Optional[str] = None, connected_account_id: Optional[str] = None):
        self.api_key = api_key or getattr(settings, "STRIPE_SECRET_KEY", "")
        self.connected_account_id = connected_account_id

    def create_payment(self, request: PaymentRequest) -> PaymentConfirmation:
        stripe.api_key = self.api_key

        params = {
            "amount": request.amount,
            "currency": request.currency,
            "metadata": request.metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if self.connected_account_id:
            params["application_fee_amount"] = request.application_fee_amount
            params["transfer_data"] = {"destination": self.connected_account_id}

        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.error.StripeError as e:
            logger.error(f"Stripe PaymentIntent creation failed for {request.amount} {request.currency}: {e}")
            return PaymentConfirmation(success=False, error=str(e))

        logger.info(f"Created Stripe PaymentIntent {intent.id} for {request.amount} {request.currency}")
        return PaymentConfirmation(success=True, reference=intent.id, status=intent.status)
