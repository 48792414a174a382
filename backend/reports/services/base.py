"""
Record types the report services aggregate over.

Orders and customers arrive from storage as plain mappings; the pricing
snapshot frozen at checkout is read back here without recomputation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from payments.money import to_decimal

logger = logging.getLogger(__name__)


class PaymentStatus:
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"

    REFUND_STATES = (REFUNDED, PARTIALLY_REFUNDED)


class OrderStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    KITCHEN_FLOW = (PENDING, CONFIRMED, PREPARING, READY, OUT_FOR_DELIVERY, DELIVERED, COMPLETED)


def parse_timestamp(value) -> Optional[datetime]:
    """Accept datetimes or ISO-8601 strings; naive values are taken as default-timezone time."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
        value = parsed
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def _pick(data: Mapping[str, Any], *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class OrderRecord:
    id: str
    created_at: datetime
    status: str = OrderStatus.PENDING
    payment_status: str = PaymentStatus.PENDING
    order_type: str = "delivery"
    total: Decimal = Decimal("0.00")
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    tip: Decimal = Decimal("0.00")
    driver_tip: Decimal = Decimal("0.00")
    delivery_fee: Decimal = Decimal("0.00")
    platform_fee: Decimal = Decimal("0.00")
    refund_amount: Decimal = Decimal("0.00")
    customer_id: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_refunded(self) -> bool:
        return self.payment_status in PaymentStatus.REFUND_STATES

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderRecord":
        """
        Build a record from a stored order.

        Monetary fields may sit at the top level or inside the frozen
        "calculation" snapshot (OrderCalculation.to_dict() shape).
        """
        snapshot = data.get("calculation") or {}
        merged = {**snapshot, **{k: v for k, v in data.items() if k != "calculation"}}

        def money(*keys):
            return to_decimal(_pick(merged, *keys, default="0"))

        return cls(
            id=str(_pick(merged, "id", default="")),
            created_at=parse_timestamp(_pick(merged, "created_at", "createdAt")),
            status=_pick(merged, "status", default=OrderStatus.PENDING),
            payment_status=_pick(merged, "payment_status", "paymentStatus", default=PaymentStatus.PENDING),
            order_type=_pick(merged, "order_type", "orderType", default="delivery"),
            total=money("total"),
            subtotal=money("subtotal"),
            tax=money("tax", "tax_total", "taxTotal", "taxAmount"),
            tip=money("tip"),
            driver_tip=money("driver_tip", "driverTip"),
            delivery_fee=money("delivery_fee", "deliveryFee"),
            platform_fee=money("platform_fee", "platformFee"),
            refund_amount=money("refund_amount", "refundAmount"),
            customer_id=_pick(merged, "customer_id", "customerId"),
        )


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    name: str
    created_at: datetime
    email: str = ""
    total_spent: Decimal = Decimal("0.00")
    order_count: int = 0
    last_order_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomerRecord":
        return cls(
            id=str(_pick(data, "id", default="")),
            name=_pick(data, "name", default=""),
            email=_pick(data, "email", default=""),
            created_at=parse_timestamp(_pick(data, "created_at", "createdAt")),
            total_spent=to_decimal(_pick(data, "total_spent", "totalSpent", default="0")),
            order_count=int(_pick(data, "order_count", "orderCount", "totalOrders", default=0)),
            last_order_date=parse_timestamp(_pick(data, "last_order_date", "lastOrderDate")),
        )
