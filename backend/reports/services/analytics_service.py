"""
Revenue, order and customer rollups over historical order snapshots.

Every function here is range-agnostic: callers filter the records first
(filter_orders_in_range) and pair periods themselves (see DashboardService).
Revenue only counts orders whose payment_status is "paid"; unpaid orders
still count toward order volume.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence

from payments.money import ZERO, round2

from .base import CustomerRecord, OrderRecord, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)

ORDER_TYPES = ("pickup", "delivery", "dine_in")


def _sum(values: Iterable[Decimal]) -> Decimal:
    return round2(sum(values, ZERO))


def filter_orders_in_range(orders: Iterable[OrderRecord], date_from: datetime, date_to: datetime) -> List[OrderRecord]:
    """Orders created in the half-open range [date_from, date_to)."""
    return [order for order in orders if date_from <= order.created_at < date_to]


def _refunded_value(order: OrderRecord) -> Decimal:
    return order.refund_amount if order.refund_amount > 0 else order.total


def revenue_metrics(orders: Sequence[OrderRecord]) -> Dict[str, Any]:
    """
    Revenue totals over paid orders.

    Refunds cover orders whose payment_status is refunded or
    partially_refunded, plus paid orders carrying a refund_amount. Each
    counts its refund_amount, or its whole total when none was recorded.
    net_revenue is paid total minus refunds.
    """
    paid = [order for order in orders if order.is_paid]
    refunded = [
        order for order in orders
        if order.is_refunded or (order.is_paid and order.refund_amount > 0)
    ]

    total = _sum(order.total for order in paid)
    refund_amount = _sum(_refunded_value(order) for order in refunded)

    return {
        "total": total,
        "subtotal": _sum(order.subtotal for order in paid),
        "tax": _sum(order.tax for order in paid),
        "tip": _sum(order.tip for order in paid),
        "driver_tip": _sum(order.driver_tip for order in paid),
        "delivery_fee": _sum(order.delivery_fee for order in paid),
        "platform_fee": _sum(order.platform_fee for order in paid),
        "refund_amount": refund_amount,
        "refund_count": len(refunded),
        "net_revenue": round2(total - refund_amount),
        "paid_order_count": len(paid),
    }


def order_metrics(orders: Sequence[OrderRecord]) -> Dict[str, Any]:
    """
    Order volume and average order value.

    average_order_value is paid revenue / paid order count rounded to 2
    places, and 0 when nothing was paid. conversion_rate is the percentage
    of orders that were paid.
    """
    by_status: Dict[str, int] = {}
    by_payment_status: Dict[str, int] = {}
    for order in orders:
        by_status[order.status] = by_status.get(order.status, 0) + 1
        by_payment_status[order.payment_status] = by_payment_status.get(order.payment_status, 0) + 1

    total_orders = len(orders)
    paid_orders = by_payment_status.get(PaymentStatus.PAID, 0)
    revenue = sum((order.total for order in orders if order.is_paid), ZERO)

    average_order_value = round2(revenue / paid_orders) if paid_orders else round2(ZERO)
    conversion_rate = round2(Decimal(paid_orders) / total_orders * 100) if total_orders else round2(ZERO)

    return {
        "total_orders": total_orders,
        "paid_orders": paid_orders,
        "pending_orders": by_status.get(OrderStatus.PENDING, 0),
        "completed_orders": by_status.get(OrderStatus.COMPLETED, 0) + by_status.get(OrderStatus.DELIVERED, 0),
        "cancelled_orders": by_status.get(OrderStatus.CANCELLED, 0),
        "by_status": by_status,
        "by_payment_status": by_payment_status,
        "average_order_value": average_order_value,
        "conversion_rate": conversion_rate,
    }


def orders_by_type(orders: Sequence[OrderRecord]) -> Dict[str, Dict[str, Any]]:
    """Paid order count and revenue per order type (all known types present)."""
    breakdown = {order_type: {"count": 0, "revenue": round2(ZERO)} for order_type in ORDER_TYPES}
    for order in orders:
        if not order.is_paid:
            continue
        bucket = breakdown.setdefault(order.order_type, {"count": 0, "revenue": round2(ZERO)})
        bucket["count"] += 1
        bucket["revenue"] = round2(bucket["revenue"] + order.total)
    return breakdown


def orders_by_status(orders: Sequence[OrderRecord]) -> Dict[str, Dict[str, Any]]:
    """Order count per status (every kitchen status present) with paid revenue."""
    breakdown = {status: {"count": 0, "revenue": round2(ZERO)} for status in OrderStatus.KITCHEN_FLOW}
    for order in orders:
        bucket = breakdown.setdefault(order.status, {"count": 0, "revenue": round2(ZERO)})
        bucket["count"] += 1
        if order.is_paid:
            bucket["revenue"] = round2(bucket["revenue"] + order.total)
    return breakdown


def customer_metrics(customers: Sequence[CustomerRecord], date_from: datetime, date_to: datetime) -> Dict[str, Any]:
    """
    Customer activity in [date_from, date_to).

    Active customers ordered or signed up in range; new ones signed up in
    range; returning ones are active but signed up before date_from.
    """
    def in_range(value):
        return value is not None and date_from <= value < date_to

    active = [c for c in customers if in_range(c.last_order_date) or in_range(c.created_at)]
    new = [c for c in active if in_range(c.created_at)]
    returning = [c for c in active if c.created_at is not None and c.created_at < date_from]

    total_spent = sum((c.total_spent for c in customers), ZERO)
    return {
        "total_customers": len(customers),
        "active_customers": len(active),
        "new_customers": len(new),
        "returning_customers": len(returning),
        "average_lifetime_value": round2(total_spent / len(customers)) if customers else round2(ZERO),
    }


def top_customers(customers: Iterable[CustomerRecord], n: int = 10) -> List[CustomerRecord]:
    """Customers with spend, highest total_spent first, ties broken by name."""
    spenders = [c for c in customers if c.total_spent > 0]
    return sorted(spenders, key=lambda c: (-c.total_spent, c.name))[:max(n, 0)]


def revenue_breakdown(orders: Sequence[OrderRecord]) -> List[Dict[str, Any]]:
    """Paid revenue split into its components, with each share as a percentage."""
    metrics = revenue_metrics(orders)
    total = metrics["total"]
    components = ("subtotal", "tax", "delivery_fee", "platform_fee", "tip", "driver_tip")
    return [
        {
            "component": name,
            "amount": metrics[name],
            "percentage": round2(metrics[name] / total * 100) if total else round2(ZERO),
        }
        for name in components
    ]
