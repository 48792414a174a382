"""
Dashboard orchestration: current vs. previous period comparisons.
"""
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple

from payments.money import Numeric, ZERO, round2, to_decimal

from . import analytics_service
from .base import CustomerRecord, OrderRecord
from .timezone_utils import revenue_series

logger = logging.getLogger(__name__)


class DashboardService:
    """Builds the analytics dashboard from order and customer snapshots."""

    @staticmethod
    def previous_period(date_from: datetime, date_to: datetime) -> Tuple[datetime, datetime]:
        """The equal-length period ending where [date_from, date_to) starts."""
        if date_to <= date_from:
            raise ValueError("date_to must be after date_from")
        return date_from - (date_to - date_from), date_from

    @staticmethod
    def percentage_change(current: Numeric, previous: Numeric) -> Decimal:
        """
        Period-over-period change as a percentage (2 places).

        From a zero baseline, any growth reads as 100% and no growth as 0%.
        """
        current = to_decimal(current)
        previous = to_decimal(previous)
        if previous == 0:
            return round2(Decimal("100") if current > 0 else ZERO)
        return round2((current - previous) / abs(previous) * 100)

    @classmethod
    def period_summary(
        cls,
        orders: Sequence[OrderRecord],
        customers: Sequence[CustomerRecord],
        date_from: datetime,
        date_to: datetime,
    ) -> Dict[str, Any]:
        in_range = analytics_service.filter_orders_in_range(orders, date_from, date_to)
        return {
            "date_from": date_from,
            "date_to": date_to,
            "revenue": analytics_service.revenue_metrics(in_range),
            "orders": analytics_service.order_metrics(in_range),
            "customers": analytics_service.customer_metrics(customers, date_from, date_to),
        }

    @classmethod
    def build_dashboard(
        cls,
        orders: Sequence[OrderRecord],
        customers: Sequence[CustomerRecord],
        date_from: datetime,
        date_to: datetime,
        top_n: int = 10,
        granularity: str = "day",
        tz_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        start_time = time.monotonic()

        current_orders = analytics_service.filter_orders_in_range(orders, date_from, date_to)
        current = cls.period_summary(orders, customers, date_from, date_to)
        previous_from, previous_to = cls.previous_period(date_from, date_to)
        previous = cls.period_summary(orders, customers, previous_from, previous_to)

        changes = {
            "revenue": cls.percentage_change(current["revenue"]["total"], previous["revenue"]["total"]),
            "orders": cls.percentage_change(current["orders"]["total_orders"], previous["orders"]["total_orders"]),
            "average_order_value": cls.percentage_change(
                current["orders"]["average_order_value"], previous["orders"]["average_order_value"]
            ),
            "active_customers": cls.percentage_change(
                current["customers"]["active_customers"], previous["customers"]["active_customers"]
            ),
        }

        dashboard = {
            "current": current,
            "previous": previous,
            "changes": changes,
            "orders_by_type": analytics_service.orders_by_type(current_orders),
            "orders_by_status": analytics_service.orders_by_status(current_orders),
            "revenue_breakdown": analytics_service.revenue_breakdown(current_orders),
            "revenue_series": revenue_series(current_orders, granularity, tz_name),
            "top_customers": analytics_service.top_customers(customers, top_n),
        }

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "DashboardService.build_dashboard orders=%d customers=%d elapsed_ms=%.2f",
            len(current_orders),
            len(customers),
            elapsed_ms,
        )
        return dashboard
