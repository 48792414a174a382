"""
Report services package - analytics over historical order snapshots.

- analytics_service: Revenue/order/customer rollups (range-agnostic)
- DashboardService: Current vs. previous period pairing
- TimezoneUtils: Business-timezone bucketing for revenue series
"""

from .base import CustomerRecord, OrderRecord, OrderStatus, PaymentStatus
from .analytics_service import (
    customer_metrics,
    filter_orders_in_range,
    order_metrics,
    orders_by_status,
    orders_by_type,
    revenue_breakdown,
    revenue_metrics,
    top_customers,
)
from .dashboard_service import DashboardService
from .timezone_utils import TimezoneUtils, revenue_series

__all__ = [
    # Records
    'CustomerRecord',
    'OrderRecord',
    'OrderStatus',
    'PaymentStatus',
    # Rollups
    'customer_metrics',
    'filter_orders_in_range',
    'order_metrics',
    'orders_by_status',
    'orders_by_type',
    'revenue_breakdown',
    'revenue_metrics',
    'top_customers',
    # Orchestration
    'DashboardService',
    'TimezoneUtils',
    'revenue_series',
]
