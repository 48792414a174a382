"""
Timezone utilities for reports.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pytz
from django.conf import settings

from payments.money import ZERO, round2

from .base import OrderRecord

logger = logging.getLogger(__name__)

GRANULARITIES = ("day", "week", "month")


class TimezoneUtils:
    """Utilities for handling timezone-aware date operations in reports."""

    @staticmethod
    def get_local_timezone(tz_name: Optional[str] = None):
        """The business timezone, falling back to Django's TIME_ZONE for unknown names."""
        if tz_name:
            try:
                return pytz.timezone(tz_name)
            except pytz.exceptions.UnknownTimeZoneError:
                logger.warning(f"Unknown business timezone '{tz_name}', falling back to {settings.TIME_ZONE}")
        return pytz.timezone(settings.TIME_ZONE)

    @staticmethod
    def local_date(value: datetime, tz) -> date:
        if value.tzinfo is None:
            value = pytz.utc.localize(value)
        return tz.normalize(value.astimezone(tz)).date()

    @staticmethod
    def bucket_start(day: date, granularity: str) -> date:
        if granularity == "day":
            return day
        if granularity == "week":
            return day - timedelta(days=day.weekday())
        if granularity == "month":
            return day.replace(day=1)
        raise ValueError(f"Unsupported granularity '{granularity}', expected one of {GRANULARITIES}")


def revenue_series(
    orders: Iterable[OrderRecord],
    granularity: str = "day",
    tz_name: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Paid revenue grouped by local day, week (starting Monday) or month.

    Buckets are keyed in the business timezone, so an order at 23:30 local
    time lands on that local day even when it is already tomorrow in UTC.
    Only periods with orders are returned, oldest first.
    """
    tz = TimezoneUtils.get_local_timezone(tz_name)
    buckets: Dict[date, Dict[str, Any]] = {}
    for order in orders:
        if not order.is_paid:
            continue
        period = TimezoneUtils.bucket_start(TimezoneUtils.local_date(order.created_at, tz), granularity)
        bucket = buckets.setdefault(period, {"period": period, "revenue": ZERO, "orders": 0})
        bucket["revenue"] += order.total
        bucket["orders"] += 1

    return [
        {"period": period, "revenue": round2(bucket["revenue"]), "orders": bucket["orders"]}
        for period, bucket in sorted(buckets.items())
    ]
