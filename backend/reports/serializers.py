from rest_framework import serializers
from django.utils import timezone

from orders.serializers import MoneyField
from .services import CustomerRecord, DashboardService, OrderRecord
from .services.timezone_utils import GRANULARITIES


class DashboardParameterSerializer(serializers.Serializer):
    """Validate dashboard parameters"""

    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    top_n = serializers.IntegerField(required=False, default=10, min_value=1, max_value=100)
    granularity = serializers.ChoiceField(choices=GRANULARITIES, required=False, default="day")
    timezone = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, data):
        """Validate date range parameters"""
        start_date = data.get("start_date")
        end_date = data.get("end_date")

        if start_date >= end_date:
            raise serializers.ValidationError("Start date must be before end date")

        # Limit date range; the previous period doubles the records scanned
        max_days = 365
        if (end_date - start_date).days > max_days:
            raise serializers.ValidationError(
                f"Date range cannot exceed {max_days} days"
            )

        if start_date > timezone.now():
            raise serializers.ValidationError("Start date cannot be in the future")

        return data

    def save(self, **kwargs):
        """
        Build the dashboard for the validated range.

        Takes 'orders' and 'customers' keywords, as records or stored
        mappings.
        """
        data = self.validated_data
        orders = [
            order if isinstance(order, OrderRecord) else OrderRecord.from_dict(order)
            for order in kwargs.get("orders", [])
        ]
        customers = [
            customer if isinstance(customer, CustomerRecord) else CustomerRecord.from_dict(customer)
            for customer in kwargs.get("customers", [])
        ]
        return DashboardService.build_dashboard(
            orders,
            customers,
            data["start_date"],
            data["end_date"],
            top_n=data["top_n"],
            granularity=data["granularity"],
            tz_name=data["timezone"] or None,
        )


class RevenueMetricsSerializer(serializers.Serializer):
    total = MoneyField()
    subtotal = MoneyField()
    tax = MoneyField()
    tip = MoneyField()
    driver_tip = MoneyField()
    delivery_fee = MoneyField()
    platform_fee = MoneyField()
    refund_amount = MoneyField()
    refund_count = serializers.IntegerField(read_only=True)
    net_revenue = MoneyField()
    paid_order_count = serializers.IntegerField(read_only=True)


class OrderMetricsSerializer(serializers.Serializer):
    total_orders = serializers.IntegerField(read_only=True)
    paid_orders = serializers.IntegerField(read_only=True)
    pending_orders = serializers.IntegerField(read_only=True)
    completed_orders = serializers.IntegerField(read_only=True)
    cancelled_orders = serializers.IntegerField(read_only=True)
    by_status = serializers.DictField(child=serializers.IntegerField(), read_only=True)
    by_payment_status = serializers.DictField(child=serializers.IntegerField(), read_only=True)
    average_order_value = MoneyField()
    conversion_rate = MoneyField()


class TopCustomerSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.CharField(read_only=True)
    total_spent = MoneyField()
    order_count = serializers.IntegerField(read_only=True)
    last_order_date = serializers.DateTimeField(read_only=True)


class RevenueSeriesPointSerializer(serializers.Serializer):
    period = serializers.DateField(read_only=True)
    revenue = MoneyField()
    orders = serializers.IntegerField(read_only=True)


class CustomerMetricsSerializer(serializers.Serializer):
    total_customers = serializers.IntegerField(read_only=True)
    active_customers = serializers.IntegerField(read_only=True)
    new_customers = serializers.IntegerField(read_only=True)
    returning_customers = serializers.IntegerField(read_only=True)
    average_lifetime_value = MoneyField()


class PeriodSummarySerializer(serializers.Serializer):
    date_from = serializers.DateTimeField(read_only=True)
    date_to = serializers.DateTimeField(read_only=True)
    revenue = RevenueMetricsSerializer(read_only=True)
    orders = OrderMetricsSerializer(read_only=True)
    customers = CustomerMetricsSerializer(read_only=True)


class PeriodChangeSerializer(serializers.Serializer):
    revenue = MoneyField()
    orders = MoneyField()
    average_order_value = MoneyField()
    active_customers = MoneyField()


class BreakdownBucketSerializer(serializers.Serializer):
    count = serializers.IntegerField(read_only=True)
    revenue = MoneyField()


class RevenueComponentSerializer(serializers.Serializer):
    component = serializers.CharField(read_only=True)
    amount = MoneyField()
    percentage = MoneyField()


class DashboardSerializer(serializers.Serializer):
    """Output shape of DashboardService.build_dashboard."""

    current = PeriodSummarySerializer(read_only=True)
    previous = PeriodSummarySerializer(read_only=True)
    changes = PeriodChangeSerializer(read_only=True)
    orders_by_type = serializers.DictField(child=BreakdownBucketSerializer(), read_only=True)
    orders_by_status = serializers.DictField(child=BreakdownBucketSerializer(), read_only=True)
    revenue_breakdown = RevenueComponentSerializer(many=True, read_only=True)
    revenue_series = RevenueSeriesPointSerializer(many=True, read_only=True)
    top_customers = TopCustomerSerializer(many=True, read_only=True)
