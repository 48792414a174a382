"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

import pytz
from django.core.cache import cache

from payments.currency import CurrencyConverter
from payments.money import format_currency, from_minor, to_minor
from products.rules import MenuItem, OptionChoice, OptionGroup, PriceAdjustment
from reports.services.base import CustomerRecord, OrderRecord
from settings.config import FinancialSettings, PlatformFeePolicy, TaxRule


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def clear_cache_after_test():
    """
    Clear cache after each test to prevent cache pollution.

    Live exchange rates are cached; a test that seeds them must not leak
    rates into the next one.
    """
    yield  # Run the test
    cache.clear()  # Clear all cache keys


# ============================================================================
# MONEY ASSERTIONS
# ============================================================================

@pytest.fixture
def assert_no_drift():
    """
    Assert two amounts match exactly in minor units.

    Usage:
        def test_total(assert_no_drift):
            assert_no_drift("10.00", calc.total, "USD", message="total")
    """
    def _assert_no_drift(expected, actual, currency="USD", message=""):
        expected_minor = to_minor(currency, expected)
        actual_minor = to_minor(currency, actual)
        if expected_minor != actual_minor:
            diff = actual_minor - expected_minor
            error_msg = (
                f"Penny drift detected! "
                f"Expected {format_currency(expected, currency)}, got {format_currency(actual, currency)} "
                f"(diff: {'+' if diff > 0 else '-'}{format_currency(from_minor(currency, abs(diff)), currency)})"
            )
            if message:
                error_msg = f"{message}: {error_msg}"
            raise AssertionError(error_msg)

    return _assert_no_drift


# ============================================================================
# FINANCIAL SETTINGS FIXTURES
# ============================================================================

@pytest.fixture
def usd_settings():
    """US merchant: state + city tax, $1.95 platform fee."""
    return FinancialSettings(
        currency_code="USD",
        currency_symbol="$",
        platform_fee=PlatformFeePolicy(amount_usd=Decimal("1.95")),
        tax_rules=(
            TaxRule(name="State", rate=Decimal("0.07")),
            TaxRule(name="City", rate=Decimal("0.02")),
        ),
    )


@pytest.fixture
def brl_settings():
    """Brazilian merchant with a single tax and the same USD platform fee."""
    return FinancialSettings(
        currency_code="BRL",
        currency_symbol="R$",
        platform_fee=PlatformFeePolicy(amount_usd=Decimal("1.95")),
        tax_rules=(TaxRule(name="ICMS", rate=Decimal("0.10")),),
    )


@pytest.fixture
def converter():
    """Converter with a small, predictable rate table."""
    return CurrencyConverter({
        "USD": Decimal("1.00"),
        "BRL": Decimal("5.00"),
        "CLP": Decimal("900.00"),
    })


# ============================================================================
# MENU FIXTURES
# ============================================================================

@pytest.fixture
def pizza():
    """
    Pizza with a size multiplier and a per-quantity cheese add-on.

    Rules: "large" x1.5, "extra-cheese" +1.50 per selection.
    """
    return MenuItem(
        id="pizza",
        name="Margherita",
        base_price=Decimal("10.00"),
        modifier_rules=(
            {"kind": "multiplier", "value": "1.5", "trigger": {"choice_ids": ["large"], "option_id": "size"}},
            {"kind": "addition", "value": "1.50", "trigger": {"choice_ids": ["extra-cheese"]}},
        ),
        option_groups=(
            OptionGroup(
                id="size",
                name="Size",
                required=True,
                choices=(
                    OptionChoice(id="regular", name="Regular", option_id="size", is_default=True),
                    OptionChoice(id="large", name="Large", option_id="size"),
                ),
            ),
            OptionGroup(
                id="toppings",
                name="Toppings",
                allow_multiple=True,
                choices=(
                    OptionChoice(id="extra-cheese", name="Extra cheese", option_id="toppings"),
                    OptionChoice(
                        id="olives",
                        name="Olives",
                        option_id="toppings",
                        price_adjustment=PriceAdjustment(value=Decimal("0.75")),
                    ),
                ),
            ),
        ),
    )


@pytest.fixture
def soda():
    """Plain item with no modifier rules."""
    return MenuItem(id="soda", name="Soda", base_price=Decimal("2.49"))


# ============================================================================
# ANALYTICS FIXTURES
# ============================================================================

@pytest.fixture
def period_start():
    return datetime(2024, 3, 1, tzinfo=pytz.utc)


@pytest.fixture
def make_order(period_start):
    """Factory for OrderRecord with sensible defaults."""
    counter = {"n": 0}

    def _make(total="10.00", payment_status="paid", status="completed", order_type="delivery",
              days=0, **kwargs):
        counter["n"] += 1
        return OrderRecord(
            id=kwargs.pop("id", f"order-{counter['n']}"),
            created_at=kwargs.pop("created_at", period_start + timedelta(days=days, hours=12)),
            status=status,
            payment_status=payment_status,
            order_type=order_type,
            total=Decimal(total),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_customer(period_start):
    """Factory for CustomerRecord with sensible defaults."""

    def _make(customer_id, name, total_spent="0.00", created_days=-30, last_order_days=None, **kwargs):
        return CustomerRecord(
            id=customer_id,
            name=name,
            total_spent=Decimal(total_spent),
            created_at=period_start + timedelta(days=created_days),
            last_order_date=(
                period_start + timedelta(days=last_order_days) if last_order_days is not None else None
            ),
            **kwargs,
        )

    return _make
