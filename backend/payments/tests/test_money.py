"""
Unit tests for payments.money module.

These tests are CRITICAL for preventing penny drift bugs.
Cart previews, checkout totals and provider amounts all round through here.
"""

import pytest
from decimal import Decimal

from payments.money import (
    currency_exponent,
    currency_symbol,
    format_currency,
    from_minor,
    quantize,
    quantize_decimal,
    round2,
    to_decimal,
    to_minor,
)


class TestCurrencyExponent:
    """Test currency exponent lookup."""

    def test_usd_exponent(self):
        assert currency_exponent("USD") == 2

    def test_clp_exponent(self):
        assert currency_exponent("CLP") == 0

    def test_kwd_exponent(self):
        assert currency_exponent("KWD") == 3

    def test_case_insensitive(self):
        assert currency_exponent("usd") == 2
        assert currency_exponent("Clp") == 0

    def test_unknown_currency_defaults_to_2(self):
        assert currency_exponent("XXX") == 2

    def test_quantize_decimal(self):
        assert quantize_decimal("USD") == Decimal("0.01")
        assert quantize_decimal("CLP") == Decimal("1")


class TestToDecimal:
    """Test numeric coercion without float artefacts."""

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_decimal_passthrough(self):
        value = Decimal("1.234")
        assert to_decimal(value) is value

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")

    def test_string_and_int(self):
        assert to_decimal("9.75") == Decimal("9.75")
        assert to_decimal(3) == Decimal("3")


class TestQuantize:
    """Test Decimal quantization with half-up rounding."""

    def test_quantize_usd_normal(self):
        assert quantize("USD", "10.127") == Decimal("10.13")

    @pytest.mark.parametrize("amount, expected", [
        ("10.125", "10.13"),
        ("10.135", "10.14"),
        ("0.125", "0.13"),
        ("0.005", "0.01"),
        ("10.1249", "10.12"),
    ])
    def test_quantize_usd_half_cents_round_up(self, amount, expected):
        assert quantize("USD", amount) == Decimal(expected)

    def test_quantize_clp_half_unit_rounds_up(self):
        assert quantize("CLP", "1234.5") == Decimal("1235")

    def test_round2_half_cent(self):
        assert round2("2.345") == Decimal("2.35")

    def test_quantize_clp_no_decimals(self):
        assert quantize("CLP", "1234.56") == Decimal("1235")

    def test_quantize_kwd_three_decimals(self):
        assert quantize("KWD", "10.1234") == Decimal("10.123")

    def test_quantize_from_float(self):
        assert quantize("USD", 10.127) == Decimal("10.13")

    def test_quantize_from_int(self):
        assert str(quantize("USD", 10)) == "10.00"

    def test_round2_ignores_currency(self):
        assert round2("41.666666") == Decimal("41.67")


class TestMinorUnits:
    """Test conversion to and from minor units."""

    def test_usd_to_cents(self):
        assert to_minor("USD", "10.13") == 1013

    def test_usd_rounds_before_converting(self):
        assert to_minor("USD", "10.127") == 1013

    def test_usd_half_cent_rounds_up(self):
        assert to_minor("USD", "10.125") == 1013

    def test_clp_no_decimals(self):
        assert to_minor("CLP", "1234.56") == 1235

    def test_zero(self):
        assert to_minor("USD", "0") == 0

    def test_from_minor_usd(self):
        assert from_minor("USD", 1013) == Decimal("10.13")

    def test_from_minor_kwd(self):
        assert from_minor("KWD", 10123) == Decimal("10.123")


class TestFormatting:
    """Test display formatting."""

    def test_usd(self):
        assert format_currency("10.5", "USD") == "$10.50"

    def test_brl(self):
        assert format_currency("9.75", "BRL") == "R$9.75"

    def test_clp_thousands_no_decimals(self):
        assert format_currency("1234.56", "CLP") == "$1,235"

    def test_merchant_symbol_override(self):
        assert format_currency("3", "USD", symbol="US$") == "US$3.00"

    def test_unknown_currency_uses_code(self):
        assert currency_symbol("XXX") == "XXX "
        assert format_currency("1", "XXX") == "XXX 1.00"



class TestDriftHelper:
    """The shared drift assertion fixture."""

    def test_equal_amounts_pass(self, assert_no_drift):
        assert_no_drift("10.00", "10.001")

    def test_drift_raises(self, assert_no_drift):
        with pytest.raises(AssertionError, match="Penny drift detected"):
            assert_no_drift("10.00", "10.01", message="subtotal")
