"""
Tests for multi-line tax computation.
"""

import pytest
from decimal import Decimal, ROUND_HALF_UP

from orders.exceptions import InvalidPricingInput
from orders.services import TaxCalculationService, compute_taxes
from settings.config import TaxBase, TaxKind, TaxRule, TaxScope


class TestComputeTaxes:
    """Per-line amounts and totals."""

    def test_state_and_city(self):
        # subtotal 50.00, State 7%, City 2%
        rules = [TaxRule("State", Decimal("0.07")), TaxRule("City", Decimal("0.02"))]
        result = compute_taxes(Decimal("50.00"), rules)

        assert [line.amount for line in result.lines] == [Decimal("3.50"), Decimal("1.00")]
        assert result.total == Decimal("4.50")
        assert Decimal("50.00") + result.total == Decimal("54.50")

    def test_lines_keep_configured_order(self):
        rules = [TaxRule("Zeta", Decimal("0.01")), TaxRule("Alpha", Decimal("0.02"))]
        result = compute_taxes("10.00", rules)
        assert [line.name for line in result.lines] == ["Zeta", "Alpha"]

    def test_no_rules(self):
        result = compute_taxes("99.99", [])
        assert result.lines == ()
        assert result.total == Decimal("0.00")

    def test_disabled_rules_skipped(self):
        rules = [TaxRule("State", Decimal("0.07")), TaxRule("Old", Decimal("0.05"), enabled=False)]
        result = compute_taxes("10.00", rules)
        assert [line.name for line in result.lines] == ["State"]

    def test_delivery_base(self):
        rules = [
            TaxRule("Sales", Decimal("0.10")),
            TaxRule("Service", Decimal("0.10"), applies_to=TaxBase.SUBTOTAL_AND_DELIVERY),
        ]
        result = compute_taxes("20.00", rules, delivery_fee="5.00")
        assert [line.amount for line in result.lines] == [Decimal("2.00"), Decimal("2.50")]
        assert result.total == Decimal("4.50")

    def test_rule_mappings_accepted(self):
        result = compute_taxes("10.00", [{"name": "VAT", "rate": "0.2", "appliesTo": "subtotal"}])
        assert result.total == Decimal("2.00")

    def test_negative_subtotal_rejected(self):
        with pytest.raises(InvalidPricingInput):
            compute_taxes("-1.00", [TaxRule("State", Decimal("0.07"))])


class TestRoundingRemainder:
    """The visible lines always add up to the total."""

    def test_remainder_goes_to_last_line(self):
        # 0.015 + 0.015 = 0.03, but each line alone rounds to 0.02
        rules = [TaxRule("A", Decimal("0.015")), TaxRule("B", Decimal("0.015"))]
        result = compute_taxes("1.00", rules)

        assert result.total == Decimal("0.03")
        assert result.lines[0].amount == Decimal("0.02")
        assert result.lines[1].amount == Decimal("0.01")
        assert sum(line.amount for line in result.lines) == result.total

    def test_remainder_never_makes_a_line_negative(self):
        # 0.035 + 0.035 + 0.001 = 0.071 -> 0.07, lines round to 0.04 + 0.04 + 0.00
        rules = [TaxRule("A", Decimal("0.035")), TaxRule("B", Decimal("0.035")), TaxRule("C", Decimal("0.001"))]
        result = compute_taxes("1.00", rules)

        assert result.total == Decimal("0.07")
        assert [line.amount for line in result.lines] == [Decimal("0.04"), Decimal("0.03"), Decimal("0.00")]
        assert all(line.amount >= 0 for line in result.lines)

    def test_remainder_spreads_over_several_lines(self):
        # five lines of 0.005 each round to 0.01, but the total is 0.025 -> 0.03
        rules = [TaxRule(f"T{i}", Decimal("0.005")) for i in range(5)]
        result = compute_taxes("1.00", rules)

        assert result.total == Decimal("0.03")
        assert [line.amount for line in result.lines] == [
            Decimal("0.01"), Decimal("0.01"), Decimal("0.01"), Decimal("0.00"), Decimal("0.00"),
        ]

    def test_fixed_lines_do_not_absorb_remainder(self):
        rules = [
            TaxRule("A", Decimal("0.015")),
            TaxRule("B", Decimal("0.015")),
            TaxRule("Bottle deposit", Decimal("0.50"), kind=TaxKind.FIXED),
        ]
        result = compute_taxes("1.00", rules)

        assert [line.amount for line in result.lines] == [Decimal("0.02"), Decimal("0.01"), Decimal("0.50")]
        assert result.total == Decimal("0.53")

    @pytest.mark.parametrize("subtotal", ["0.01", "0.33", "1.00", "10.05", "19.99", "123.45", "999.99"])
    @pytest.mark.parametrize("rates", [
        ("0.0825",),
        ("0.07", "0.02"),
        ("0.0625", "0.0125", "0.005"),
        ("0.015", "0.015", "0.015"),
    ])
    def test_total_is_rounded_true_sum(self, subtotal, rates):
        subtotal = Decimal(subtotal)
        rules = [TaxRule(f"T{i}", Decimal(rate)) for i, rate in enumerate(rates)]
        result = compute_taxes(subtotal, rules)

        true_sum = sum(subtotal * Decimal(rate) for rate in rates)
        assert result.total == true_sum.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        assert sum(line.amount for line in result.lines) == result.total


class TestHalfCentRounding:
    """Exact half-cents round up."""

    def test_half_cent_tax_rounds_up(self):
        result = compute_taxes("12.50", [TaxRule("T", Decimal("0.01"))])
        assert result.total == Decimal("0.13")
        assert result.lines[0].amount == Decimal("0.13")

    @pytest.mark.parametrize("subtotal, rate, expected", [
        ("2.50", "0.05", "0.13"),
        ("0.50", "0.07", "0.04"),
        ("10.10", "0.05", "0.51"),
    ])
    def test_half_cent_lines(self, subtotal, rate, expected):
        assert compute_taxes(subtotal, [TaxRule("T", Decimal(rate))]).total == Decimal(expected)


class TestFixedAndPerItemTaxes:
    """Fixed-amount taxes and per-item scopes."""

    ITEMS = [
        {"extended_price": "10.00", "quantity": 2},
        {"extended_price": "3.00", "quantity": 3},
    ]

    def test_fixed_once_per_order(self):
        rule = TaxRule("Service", Decimal("1.25"), kind=TaxKind.FIXED)
        result = compute_taxes("13.00", [rule])

        assert result.total == Decimal("1.25")
        assert result.lines[0].rate is None
        assert result.lines[0].kind == TaxKind.FIXED

    def test_fixed_per_unit(self):
        rule = TaxRule("Bag fee", Decimal("0.10"), kind=TaxKind.FIXED, scope=TaxScope.PER_ITEM)
        result = compute_taxes("13.00", [rule], items=self.ITEMS)
        # 5 units
        assert result.total == Decimal("0.50")

    def test_percentage_per_item_rounds_each_item(self):
        items = [{"extended_price": "0.10", "quantity": 1}, {"extended_price": "0.10", "quantity": 1}]
        per_item = TaxRule("VAT", Decimal("0.05"), scope=TaxScope.PER_ITEM)

        # 0.005 + 0.005 rounded per item, versus 0.01 on the whole order
        assert compute_taxes("0.20", [per_item], items=items).total == Decimal("0.02")
        assert compute_taxes("0.20", [TaxRule("VAT", Decimal("0.05"))]).total == Decimal("0.01")

    def test_mixed_rules_sum_to_total(self):
        rules = [
            TaxRule("State", Decimal("0.0825")),
            TaxRule("Bag fee", Decimal("0.10"), kind=TaxKind.FIXED, scope=TaxScope.PER_ITEM),
            TaxRule("Service", Decimal("0.75"), kind=TaxKind.FIXED),
        ]
        result = compute_taxes("29.00", rules, items=self.ITEMS)

        # 2.3925 + 0.50 + 0.75
        assert [line.amount for line in result.lines] == [Decimal("2.39"), Decimal("0.50"), Decimal("0.75")]
        assert result.total == Decimal("3.64")

    def test_per_item_without_items_rejected(self):
        rule = TaxRule("Bag fee", Decimal("0.10"), kind=TaxKind.FIXED, scope=TaxScope.PER_ITEM)
        with pytest.raises(InvalidPricingInput):
            compute_taxes("13.00", [rule])

    def test_camel_case_rule(self):
        rule = TaxRule.from_dict({"name": "Bag", "rate": "0.10", "type": "fixed", "applyTo": "per_item"})
        assert rule.is_fixed
        assert rule.is_per_item


class TestTaxHelpers:
    """Effective rate, refunds and validation."""

    def test_effective_tax_rate(self):
        assert TaxCalculationService.effective_tax_rate("50.00", "4.50") == Decimal("9.00")

    def test_effective_tax_rate_empty_subtotal(self):
        assert TaxCalculationService.effective_tax_rate("0", "0") == Decimal("0.00")

    def test_proportional_refund(self):
        assert TaxCalculationService.tax_refund("50.00", "20.00", "4.50") == Decimal("1.80")

    def test_refund_capped_at_original_tax(self):
        assert TaxCalculationService.tax_refund("50.00", "80.00", "4.50") == Decimal("4.50")

    def test_refund_of_nothing(self):
        assert TaxCalculationService.tax_refund("0", "10.00", "1.00") == Decimal("0.00")

    def test_validate_tax_rules(self):
        errors = TaxCalculationService.validate_tax_rules([
            {"name": "State", "rate": "0.07"},
            {"name": "", "rate": "0.01"},
            {"name": "Typo", "rate": "7"},
            {"name": "Weird", "rate": "0.01", "applies_to": "tips"},
            {"name": "Broken", "rate": "seven"},
        ])
        assert errors[0] == "Tax rule at index 1: name is required"
        assert "between 0 and 1" in errors[1]
        assert "unknown base 'tips'" in errors[2]
        assert errors[3].startswith("Tax rule at index 4: invalid rate")
        assert len(errors) == 4

    def test_valid_rules_have_no_errors(self):
        assert TaxCalculationService.validate_tax_rules([TaxRule("State", Decimal("0.07"))]) == []

    def test_validate_fixed_and_scope(self):
        errors = TaxCalculationService.validate_tax_rules([
            {"name": "Deposit", "rate": "2.50", "type": "fixed"},
            {"name": "Refund", "rate": "-1", "type": "fixed"},
            {"name": "Odd", "rate": "0.01", "type": "tiered"},
            {"name": "Where", "rate": "0.01", "applyTo": "per_table"},
        ])
        assert errors == [
            "Tax rule Refund: fixed amount cannot be negative, got -1",
            "Tax rule Odd: unknown type 'tiered'",
            "Tax rule Where: unknown scope 'per_table'",
        ]
