"""Tests for money arithmetic."""

from decimal import Decimal
from uuid import uuid4

import pytest

from salary_engine.calculators.amounts import AmountBuilder, parse_amount
from salary_engine.calculators.types import CalculationType, CategoryInfo, CategoryKind, RuleSpec
from salary_engine.errors import NotFoundError, ValidationError


def rule(calculation_type: CalculationType, value: str) -> RuleSpec:
    return RuleSpec(
        rule_id=uuid4(),
        category_id=uuid4(),
        calculation_type=calculation_type,
        value=Decimal(value),
    )


class TestRounding:
    """Test half-up rounding to cents."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("0.005", "0.01"),
            ("0.004", "0.00"),
            ("2.675", "2.68"),
            ("-2.675", "-2.68"),
            ("100", "100.00"),
        ],
    )
    def test_round_half_up(self, raw, expected):
        assert AmountBuilder.round_to_cents(Decimal(raw)) == Decimal(expected)


class TestApplyRule:
    """Test percentage and fixed rule arithmetic."""

    def test_percentage_of_base(self):
        amount = AmountBuilder.apply_rule(rule(CalculationType.PERCENTAGE, "8.5"), Decimal("100000"))
        assert amount == Decimal("8500.00")

    def test_percentage_rounds_half_up(self):
        # 3% of 333.50 = 10.005
        amount = AmountBuilder.apply_rule(rule(CalculationType.PERCENTAGE, "3"), Decimal("333.50"))
        assert amount == Decimal("10.01")

    def test_fixed_ignores_base(self):
        amount = AmountBuilder.apply_rule(rule(CalculationType.FIXED, "5000"), Decimal("123456"))
        assert amount == Decimal("5000.00")


class TestNet:
    """Test net aggregation by category kind."""

    def test_net_adds_additions_and_allowances_subtracts_deductions(self):
        deduction, addition, allowance = uuid4(), uuid4(), uuid4()
        categories = {
            deduction: CategoryInfo(deduction, "EPF", CategoryKind.DEDUCTION),
            addition: CategoryInfo(addition, "Bonus", CategoryKind.ADDITION),
            allowance: CategoryInfo(allowance, "Transport", CategoryKind.ALLOWANCE),
        }
        amounts = {
            deduction: Decimal("8500.00"),
            addition: Decimal("1000.00"),
            allowance: Decimal("5000.00"),
        }

        net = AmountBuilder.calculate_net(Decimal("100000"), amounts, categories)

        assert net == Decimal("97500.00")

    def test_unknown_category_rejected(self):
        with pytest.raises(NotFoundError):
            AmountBuilder.sum_by_kind({uuid4(): Decimal("1")}, {})


class TestParseAmount:
    """Test coercion of inputs to Decimal."""

    def test_accepts_strings_ints_and_floats(self):
        assert parse_amount("12.50", "value") == Decimal("12.50")
        assert parse_amount(7, "value") == Decimal("7")
        assert parse_amount(0.1, "value") == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", True, None])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_amount(value, "value")
        assert exc_info.value.field == "value"
