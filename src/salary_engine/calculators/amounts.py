"""Money rounding, rule arithmetic and net salary aggregation."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping
from uuid import UUID

from salary_engine.calculators.types import CalculationType, CategoryInfo, CategoryKind, RuleSpec
from salary_engine.errors import NotFoundError, ValidationError


class AmountBuilder:
    """Arithmetic shared by the evaluator, the overtime formula and the stores.

    Sign conventions:
    - ADDITION, ALLOWANCE: increase net
    - DEDUCTION: decreases net
    Stored category amounts are always non-negative; the sign comes from the kind.

    Rounding:
    - Every computed category amount is rounded to 2 decimals, half-up
    - Aggregates are summed from rounded amounts
    """

    OUTPUT_PRECISION = Decimal("0.01")
    HUNDRED = Decimal("100")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(AmountBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def apply_rule(rule: RuleSpec, base: Decimal) -> Decimal:
        """Compute a rule's rounded amount against its base."""
        if rule.calculation_type == CalculationType.PERCENTAGE:
            raw = base * rule.value / AmountBuilder.HUNDRED
        else:
            raw = rule.value
        return AmountBuilder.round_to_cents(raw)

    @staticmethod
    def sum_by_kind(
        amounts: Mapping[UUID, Decimal],
        categories: Mapping[UUID, CategoryInfo],
    ) -> dict[CategoryKind, Decimal]:
        """Sum category amounts by kind."""
        totals: dict[CategoryKind, Decimal] = {kind: Decimal("0") for kind in CategoryKind}
        for category_id, amount in amounts.items():
            info = categories.get(category_id)
            if info is None:
                raise NotFoundError("Category", category_id)
            totals[info.kind] += amount
        return totals

    @staticmethod
    def calculate_net(
        base_salary: Decimal,
        amounts: Mapping[UUID, Decimal],
        categories: Mapping[UUID, CategoryInfo],
    ) -> Decimal:
        """Calculate the net figure.

        NET = base + Σ(ADDITION) + Σ(ALLOWANCE) - Σ(DEDUCTION)
        """
        net = base_salary
        for kind, total in AmountBuilder.sum_by_kind(amounts, categories).items():
            net += kind.sign * total
        return AmountBuilder.round_to_cents(net)

    @staticmethod
    def fingerprint(data: Any) -> str:
        """Deterministic hash of JSON-serializable data."""
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def parse_amount(value: Decimal | int | str, field: str) -> Decimal:
    """Coerce a monetary or percentage input to Decimal."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field) from e
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    return amount
