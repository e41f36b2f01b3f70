"""Fixed overtime pay formula."""

from __future__ import annotations

from decimal import Decimal

from salary_engine.calculators.amounts import AmountBuilder
from salary_engine.errors import ValidationError

# Monthly base salary is spread over 240 working hours; overtime pays time and a half.
MONTHLY_HOURS = Decimal("240")
OVERTIME_MULTIPLIER = Decimal("1.5")


def calculate_overtime_amount(base_salary: Decimal, hours: Decimal) -> Decimal:
    """Overtime pay: round((base_salary / 240) * hours * 1.5, 2), half-up.

    Raises:
        ValidationError: If base salary is negative or hours are not positive
    """
    if base_salary < 0:
        raise ValidationError("base_salary must be >= 0", field="base_salary")
    if hours <= 0:
        raise ValidationError("hours must be > 0", field="hours")
    # Multiply before dividing so 1/240 never gets truncated mid-calculation.
    return AmountBuilder.round_to_cents(base_salary * hours * OVERTIME_MULTIPLIER / MONTHLY_HOURS)
