"""In-memory bracket table used during evaluation."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from salary_engine.calculators.types import Bracket
from salary_engine.errors import ValidationError


class RangeTable:
    """Ordered, non-overlapping salary brackets.

    Brackets are half-open: ``[min_amount, max_amount)``. A bracket without
    ``max_amount`` extends to infinity. Amounts below the lowest bracket or in
    a gap between brackets match nothing.
    """

    def __init__(self, brackets: Iterable[Bracket] = ()):
        self._brackets = sorted(brackets, key=lambda b: (b.min_amount, str(b.range_id)))
        self.validate(self._brackets)

    @staticmethod
    def validate(brackets: list[Bracket]) -> None:
        """Check bounds and overlap of an ordered bracket list.

        Raises:
            ValidationError: If a bracket is inverted or two brackets overlap
        """
        for bracket in brackets:
            validate_bounds(bracket.min_amount, bracket.max_amount)
        for previous, current in zip(brackets, brackets[1:]):
            if previous.overlaps(current):
                raise ValidationError(
                    f"Range '{current.name or current.range_id}' overlaps "
                    f"'{previous.name or previous.range_id}'",
                    field="min_amount",
                )

    @property
    def brackets(self) -> list[Bracket]:
        return list(self._brackets)

    def find_bracket(self, amount: Decimal) -> Bracket | None:
        """Return the bracket containing ``amount``, or None."""
        for bracket in self._brackets:
            if bracket.contains(amount):
                return bracket
        return None

    def __len__(self) -> int:
        return len(self._brackets)


def validate_bounds(min_amount: Decimal, max_amount: Decimal | None) -> None:
    """Validate a single bracket's bounds."""
    if min_amount < 0:
        raise ValidationError("min_amount must be >= 0", field="min_amount")
    if max_amount is not None and max_amount < min_amount:
        raise ValidationError("max_amount must be >= min_amount", field="max_amount")
