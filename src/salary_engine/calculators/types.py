"""Type definitions for the rule evaluation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID


class CategoryKind(str, Enum):
    """Salary category kinds."""

    DEDUCTION = "deduction"
    ADDITION = "addition"
    ALLOWANCE = "allowance"

    @property
    def sign(self) -> int:
        """Direction the category moves the net figure."""
        return -1 if self is CategoryKind.DEDUCTION else 1


class CalculationType(str, Enum):
    """Rule calculation kinds."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass(frozen=True)
class CategoryInfo:
    """The parts of a category the evaluator needs."""

    category_id: UUID
    name: str
    kind: CategoryKind


@dataclass(frozen=True)
class Bracket:
    """Salary bracket over [min_amount, max_amount); max None = unbounded."""

    range_id: UUID
    min_amount: Decimal
    max_amount: Decimal | None
    percentage: Decimal
    name: str = ""

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount < self.max_amount

    def overlaps(self, other: Bracket) -> bool:
        """Check whether two half-open intervals share any amount."""
        self_below_other_max = other.max_amount is None or self.min_amount < other.max_amount
        other_below_self_max = self.max_amount is None or other.min_amount < self.max_amount
        return self_below_other_max and other_below_self_max


@dataclass(frozen=True)
class RuleSpec:
    """A calculation rule as seen by the resolver and evaluator."""

    rule_id: UUID
    category_id: UUID
    calculation_type: CalculationType
    value: Decimal
    range_id: UUID | None = None  # None = applies to every bracket
    applies_to_category_id: UUID | None = None  # None = base salary


@dataclass(frozen=True)
class SkippedCategory:
    """A category that produced no amount, with the reason."""

    category_id: UUID
    reason: str


@dataclass
class EvaluationResult:
    """Outcome of evaluating one employee's rules."""

    employee_id: UUID
    base_salary: Decimal
    calculation_id: UUID
    amounts: dict[UUID, Decimal]  # target category_id -> amount
    net: Decimal
    bracket_id: UUID | None = None
    intermediate: dict[UUID, Decimal] = field(default_factory=dict)
    rules_applied: dict[UUID, UUID] = field(default_factory=dict)  # category_id -> rule_id
    skipped: list[SkippedCategory] = field(default_factory=list)


@dataclass(frozen=True)
class SkippedItem:
    """A batch item that was not processed."""

    item_id: UUID
    code: str
    reason: str


@dataclass
class BatchResult:
    """Partial-success outcome of a batch operation."""

    processed_count: int = 0
    total_amount: Decimal = Decimal("0")
    amounts: dict[UUID, Decimal] = field(default_factory=dict)  # item id -> amount
    skipped: list[SkippedItem] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def skip(self, item_id: UUID, code: str, reason: str) -> None:
        self.skipped.append(SkippedItem(item_id=item_id, code=code, reason=reason))
