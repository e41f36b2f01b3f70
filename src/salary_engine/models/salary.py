"""Salary category, range, rule and assignment models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from salary_engine.calculators.types import (
    Bracket,
    CalculationType,
    CategoryInfo,
    CategoryKind,
    RuleSpec,
)
from salary_engine.models.base import Base, TimestampMixin, utcnow


# ===== Master data =====


class SalaryCategory(Base, TimestampMixin):
    """A named salary component: deduction, addition or allowance."""

    __tablename__ = "salary_category"

    category_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    is_percentage_based: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("name", name="salary_category_name_unique"),
        CheckConstraint(
            "kind IN ('deduction', 'addition', 'allowance')",
            name="salary_category_kind_check",
        ),
    )

    def to_info(self) -> CategoryInfo:
        """Return the calculator view of this category."""
        return CategoryInfo(
            category_id=self.category_id,
            name=self.name,
            kind=CategoryKind(self.kind),
        )


class SalaryRange(Base, TimestampMixin):
    """Salary bracket covering the half-open interval [min_amount, max_amount)."""

    __tablename__ = "salary_range"

    range_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    percentage: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    __table_args__ = (
        CheckConstraint("min_amount >= 0", name="salary_range_min_check"),
        CheckConstraint(
            "max_amount IS NULL OR max_amount >= min_amount",
            name="salary_range_bounds_check",
        ),
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="salary_range_percentage_check",
        ),
    )

    def to_bracket(self) -> Bracket:
        """Return the calculator view of this range."""
        return Bracket(
            range_id=self.range_id,
            min_amount=Decimal(self.min_amount),
            max_amount=Decimal(self.max_amount) if self.max_amount is not None else None,
            percentage=Decimal(self.percentage),
            name=self.name,
        )


class CategoryRule(Base, TimestampMixin):
    """How to compute one category's amount, optionally scoped to a bracket."""

    __tablename__ = "category_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_category.category_id", ondelete="RESTRICT"),
        nullable=False,
    )
    range_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("salary_range.range_id", ondelete="RESTRICT"),
        nullable=True,
    )
    calculation_type: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    applies_to_category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("salary_category.category_id", ondelete="RESTRICT"),
        nullable=True,
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "calculation_type IN ('percentage', 'fixed')",
            name="category_rule_calculation_type_check",
        ),
        CheckConstraint("value >= 0", name="category_rule_value_check"),
        CheckConstraint(
            "applies_to_category_id IS NULL OR applies_to_category_id != category_id",
            name="category_rule_no_self_reference",
        ),
        Index("category_rule_category_idx", "category_id"),
        # One rule per (category, range); NULL ranges need their own partial index.
        Index("category_rule_scope_unique", "category_id", "range_id", unique=True),
        Index(
            "category_rule_default_unique",
            "category_id",
            unique=True,
            postgresql_where=text("range_id IS NULL"),
            sqlite_where=text("range_id IS NULL"),
        ),
    )

    def to_spec(self) -> RuleSpec:
        """Return the calculator view of this rule."""
        return RuleSpec(
            rule_id=self.rule_id,
            category_id=self.category_id,
            calculation_type=CalculationType(self.calculation_type),
            value=Decimal(self.value),
            range_id=self.range_id,
            applies_to_category_id=self.applies_to_category_id,
        )


class WellKnownCategory(Base, TimestampMixin):
    """Stable key pointing at a category the engine needs by role, e.g. 'overtime'."""

    __tablename__ = "well_known_category"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_category.category_id", ondelete="RESTRICT"),
        nullable=False,
    )


# ===== Employee data =====


class EmployeeSalary(Base, TimestampMixin):
    """Base salary as supplied by the employee directory."""

    __tablename__ = "employee_salary"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True)
    base_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "base_amount IS NULL OR base_amount >= 0",
            name="employee_salary_base_check",
        ),
    )


class EmployeeCategoryAssignment(Base):
    """Materialized amount of one category for one employee.

    Recomputing overwrites the row; it is never accumulated.
    """

    __tablename__ = "employee_category_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("salary_category.category_id", ondelete="CASCADE"),
        nullable=False,
    )
    category_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    assigned_by: Mapped[UUID | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "category_id",
            name="employee_category_assignment_unique",
        ),
    )
