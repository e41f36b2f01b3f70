"""Calculation rule store."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.amounts import parse_amount
from salary_engine.calculators.types import CalculationType
from salary_engine.database import flush_or_conflict
from salary_engine.errors import ConflictError, NotFoundError, ValidationError
from salary_engine.models import CategoryRule, SalaryCategory, SalaryRange
from salary_engine.services.range_service import UNSET


def parse_calculation_type(value: CalculationType | str) -> CalculationType:
    try:
        return CalculationType(value)
    except ValueError as e:
        allowed = ", ".join(t.value for t in CalculationType)
        raise ValidationError(
            f"calculation_type must be one of: {allowed}", field="calculation_type"
        ) from e


class RuleService:
    """Typed CRUD over category rules.

    Reference checks on create/update:
    - category_id, range_id and applies_to_category_id must exist
    - a rule cannot be computed from its own category
    - at most one rule per (category_id, range_id); range None is its own scope

    A percentage rule scoped to a range may omit ``value``; it then takes the
    range's percentage.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        category_id: UUID,
        calculation_type: CalculationType | str,
        value: Decimal | int | str | None = None,
        range_id: UUID | None = None,
        applies_to_category_id: UUID | None = None,
        description: str | None = None,
    ) -> CategoryRule:
        """Create a rule.

        Raises:
            NotFoundError: If a referenced category or range does not exist
            ValidationError: If value is negative/missing or the rule references itself
            ConflictError: If the category already has a rule for this range scope
        """
        calc_type = parse_calculation_type(calculation_type)
        await self._require_category(category_id)
        salary_range = await self._require_range(range_id) if range_id is not None else None
        await self._check_applies_to(category_id, applies_to_category_id)
        await self._ensure_scope_free(category_id, range_id)

        rule = CategoryRule(
            category_id=category_id,
            range_id=range_id,
            calculation_type=calc_type.value,
            value=self._resolve_value(value, calc_type, salary_range),
            applies_to_category_id=applies_to_category_id,
            description=description,
        )
        self.session.add(rule)
        await flush_or_conflict(self.session, "Rule already exists for this category and range")
        return rule

    async def get(self, rule_id: UUID) -> CategoryRule:
        rule = await self.session.get(CategoryRule, rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        return rule

    async def list_all(self) -> list[CategoryRule]:
        result = await self.session.execute(
            select(CategoryRule).order_by(CategoryRule.category_id, CategoryRule.created_at)
        )
        return list(result.scalars().all())

    async def list_for_categories(self, category_ids: Iterable[UUID]) -> list[CategoryRule]:
        ids = list(category_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(CategoryRule)
            .where(CategoryRule.category_id.in_(ids))
            .order_by(CategoryRule.category_id, CategoryRule.created_at)
        )
        return list(result.scalars().all())

    async def list_with_dependencies(self, category_ids: Iterable[UUID]) -> list[CategoryRule]:
        """Rules for the categories plus every category their rules are computed from."""
        loaded: set[UUID] = set()
        rules: list[CategoryRule] = []
        pending = set(category_ids)

        while pending:
            batch = await self.list_for_categories(pending)
            loaded |= pending
            rules.extend(batch)
            pending = {
                r.applies_to_category_id
                for r in batch
                if r.applies_to_category_id is not None
                and r.applies_to_category_id not in loaded
            }

        return rules

    async def update(
        self,
        rule_id: UUID,
        *,
        calculation_type: CalculationType | str | None = None,
        value: Decimal | int | str | None = None,
        range_id: Any = UNSET,
        applies_to_category_id: Any = UNSET,
        description: str | None = None,
    ) -> CategoryRule:
        """Update a rule. ``range_id`` and ``applies_to_category_id`` accept None to clear.

        Raises:
            NotFoundError: If the rule or a referenced entity does not exist
            ValidationError: If the new values are invalid
            ConflictError: If the new range scope is taken
        """
        rule = await self.get(rule_id)

        calc_type = (
            parse_calculation_type(calculation_type)
            if calculation_type is not None
            else CalculationType(rule.calculation_type)
        )

        new_range_id = rule.range_id if range_id is UNSET else range_id
        salary_range = None
        if new_range_id is not None:
            salary_range = await self._require_range(new_range_id)
        if new_range_id != rule.range_id:
            await self._ensure_scope_free(rule.category_id, new_range_id)

        new_applies_to = (
            rule.applies_to_category_id if applies_to_category_id is UNSET else applies_to_category_id
        )
        await self._check_applies_to(rule.category_id, new_applies_to)

        if value is not None:
            rule.value = self._resolve_value(value, calc_type, salary_range)
        rule.calculation_type = calc_type.value
        rule.range_id = new_range_id
        rule.applies_to_category_id = new_applies_to
        if description is not None:
            rule.description = description or None

        await flush_or_conflict(self.session, "Rule already exists for this category and range")
        return rule

    async def delete(self, rule_id: UUID) -> None:
        rule = await self.get(rule_id)
        await self.session.delete(rule)
        await self.session.flush()

    # === Validation ===

    async def _require_category(self, category_id: UUID) -> SalaryCategory:
        category = await self.session.get(SalaryCategory, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def _require_range(self, range_id: UUID) -> SalaryRange:
        salary_range = await self.session.get(SalaryRange, range_id)
        if salary_range is None:
            raise NotFoundError("Range", range_id)
        return salary_range

    async def _check_applies_to(self, category_id: UUID, applies_to: UUID | None) -> None:
        if applies_to is None:
            return
        if applies_to == category_id:
            raise ValidationError(
                "A rule cannot be computed from its own category",
                field="applies_to_category_id",
            )
        await self._require_category(applies_to)

    async def _ensure_scope_free(self, category_id: UUID, range_id: UUID | None) -> None:
        query = select(CategoryRule.rule_id).where(CategoryRule.category_id == category_id)
        if range_id is None:
            query = query.where(CategoryRule.range_id.is_(None))
        else:
            query = query.where(CategoryRule.range_id == range_id)
        existing = await self.session.execute(query)
        if existing.first() is not None:
            scope = f"range {range_id}" if range_id else "all ranges"
            raise ConflictError(f"Category {category_id} already has a rule for {scope}")

    @staticmethod
    def _resolve_value(
        value: Decimal | int | str | None,
        calc_type: CalculationType,
        salary_range: SalaryRange | None,
    ) -> Decimal:
        if value is None:
            if calc_type == CalculationType.PERCENTAGE and salary_range is not None:
                return Decimal(salary_range.percentage)
            raise ValidationError("value is required", field="value")
        amount = parse_amount(value, "value")
        if amount < 0:
            raise ValidationError("value must be >= 0", field="value")
        return amount
