"""Salary range (bracket) table."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.amounts import parse_amount
from salary_engine.calculators.range_table import RangeTable, validate_bounds
from salary_engine.calculators.types import Bracket
from salary_engine.errors import NotFoundError, ReferentialIntegrityError, ValidationError
from salary_engine.models import CategoryRule, SalaryRange

# Marks an argument that was not passed, where None is a meaningful value.
UNSET: Any = object()


class RangeService:
    """Typed CRUD over salary brackets.

    Brackets are half-open ``[min_amount, max_amount)`` intervals and may not
    overlap; every create and update re-validates the whole table.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        min_amount: Decimal | int | str,
        percentage: Decimal | int | str,
        max_amount: Decimal | int | str | None = None,
    ) -> SalaryRange:
        """Create a bracket.

        Raises:
            ValidationError: If bounds are invalid, percentage is outside 0-100,
                or the bracket overlaps an existing one
        """
        salary_range = SalaryRange(
            range_id=uuid4(),
            name=self._clean_name(name),
            min_amount=parse_amount(min_amount, "min_amount"),
            max_amount=parse_amount(max_amount, "max_amount") if max_amount is not None else None,
            percentage=self._parse_percentage(percentage),
        )
        validate_bounds(salary_range.min_amount, salary_range.max_amount)
        await self._ensure_no_overlap(salary_range.to_bracket())

        self.session.add(salary_range)
        await self.session.flush()
        return salary_range

    async def get(self, range_id: UUID) -> SalaryRange:
        salary_range = await self.session.get(SalaryRange, range_id)
        if salary_range is None:
            raise NotFoundError("Range", range_id)
        return salary_range

    async def list_all(self) -> list[SalaryRange]:
        """List brackets ordered by lower bound."""
        result = await self.session.execute(select(SalaryRange).order_by(SalaryRange.min_amount))
        return list(result.scalars().all())

    async def update(
        self,
        range_id: UUID,
        *,
        name: str | None = None,
        min_amount: Decimal | int | str | None = None,
        max_amount: Any = UNSET,
        percentage: Decimal | int | str | None = None,
    ) -> SalaryRange:
        """Update a bracket. Pass ``max_amount=None`` to make it unbounded.

        Raises:
            NotFoundError: If the bracket does not exist
            ValidationError: If the result is invalid or overlaps another bracket
        """
        salary_range = await self.get(range_id)

        new_min = (
            parse_amount(min_amount, "min_amount")
            if min_amount is not None
            else Decimal(salary_range.min_amount)
        )
        if max_amount is UNSET:
            new_max = salary_range.max_amount
        elif max_amount is None:
            new_max = None
        else:
            new_max = parse_amount(max_amount, "max_amount")
        validate_bounds(new_min, new_max)

        candidate = Bracket(
            range_id=salary_range.range_id,
            name=self._clean_name(name) if name is not None else salary_range.name,
            min_amount=new_min,
            max_amount=new_max,
            percentage=(
                self._parse_percentage(percentage)
                if percentage is not None
                else salary_range.percentage
            ),
        )
        await self._ensure_no_overlap(candidate)

        salary_range.name = candidate.name
        salary_range.min_amount = candidate.min_amount
        salary_range.max_amount = candidate.max_amount
        salary_range.percentage = candidate.percentage
        await self.session.flush()
        return salary_range

    async def delete(self, range_id: UUID) -> None:
        """Delete a bracket.

        Raises:
            NotFoundError: If the bracket does not exist
            ReferentialIntegrityError: If a rule is scoped to it
        """
        salary_range = await self.get(range_id)
        result = await self.session.execute(
            select(CategoryRule.rule_id).where(CategoryRule.range_id == range_id)
        )
        rule_ids = list(result.scalars().all())
        if rule_ids:
            raise ReferentialIntegrityError("Range", range_id, rule_ids)

        await self.session.delete(salary_range)
        await self.session.flush()

    async def find_bracket(self, amount: Decimal | int | str) -> SalaryRange | None:
        """Return the bracket whose [min_amount, max_amount) contains amount."""
        value = parse_amount(amount, "amount")
        result = await self.session.execute(
            select(SalaryRange)
            .where(
                SalaryRange.min_amount <= value,
                (SalaryRange.max_amount.is_(None) | (SalaryRange.max_amount > value)),
            )
            .order_by(SalaryRange.min_amount)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def load_table(self) -> RangeTable:
        """Load all brackets into an in-memory RangeTable."""
        return RangeTable(r.to_bracket() for r in await self.list_all())

    async def _ensure_no_overlap(self, candidate: Bracket) -> None:
        brackets = [
            r.to_bracket() for r in await self.list_all() if r.range_id != candidate.range_id
        ]
        for existing in brackets:
            if candidate.overlaps(existing):
                raise ValidationError(
                    f"Range '{candidate.name}' overlaps existing range '{existing.name}'",
                    field="min_amount",
                )

    @staticmethod
    def _parse_percentage(value: Decimal | int | str) -> Decimal:
        percentage = parse_amount(value, "percentage")
        if percentage < 0 or percentage > 100:
            raise ValidationError("percentage must be between 0 and 100", field="percentage")
        return percentage

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("name is required", field="name")
        return cleaned
