"""Employee category assignment store."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.amounts import AmountBuilder, parse_amount
from salary_engine.calculators.types import CategoryKind
from salary_engine.database import dialect_insert
from salary_engine.errors import NotFoundError, ValidationError
from salary_engine.models import EmployeeCategoryAssignment, SalaryCategory
from salary_engine.models.base import utcnow

logger = logging.getLogger(__name__)

_UNIQUE_KEY = ["employee_id", "category_id"]


class AssignmentService:
    """Stores the computed amount of each category for each employee.

    There is at most one row per (employee_id, category_id). Writes are
    single-statement upserts (INSERT ... ON CONFLICT DO UPDATE) so concurrent
    recalculations never produce duplicates; the last write wins.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        employee_id: UUID,
        category_id: UUID,
        amount: Decimal | int | str,
        assigned_by: UUID | None = None,
    ) -> EmployeeCategoryAssignment:
        """Create or overwrite one assignment row.

        Raises:
            NotFoundError: If the category does not exist
            ValidationError: If the amount is negative
        """
        rows = await self.upsert_many(category_id, {employee_id: amount}, assigned_by)
        return rows[0]

    async def upsert_many(
        self,
        category_id: UUID,
        amounts: Mapping[UUID, Decimal | int | str],
        assigned_by: UUID | None = None,
    ) -> list[EmployeeCategoryAssignment]:
        """Upsert one category's amount for many employees in a single statement."""
        if not amounts:
            return []
        await self._require_category(category_id)

        now = utcnow()
        rows = [
            {
                "assignment_id": uuid4(),
                "employee_id": employee_id,
                "category_id": category_id,
                "category_amount": self._clean_amount(amount),
                "assigned_by": assigned_by,
                "updated_at": now,
            }
            for employee_id, amount in amounts.items()
        ]
        await self._execute_upsert(rows)

        result = await self.session.execute(
            select(EmployeeCategoryAssignment)
            .where(
                EmployeeCategoryAssignment.category_id == category_id,
                EmployeeCategoryAssignment.employee_id.in_(list(amounts)),
            )
            .execution_options(populate_existing=True)
        )
        by_employee = {a.employee_id: a for a in result.scalars().all()}
        return [by_employee[e] for e in amounts]

    async def upsert_for_employee(
        self,
        employee_id: UUID,
        amounts: Mapping[UUID, Decimal],
        assigned_by: UUID | None = None,
    ) -> list[EmployeeCategoryAssignment]:
        """Upsert many categories' amounts for one employee in a single statement."""
        if not amounts:
            return []
        now = utcnow()
        rows = [
            {
                "assignment_id": uuid4(),
                "employee_id": employee_id,
                "category_id": category_id,
                "category_amount": self._clean_amount(amount),
                "assigned_by": assigned_by,
                "updated_at": now,
            }
            for category_id, amount in amounts.items()
        ]
        await self._execute_upsert(rows)
        return await self.list_for_employee(employee_id)

    async def get(self, employee_id: UUID, category_id: UUID) -> EmployeeCategoryAssignment | None:
        result = await self.session.execute(
            select(EmployeeCategoryAssignment).where(
                EmployeeCategoryAssignment.employee_id == employee_id,
                EmployeeCategoryAssignment.category_id == category_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_employee(self, employee_id: UUID) -> list[EmployeeCategoryAssignment]:
        result = await self.session.execute(
            select(EmployeeCategoryAssignment)
            .where(EmployeeCategoryAssignment.employee_id == employee_id)
            .order_by(EmployeeCategoryAssignment.category_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def employee_ids_for_category(self, category_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(EmployeeCategoryAssignment.employee_id).where(
                EmployeeCategoryAssignment.category_id == category_id
            )
        )
        return list(result.scalars().all())

    async def remove(self, employee_id: UUID, category_id: UUID) -> bool:
        """Delete one assignment row. Returns False if there was none."""
        removed = await self.remove_many(category_id, [employee_id])
        return removed > 0

    async def remove_many(self, category_id: UUID, employee_ids: Iterable[UUID]) -> int:
        ids = list(employee_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            delete(EmployeeCategoryAssignment).where(
                EmployeeCategoryAssignment.category_id == category_id,
                EmployeeCategoryAssignment.employee_id.in_(ids),
            )
        )
        return result.rowcount or 0

    async def sync_category(
        self,
        category_id: UUID,
        amounts: Mapping[UUID, Decimal],
        assigned_by: UUID | None = None,
    ) -> int:
        """Make the category's assignments exactly match ``amounts``.

        Employees currently holding the category but missing from ``amounts``
        lose their row. Returns the number of rows removed.
        """
        current = set(await self.employee_ids_for_category(category_id))
        stale = current - set(amounts)
        removed = await self.remove_many(category_id, stale)
        await self.upsert_many(category_id, amounts, assigned_by)
        if removed:
            logger.info(
                "Removed %d stale assignment(s) for category %s", removed, category_id
            )
        return removed

    async def current_total(self, employee_id: UUID, base_salary: Decimal) -> Decimal:
        """Net figure from the stored assignments: base + additions + allowances - deductions."""
        result = await self.session.execute(
            select(SalaryCategory.kind, EmployeeCategoryAssignment.category_amount)
            .join(
                SalaryCategory,
                SalaryCategory.category_id == EmployeeCategoryAssignment.category_id,
            )
            .where(EmployeeCategoryAssignment.employee_id == employee_id)
        )
        net = Decimal(base_salary)
        for kind, amount in result.all():
            net += CategoryKind(kind).sign * Decimal(amount)
        return AmountBuilder.round_to_cents(net)

    async def current_totals(
        self, base_salaries: Mapping[UUID, Decimal | None]
    ) -> dict[UUID, tuple[Decimal, int]]:
        """Net figure and assignment count for many employees in one query.

        An employee without a base salary counts from zero.
        """
        totals = {
            employee_id: [Decimal(base) if base is not None else Decimal("0"), 0]
            for employee_id, base in base_salaries.items()
        }
        if totals:
            result = await self.session.execute(
                select(
                    EmployeeCategoryAssignment.employee_id,
                    SalaryCategory.kind,
                    func.sum(EmployeeCategoryAssignment.category_amount),
                    func.count(),
                )
                .join(
                    SalaryCategory,
                    SalaryCategory.category_id == EmployeeCategoryAssignment.category_id,
                )
                .where(EmployeeCategoryAssignment.employee_id.in_(list(totals)))
                .group_by(EmployeeCategoryAssignment.employee_id, SalaryCategory.kind)
            )
            for employee_id, kind, amount, count in result.all():
                entry = totals[employee_id]
                entry[0] += CategoryKind(kind).sign * Decimal(amount)
                entry[1] += count
        return {
            employee_id: (AmountBuilder.round_to_cents(net), count)
            for employee_id, (net, count) in totals.items()
        }

    async def _execute_upsert(self, rows: list[dict]) -> None:
        stmt = dialect_insert(self.session, EmployeeCategoryAssignment).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=_UNIQUE_KEY,
            set_={
                "category_amount": stmt.excluded.category_amount,
                "assigned_by": stmt.excluded.assigned_by,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)

    async def _require_category(self, category_id: UUID) -> None:
        if await self.session.get(SalaryCategory, category_id) is None:
            raise NotFoundError("Category", category_id)

    @staticmethod
    def _clean_amount(amount: Decimal | int | str) -> Decimal:
        value = parse_amount(amount, "category_amount")
        if value < 0:
            raise ValidationError("category_amount must be >= 0", field="category_amount")
        return AmountBuilder.round_to_cents(value)
