"""Read access to employee base salaries."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.amounts import parse_amount
from salary_engine.database import dialect_insert
from salary_engine.errors import MissingBaseSalaryError, ValidationError
from salary_engine.models import EmployeeSalary
from salary_engine.models.base import utcnow


class EmployeeDirectory:
    """Base salary lookup for employees.

    Employees themselves live in another system; this table only holds the
    base amount the engine calculates from.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def base_salary(self, employee_id: UUID) -> Decimal:
        """Return the employee's base salary.

        Raises:
            MissingBaseSalaryError: If the employee has no base salary recorded
        """
        record = await self.session.get(EmployeeSalary, employee_id)
        if record is None or record.base_amount is None:
            raise MissingBaseSalaryError(employee_id)
        return Decimal(record.base_amount)

    async def base_salaries(self, employee_ids: Iterable[UUID]) -> dict[UUID, Decimal | None]:
        """Base salaries for many employees; unknown or unset employees map to None."""
        ids = list(dict.fromkeys(employee_ids))
        salaries: dict[UUID, Decimal | None] = {e: None for e in ids}
        if not ids:
            return salaries
        result = await self.session.execute(
            select(EmployeeSalary).where(EmployeeSalary.employee_id.in_(ids))
        )
        for record in result.scalars().all():
            if record.base_amount is not None:
                salaries[record.employee_id] = Decimal(record.base_amount)
        return salaries

    async def set_base_salary(
        self, employee_id: UUID, base_amount: Decimal | int | str | None
    ) -> EmployeeSalary:
        """Record or clear an employee's base salary."""
        amount = None
        if base_amount is not None:
            amount = parse_amount(base_amount, "base_amount")
            if amount < 0:
                raise ValidationError("base_amount must be >= 0", field="base_amount")

        now = utcnow()
        stmt = dialect_insert(self.session, EmployeeSalary).values(
            employee_id=employee_id,
            base_amount=amount,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["employee_id"],
            set_={
                "base_amount": stmt.excluded.base_amount,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(EmployeeSalary)
            .where(EmployeeSalary.employee_id == employee_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_employees(self) -> list[EmployeeSalary]:
        """Every employee known to the directory, newest first."""
        result = await self.session.execute(
            select(EmployeeSalary).order_by(
                EmployeeSalary.created_at.desc(), EmployeeSalary.employee_id
            )
        )
        return list(result.scalars().all())
