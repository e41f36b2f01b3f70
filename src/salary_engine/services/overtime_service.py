"""Overtime approval and overtime category assignment."""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.overtime import calculate_overtime_amount
from salary_engine.calculators.types import BatchResult
from salary_engine.config import OvertimeAssignmentPolicy, Settings, get_settings
from salary_engine.database import dialect_insert
from salary_engine.errors import ConfigurationError, NotFoundError, ValidationError
from salary_engine.models import OvertimeApproval, OvertimeRequest, SalaryCategory
from salary_engine.models.base import utcnow
from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.category_service import OVERTIME_KEY, CategoryService
from salary_engine.services.employee_directory import EmployeeDirectory

logger = logging.getLogger(__name__)

APPROVED = "approved"

_MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> tuple[dt.date, dt.date]:
    """Return [first day of month, first day of next month) for a 'YYYY-MM' string."""
    match = _MONTH_PATTERN.match(month or "")
    if match is None:
        raise ValidationError(f"month must be formatted YYYY-MM, got {month!r}", field="month")
    year, mon = int(match.group(1)), int(match.group(2))
    start = dt.date(year, mon, 1)
    end = dt.date(year + 1, 1, 1) if mon == 12 else dt.date(year, mon + 1, 1)
    return start, end


@dataclass
class OvertimeBatchResult(BatchResult):
    """Batch outcome plus the overtime assignment written for each employee."""

    month: str = ""
    employee_totals: dict[UUID, Decimal] = field(default_factory=dict)


@dataclass
class OvertimeSummary:
    """An employee's approved overtime for one month."""

    employee_id: UUID
    month: str
    approvals: list[OvertimeApproval]
    total_amount: Decimal
    total_hours: Decimal


class OvertimeService:
    """Approves overtime requests and maintains the overtime assignment.

    Overtime bypasses the rule evaluator and uses a fixed formula (see
    ``calculate_overtime_amount``). The overtime category is a well-known
    category resolved once per service instance, either from
    ``OVERTIME_CATEGORY_ID`` or from the ``well_known_category`` table.

    The employee's overtime assignment follows ``OVERTIME_ASSIGNMENT_POLICY``:
    ``sum`` totals every approval for the month, ``latest`` keeps the approval
    with the most recent overtime date.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.assignments = AssignmentService(session)
        self.directory = EmployeeDirectory(session)
        self._overtime_category_id: UUID | None = None

    async def overtime_category_id(self) -> UUID:
        """Resolve the overtime category.

        Raises:
            ConfigurationError: If no overtime category is configured or it does not exist
        """
        if self._overtime_category_id is not None:
            return self._overtime_category_id

        configured = self.settings.overtime_category_id
        if configured is not None:
            if await self.session.get(SalaryCategory, configured) is None:
                raise ConfigurationError(
                    f"OVERTIME_CATEGORY_ID {configured} does not match any category"
                )
            self._overtime_category_id = configured
        else:
            category = await CategoryService(self.session).resolve_well_known(OVERTIME_KEY)
            self._overtime_category_id = category.category_id
        return self._overtime_category_id

    async def approve_for_month(
        self,
        request_ids: Iterable[UUID],
        month: str,
        approved_by: UUID | None = None,
    ) -> OvertimeBatchResult:
        """Calculate and record overtime pay for approved requests in a month.

        Approving the same request for the same month again overwrites the
        previous approval instead of adding a second one.

        Raises:
            ValidationError: If month is not 'YYYY-MM'
            ConfigurationError: If the overtime category cannot be resolved
        """
        start, end = parse_month(month)
        category_id = await self.overtime_category_id()
        ids = list(dict.fromkeys(request_ids))

        requests: dict[UUID, OvertimeRequest] = {}
        if ids:
            result = await self.session.execute(
                select(OvertimeRequest).where(OvertimeRequest.overtime_request_id.in_(ids))
            )
            requests = {r.overtime_request_id: r for r in result.scalars().all()}
        salaries = await self.directory.base_salaries(r.employee_id for r in requests.values())

        batch = OvertimeBatchResult(month=month)
        now = utcnow()
        rows: list[dict] = []
        for request_id in ids:
            request = requests.get(request_id)
            if request is None:
                batch.skip(request_id, NotFoundError.code, f"Overtime request {request_id} not found")
                continue
            if request.status != APPROVED:
                batch.skip(request_id, "NOT_APPROVED", f"Request status is '{request.status}'")
                continue
            if not start <= request.date < end:
                batch.skip(
                    request_id,
                    "OUTSIDE_MONTH",
                    f"Overtime date {request.date.isoformat()} is not in {month}",
                )
                continue
            base_salary = salaries.get(request.employee_id)
            if base_salary is None:
                batch.skip(
                    request_id,
                    "MISSING_BASE_SALARY",
                    f"No base salary configured for employee {request.employee_id}",
                )
                continue

            amount = calculate_overtime_amount(base_salary, Decimal(request.hours))
            batch.amounts[request_id] = amount
            rows.append(
                {
                    "approval_id": uuid4(),
                    "overtime_request_id": request_id,
                    "employee_id": request.employee_id,
                    "calculated_amount": amount,
                    "month": month,
                    "approved_by": approved_by,
                    "approved_at": now,
                }
            )

        if rows:
            stmt = dialect_insert(self.session, OvertimeApproval).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=["overtime_request_id", "month"],
                set_={
                    "employee_id": stmt.excluded.employee_id,
                    "calculated_amount": stmt.excluded.calculated_amount,
                    "approved_by": stmt.excluded.approved_by,
                    "approved_at": stmt.excluded.approved_at,
                },
            )
            await self.session.execute(stmt)

        for employee_id in dict.fromkeys(row["employee_id"] for row in rows):
            total = await self._refresh_assignment(employee_id, month, category_id, approved_by)
            if total is not None:
                batch.employee_totals[employee_id] = total

        batch.processed_count = len(rows)
        batch.total_amount = sum(batch.amounts.values(), Decimal("0"))

        for item in batch.skipped:
            logger.warning(
                "Skipped overtime request %s for %s: %s (%s)",
                item.item_id,
                month,
                item.reason,
                item.code,
            )
        logger.info(
            "Approved %d overtime request(s) for %s, %d skipped, total=%s",
            batch.processed_count,
            month,
            batch.skipped_count,
            batch.total_amount,
        )
        return batch

    async def approved_for_employee(self, employee_id: UUID, month: str) -> OvertimeSummary:
        """Approvals recorded for an employee in a month, with amount and hours totals."""
        parse_month(month)
        result = await self.session.execute(
            select(OvertimeApproval, OvertimeRequest.hours)
            .join(
                OvertimeRequest,
                OvertimeRequest.overtime_request_id == OvertimeApproval.overtime_request_id,
            )
            .where(OvertimeApproval.employee_id == employee_id, OvertimeApproval.month == month)
            .order_by(OvertimeRequest.date, OvertimeApproval.approved_at)
            .execution_options(populate_existing=True)
        )
        approvals: list[OvertimeApproval] = []
        total_amount = Decimal("0")
        total_hours = Decimal("0")
        for approval, hours in result.all():
            approvals.append(approval)
            total_amount += Decimal(approval.calculated_amount)
            total_hours += Decimal(hours)
        return OvertimeSummary(
            employee_id=employee_id,
            month=month,
            approvals=approvals,
            total_amount=total_amount,
            total_hours=total_hours,
        )

    async def approved_requests(self, month: str) -> list[OvertimeRequest]:
        """Requests with status 'approved' whose date falls in the month."""
        start, end = parse_month(month)
        result = await self.session.execute(
            select(OvertimeRequest)
            .where(
                OvertimeRequest.status == APPROVED,
                OvertimeRequest.date >= start,
                OvertimeRequest.date < end,
            )
            .order_by(OvertimeRequest.date, OvertimeRequest.employee_id)
        )
        return list(result.scalars().all())

    async def remove_approval(self, approval_id: UUID) -> Decimal | None:
        """Delete an approval and recompute the employee's overtime assignment.

        The assignment reflects the month processed most recently for the
        employee. Removing an approval from any other month leaves it as is.
        Returns the assignment amount after the removal, or None when the
        employee has no overtime assignment.

        Raises:
            NotFoundError: If the approval does not exist
            ConfigurationError: If the overtime category cannot be resolved
        """
        approval = await self.session.get(OvertimeApproval, approval_id)
        if approval is None:
            raise NotFoundError("Overtime approval", approval_id)
        category_id = await self.overtime_category_id()
        employee_id, month = approval.employee_id, approval.month
        approved_by = approval.approved_by
        current_month = await self._assignment_month(employee_id)

        await self.session.delete(approval)
        await self.session.flush()

        if month != current_month:
            assignment = await self.assignments.get(employee_id, category_id)
            total = Decimal(assignment.category_amount) if assignment is not None else None
            logger.info(
                "Removed overtime approval %s for employee %s (%s); assignment reflects %s, unchanged",
                approval_id,
                employee_id,
                month,
                current_month,
            )
            return total

        total = await self._refresh_assignment(employee_id, month, category_id, approved_by)
        logger.info(
            "Removed overtime approval %s for employee %s (%s); assignment now %s",
            approval_id,
            employee_id,
            month,
            total,
        )
        return total

    async def _refresh_assignment(
        self,
        employee_id: UUID,
        month: str,
        category_id: UUID,
        assigned_by: UUID | None,
    ) -> Decimal | None:
        amount = await self._assignment_amount(employee_id, month)
        if amount is None:
            await self.assignments.remove(employee_id, category_id)
        else:
            await self.assignments.upsert(employee_id, category_id, amount, assigned_by)
        return amount

    async def _assignment_month(self, employee_id: UUID) -> str | None:
        """Month of the employee's most recently processed approval."""
        result = await self.session.execute(
            select(OvertimeApproval.month)
            .where(OvertimeApproval.employee_id == employee_id)
            .order_by(OvertimeApproval.approved_at.desc(), OvertimeApproval.month.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _assignment_amount(self, employee_id: UUID, month: str) -> Decimal | None:
        """Overtime assignment amount under the configured policy, from stored approvals."""
        result = await self.session.execute(
            select(
                OvertimeApproval.calculated_amount,
                OvertimeApproval.approved_at,
                OvertimeApproval.overtime_request_id,
                OvertimeRequest.date,
            )
            .join(
                OvertimeRequest,
                OvertimeRequest.overtime_request_id == OvertimeApproval.overtime_request_id,
            )
            .where(OvertimeApproval.employee_id == employee_id, OvertimeApproval.month == month)
        )
        rows = result.all()
        if not rows:
            return None

        if self.settings.overtime_assignment_policy == OvertimeAssignmentPolicy.LATEST:
            latest = max(rows, key=lambda r: (r.date, r.approved_at, str(r.overtime_request_id)))
            return Decimal(latest.calculated_amount)
        return sum((Decimal(r.calculated_amount) for r in rows), Decimal("0"))
