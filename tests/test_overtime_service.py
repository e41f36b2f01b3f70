"""Tests for overtime approval and the overtime assignment."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from salary_engine.config import OvertimeAssignmentPolicy
from salary_engine.errors import ConfigurationError, NotFoundError, ValidationError
from salary_engine.models import OvertimeApproval
from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.category_service import OVERTIME_KEY, CategoryService
from salary_engine.services.overtime_service import OvertimeService, parse_month
from tests.conftest import add_category, add_employee, add_overtime_request, make_settings

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def overtime(session):
    """Overtime category registered under the well-known key."""
    category = await add_category(session, "Overtime", "addition", is_percentage_based=False)
    await CategoryService(session).set_well_known(OVERTIME_KEY, category.category_id)
    return category


async def count_approvals(session) -> int:
    return await session.scalar(select(func.count()).select_from(OvertimeApproval))


class TestParseMonth:
    """Month strings are YYYY-MM."""

    def test_month_bounds(self):
        assert parse_month("2024-02") == (date(2024, 2, 1), date(2024, 3, 1))

    def test_december_rolls_over(self):
        assert parse_month("2024-12") == (date(2024, 12, 1), date(2025, 1, 1))

    @pytest.mark.parametrize("month", ["2024-13", "2024-1", "24-01", "", "2024/01"])
    def test_invalid(self, month):
        with pytest.raises(ValidationError):
            parse_month(month)


class TestOvertimeCategory:
    """The overtime category is configuration, not a name match."""

    async def test_missing_category_is_configuration_error(self, session, settings):
        employee_id = await add_employee(session, "72000")
        request = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")

        with pytest.raises(ConfigurationError):
            await OvertimeService(session, settings).approve_for_month(
                [request.overtime_request_id], "2024-03"
            )
        assert await count_approvals(session) == 0

    async def test_name_alone_is_not_enough(self, session, settings):
        await add_category(session, "Overtime", "addition")
        with pytest.raises(ConfigurationError):
            await OvertimeService(session, settings).overtime_category_id()

    async def test_configured_id(self, session):
        category = await add_category(session, "OT", "addition")
        settings = make_settings(overtime_category_id=category.category_id)

        assert await OvertimeService(session, settings).overtime_category_id() == category.category_id

    async def test_configured_id_must_exist(self, session):
        settings = make_settings(overtime_category_id=uuid4())
        with pytest.raises(ConfigurationError):
            await OvertimeService(session, settings).overtime_category_id()


class TestApproveForMonth:
    """Approval calculation and idempotence."""

    async def test_approve_computes_and_assigns(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        request = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")

        result = await OvertimeService(session, settings).approve_for_month(
            [request.overtime_request_id], "2024-03", approved_by=uuid4()
        )

        assert result.processed_count == 1
        assert result.amounts == {request.overtime_request_id: Decimal("4500.00")}
        assert result.employee_totals == {employee_id: Decimal("4500.00")}
        assignment = await AssignmentService(session).get(employee_id, overtime.category_id)
        assert assignment.category_amount == Decimal("4500.00")

    async def test_reapproval_upserts_single_row(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        request = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        service = OvertimeService(session, settings)
        await service.approve_for_month([request.overtime_request_id], "2024-03")

        request.hours = Decimal("4")
        await session.flush()
        await service.approve_for_month([request.overtime_request_id], "2024-03")

        assert await count_approvals(session) == 1
        summary = await service.approved_for_employee(employee_id, "2024-03")
        assert summary.approvals[0].calculated_amount == Decimal("1800.00")
        assignment = await AssignmentService(session).get(employee_id, overtime.category_id)
        assert assignment.category_amount == Decimal("1800.00")

    async def test_skips_with_reasons(self, session, settings, overtime):
        paid = await add_employee(session, "72000")
        unpaid = await add_employee(session, None)
        pending = await add_overtime_request(session, paid, date(2024, 3, 5), "2", status="pending")
        other_month = await add_overtime_request(session, paid, date(2024, 4, 1), "2")
        no_salary = await add_overtime_request(session, unpaid, date(2024, 3, 5), "2")
        good = await add_overtime_request(session, paid, date(2024, 3, 31), "2")
        unknown = uuid4()

        result = await OvertimeService(session, settings).approve_for_month(
            [
                pending.overtime_request_id,
                other_month.overtime_request_id,
                no_salary.overtime_request_id,
                good.overtime_request_id,
                unknown,
            ],
            "2024-03",
        )

        assert result.processed_count == 1
        codes = {s.item_id: s.code for s in result.skipped}
        assert codes == {
            pending.overtime_request_id: "NOT_APPROVED",
            other_month.overtime_request_id: "OUTSIDE_MONTH",
            no_salary.overtime_request_id: "MISSING_BASE_SALARY",
            unknown: "NOT_FOUND",
        }

    async def test_sum_policy_totals_month(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        first = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        second = await add_overtime_request(session, employee_id, date(2024, 3, 20), "2")
        service = OvertimeService(session, settings)

        await service.approve_for_month([first.overtime_request_id], "2024-03")
        result = await service.approve_for_month([second.overtime_request_id], "2024-03")

        # 4500.00 + 900.00
        assert result.employee_totals[employee_id] == Decimal("5400.00")
        assignment = await AssignmentService(session).get(employee_id, overtime.category_id)
        assert assignment.category_amount == Decimal("5400.00")

    async def test_latest_policy_keeps_latest_date(self, session, overtime):
        settings = make_settings(overtime_assignment_policy=OvertimeAssignmentPolicy.LATEST)
        employee_id = await add_employee(session, "72000")
        later = await add_overtime_request(session, employee_id, date(2024, 3, 20), "2")
        earlier = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")

        # Processing order must not matter: the later overtime date wins.
        result = await OvertimeService(session, settings).approve_for_month(
            [later.overtime_request_id, earlier.overtime_request_id], "2024-03"
        )

        assert result.employee_totals[employee_id] == Decimal("900.00")

    async def test_invalid_month(self, session, settings, overtime):
        with pytest.raises(ValidationError):
            await OvertimeService(session, settings).approve_for_month([], "March")


class TestApprovalQueries:
    """Summaries, listings and removal."""

    async def test_approved_for_employee_totals(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        first = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        second = await add_overtime_request(session, employee_id, date(2024, 3, 20), "2.5")
        service = OvertimeService(session, settings)
        await service.approve_for_month(
            [first.overtime_request_id, second.overtime_request_id], "2024-03"
        )

        summary = await service.approved_for_employee(employee_id, "2024-03")

        assert [a.overtime_request_id for a in summary.approvals] == [
            first.overtime_request_id,
            second.overtime_request_id,
        ]
        assert summary.total_hours == Decimal("12.5")
        assert summary.total_amount == Decimal("5625.00")

    async def test_approved_requests_in_month(self, session, settings):
        employee_id = uuid4()
        inside = await add_overtime_request(session, employee_id, date(2024, 3, 5), "1")
        await add_overtime_request(session, employee_id, date(2024, 3, 6), "1", status="rejected")
        await add_overtime_request(session, employee_id, date(2024, 4, 1), "1")

        requests = await OvertimeService(session, settings).approved_requests("2024-03")

        assert [r.overtime_request_id for r in requests] == [inside.overtime_request_id]

    async def test_remove_approval_recomputes(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        first = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        second = await add_overtime_request(session, employee_id, date(2024, 3, 20), "2")
        service = OvertimeService(session, settings)
        await service.approve_for_month(
            [first.overtime_request_id, second.overtime_request_id], "2024-03"
        )
        summary = await service.approved_for_employee(employee_id, "2024-03")

        remaining = await service.remove_approval(summary.approvals[0].approval_id)

        assert remaining == Decimal("900.00")
        assignment = await AssignmentService(session).get(employee_id, overtime.category_id)
        assert assignment.category_amount == Decimal("900.00")

    async def test_removing_last_approval_removes_assignment(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        request = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        service = OvertimeService(session, settings)
        await service.approve_for_month([request.overtime_request_id], "2024-03")
        summary = await service.approved_for_employee(employee_id, "2024-03")

        assert await service.remove_approval(summary.approvals[0].approval_id) is None
        assert await AssignmentService(session).get(employee_id, overtime.category_id) is None

    async def test_removing_older_month_keeps_current_assignment(self, session, settings, overtime):
        employee_id = await add_employee(session, "72000")
        march = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        april = await add_overtime_request(session, employee_id, date(2024, 4, 8), "2")
        service = OvertimeService(session, settings)
        await service.approve_for_month([march.overtime_request_id], "2024-03")
        await service.approve_for_month([april.overtime_request_id], "2024-04")
        summary = await service.approved_for_employee(employee_id, "2024-03")

        remaining = await service.remove_approval(summary.approvals[0].approval_id)

        assert remaining == Decimal("900.00")
        assignment = await AssignmentService(session).get(employee_id, overtime.category_id)
        assert assignment.category_amount == Decimal("900.00")
        assert (await service.approved_for_employee(employee_id, "2024-04")).total_amount == Decimal(
            "900.00"
        )

    async def test_removing_current_month_recomputes_from_that_month(
        self, session, settings, overtime
    ):
        employee_id = await add_employee(session, "72000")
        march = await add_overtime_request(session, employee_id, date(2024, 3, 5), "10")
        april = await add_overtime_request(session, employee_id, date(2024, 4, 8), "2")
        service = OvertimeService(session, settings)
        await service.approve_for_month([march.overtime_request_id], "2024-03")
        await service.approve_for_month([april.overtime_request_id], "2024-04")
        summary = await service.approved_for_employee(employee_id, "2024-04")

        assert await service.remove_approval(summary.approvals[0].approval_id) is None
        assert await AssignmentService(session).get(employee_id, overtime.category_id) is None

    async def test_remove_unknown_approval(self, session, settings, overtime):
        with pytest.raises(NotFoundError):
            await OvertimeService(session, settings).remove_approval(uuid4())
