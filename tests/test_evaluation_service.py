"""Tests for evaluation against stored master data."""

from decimal import Decimal
from uuid import uuid4

import pytest

from salary_engine.errors import (
    DependencyCycleError,
    MissingBaseSalaryError,
    NotFoundError,
    ValidationError,
)
from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.evaluation_service import NO_APPLICABLE_RULE, EvaluationService
from tests.conftest import add_category, add_employee, add_rule

pytestmark = pytest.mark.asyncio


class TestEvaluateEmployee:
    """Single-employee evaluation."""

    async def test_evaluates_and_persists(self, session, settings, epf, transport):
        employee_id = await add_employee(session, "100000")
        service = EvaluationService(session, settings)

        result = await service.evaluate_employee(
            employee_id, [epf.category_id, transport.category_id]
        )

        assert result.amounts == {
            epf.category_id: Decimal("8500.00"),
            transport.category_id: Decimal("5000.00"),
        }
        assert result.net == Decimal("96500.00")
        stored = await AssignmentService(session).list_for_employee(employee_id)
        assert {a.category_id: a.category_amount for a in stored} == result.amounts

    async def test_apit_bracket(self, session, settings, apit_brackets):
        apit = await add_category(session, "APIT")
        for bracket in apit_brackets:
            await add_rule(session, apit, "percentage", str(bracket.percentage), salary_range=bracket)
        employee_id = await add_employee(session, "75000")

        result = await EvaluationService(session, settings).evaluate_employee(
            employee_id, [apit.category_id]
        )

        assert result.bracket_id == apit_brackets[1].range_id
        assert result.amounts[apit.category_id] == Decimal("4500.00")

    async def test_base_salary_override(self, session, settings, epf):
        result = await EvaluationService(session, settings).evaluate_employee(
            uuid4(), [epf.category_id], base_salary="200000", persist=False
        )
        assert result.amounts[epf.category_id] == Decimal("17000.00")

    async def test_dry_run_does_not_persist(self, session, settings, epf):
        employee_id = await add_employee(session, "100000")

        await EvaluationService(session, settings).evaluate_employee(
            employee_id, [epf.category_id], persist=False
        )

        assert await AssignmentService(session).list_for_employee(employee_id) == []

    async def test_dependency_pulled_in_but_not_persisted(self, session, settings):
        a = await add_category(session, "A", "addition")
        b = await add_category(session, "B", "addition")
        await add_rule(session, a, "percentage", "10")
        await add_rule(session, b, "percentage", "50", applies_to=a)
        employee_id = await add_employee(session, "100000")

        result = await EvaluationService(session, settings).evaluate_employee(
            employee_id, [b.category_id]
        )

        assert result.amounts == {b.category_id: Decimal("5000.00")}
        assert result.intermediate == {a.category_id: Decimal("10000.00")}
        stored = await AssignmentService(session).list_for_employee(employee_id)
        assert [s.category_id for s in stored] == [b.category_id]

    async def test_recompute_overwrites(self, session, settings, epf):
        employee_id = await add_employee(session, "100000")
        service = EvaluationService(session, settings)
        await service.evaluate_employee(employee_id, [epf.category_id])

        await service.evaluate_employee(employee_id, [epf.category_id], base_salary="50000")

        stored = await AssignmentService(session).get(employee_id, epf.category_id)
        assert stored.category_amount == Decimal("4250.00")

    async def test_stale_assignment_removed_when_rule_no_longer_applies(
        self, session, settings, apit_brackets
    ):
        apit = await add_category(session, "APIT")
        await add_rule(session, apit, "percentage", "6", salary_range=apit_brackets[1])
        employee_id = await add_employee(session, "75000")
        service = EvaluationService(session, settings)
        await service.evaluate_employee(employee_id, [apit.category_id])

        result = await service.evaluate_employee(
            employee_id, [apit.category_id], base_salary="20000"
        )

        assert result.amounts == {}
        assert await AssignmentService(session).get(employee_id, apit.category_id) is None

    async def test_missing_base_salary(self, session, settings, epf):
        with pytest.raises(MissingBaseSalaryError):
            await EvaluationService(session, settings).evaluate_employee(uuid4(), [epf.category_id])

    async def test_unknown_category(self, session, settings):
        employee_id = await add_employee(session, "100000")
        with pytest.raises(NotFoundError):
            await EvaluationService(session, settings).evaluate_employee(employee_id, [uuid4()])

    async def test_no_categories(self, session, settings):
        with pytest.raises(ValidationError):
            await EvaluationService(session, settings).evaluate_employee(uuid4(), [])

    async def test_cycle(self, session, settings):
        x = await add_category(session, "X")
        y = await add_category(session, "Y")
        await add_rule(session, x, "percentage", "10", applies_to=y)
        await add_rule(session, y, "percentage", "10", applies_to=x)
        employee_id = await add_employee(session, "100000")

        with pytest.raises(DependencyCycleError):
            await EvaluationService(session, settings).evaluate_employee(
                employee_id, [x.category_id]
            )
        assert await AssignmentService(session).list_for_employee(employee_id) == []

    async def test_current_total(self, session, settings, epf, transport):
        employee_id = await add_employee(session, "100000")
        service = EvaluationService(session, settings)
        await service.evaluate_employee(employee_id, [epf.category_id, transport.category_id])

        assert await service.current_total(employee_id) == Decimal("96500.00")

    async def test_employee_roster(self, session, settings, epf, transport):
        paid = await add_employee(session, "100000")
        unpaid = await add_employee(session, None)
        service = EvaluationService(session, settings)
        await service.evaluate_employee(paid, [epf.category_id, transport.category_id])

        roster = {row.employee_id: row for row in await service.employee_roster()}

        assert set(roster) == {paid, unpaid}
        assert roster[paid].base_salary == Decimal("100000")
        assert roster[paid].current_total == Decimal("96500.00")
        assert roster[paid].assignment_count == 2
        assert roster[unpaid].base_salary is None
        assert roster[unpaid].current_total == Decimal("0.00")
        assert roster[unpaid].assignment_count == 0


class TestAssignCategoryBatch:
    """Batch mode: partial success."""

    async def test_partial_success(self, session, settings, apit_brackets):
        apit = await add_category(session, "APIT")
        await add_rule(session, apit, "percentage", "6", salary_range=apit_brackets[1])
        await add_rule(session, apit, "percentage", "12", salary_range=apit_brackets[2])
        mid = await add_employee(session, "75000")
        high = await add_employee(session, "200000")
        low = await add_employee(session, "20000")
        unpaid = await add_employee(session, None)

        result = await EvaluationService(session, settings).assign_category_to_employees(
            apit.category_id, [mid, high, low, unpaid]
        )

        assert result.processed_count == 2
        assert result.amounts == {mid: Decimal("4500.00"), high: Decimal("24000.00")}
        assert result.total_amount == Decimal("28500.00")
        codes = {s.item_id: s.code for s in result.skipped}
        assert codes == {low: NO_APPLICABLE_RULE, unpaid: "MISSING_BASE_SALARY"}
        assigned = await AssignmentService(session).employee_ids_for_category(apit.category_id)
        assert set(assigned) == {mid, high}

    async def test_base_salary_overrides(self, session, settings, epf):
        employee_id = uuid4()

        result = await EvaluationService(session, settings).assign_category_to_employees(
            epf.category_id, [employee_id], base_salaries={employee_id: "10000"}
        )

        assert result.amounts == {employee_id: Decimal("850.00")}

    async def test_remove_unselected(self, session, settings, transport):
        first = await add_employee(session, "1000")
        second = await add_employee(session, "1000")
        service = EvaluationService(session, settings)
        await service.assign_category_to_employees(transport.category_id, [first, second])

        await service.assign_category_to_employees(
            transport.category_id, [second], remove_unselected=True
        )

        assigned = await AssignmentService(session).employee_ids_for_category(transport.category_id)
        assert assigned == [second]

    async def test_cycle_reported_per_employee(self, session, settings):
        x = await add_category(session, "X")
        y = await add_category(session, "Y")
        await add_rule(session, x, "percentage", "10", applies_to=y)
        await add_rule(session, y, "percentage", "10", applies_to=x)
        employee_id = await add_employee(session, "100000")

        result = await EvaluationService(session, settings).assign_category_to_employees(
            x.category_id, [employee_id]
        )

        assert result.processed_count == 0
        assert result.skipped[0].code == "DEPENDENCY_CYCLE"

    async def test_unknown_category(self, session, settings):
        with pytest.raises(NotFoundError):
            await EvaluationService(session, settings).assign_category_to_employees(
                uuid4(), [uuid4()]
            )
