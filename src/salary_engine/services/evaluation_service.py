"""Evaluation orchestration: load rules, evaluate, persist assignments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.amounts import parse_amount
from salary_engine.calculators.evaluator import RuleEvaluator
from salary_engine.calculators.types import BatchResult, EvaluationResult, RuleSpec
from salary_engine.config import Settings, get_settings
from salary_engine.errors import NotFoundError, SalaryEngineError, ValidationError
from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.category_service import CategoryService
from salary_engine.services.employee_directory import EmployeeDirectory
from salary_engine.services.range_service import RangeService
from salary_engine.services.rule_service import RuleService

logger = logging.getLogger(__name__)

NO_APPLICABLE_RULE = "NO_APPLICABLE_RULE"


@dataclass(frozen=True)
class EmployeeTotal:
    """One row of the bulk assignment roster."""

    employee_id: UUID
    base_salary: Decimal | None
    current_total: Decimal
    assignment_count: int


class EvaluationService:
    """Runs the rule evaluator against stored master data.

    Flow:
    1. Load the rules of the requested categories and of every category they
       are computed from
    2. Load the range table and category kinds
    3. Evaluate (pure, see RuleEvaluator)
    4. Upsert the requested categories' amounts as assignments; a requested
       category that no longer produces an amount loses its stale row

    All writes go through the caller's session, so one call is one
    transaction when used with ``get_session()``.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.categories = CategoryService(session)
        self.ranges = RangeService(session)
        self.rules = RuleService(session)
        self.assignments = AssignmentService(session)
        self.directory = EmployeeDirectory(session)

    async def evaluate_employee(
        self,
        employee_id: UUID,
        category_ids: Iterable[UUID],
        base_salary: Decimal | int | str | None = None,
        assigned_by: UUID | None = None,
        persist: bool = True,
    ) -> EvaluationResult:
        """Evaluate categories for one employee.

        When ``base_salary`` is omitted it is read from the employee directory.

        Raises:
            ValidationError: If no categories are requested or the base salary is invalid
            NotFoundError: If a requested category does not exist
            MissingBaseSalaryError: If no base salary is available
            DependencyCycleError: If the selected rules form a cycle
        """
        requested = list(dict.fromkeys(category_ids))
        if not requested:
            raise ValidationError("At least one category is required", field="category_ids")

        if base_salary is None:
            base = await self.directory.base_salary(employee_id)
        else:
            base = parse_amount(base_salary, "base_salary")

        evaluator, rules = await self._prepare(requested)
        result = evaluator.evaluate(employee_id, base, rules, requested)

        if persist:
            await self.assignments.upsert_for_employee(employee_id, result.amounts, assigned_by)
            for skipped in result.skipped:
                if skipped.category_id in requested:
                    await self.assignments.remove(employee_id, skipped.category_id)

        logger.info(
            "Evaluated %d categories for employee %s (net=%s, skipped=%d)",
            len(result.amounts),
            employee_id,
            result.net,
            len(result.skipped),
        )
        return result

    async def assign_category_to_employees(
        self,
        category_id: UUID,
        employee_ids: Iterable[UUID],
        assigned_by: UUID | None = None,
        base_salaries: Mapping[UUID, Decimal | int | str] | None = None,
        remove_unselected: bool = False,
    ) -> BatchResult:
        """Evaluate one category for many employees and persist the amounts.

        Per-employee failures (missing base salary, cycles, no applicable
        rule) are reported in ``skipped`` and do not stop the batch.
        With ``remove_unselected`` the category is also removed from every
        employee not in ``employee_ids``.

        Raises:
            NotFoundError: If the category does not exist
        """
        await self.categories.get(category_id)
        employees = list(dict.fromkeys(employee_ids))
        evaluator, rules = await self._prepare([category_id])

        salaries: dict[UUID, Decimal | None] = await self.directory.base_salaries(employees)
        for employee_id, amount in (base_salaries or {}).items():
            if employee_id in salaries:
                salaries[employee_id] = parse_amount(amount, "base_salary")

        batch = BatchResult()
        no_rule: list[UUID] = []
        for employee_id in employees:
            try:
                result = evaluator.evaluate(
                    employee_id, salaries[employee_id], rules, [category_id]
                )
            except SalaryEngineError as e:
                batch.skip(employee_id, e.code, str(e))
                continue

            if category_id not in result.amounts:
                reason = next(
                    (s.reason for s in result.skipped if s.category_id == category_id),
                    "no amount produced",
                )
                batch.skip(employee_id, NO_APPLICABLE_RULE, reason)
                no_rule.append(employee_id)
                continue

            batch.amounts[employee_id] = result.amounts[category_id]

        if remove_unselected:
            await self.assignments.sync_category(category_id, batch.amounts, assigned_by)
        else:
            await self.assignments.upsert_many(category_id, batch.amounts, assigned_by)
        await self.assignments.remove_many(category_id, no_rule)

        batch.processed_count = len(batch.amounts)
        batch.total_amount = sum(batch.amounts.values(), Decimal("0"))

        for item in batch.skipped:
            logger.warning(
                "Skipped employee %s for category %s: %s (%s)",
                item.item_id,
                category_id,
                item.reason,
                item.code,
            )
        logger.info(
            "Assigned category %s to %d employee(s), %d skipped, total=%s",
            category_id,
            batch.processed_count,
            batch.skipped_count,
            batch.total_amount,
        )
        return batch

    async def current_total(
        self, employee_id: UUID, base_salary: Decimal | int | str | None = None
    ) -> Decimal:
        """Net figure from the employee's stored assignments."""
        if base_salary is None:
            base = await self.directory.base_salary(employee_id)
        else:
            base = parse_amount(base_salary, "base_salary")
        return await self.assignments.current_total(employee_id, base)

    async def employee_roster(self) -> list[EmployeeTotal]:
        """Every employee with base salary and current total, for bulk assignment."""
        employees = await self.directory.list_employees()
        salaries = {
            e.employee_id: Decimal(e.base_amount) if e.base_amount is not None else None
            for e in employees
        }
        totals = await self.assignments.current_totals(salaries)
        return [
            EmployeeTotal(
                employee_id=employee_id,
                base_salary=base,
                current_total=totals[employee_id][0],
                assignment_count=totals[employee_id][1],
            )
            for employee_id, base in salaries.items()
        ]

    async def _prepare(self, category_ids: list[UUID]) -> tuple[RuleEvaluator, list[RuleSpec]]:
        """Build an evaluator and rule list covering the categories and their dependencies."""
        rules = await self.rules.list_with_dependencies(category_ids)

        needed = set(category_ids)
        for rule in rules:
            needed.add(rule.category_id)
            if rule.applies_to_category_id is not None:
                needed.add(rule.applies_to_category_id)
        categories = await self.categories.get_many(list(needed))
        for category_id in category_ids:
            if category_id not in categories:
                raise NotFoundError("Category", category_id)

        evaluator = RuleEvaluator(
            await self.ranges.load_table(),
            {c: category.to_info() for c, category in categories.items()},
            engine_version=self.settings.engine_version,
        )
        return evaluator, [r.to_spec() for r in rules]
