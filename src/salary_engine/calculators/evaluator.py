"""Rule evaluator: turns ordered rules into category amounts."""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID

from salary_engine.calculators.amounts import AmountBuilder
from salary_engine.calculators.dependency_resolver import DependencyResolver
from salary_engine.calculators.range_table import RangeTable
from salary_engine.calculators.types import CategoryInfo, EvaluationResult, RuleSpec
from salary_engine.errors import MissingBaseSalaryError, ValidationError


class RuleEvaluator:
    """Evaluates salary category rules for one employee.

    Evaluation is a pure function of (base salary, rules, range table): the
    evaluator holds no state between calls and never reads the database, so
    re-running it with the same inputs always yields the same amounts and the
    same ``calculation_id``.

    Pipeline:
    1) Validate the base salary
    2) Select one rule per category and order by dependency (DependencyResolver)
    3) For each rule: base = base salary or the referenced category's amount
    4) Apply percentage/fixed calculation and round half-up to cents
    5) Net = base + additions + allowances - deductions over requested categories
    """

    def __init__(
        self,
        range_table: RangeTable,
        categories: Mapping[UUID, CategoryInfo],
        engine_version: str = "1.0.0",
    ):
        self.range_table = range_table
        self.categories = dict(categories)
        self.engine_version = engine_version

    def evaluate(
        self,
        employee_id: UUID,
        base_salary: Decimal | None,
        rules: Iterable[RuleSpec],
        category_ids: Iterable[UUID],
    ) -> EvaluationResult:
        """Evaluate the requested categories for an employee.

        Raises:
            MissingBaseSalaryError: If base_salary is None
            ValidationError: If base_salary is negative
            DependencyCycleError: If selected rules depend on each other in a cycle
        """
        if base_salary is None:
            raise MissingBaseSalaryError(employee_id)
        if base_salary < 0:
            raise ValidationError("base_salary must be >= 0", field="base_salary")

        rules = list(rules)
        requested = list(dict.fromkeys(category_ids))

        resolver = DependencyResolver(
            self.range_table,
            names={c: info.name for c, info in self.categories.items()},
        )
        plan = resolver.resolve(rules, base_salary, requested)

        resolved: dict[UUID, Decimal] = {}
        rules_applied: dict[UUID, UUID] = {}
        for rule in plan.ordered:
            if rule.applies_to_category_id is None:
                base = base_salary
            else:
                base = resolved[rule.applies_to_category_id]
            resolved[rule.category_id] = AmountBuilder.apply_rule(rule, base)
            rules_applied[rule.category_id] = rule.rule_id

        amounts = {c: resolved[c] for c in requested if c in resolved}
        intermediate = {c: a for c, a in resolved.items() if c not in amounts}
        net = AmountBuilder.calculate_net(base_salary, amounts, self.categories)

        return EvaluationResult(
            employee_id=employee_id,
            base_salary=base_salary,
            calculation_id=self._generate_calculation_id(employee_id, base_salary, rules),
            amounts=amounts,
            net=net,
            bracket_id=plan.bracket.range_id if plan.bracket else None,
            intermediate=intermediate,
            rules_applied=rules_applied,
            skipped=plan.skipped,
        )

    def _generate_calculation_id(
        self,
        employee_id: UUID,
        base_salary: Decimal,
        rules: list[RuleSpec],
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employee_id": str(employee_id),
            "base_salary": str(base_salary),
            "engine_version": self.engine_version,
            "rules_fingerprint": self._compute_rules_fingerprint(rules),
            "ranges_fingerprint": AmountBuilder.fingerprint(
                [
                    [str(b.range_id), str(b.min_amount), str(b.max_amount)]
                    for b in self.range_table.brackets
                ]
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])

    def _compute_rules_fingerprint(self, rules: list[RuleSpec]) -> str:
        """Compute fingerprint of all rules used in calculation."""
        canonical = sorted(
            (
                str(r.rule_id),
                str(r.category_id),
                r.calculation_type.value,
                str(r.value),
                str(r.range_id),
                str(r.applies_to_category_id),
            )
            for r in rules
        )
        return AmountBuilder.fingerprint(canonical)
