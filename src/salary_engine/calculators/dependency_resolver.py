"""Rule selection and dependency ordering."""

from __future__ import annotations

import heapq
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from salary_engine.calculators.range_table import RangeTable
from salary_engine.calculators.types import Bracket, RuleSpec, SkippedCategory
from salary_engine.errors import DependencyCycleError, ValidationError


@dataclass
class ResolutionPlan:
    """Rules to evaluate, in dependency order."""

    bracket: Bracket | None
    ordered: list[RuleSpec]
    skipped: list[SkippedCategory] = field(default_factory=list)
    dependencies: set[UUID] = field(default_factory=set)  # pulled in, not requested


class DependencyResolver:
    """Selects one rule per category and orders rules by dependency.

    Selection (most specific wins):
    1. The category's rule scoped to the bracket containing the base amount
    2. Otherwise the category's rule with no range ("applies to all")
    3. Otherwise the category has no applicable rule and is skipped

    A rule whose ``applies_to_category_id`` is set depends on that category's
    computed amount, so the referenced category is pulled into the plan even
    when it was not requested. Ordering uses Kahn's algorithm; ties are broken
    by category id so the order is stable across runs.
    """

    def __init__(self, range_table: RangeTable, names: dict[UUID, str] | None = None):
        self.range_table = range_table
        self.names = names or {}

    def resolve(
        self,
        rules: Iterable[RuleSpec],
        base_amount: Decimal,
        category_ids: Iterable[UUID],
    ) -> ResolutionPlan:
        """Build the evaluation plan for the requested categories.

        Raises:
            DependencyCycleError: If the selected rules reference each other in a cycle
            ValidationError: If a category has more than one rule for the same scope
        """
        rules_by_category: dict[UUID, list[RuleSpec]] = defaultdict(list)
        for rule in rules:
            rules_by_category[rule.category_id].append(rule)

        bracket = self.range_table.find_bracket(base_amount)
        requested = list(dict.fromkeys(category_ids))

        selected: dict[UUID, RuleSpec] = {}
        skipped: list[SkippedCategory] = []
        dependencies: set[UUID] = set()
        seen: set[UUID] = set()
        pending = list(requested)

        while pending:
            category_id = pending.pop(0)
            if category_id in seen:
                continue
            seen.add(category_id)

            rule = self.select_rule(rules_by_category.get(category_id, []), bracket)
            if rule is None:
                skipped.append(
                    SkippedCategory(category_id, "no applicable rule for this salary bracket")
                )
                continue

            selected[category_id] = rule
            dep = rule.applies_to_category_id
            if dep is not None and dep not in seen:
                if dep not in requested:
                    dependencies.add(dep)
                pending.append(dep)

        ordered = self._topological_order(selected)

        # Drop rules whose base category produced nothing; order guarantees
        # dependencies are decided before their dependents.
        evaluable: list[RuleSpec] = []
        available: set[UUID] = set()
        for rule in ordered:
            dep = rule.applies_to_category_id
            if dep is not None and dep not in available:
                skipped.append(
                    SkippedCategory(
                        rule.category_id,
                        f"depends on category {self._label(dep)} which has no amount",
                    )
                )
                continue
            evaluable.append(rule)
            available.add(rule.category_id)

        return ResolutionPlan(
            bracket=bracket,
            ordered=evaluable,
            skipped=skipped,
            dependencies=dependencies,
        )

    @staticmethod
    def select_rule(candidates: list[RuleSpec], bracket: Bracket | None) -> RuleSpec | None:
        """Pick the most specific rule for a bracket."""
        general: list[RuleSpec] = []
        specific: list[RuleSpec] = []
        for rule in candidates:
            if rule.range_id is None:
                general.append(rule)
            elif bracket is not None and rule.range_id == bracket.range_id:
                specific.append(rule)

        for scope in (specific, general):
            if len(scope) > 1:
                raise ValidationError(
                    f"Category {scope[0].category_id} has {len(scope)} rules for the same range"
                )
            if scope:
                return scope[0]
        return None

    def _topological_order(self, selected: dict[UUID, RuleSpec]) -> list[RuleSpec]:
        """Order rules so every rule follows the rule it depends on."""
        indegree: dict[UUID, int] = {}
        dependents: dict[UUID, list[UUID]] = defaultdict(list)

        for category_id, rule in selected.items():
            dep = rule.applies_to_category_id
            if dep is not None and dep in selected:
                indegree[category_id] = 1
                dependents[dep].append(category_id)
            else:
                indegree[category_id] = 0

        ready = [(str(c), c) for c, degree in indegree.items() if degree == 0]
        heapq.heapify(ready)

        ordered: list[RuleSpec] = []
        while ready:
            _, category_id = heapq.heappop(ready)
            ordered.append(selected[category_id])
            for dependent in dependents[category_id]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, (str(dependent), dependent))

        if len(ordered) < len(selected):
            remaining = {c for c, degree in indegree.items() if degree > 0}
            raise DependencyCycleError(self._find_cycle(selected, remaining), self.names)

        return ordered

    @staticmethod
    def _find_cycle(selected: dict[UUID, RuleSpec], remaining: set[UUID]) -> list[UUID]:
        """Walk dependency links from a stuck node until a category repeats."""
        start = min(remaining, key=str)
        path: list[UUID] = []
        position: dict[UUID, int] = {}
        current: UUID | None = start
        while current is not None and current not in position:
            position[current] = len(path)
            path.append(current)
            current = selected[current].applies_to_category_id
        if current is None:
            return path
        return path[position[current]:]

    def _label(self, category_id: UUID) -> str:
        return self.names.get(category_id, str(category_id))
