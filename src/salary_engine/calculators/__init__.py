"""Salary rule calculation pipeline (pure, no database access)."""

from salary_engine.calculators.amounts import AmountBuilder
from salary_engine.calculators.dependency_resolver import DependencyResolver, ResolutionPlan
from salary_engine.calculators.evaluator import RuleEvaluator
from salary_engine.calculators.overtime import calculate_overtime_amount
from salary_engine.calculators.range_table import RangeTable

__all__ = [
    "AmountBuilder",
    "DependencyResolver",
    "ResolutionPlan",
    "RuleEvaluator",
    "RangeTable",
    "calculate_overtime_amount",
]
