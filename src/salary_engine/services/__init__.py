"""Salary engine services."""

from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.category_service import CategoryService
from salary_engine.services.employee_directory import EmployeeDirectory
from salary_engine.services.evaluation_service import EvaluationService
from salary_engine.services.overtime_service import OvertimeService
from salary_engine.services.range_service import RangeService
from salary_engine.services.rule_service import RuleService

__all__ = [
    "AssignmentService",
    "CategoryService",
    "EmployeeDirectory",
    "EvaluationService",
    "OvertimeService",
    "RangeService",
    "RuleService",
]
