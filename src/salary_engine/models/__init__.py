"""ORM models."""

from salary_engine.models.base import Base, TimestampMixin
from salary_engine.models.overtime import OvertimeApproval, OvertimeRequest
from salary_engine.models.salary import (
    CategoryRule,
    EmployeeCategoryAssignment,
    EmployeeSalary,
    SalaryCategory,
    SalaryRange,
    WellKnownCategory,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "CategoryRule",
    "EmployeeCategoryAssignment",
    "EmployeeSalary",
    "OvertimeApproval",
    "OvertimeRequest",
    "SalaryCategory",
    "SalaryRange",
    "WellKnownCategory",
]
