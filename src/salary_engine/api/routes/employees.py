"""Employee evaluation and assignment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from salary_engine.api.dependencies import AppSettings, DbSession
from salary_engine.api.schemas import (
    AssignmentListResponse,
    AssignmentResponse,
    BaseSalaryRequest,
    BaseSalaryResponse,
    EmployeeRosterResponse,
    EmployeeTotalResponse,
    ErrorResponse,
    EvaluateRequest,
    EvaluationResponse,
)
from salary_engine.services.assignment_service import AssignmentService
from salary_engine.services.employee_directory import EmployeeDirectory
from salary_engine.services.evaluation_service import EvaluationService

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=EmployeeRosterResponse)
async def list_employees(db: DbSession, settings: AppSettings) -> EmployeeRosterResponse:
    """List employees with base salary and current total for bulk assignment.

    Employees without a base salary are listed with a total counted from zero.
    """
    roster = await EvaluationService(db, settings).employee_roster()
    return EmployeeRosterResponse(
        items=[EmployeeTotalResponse.model_validate(e) for e in roster],
        total=len(roster),
    )


@router.put(
    "/{employee_id}/base-salary",
    response_model=BaseSalaryResponse,
    responses={422: {"model": ErrorResponse}},
)
async def set_base_salary(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    payload: BaseSalaryRequest,
) -> BaseSalaryResponse:
    """Record (or clear, with null) the base salary the engine calculates from."""
    record = await EmployeeDirectory(db).set_base_salary(employee_id, payload.base_amount)
    return BaseSalaryResponse.model_validate(record)


@router.post(
    "/{employee_id}/evaluate",
    response_model=EvaluationResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def evaluate_employee(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    payload: EvaluateRequest,
) -> EvaluationResponse:
    """Evaluate categories for an employee and store the amounts.

    Deterministic: identical inputs give the same amounts and ``calculation_id``.
    """
    result = await EvaluationService(db, settings).evaluate_employee(
        employee_id,
        payload.category_ids,
        base_salary=payload.base_salary,
        assigned_by=payload.assigned_by,
        persist=payload.persist,
    )
    return EvaluationResponse.model_validate(result)


@router.get("/{employee_id}/assignments", response_model=AssignmentListResponse)
async def list_assignments(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
) -> AssignmentListResponse:
    """List an employee's stored category amounts and the resulting net figure."""
    assignments = await AssignmentService(db).list_for_employee(employee_id)
    salaries = await EmployeeDirectory(db).base_salaries([employee_id])
    base_salary = salaries[employee_id]

    current_total = None
    if base_salary is not None:
        current_total = await AssignmentService(db).current_total(employee_id, base_salary)

    return AssignmentListResponse(
        items=[AssignmentResponse.model_validate(a) for a in assignments],
        total=len(assignments),
        current_total=current_total,
    )
