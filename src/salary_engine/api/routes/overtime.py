"""Overtime approval endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from salary_engine.api.dependencies import AppSettings, DbSession
from salary_engine.api.schemas import (
    ErrorResponse,
    OvertimeApproveRequest,
    OvertimeBatchResponse,
    OvertimeRequestResponse,
    OvertimeSummaryResponse,
    RemoveApprovalResponse,
)
from salary_engine.services.overtime_service import OvertimeService

router = APIRouter(prefix="/overtime", tags=["overtime"])


@router.post(
    "/approvals",
    response_model=OvertimeBatchResponse,
    responses={422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def approve_overtime(
    db: DbSession,
    settings: AppSettings,
    payload: OvertimeApproveRequest,
) -> OvertimeBatchResponse:
    """Calculate overtime pay for approved requests and update overtime assignments.

    Re-approving a request for the same month replaces its previous approval.
    """
    result = await OvertimeService(db, settings).approve_for_month(
        payload.request_ids,
        payload.month,
        approved_by=payload.approved_by,
    )
    return OvertimeBatchResponse.model_validate(result)


@router.get("/approvals", response_model=OvertimeSummaryResponse)
async def get_employee_overtime(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Query()],
    month: Annotated[str, Query(description="YYYY-MM")],
) -> OvertimeSummaryResponse:
    """Approved overtime for an employee in a month with amount and hour totals."""
    summary = await OvertimeService(db, settings).approved_for_employee(employee_id, month)
    return OvertimeSummaryResponse.model_validate(summary)


@router.delete(
    "/approvals/{approval_id}",
    response_model=RemoveApprovalResponse,
    responses={404: {"model": ErrorResponse}},
)
async def remove_overtime_approval(
    db: DbSession,
    settings: AppSettings,
    approval_id: Annotated[UUID, Path()],
) -> RemoveApprovalResponse:
    """Remove an approval and recompute the employee's overtime assignment."""
    amount = await OvertimeService(db, settings).remove_approval(approval_id)
    return RemoveApprovalResponse(approval_id=approval_id, assignment_amount=amount)


@router.get("/requests", response_model=list[OvertimeRequestResponse])
async def list_approved_requests(
    db: DbSession,
    settings: AppSettings,
    month: Annotated[str, Query(description="YYYY-MM")],
) -> list[OvertimeRequestResponse]:
    """Approved overtime requests dated within a month."""
    requests = await OvertimeService(db, settings).approved_requests(month)
    return [OvertimeRequestResponse.model_validate(r) for r in requests]
