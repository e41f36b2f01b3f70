"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Category schemas
# ============================================================================


class CategoryCreate(BaseModel):
    """Schema for creating a salary category."""

    name: str
    kind: str
    is_percentage_based: bool = False
    description: str | None = None


class CategoryUpdate(BaseModel):
    """Schema for updating a salary category; omitted fields are unchanged."""

    name: str | None = None
    kind: str | None = None
    is_percentage_based: bool | None = None
    description: str | None = None


class CategoryResponse(BaseModel):
    """Schema for salary category response."""

    model_config = ConfigDict(from_attributes=True)

    category_id: UUID
    name: str
    kind: str
    is_percentage_based: bool
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class WellKnownCategoryRequest(BaseModel):
    """Schema for pointing a well-known key at a category."""

    category_id: UUID


class WellKnownCategoryResponse(BaseModel):
    """Schema for well-known category response."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    category_id: UUID


# ============================================================================
# Range schemas
# ============================================================================


class RangeCreate(BaseModel):
    """Schema for creating a salary range."""

    name: str
    min_amount: Decimal
    max_amount: Decimal | None = None
    percentage: Decimal


class RangeUpdate(BaseModel):
    """Schema for updating a salary range.

    Sending ``max_amount: null`` makes the range unbounded; omitting it
    leaves the bound unchanged.
    """

    name: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    percentage: Decimal | None = None


class RangeResponse(BaseModel):
    """Schema for salary range response."""

    model_config = ConfigDict(from_attributes=True)

    range_id: UUID
    name: str
    min_amount: Decimal
    max_amount: Decimal | None = None
    percentage: Decimal


# ============================================================================
# Rule schemas
# ============================================================================


class RuleCreate(BaseModel):
    """Schema for creating a category rule."""

    category_id: UUID
    calculation_type: str
    value: Decimal | None = None
    range_id: UUID | None = None
    applies_to_category_id: UUID | None = None
    description: str | None = None


class RuleUpdate(BaseModel):
    """Schema for updating a category rule.

    ``range_id`` and ``applies_to_category_id`` may be sent as null to clear them.
    """

    calculation_type: str | None = None
    value: Decimal | None = None
    range_id: UUID | None = None
    applies_to_category_id: UUID | None = None
    description: str | None = None


class RuleResponse(BaseModel):
    """Schema for category rule response."""

    model_config = ConfigDict(from_attributes=True)

    rule_id: UUID
    category_id: UUID
    range_id: UUID | None = None
    calculation_type: str
    value: Decimal
    applies_to_category_id: UUID | None = None
    description: str | None = None


# ============================================================================
# Employee schemas
# ============================================================================


class BaseSalaryRequest(BaseModel):
    """Schema for recording an employee's base salary."""

    base_amount: Decimal | None


class BaseSalaryResponse(BaseModel):
    """Schema for employee base salary response."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    base_amount: Decimal | None = None


class EvaluateRequest(BaseModel):
    """Schema for evaluating categories for one employee."""

    category_ids: list[UUID] = Field(min_length=1)
    base_salary: Decimal | None = None
    assigned_by: UUID | None = None
    persist: bool = True


class SkippedCategoryResponse(BaseModel):
    """A category that produced no amount."""

    model_config = ConfigDict(from_attributes=True)

    category_id: UUID
    reason: str


class EvaluationResponse(BaseModel):
    """Schema for evaluation result."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    calculation_id: UUID
    base_salary: Decimal
    bracket_id: UUID | None = None
    amounts: dict[UUID, Decimal]
    intermediate: dict[UUID, Decimal] = {}
    net: Decimal
    skipped: list[SkippedCategoryResponse] = []


class AssignmentResponse(BaseModel):
    """Schema for employee category assignment response."""

    model_config = ConfigDict(from_attributes=True)

    assignment_id: UUID
    employee_id: UUID
    category_id: UUID
    category_amount: Decimal
    assigned_by: UUID | None = None
    updated_at: datetime


class AssignmentListResponse(BaseModel):
    """Schema for listing an employee's assignments."""

    items: list[AssignmentResponse]
    total: int
    current_total: Decimal | None = None


class EmployeeTotalResponse(BaseModel):
    """An employee's base salary and net figure from stored assignments."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    base_salary: Decimal | None = None
    current_total: Decimal
    assignment_count: int


class EmployeeRosterResponse(BaseModel):
    """Schema for listing employees for bulk assignment."""

    items: list[EmployeeTotalResponse]
    total: int


# ============================================================================
# Batch schemas
# ============================================================================


class BatchAssignRequest(BaseModel):
    """Schema for assigning one category to many employees."""

    employee_ids: list[UUID]
    assigned_by: UUID | None = None
    base_salaries: dict[UUID, Decimal] | None = None
    remove_unselected: bool = False


class SkippedItemResponse(BaseModel):
    """A batch item that was not processed."""

    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    code: str
    reason: str


class BatchResponse(BaseModel):
    """Schema for partial-success batch result."""

    model_config = ConfigDict(from_attributes=True)

    processed_count: int
    skipped_count: int
    total_amount: Decimal
    amounts: dict[UUID, Decimal]
    skipped: list[SkippedItemResponse] = []


# ============================================================================
# Overtime schemas
# ============================================================================


class OvertimeApproveRequest(BaseModel):
    """Schema for approving overtime requests for a month."""

    request_ids: list[UUID]
    month: str = Field(description="Payroll month, YYYY-MM")
    approved_by: UUID | None = None


class OvertimeBatchResponse(BatchResponse):
    """Schema for overtime approval batch result."""

    month: str
    employee_totals: dict[UUID, Decimal] = {}


class OvertimeApprovalResponse(BaseModel):
    """Schema for overtime approval response."""

    model_config = ConfigDict(from_attributes=True)

    approval_id: UUID
    overtime_request_id: UUID
    employee_id: UUID
    calculated_amount: Decimal
    month: str
    approved_by: UUID | None = None
    approved_at: datetime


class OvertimeSummaryResponse(BaseModel):
    """Schema for an employee's approved overtime in a month."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    month: str
    approvals: list[OvertimeApprovalResponse]
    total_amount: Decimal
    total_hours: Decimal


class OvertimeRequestResponse(BaseModel):
    """Schema for overtime request response."""

    model_config = ConfigDict(from_attributes=True)

    overtime_request_id: UUID
    employee_id: UUID
    date: date
    hours: Decimal
    reason: str | None = None
    status: str


class RemoveApprovalResponse(BaseModel):
    """Schema for approval removal result."""

    approval_id: UUID
    assignment_amount: Decimal | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
