"""Salary category endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from salary_engine.api.dependencies import AppSettings, DbSession
from salary_engine.api.schemas import (
    BatchAssignRequest,
    BatchResponse,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ErrorResponse,
    WellKnownCategoryRequest,
    WellKnownCategoryResponse,
)
from salary_engine.services.category_service import CategoryService
from salary_engine.services.evaluation_service import EvaluationService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_category(db: DbSession, payload: CategoryCreate) -> CategoryResponse:
    """Create a salary category."""
    category = await CategoryService(db).create(
        name=payload.name,
        kind=payload.kind,
        is_percentage_based=payload.is_percentage_based,
        description=payload.description,
    )
    return CategoryResponse.model_validate(category)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: DbSession) -> list[CategoryResponse]:
    """List categories ordered by kind, then name."""
    categories = await CategoryService(db).list_all()
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_category(
    db: DbSession,
    category_id: Annotated[UUID, Path()],
) -> CategoryResponse:
    """Get a category by ID."""
    return CategoryResponse.model_validate(await CategoryService(db).get(category_id))


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_category(
    db: DbSession,
    category_id: Annotated[UUID, Path()],
    payload: CategoryUpdate,
) -> CategoryResponse:
    """Update a category. Kind and percentage flag are frozen once rules reference it."""
    category = await CategoryService(db).update(
        category_id,
        name=payload.name,
        kind=payload.kind,
        is_percentage_based=payload.is_percentage_based,
        description=payload.description,
    )
    return CategoryResponse.model_validate(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_category(
    db: DbSession,
    category_id: Annotated[UUID, Path()],
) -> None:
    """Delete a category that no rule references."""
    await CategoryService(db).delete(category_id)


@router.put(
    "/well-known/{key}",
    response_model=WellKnownCategoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def set_well_known_category(
    db: DbSession,
    key: Annotated[str, Path()],
    payload: WellKnownCategoryRequest,
) -> WellKnownCategoryResponse:
    """Register the category the engine uses for a role such as 'overtime'."""
    entry = await CategoryService(db).set_well_known(key, payload.category_id)
    return WellKnownCategoryResponse.model_validate(entry)


@router.post(
    "/{category_id}/assign",
    response_model=BatchResponse,
    responses={404: {"model": ErrorResponse}},
)
async def assign_category(
    db: DbSession,
    settings: AppSettings,
    category_id: Annotated[UUID, Path()],
    payload: BatchAssignRequest,
) -> BatchResponse:
    """Evaluate and assign a category to many employees.

    Employees that cannot be evaluated are listed in ``skipped``; the rest
    are still assigned.
    """
    result = await EvaluationService(db, settings).assign_category_to_employees(
        category_id,
        payload.employee_ids,
        assigned_by=payload.assigned_by,
        base_salaries=payload.base_salaries,
        remove_unselected=payload.remove_unselected,
    )
    return BatchResponse.model_validate(result)
