"""Salary range endpoints."""

from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from salary_engine.api.dependencies import DbSession
from salary_engine.api.schemas import ErrorResponse, RangeCreate, RangeResponse, RangeUpdate
from salary_engine.services.range_service import UNSET, RangeService

router = APIRouter(prefix="/ranges", tags=["ranges"])


@router.post(
    "",
    response_model=RangeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_range(db: DbSession, payload: RangeCreate) -> RangeResponse:
    """Create a salary range. Ranges may not overlap."""
    salary_range = await RangeService(db).create(
        name=payload.name,
        min_amount=payload.min_amount,
        max_amount=payload.max_amount,
        percentage=payload.percentage,
    )
    return RangeResponse.model_validate(salary_range)


@router.get("", response_model=list[RangeResponse])
async def list_ranges(db: DbSession) -> list[RangeResponse]:
    """List ranges ordered by lower bound."""
    return [RangeResponse.model_validate(r) for r in await RangeService(db).list_all()]


@router.get("/bracket", response_model=RangeResponse | None)
async def find_bracket(
    db: DbSession,
    amount: Annotated[Decimal, Query(ge=0)],
) -> RangeResponse | None:
    """Find the range containing an amount; null when no range does."""
    salary_range = await RangeService(db).find_bracket(amount)
    return RangeResponse.model_validate(salary_range) if salary_range else None


@router.get(
    "/{range_id}",
    response_model=RangeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_range(db: DbSession, range_id: Annotated[UUID, Path()]) -> RangeResponse:
    """Get a range by ID."""
    return RangeResponse.model_validate(await RangeService(db).get(range_id))


@router.put(
    "/{range_id}",
    response_model=RangeResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_range(
    db: DbSession,
    range_id: Annotated[UUID, Path()],
    payload: RangeUpdate,
) -> RangeResponse:
    """Update a range."""
    salary_range = await RangeService(db).update(
        range_id,
        name=payload.name,
        min_amount=payload.min_amount,
        max_amount=payload.max_amount if "max_amount" in payload.model_fields_set else UNSET,
        percentage=payload.percentage,
    )
    return RangeResponse.model_validate(salary_range)


@router.delete(
    "/{range_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_range(db: DbSession, range_id: Annotated[UUID, Path()]) -> None:
    """Delete a range that no rule is scoped to."""
    await RangeService(db).delete(range_id)
