"""Category rule endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from salary_engine.api.dependencies import DbSession
from salary_engine.api.schemas import ErrorResponse, RuleCreate, RuleResponse, RuleUpdate
from salary_engine.services.range_service import UNSET
from salary_engine.services.rule_service import RuleService

router = APIRouter(prefix="/rules", tags=["rules"])


@router.post(
    "",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def create_rule(db: DbSession, payload: RuleCreate) -> RuleResponse:
    """Create a rule for a category."""
    rule = await RuleService(db).create(
        category_id=payload.category_id,
        calculation_type=payload.calculation_type,
        value=payload.value,
        range_id=payload.range_id,
        applies_to_category_id=payload.applies_to_category_id,
        description=payload.description,
    )
    return RuleResponse.model_validate(rule)


@router.get("", response_model=list[RuleResponse])
async def list_rules(
    db: DbSession,
    category_id: Annotated[list[UUID] | None, Query()] = None,
) -> list[RuleResponse]:
    """List rules, optionally only those of the given categories."""
    service = RuleService(db)
    rules = await (service.list_for_categories(category_id) if category_id else service.list_all())
    return [RuleResponse.model_validate(r) for r in rules]


@router.get(
    "/{rule_id}",
    response_model=RuleResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_rule(db: DbSession, rule_id: Annotated[UUID, Path()]) -> RuleResponse:
    """Get a rule by ID."""
    return RuleResponse.model_validate(await RuleService(db).get(rule_id))


@router.put(
    "/{rule_id}",
    response_model=RuleResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_rule(
    db: DbSession,
    rule_id: Annotated[UUID, Path()],
    payload: RuleUpdate,
) -> RuleResponse:
    """Update a rule."""
    sent = payload.model_fields_set
    rule = await RuleService(db).update(
        rule_id,
        calculation_type=payload.calculation_type,
        value=payload.value,
        range_id=payload.range_id if "range_id" in sent else UNSET,
        applies_to_category_id=(
            payload.applies_to_category_id if "applies_to_category_id" in sent else UNSET
        ),
        description=payload.description,
    )
    return RuleResponse.model_validate(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_rule(db: DbSession, rule_id: Annotated[UUID, Path()]) -> None:
    """Delete a rule."""
    await RuleService(db).delete(rule_id)
