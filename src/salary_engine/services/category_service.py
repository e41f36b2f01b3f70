"""Salary category store."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.calculators.types import CategoryKind
from salary_engine.database import dialect_insert, flush_or_conflict
from salary_engine.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from salary_engine.models import (
    CategoryRule,
    EmployeeCategoryAssignment,
    SalaryCategory,
    WellKnownCategory,
)
from salary_engine.models.base import utcnow

logger = logging.getLogger(__name__)

OVERTIME_KEY = "overtime"


def parse_kind(kind: CategoryKind | str) -> CategoryKind:
    """Convert input to a CategoryKind, rejecting anything but the exact values."""
    try:
        return CategoryKind(kind)
    except ValueError as e:
        allowed = ", ".join(k.value for k in CategoryKind)
        raise ValidationError(f"kind must be one of: {allowed}", field="kind") from e


class CategoryService:
    """Typed CRUD over salary categories.

    A category's kind and percentage flag are frozen once any rule references
    it, and a referenced category cannot be deleted.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        kind: CategoryKind | str,
        is_percentage_based: bool = False,
        description: str | None = None,
    ) -> SalaryCategory:
        """Create a category.

        Raises:
            ValidationError: If name is blank or kind is unknown
            ConflictError: If a category with the same name exists
        """
        name = self._clean_name(name)
        await self._ensure_name_available(name)
        category = SalaryCategory(
            name=name,
            kind=parse_kind(kind).value,
            is_percentage_based=bool(is_percentage_based),
            description=description,
        )
        self.session.add(category)
        await flush_or_conflict(self.session, f"Category '{category.name}' already exists")
        return category

    async def get(self, category_id: UUID) -> SalaryCategory:
        category = await self.session.get(SalaryCategory, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def get_many(self, category_ids: list[UUID]) -> dict[UUID, SalaryCategory]:
        if not category_ids:
            return {}
        result = await self.session.execute(
            select(SalaryCategory).where(SalaryCategory.category_id.in_(category_ids))
        )
        return {c.category_id: c for c in result.scalars().all()}

    async def list_all(self) -> list[SalaryCategory]:
        """List categories ordered by kind, then name."""
        result = await self.session.execute(
            select(SalaryCategory).order_by(SalaryCategory.kind, SalaryCategory.name)
        )
        return list(result.scalars().all())

    async def update(
        self,
        category_id: UUID,
        *,
        name: str | None = None,
        kind: CategoryKind | str | None = None,
        is_percentage_based: bool | None = None,
        description: str | None = None,
    ) -> SalaryCategory:
        """Update a category; arguments left as None are unchanged.

        Raises:
            NotFoundError: If the category does not exist
            ReferentialIntegrityError: If kind or percentage flag changes on a referenced category
        """
        category = await self.get(category_id)

        new_kind = parse_kind(kind).value if kind is not None else category.kind
        new_flag = (
            bool(is_percentage_based)
            if is_percentage_based is not None
            else category.is_percentage_based
        )
        if new_kind != category.kind or new_flag != category.is_percentage_based:
            rule_ids = await self.referencing_rule_ids(category_id)
            if rule_ids:
                raise ReferentialIntegrityError("Category", category_id, rule_ids)

        if name is not None:
            name = self._clean_name(name)
            if name != category.name:
                await self._ensure_name_available(name)
            category.name = name
        if description is not None:
            category.description = description or None
        category.kind = new_kind
        category.is_percentage_based = new_flag

        await flush_or_conflict(self.session, f"Category '{category.name}' already exists")
        return category

    async def delete(self, category_id: UUID) -> None:
        """Delete a category and its assignment rows.

        Raises:
            NotFoundError: If the category does not exist
            ReferentialIntegrityError: If a rule or well-known key references it
        """
        category = await self.get(category_id)

        rule_ids = await self.referencing_rule_ids(category_id)
        if rule_ids:
            raise ReferentialIntegrityError("Category", category_id, rule_ids)

        well_known = await self.session.execute(
            select(WellKnownCategory.key).where(WellKnownCategory.category_id == category_id)
        )
        keys = list(well_known.scalars().all())
        if keys:
            raise ReferentialIntegrityError(
                f"Category (well-known as {', '.join(keys)})", category_id
            )

        await self.session.execute(
            delete(EmployeeCategoryAssignment).where(
                EmployeeCategoryAssignment.category_id == category_id
            )
        )
        await self.session.delete(category)
        await self.session.flush()
        logger.info("Deleted salary category %s (%s)", category.name, category_id)

    async def referencing_rule_ids(self, category_id: UUID) -> list[UUID]:
        """IDs of rules that compute or are computed from this category."""
        result = await self.session.execute(
            select(CategoryRule.rule_id).where(
                or_(
                    CategoryRule.category_id == category_id,
                    CategoryRule.applies_to_category_id == category_id,
                )
            )
        )
        return list(result.scalars().all())

    # === Well-known categories ===

    async def set_well_known(self, key: str, category_id: UUID) -> WellKnownCategory:
        """Point a well-known key at a category, replacing any previous target."""
        await self.get(category_id)
        now = utcnow()
        stmt = dialect_insert(self.session, WellKnownCategory).values(
            key=key,
            category_id=category_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "category_id": stmt.excluded.category_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(WellKnownCategory)
            .where(WellKnownCategory.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def resolve_well_known(self, key: str) -> SalaryCategory:
        """Look up the category registered under a well-known key.

        Raises:
            ConfigurationError: If the key is not registered or points at a missing category
        """
        entry = await self.session.get(WellKnownCategory, key)
        if entry is None:
            raise ConfigurationError(
                f"No '{key}' category is configured; register one before using it"
            )
        category = await self.session.get(SalaryCategory, entry.category_id)
        if category is None:
            raise ConfigurationError(
                f"Well-known '{key}' category {entry.category_id} does not exist"
            )
        return category

    async def _ensure_name_available(self, name: str) -> None:
        existing = await self.session.execute(
            select(SalaryCategory.category_id).where(SalaryCategory.name == name)
        )
        if existing.first() is not None:
            raise ConflictError(f"Category '{name}' already exists")

    @staticmethod
    def _clean_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("name is required", field="name")
        return cleaned
