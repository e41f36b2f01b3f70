"""Pytest fixtures for salary engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from salary_engine.config import OvertimeAssignmentPolicy, Settings
from salary_engine.models import (
    Base,
    CategoryRule,
    EmployeeSalary,
    OvertimeRequest,
    SalaryCategory,
    SalaryRange,
)

# One in-memory SQLite database per test; StaticPool keeps the single
# connection alive so every session sees the same tables.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_settings(**overrides) -> Settings:
    """Settings for tests, independent of the environment."""
    values = dict(
        database_url=TEST_DATABASE_URL,
        database_url_sync="sqlite://",
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        overtime_category_id=None,
        overtime_assignment_policy=OvertimeAssignmentPolicy.SUM,
    )
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def engine():
    """Create test database engine with the full schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ============================================================================
# Master data builders
# ============================================================================


async def add_category(
    session: AsyncSession,
    name: str,
    kind: str = "deduction",
    is_percentage_based: bool = True,
) -> SalaryCategory:
    category = SalaryCategory(
        category_id=uuid4(),
        name=name,
        kind=kind,
        is_percentage_based=is_percentage_based,
    )
    session.add(category)
    await session.flush()
    return category


async def add_range(
    session: AsyncSession,
    name: str,
    min_amount: str,
    max_amount: str | None,
    percentage: str,
) -> SalaryRange:
    salary_range = SalaryRange(
        range_id=uuid4(),
        name=name,
        min_amount=Decimal(min_amount),
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        percentage=Decimal(percentage),
    )
    session.add(salary_range)
    await session.flush()
    return salary_range


async def add_rule(
    session: AsyncSession,
    category: SalaryCategory,
    calculation_type: str,
    value: str,
    salary_range: SalaryRange | None = None,
    applies_to: SalaryCategory | None = None,
) -> CategoryRule:
    rule = CategoryRule(
        rule_id=uuid4(),
        category_id=category.category_id,
        range_id=salary_range.range_id if salary_range else None,
        calculation_type=calculation_type,
        value=Decimal(value),
        applies_to_category_id=applies_to.category_id if applies_to else None,
    )
    session.add(rule)
    await session.flush()
    return rule


async def add_employee(session: AsyncSession, base_amount: str | None) -> UUID:
    employee_id = uuid4()
    session.add(
        EmployeeSalary(
            employee_id=employee_id,
            base_amount=Decimal(base_amount) if base_amount is not None else None,
        )
    )
    await session.flush()
    return employee_id


async def add_overtime_request(
    session: AsyncSession,
    employee_id: UUID,
    on: date,
    hours: str,
    status: str = "approved",
) -> OvertimeRequest:
    request = OvertimeRequest(
        overtime_request_id=uuid4(),
        employee_id=employee_id,
        date=on,
        hours=Decimal(hours),
        status=status,
    )
    session.add(request)
    await session.flush()
    return request


# ============================================================================
# Scenario fixtures
# ============================================================================


@pytest_asyncio.fixture
async def apit_brackets(session) -> list[SalaryRange]:
    """Income-tax style brackets: 0-50k at 0%, 50k-100k at 6%, 100k+ at 12%."""
    return [
        await add_range(session, "Tax free", "0", "50000", "0"),
        await add_range(session, "Band 1", "50000", "100000", "6"),
        await add_range(session, "Band 2", "100000", None, "12"),
    ]


@pytest_asyncio.fixture
async def epf(session) -> SalaryCategory:
    """Pension deduction at 8.5% of base salary."""
    category = await add_category(session, "EPF", "deduction")
    await add_rule(session, category, "percentage", "8.5")
    return category


@pytest_asyncio.fixture
async def transport(session) -> SalaryCategory:
    """Fixed transport allowance of 5000."""
    category = await add_category(session, "Transport", "allowance", is_percentage_based=False)
    await add_rule(session, category, "fixed", "5000")
    return category
