"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salary_engine.config import Settings, get_settings
from salary_engine.database import get_session


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    One request is one transaction: committed after the handler returns,
    rolled back if it raises.
    """
    async with get_session() as session:
        yield session


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]
