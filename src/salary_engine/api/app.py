"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salary_engine.api.routes import (
    categories_router,
    employees_router,
    health_router,
    overtime_router,
    ranges_router,
    rules_router,
)
from salary_engine.database import create_schema, init_db
from salary_engine.errors import (
    ConfigurationError,
    ConflictError,
    DependencyCycleError,
    MissingBaseSalaryError,
    NotFoundError,
    ReferentialIntegrityError,
    SalaryEngineError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific class first: NotFoundError is a ValidationError.
ERROR_STATUS: list[tuple[type[SalaryEngineError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, 422),
    (ReferentialIntegrityError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (DependencyCycleError, 422),
    (MissingBaseSalaryError, 422),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: SalaryEngineError) -> int:
    """HTTP status code for an engine error."""
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_context(exc: SalaryEngineError) -> dict[str, Any] | None:
    """Structured details carried by an engine error, if any."""
    if isinstance(exc, NotFoundError):
        return {"entity": exc.entity, "id": str(exc.entity_id)}
    if isinstance(exc, ValidationError) and exc.field:
        return {"field": exc.field}
    if isinstance(exc, ReferentialIntegrityError):
        return {"entity": exc.entity, "dependents": [str(d) for d in exc.dependents]}
    if isinstance(exc, DependencyCycleError):
        return {"category_ids": [str(c) for c in exc.category_ids]}
    if isinstance(exc, MissingBaseSalaryError):
        return {"employee_id": str(exc.employee_id)}
    return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    engine, _ = init_db()
    await create_schema(engine)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Salary Engine API",
        description="Salary category rule evaluation and overtime assignment",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SalaryEngineError)
    async def engine_error_handler(request: Request, exc: SalaryEngineError) -> JSONResponse:
        """Map engine errors to status codes, keeping their message and code."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code, "context": error_context(exc)},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(categories_router, prefix="/api/v1")
    app.include_router(ranges_router, prefix="/api/v1")
    app.include_router(rules_router, prefix="/api/v1")
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(overtime_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
