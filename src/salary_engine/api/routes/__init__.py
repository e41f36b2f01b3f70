"""API routes."""

from salary_engine.api.routes.categories import router as categories_router
from salary_engine.api.routes.employees import router as employees_router
from salary_engine.api.routes.health import router as health_router
from salary_engine.api.routes.overtime import router as overtime_router
from salary_engine.api.routes.ranges import router as ranges_router
from salary_engine.api.routes.rules import router as rules_router

__all__ = [
    "categories_router",
    "employees_router",
    "health_router",
    "overtime_router",
    "ranges_router",
    "rules_router",
]
