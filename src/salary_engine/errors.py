"""Error taxonomy for the salary engine.

Every error carries a stable ``code`` so that batch results and the HTTP
layer can report the kind of failure without parsing messages.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID


class SalaryEngineError(Exception):
    """Base class for all engine errors."""

    code = "SALARY_ENGINE_ERROR"


class ValidationError(SalaryEngineError):
    """Raised when input has the wrong shape or an out-of-range value."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(ValidationError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ReferentialIntegrityError(SalaryEngineError):
    """Raised when a change is blocked by dependent records."""

    code = "REFERENTIAL_INTEGRITY"

    def __init__(self, entity: str, entity_id: UUID, dependents: Iterable[UUID] = ()):
        self.entity = entity
        self.entity_id = entity_id
        self.dependents = list(dependents)
        msg = f"{entity} {entity_id} is referenced by {len(self.dependents)} rule(s)"
        super().__init__(msg)


class DependencyCycleError(SalaryEngineError):
    """Raised when rules reference each other in a cycle."""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, category_ids: Iterable[UUID], names: dict[UUID, str] | None = None):
        self.category_ids = list(category_ids)
        labels = [(names or {}).get(c, str(c)) for c in self.category_ids]
        super().__init__(f"Rule dependency cycle between categories: {' -> '.join(labels)}")


class ConfigurationError(SalaryEngineError):
    """Raised when required configuration, such as a well-known category, is missing."""

    code = "CONFIGURATION_ERROR"


class MissingBaseSalaryError(SalaryEngineError):
    """Raised when an employee has no base salary to calculate from."""

    code = "MISSING_BASE_SALARY"

    def __init__(self, employee_id: UUID):
        self.employee_id = employee_id
        super().__init__(f"No base salary configured for employee {employee_id}")


class ConflictError(SalaryEngineError):
    """Raised on a unique-key collision that an upsert does not resolve."""

    code = "CONFLICT"
