"""Exception types shared by the task engine, the HTTP layer and the CLI."""

from __future__ import annotations

from typing import Any


class TodoApiError(Exception):
    """Base class for every error raised by ``todo_api``."""


class EntityNotFoundError(TodoApiError, LookupError):
    """The requested entity id does not exist in the store."""

    def __init__(self, kind: str, entity_id: Any) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} with ID {entity_id} not found.")


class DependencyRejectedError(TodoApiError, ValueError):
    """A dependency write would break graph integrity."""

    reason = "Invalid dependency"

    def __init__(self, task_id: int, dependent_task_id: int) -> None:
        self.task_id = task_id
        self.dependent_task_id = dependent_task_id
        super().__init__(self.reason)


class DuplicateDependencyError(DependencyRejectedError):
    reason = "This dependency already exists"


class CircularDependencyError(DependencyRejectedError):
    reason = "Cannot create a circular dependency"


class StoreError(TodoApiError):
    """The persistence layer failed; callers propagate it unchanged."""


class UniqueConstraintError(StoreError):
    pass


class CacheError(TodoApiError):
    """The cache backend failed or is no longer usable."""
