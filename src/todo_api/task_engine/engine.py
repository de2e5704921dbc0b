"""Task engine: CRUD for tasks and validated CRUD for their dependencies.

This is the entry-point used by the HTTP routers and the CLI.  It wraps
:class:`CachedEntityAccessor` with business rules: dependency writes are
validated inside the store transaction that performs them, and deleting a
task removes every dependency that references it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from loguru import logger

from ..cache import Cache
from ..config import CacheSettings
from ..errors import DependencyRejectedError
from ..storage.interfaces import Store, UnitOfWork
from .accessor import DEPENDENCY, TASK, CachedEntityAccessor, EntityKind
from .model import TaskDependency, TaskItem
from .validator import DependencyValidator


class TaskEngine:
    """Manage tasks and the dependency graph between them.

    Parameters
    ----------
    store:
        Shared store collaborator.
    cache:
        Shared cache collaborator.
    settings:
        Cache TTLs, page invalidation policy and default page size.
    """

    def __init__(self, store: Store, cache: Cache, settings: Optional[CacheSettings] = None) -> None:
        self.settings = settings or CacheSettings()
        self.accessor = CachedEntityAccessor(store, cache, self.settings)
        # Dependency writes are serialized in-process; the store transaction
        # covers other processes.
        self._dependency_write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def list_tasks(self, page_index: int = 1, page_size: Optional[int] = None) -> list[TaskItem]:
        return await self.accessor.get_page(TASK, page_index, page_size or self.settings.default_page_size)

    async def get_task(self, task_id: int) -> TaskItem:
        return await self.accessor.get(TASK, task_id)

    async def create_task(
        self,
        title: str,
        description: str = "",
        priority: Optional[str] = None,
        status: Optional[str] = None,
        due_date: Optional[str] = None,
    ) -> TaskItem:
        task = TaskItem.from_dict({
            "title": title,
            "description": description,
            "priority": priority,
            "status": status,
            "due_date": due_date,
        })
        return await self.accessor.create(TASK, task)

    async def update_task(self, task_id: int, **changes: Any) -> TaskItem:
        """Replace the mutable fields given in *changes*."""
        return await self.accessor.update(TASK, task_id, changes)

    async def delete_task(self, task_id: int) -> TaskItem:
        """Delete a task and every dependency row that references it."""
        def _cascade(uow: UnitOfWork, task: TaskItem) -> list[tuple[EntityKind, int]]:
            removed: list[tuple[EntityKind, int]] = []
            for dep in uow.dependencies.get(lambda d: d.touches(task.id)):
                uow.dependencies.delete(dep)
                removed.append((DEPENDENCY, dep.id))
            if removed:
                logger.info("Removing {} dependencies of task {}", len(removed), task.id)
            return removed

        return await self.accessor.delete(TASK, task_id, before_write=_cascade)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    async def list_dependencies(self, page_index: int = 1, page_size: Optional[int] = None) -> list[TaskDependency]:
        return await self.accessor.get_page(DEPENDENCY, page_index, page_size or self.settings.default_page_size)

    async def get_dependency(self, dependency_id: int) -> TaskDependency:
        return await self.accessor.get(DEPENDENCY, dependency_id)

    async def create_dependency(self, task_id: int, dependent_task_id: int) -> TaskDependency:
        """Persist ``task_id -> dependent_task_id``.

        Raises :class:`DuplicateDependencyError` or
        :class:`CircularDependencyError` if the edge would break the graph.
        """
        def _validate(uow: UnitOfWork, dep: TaskDependency) -> None:
            DependencyValidator(uow.dependencies).check(dep.task_id, dep.dependent_task_id)

        async with self._dependency_write_lock:
            try:
                return await self.accessor.create(
                    DEPENDENCY,
                    TaskDependency(task_id=task_id, dependent_task_id=dependent_task_id),
                    before_write=_validate,
                )
            except DependencyRejectedError as exc:
                logger.info("Rejected dependency {} -> {}: {}", task_id, dependent_task_id, exc)
                raise

    async def update_dependency(self, dependency_id: int, task_id: int, dependent_task_id: int) -> TaskDependency:
        """Move an existing edge, validating against every other row."""
        def _validate(uow: UnitOfWork, dep: TaskDependency) -> None:
            DependencyValidator(uow.dependencies).check(
                dep.task_id, dep.dependent_task_id, exclude_id=dep.id
            )

        async with self._dependency_write_lock:
            try:
                return await self.accessor.update(
                    DEPENDENCY,
                    dependency_id,
                    {"task_id": task_id, "dependent_task_id": dependent_task_id},
                    before_write=_validate,
                )
            except DependencyRejectedError as exc:
                logger.info("Rejected update of dependency {}: {}", dependency_id, exc)
                raise

    async def delete_dependency(self, dependency_id: int) -> TaskDependency:
        async with self._dependency_write_lock:
            return await self.accessor.delete(DEPENDENCY, dependency_id)
