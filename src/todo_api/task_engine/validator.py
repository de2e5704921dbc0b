"""Duplicate and cycle checks for proposed dependency edges.

The validator only reads: it takes one snapshot of the persisted edge set per
call and never writes to the store or the cache.  Run it inside the store
transaction that performs the write so the snapshot is the graph the new edge
will actually join.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Optional, Protocol

from ..errors import CircularDependencyError, DuplicateDependencyError
from .model import TaskDependency


class _EdgeSource(Protocol):
    def get(self) -> list[TaskDependency]: ...


class DependencyValidator:
    """Answer whether adding or moving an edge breaks graph integrity.

    Parameters
    ----------
    edges:
        Any object whose ``get()`` returns every persisted
        :class:`TaskDependency`, typically ``uow.dependencies``.
    """

    def __init__(self, edges: _EdgeSource) -> None:
        self._edges = edges

    def _snapshot(self, exclude_id: Optional[int]) -> list[TaskDependency]:
        return [dep for dep in self._edges.get() if exclude_id is None or dep.id != exclude_id]

    def is_duplicate(
        self,
        task_id: int,
        dependent_task_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """Return True if another row already holds the ordered pair.

        Reversed pairs are not duplicates; ``exclude_id`` skips the row being
        updated so it never duplicates itself.
        """
        return any(
            dep.task_id == task_id and dep.dependent_task_id == dependent_task_id
            for dep in self._snapshot(exclude_id)
        )

    def is_circular(
        self,
        task_id: int,
        dependent_task_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        """Return True if adding ``task_id -> dependent_task_id`` closes a cycle.

        A self-loop is the degenerate cycle.  Otherwise we check: can we
        already reach ``task_id`` from ``dependent_task_id`` over existing
        edges?  Visited nodes are never requeued, so diamonds stay linear and
        a graph that already holds a cycle still terminates.
        """
        if task_id == dependent_task_id:
            return True

        adjacency: dict[int, list[int]] = defaultdict(list)
        for dep in self._snapshot(exclude_id):
            adjacency[dep.task_id].append(dep.dependent_task_id)

        visited: set[int] = {dependent_task_id}
        queue: deque[int] = deque([dependent_task_id])
        while queue:
            current = queue.popleft()
            targets = adjacency.get(current, [])
            if task_id in targets:
                return True
            for target in targets:
                if target not in visited:
                    visited.add(target)
                    queue.append(target)
        return False

    def check(
        self,
        task_id: int,
        dependent_task_id: int,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Raise if the edge is a duplicate or would form a cycle."""
        if self.is_duplicate(task_id, dependent_task_id, exclude_id):
            raise DuplicateDependencyError(task_id, dependent_task_id)
        if self.is_circular(task_id, dependent_task_id, exclude_id):
            raise CircularDependencyError(task_id, dependent_task_id)
