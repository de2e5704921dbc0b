"""File-based store for tasks and dependencies with exclusive transactions.

Both entity kinds live in a single YAML file (``store.yaml``) inside the
project's ``.todo_api/`` directory.  Every read and write goes through
:meth:`FileStore.transaction`, which holds a thread lock plus an OS file lock
for its whole duration, so a check-then-write sequence inside one transaction
cannot interleave with another writer.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

import yaml

from ..constants import STORE_FILE, STORE_LOCK_FILE, STORE_SCHEMA_VERSION
from ..errors import StoreError, UniqueConstraintError
from ..io_utils import FileLock, _atomic_write_yaml
from ..task_engine.model import TaskDependency, TaskItem
from .interfaces import EntityFilter, Repository, Store, UnitOfWork

E = TypeVar("E", TaskItem, TaskDependency)

_COLLECTIONS = ("tasks", "dependencies")


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _empty_state() -> dict[str, Any]:
    return {
        "version": STORE_SCHEMA_VERSION,
        "next_ids": {name: 1 for name in _COLLECTIONS},
        **{name: [] for name in _COLLECTIONS},
    }


def _load_state(path: Path) -> dict[str, Any]:
    """Load the raw store document, returning an empty one if missing."""
    if not path.exists():
        return _empty_state()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise StoreError(f"Cannot read {path.name}: {exc}") from exc
    if raw is None:
        return _empty_state()
    if not isinstance(raw, dict):
        raise StoreError(f"{path.name}: expected object, got {type(raw).__name__}")
    state = _empty_state()
    for name in _COLLECTIONS:
        rows = raw.get(name) or []
        if not isinstance(rows, list):
            raise StoreError(f"{path.name}: '{name}' must be a list")
        state[name] = [row for row in rows if isinstance(row, dict)]
        highest = max((int(row.get("id") or 0) for row in state[name]), default=0)
        stored_next = (raw.get("next_ids") or {}).get(name)
        state["next_ids"][name] = max(int(stored_next or 1), highest + 1)
    return state


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class _FileRepository(Repository[E], Generic[E]):
    """Repository over one collection of an open transaction."""

    def __init__(
        self,
        uow: "_FileUnitOfWork",
        name: str,
        loader: Callable[[dict[str, Any]], E],
        unique_key: Optional[Callable[[E], Any]] = None,
    ) -> None:
        self._uow = uow
        self._name = name
        self._loader = loader
        self._unique_key = unique_key

    @property
    def _rows(self) -> list[dict[str, Any]]:
        return self._uow.state[self._name]

    def _index_of(self, entity_id: Optional[int]) -> Optional[int]:
        if entity_id is None:
            return None
        for idx, row in enumerate(self._rows):
            if row.get("id") == entity_id:
                return idx
        return None

    def _check_unique(self, entity: E) -> None:
        if self._unique_key is None:
            return
        key = self._unique_key(entity)
        for row in self._rows:
            other = self._loader(row)
            if other.id != entity.id and self._unique_key(other) == key:
                raise UniqueConstraintError(
                    f"{self._name}: row {other.id} already holds unique key {key!r}"
                )

    # -- reads --------------------------------------------------------------

    def get(
        self,
        filter: Optional[EntityFilter] = None,
        *,
        page_index: Optional[int] = None,
        page_size: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[E]:
        items = [self._loader(row) for row in self._rows]
        if filter is not None:
            items = [item for item in items if filter(item)]
        items.sort(key=lambda item: item.id or 0, reverse=newest_first)
        if page_index is not None and page_size is not None:
            skip = (page_index - 1) * page_size
            items = items[skip:skip + page_size]
        return items

    def count(self, filter: Optional[EntityFilter] = None) -> int:
        if filter is None:
            return len(self._rows)
        return sum(1 for row in self._rows if filter(self._loader(row)))

    def get_by_id(self, entity_id: int) -> Optional[E]:
        idx = self._index_of(entity_id)
        return self._loader(self._rows[idx]) if idx is not None else None

    # -- mutations ----------------------------------------------------------

    def insert(self, entity: E) -> E:
        self._check_unique(entity)
        next_ids = self._uow.state["next_ids"]
        entity.id = next_ids[self._name]
        next_ids[self._name] = entity.id + 1
        self._rows.append(entity.to_dict())
        self._uow.dirty = True
        return entity

    def update(self, entity: E) -> E:
        idx = self._index_of(entity.id)
        if idx is None:
            raise StoreError(f"{self._name}: cannot update missing row {entity.id}")
        self._check_unique(entity)
        self._rows[idx] = entity.to_dict()
        self._uow.dirty = True
        return entity

    def delete(self, entity: E) -> None:
        idx = self._index_of(entity.id)
        if idx is None:
            raise StoreError(f"{self._name}: cannot delete missing row {entity.id}")
        del self._rows[idx]
        self._uow.dirty = True


class _FileUnitOfWork(UnitOfWork):
    """In-memory copy of the store document.

    Mutations are flushed back to disk by :meth:`save` or when the
    ``transaction`` context-manager exits without an exception.
    """

    def __init__(self, state: dict[str, Any], path: Path) -> None:
        self.state = state
        self.dirty = False
        self._path = path
        self.tasks = _FileRepository[TaskItem](self, "tasks", TaskItem.from_dict)
        self.dependencies = _FileRepository[TaskDependency](
            self,
            "dependencies",
            TaskDependency.from_dict,
            unique_key=lambda dep: dep.edge,
        )

    def save(self) -> None:
        if not self.dirty:
            return
        try:
            _atomic_write_yaml(self._path, self.state)
        except OSError as exc:
            raise StoreError(f"Cannot write {self._path.name}: {exc}") from exc
        self.dirty = False


# ---------------------------------------------------------------------------
# FileStore
# ---------------------------------------------------------------------------

class FileStore(Store):
    """Thread- and process-safe, file-backed store.

    Parameters
    ----------
    state_dir:
        Path to the ``.todo_api/`` directory for the project.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / STORE_FILE
        self._lock_path = state_dir / STORE_LOCK_FILE
        self._thread_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._store_path

    @contextmanager
    def transaction(self) -> Iterator[_FileUnitOfWork]:
        """Acquire the locks, load the store, yield a unit of work, save on exit.

        Usage::

            with store.transaction() as uow:
                dep = uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))
                # saved automatically on exit; discarded if the block raises
        """
        with self._thread_lock:
            with FileLock(self._lock_path):
                uow = _FileUnitOfWork(_load_state(self._store_path), self._store_path)
                yield uow
                uow.save()
