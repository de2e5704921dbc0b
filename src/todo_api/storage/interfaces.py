from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable, Generic, Optional, TypeVar

from ..task_engine.model import TaskDependency, TaskItem

E = TypeVar("E")

EntityFilter = Callable[[E], bool]


class Repository(ABC, Generic[E]):
    @abstractmethod
    def get(
        self,
        filter: Optional[EntityFilter] = None,
        *,
        page_index: Optional[int] = None,
        page_size: Optional[int] = None,
        newest_first: bool = False,
    ) -> list[E]:
        """Return matching rows ordered by id; all rows when no paging is given."""
        raise NotImplementedError

    @abstractmethod
    def count(self, filter: Optional[EntityFilter] = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, entity_id: int) -> Optional[E]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, entity: E) -> E:
        """Stage *entity* for insertion and assign its id."""
        raise NotImplementedError

    @abstractmethod
    def update(self, entity: E) -> E:
        raise NotImplementedError

    @abstractmethod
    def delete(self, entity: E) -> None:
        raise NotImplementedError


class UnitOfWork(ABC):
    tasks: Repository[TaskItem]
    dependencies: Repository[TaskDependency]

    @abstractmethod
    def save(self) -> None:
        """Commit pending writes."""
        raise NotImplementedError


class Store(ABC):
    @abstractmethod
    def transaction(self) -> AbstractContextManager[UnitOfWork]:
        """Yield a unit of work that holds the store exclusively until exit."""
        raise NotImplementedError
