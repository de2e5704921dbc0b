"""Entity model for tasks and the dependency edges between them.

Both entities serialize to plain dicts (``to_dict``/``from_dict``) which are
used unchanged for YAML persistence and for the JSON cache payloads, so a
value read back from either place compares equal to the value written.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from ..constants import DEFAULT_TASK_PRIORITY, DEFAULT_TASK_STATUS


def _optional_int(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(raw)


@dataclass
class TaskItem:
    """A unit of work.  ``id`` is assigned by the store on insert."""

    title: str = ""
    description: str = ""
    priority: str = DEFAULT_TASK_PRIORITY
    status: str = DEFAULT_TASK_STATUS
    due_date: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {"id": data.pop("id"), **data}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskItem":
        due = data.get("due_date")
        return cls(
            id=_optional_int(data.get("id")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            priority=str(data.get("priority") or DEFAULT_TASK_PRIORITY),
            status=str(data.get("status") or DEFAULT_TASK_STATUS),
            due_date=str(due) if due else None,
        )


@dataclass
class TaskDependency:
    """Directed edge ``task_id -> dependent_task_id``.

    ``task_id`` is the task that waits; ``dependent_task_id`` is the task it
    depends on.
    """

    task_id: int = 0
    dependent_task_id: int = 0
    id: Optional[int] = None

    @property
    def edge(self) -> tuple[int, int]:
        return (self.task_id, self.dependent_task_id)

    def touches(self, task_id: int) -> bool:
        return task_id in self.edge

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "task_id": self.task_id, "dependent_task_id": self.dependent_task_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskDependency":
        return cls(
            id=_optional_int(data.get("id")),
            task_id=int(data.get("task_id") or 0),
            dependent_task_id=int(data.get("dependent_task_id") or 0),
        )
