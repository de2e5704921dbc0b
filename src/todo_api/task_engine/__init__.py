from .accessor import DEPENDENCY, TASK, CachedEntityAccessor, EntityKind
from .engine import TaskEngine
from .model import TaskDependency, TaskItem
from .validator import DependencyValidator

__all__ = [
    "TaskEngine",
    "TaskItem",
    "TaskDependency",
    "DependencyValidator",
    "CachedEntityAccessor",
    "EntityKind",
    "TASK",
    "DEPENDENCY",
]
