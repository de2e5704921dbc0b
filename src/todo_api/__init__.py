"""Provide the public `todo_api` package exports."""

from __future__ import annotations

from .task_engine import CachedEntityAccessor, DependencyValidator, TaskEngine

__all__ = ["TaskEngine", "DependencyValidator", "CachedEntityAccessor"]
