"""Load optional API configuration from `.todo_api/config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE,
    DEFAULT_DEPENDENCY_TTL_MINUTES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TASK_TTL_MINUTES,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error


@dataclass(frozen=True)
class CacheSettings:
    task_ttl_minutes: float = DEFAULT_TASK_TTL_MINUTES
    dependency_ttl_minutes: float = DEFAULT_DEPENDENCY_TTL_MINUTES
    invalidate_pages_on_write: bool = False
    default_page_size: int = DEFAULT_PAGE_SIZE

    @property
    def task_ttl_seconds(self) -> float:
        return self.task_ttl_minutes * 60

    @property
    def dependency_ttl_seconds(self) -> float:
        return self.dependency_ttl_minutes * 60


def load_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _positive_number(raw: Any, default: float) -> float:
    if isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def get_cache_settings(config: dict[str, Any]) -> CacheSettings:
    """Build :class:`CacheSettings` from the `cache` and `pagination` blocks.

    Invalid or missing values fall back to the defaults.
    """
    invalidate = _get_nested(config, "cache", "invalidate_pages_on_write")
    page_size = _positive_number(
        _get_nested(config, "pagination", "default_page_size"), DEFAULT_PAGE_SIZE
    )
    return CacheSettings(
        task_ttl_minutes=_positive_number(
            _get_nested(config, "cache", "task_ttl_minutes"), DEFAULT_TASK_TTL_MINUTES
        ),
        dependency_ttl_minutes=_positive_number(
            _get_nested(config, "cache", "dependency_ttl_minutes"), DEFAULT_DEPENDENCY_TTL_MINUTES
        ),
        invalidate_pages_on_write=invalidate if isinstance(invalidate, bool) else False,
        default_page_size=int(page_size),
    )
