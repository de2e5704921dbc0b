from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from todo_api.cache import Cache, InMemoryCache
from todo_api.config import CacheSettings
from todo_api.storage import FileStore
from todo_api.task_engine.engine import TaskEngine


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenCache(Cache):
    """Cache whose every operation fails, like an unreachable server."""

    def __init__(self) -> None:
        self.calls = 0

    async def get_string(self, key: str) -> Optional[str]:
        self.calls += 1
        raise ConnectionError("cache down")

    async def set_string(self, key: str, value: str, ttl: float) -> None:
        self.calls += 1
        raise ConnectionError("cache down")

    async def remove(self, key: str) -> None:
        self.calls += 1
        raise ConnectionError("cache down")

    async def keys(self, prefix: str = "") -> list[str]:
        self.calls += 1
        raise ConnectionError("cache down")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".todo_api"
    d.mkdir()
    return d


@pytest.fixture
def store(state_dir: Path) -> FileStore:
    return FileStore(state_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryCache:
    return InMemoryCache(clock=clock)


@pytest.fixture
def settings() -> CacheSettings:
    return CacheSettings()


@pytest.fixture
def engine(store: FileStore, cache: InMemoryCache, settings: CacheSettings) -> TaskEngine:
    return TaskEngine(store, cache, settings)
