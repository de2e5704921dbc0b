"""String-keyed cache collaborator with absolute expiration.

The engine only needs a handful of async operations (get/set/remove a string,
list live keys by prefix) so any distributed cache can be adapted behind
:class:`Cache`.

* :class:`InMemoryCache` is process-local; tests inject it with a fake clock.
* :class:`FileCache` keeps its entries in ``.todo_api/cache.yaml`` next to the
  store, so the server and CLI invocations against the same project share one
  cache and a write from either side evicts what the other would serve.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import yaml
from loguru import logger

from .constants import CACHE_FILE, CACHE_LOCK_FILE, CACHE_SWEEP_INTERVAL_SECONDS
from .errors import CacheError
from .io_utils import FileLock, _atomic_write_yaml


class Cache(ABC):
    @abstractmethod
    async def get_string(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def set_string(self, key: str, value: str, ttl: float) -> None:
        """Store *value* under *key* for *ttl* seconds from now."""
        raise NotImplementedError

    @abstractmethod
    async def remove(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """Return the unexpired keys starting with *prefix*."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


@dataclass
class _Entry:
    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def _check_value(value: Any) -> None:
    if not isinstance(value, str):
        raise CacheError(f"cache values must be str, got {type(value).__name__}")


class InMemoryCache(Cache):
    """Thread-safe in-memory cache.

    Expiration is absolute: reading an entry never extends its lifetime.
    Expired entries are dropped when read and swept from the whole map at most
    once per ``sweep_interval`` seconds on write.

    Args:
        clock: Monotonic time source in seconds, injectable for tests.
        sweep_interval: Minimum seconds between two full sweeps.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.RLock()
        self._closed = False
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheError("cache is closed")

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept {} expired cache entries", len(expired))

    async def get_string(self, key: str) -> Optional[str]:
        with self._lock:
            self._ensure_open()
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    async def set_string(self, key: str, value: str, ttl: float) -> None:
        _check_value(value)
        with self._lock:
            self._ensure_open()
            now = self._clock()
            self._sweep(now)
            self._entries[key] = _Entry(value=value, expires_at=now + ttl)

    async def remove(self, key: str) -> None:
        with self._lock:
            self._ensure_open()
            self._entries.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            self._ensure_open()
            now = self._clock()
            return [
                key for key, entry in self._entries.items()
                if key.startswith(prefix) and not entry.is_expired(now)
            ]

    async def close(self) -> None:
        with self._lock:
            if not self._closed:
                logger.debug("Closing in-memory cache with {} entries", len(self._entries))
            self._entries.clear()
            self._closed = True


class FileCache(Cache):
    """Cache shared by every process working on one project directory.

    Each operation holds a thread lock plus an OS file lock while it loads,
    changes and atomically rewrites ``cache.yaml``.  Expired entries are
    dropped on every write.  I/O and parse failures surface as
    :class:`CacheError`, which the accessor logs and treats as a miss.

    Args:
        state_dir: The project's ``.todo_api/`` directory.
        clock: Wall-clock time source in seconds; shared across processes.
    """

    def __init__(self, state_dir: Path, clock: Callable[[], float] = time.time) -> None:
        self._path = state_dir / CACHE_FILE
        self._lock_path = state_dir / CACHE_LOCK_FILE
        self._clock = clock
        self._thread_lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, _Entry]:
        if not self._path.exists():
            return {}
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise CacheError(f"Cannot read {self._path.name}: {exc}") from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise CacheError(f"{self._path.name}: expected object, got {type(raw).__name__}")
        entries: dict[str, _Entry] = {}
        for key, row in raw.items():
            if isinstance(row, dict) and isinstance(row.get("value"), str):
                entries[str(key)] = _Entry(value=row["value"], expires_at=float(row.get("expires_at") or 0))
        return entries

    def _save(self, entries: dict[str, _Entry]) -> None:
        data = {key: {"value": e.value, "expires_at": e.expires_at} for key, e in entries.items()}
        try:
            _atomic_write_yaml(self._path, data)
        except OSError as exc:
            raise CacheError(f"Cannot write {self._path.name}: {exc}") from exc

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if self._closed:
            raise CacheError("cache is closed")
        with self._thread_lock:
            try:
                with FileLock(self._lock_path):
                    yield
            except OSError as exc:
                raise CacheError(f"Cannot lock {self._lock_path.name}: {exc}") from exc

    def _live(self, entries: dict[str, _Entry]) -> dict[str, _Entry]:
        now = self._clock()
        return {key: e for key, e in entries.items() if not e.is_expired(now)}

    async def get_string(self, key: str) -> Optional[str]:
        with self._locked():
            entry = self._live(self._load()).get(key)
        return entry.value if entry else None

    async def set_string(self, key: str, value: str, ttl: float) -> None:
        _check_value(value)
        with self._locked():
            entries = self._live(self._load())
            entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)
            self._save(entries)

    async def remove(self, key: str) -> None:
        with self._locked():
            entries = self._load()
            if key not in entries:
                return
            del entries[key]
            self._save(self._live(entries))

    async def keys(self, prefix: str = "") -> list[str]:
        with self._locked():
            return [key for key in self._live(self._load()) if key.startswith(prefix)]

    async def close(self) -> None:
        self._closed = True
