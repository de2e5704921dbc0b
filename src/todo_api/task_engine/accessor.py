"""Read-through / write-through cache in front of the store.

Key space
---------
* ``<Kind>_<id>`` holds one serialized entity.
* ``<Kind>_Page<p>_Size<s>`` holds one serialized listing page.

Entity keys are refreshed or evicted by every successful write.  Page keys
cannot be enumerated from an entity, so they are found by listing the cache
for the ``<Kind>_Page`` prefix.  Writes only drop them when
``CacheSettings.invalidate_pages_on_write`` is set; otherwise a cached page may
be stale for at most the kind's TTL.  A page is cached as one value, so a
reader sees either the whole cached page or a fresh fetch.

A cache fill (store read followed by cache writes) and a write (store commit
followed by cache refresh) never interleave within one accessor, so a fill
cannot put back a row that a concurrent write already replaced.

Cache errors never fail a request: they are logged and the accessor falls back
to the store.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from ..cache import Cache
from ..config import CacheSettings
from ..constants import DEPENDENCY_CACHE_NAME, TASK_CACHE_NAME
from ..errors import EntityNotFoundError
from ..storage.interfaces import Repository, Store, UnitOfWork
from .model import TaskDependency, TaskItem


@dataclass(frozen=True)
class EntityKind:
    cache_name: str
    label: str
    repository: str
    entity_cls: type
    newest_first: bool = False

    def repo(self, uow: UnitOfWork) -> Repository[Any]:
        return getattr(uow, self.repository)


TASK = EntityKind(TASK_CACHE_NAME, "Task", "tasks", TaskItem, newest_first=True)
DEPENDENCY = EntityKind(DEPENDENCY_CACHE_NAME, "Task Dependency", "dependencies", TaskDependency)

# Called inside the write transaction with the proposed entity.  Raise to veto
# the write; return (kind, id) pairs for any other rows the hook changed.
BeforeWrite = Callable[[UnitOfWork, Any], Optional[Iterable[tuple[EntityKind, int]]]]


def entity_key(kind: EntityKind, entity_id: int) -> str:
    return f"{kind.cache_name}_{entity_id}"


def page_key(kind: EntityKind, page_index: int, page_size: int) -> str:
    return f"{kind.cache_name}_Page{page_index}_Size{page_size}"


def page_prefix(kind: EntityKind) -> str:
    return f"{kind.cache_name}_Page"


class CachedEntityAccessor:
    """Serve entity reads from the cache and keep it coherent on writes.

    Parameters
    ----------
    store:
        Shared :class:`Store`; every operation opens its own transaction.
    cache:
        Shared :class:`Cache`.
    settings:
        TTLs and the page invalidation policy.
    """

    def __init__(self, store: Store, cache: Cache, settings: Optional[CacheSettings] = None) -> None:
        self.store = store
        self.cache = cache
        self.settings = settings or CacheSettings()
        # Held from a store read or commit until the matching cache writes end.
        self._coherence_lock = asyncio.Lock()

    def ttl_for(self, kind: EntityKind) -> float:
        if kind is TASK:
            return self.settings.task_ttl_seconds
        return self.settings.dependency_ttl_seconds

    # ------------------------------------------------------------------
    # Cache primitives (never raise)
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.cache.get_string(key)
        except Exception as exc:
            logger.warning("Cache read failed for {}: {}", key, exc)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry {}", key)
            await self._cache_remove(key)
            return None

    async def _cache_set(self, key: str, payload: Any, ttl: float) -> None:
        try:
            await self.cache.set_string(key, json.dumps(payload), ttl)
        except Exception as exc:
            logger.warning("Cache write failed for {}: {}", key, exc)

    async def _cache_remove(self, key: str) -> None:
        try:
            await self.cache.remove(key)
        except Exception as exc:
            logger.warning("Cache remove failed for {}: {}", key, exc)

    async def _cache_entity(self, kind: EntityKind, entity: Any) -> None:
        await self._cache_set(entity_key(kind, entity.id), entity.to_dict(), self.ttl_for(kind))

    async def tracked_pages(self, kind: EntityKind) -> set[str]:
        """Return the live page keys of *kind*; empty if the cache fails."""
        try:
            return set(await self.cache.keys(page_prefix(kind)))
        except Exception as exc:
            logger.warning("Cache key listing failed for {}: {}", kind.cache_name, exc)
            return set()

    async def invalidate_pages(self, kind: EntityKind) -> int:
        """Remove every cached page key of *kind*; return how many."""
        keys = await self.tracked_pages(kind)
        for key in sorted(keys):
            await self._cache_remove(key)
        if keys:
            logger.debug("Invalidated {} cached {} pages", len(keys), kind.cache_name)
        return len(keys)

    async def _after_write(self, kinds: Iterable[EntityKind]) -> None:
        if not self.settings.invalidate_pages_on_write:
            return
        for kind in {k.cache_name: k for k in kinds}.values():
            await self.invalidate_pages(kind)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, kind: EntityKind, entity_id: int) -> Any:
        """Return one entity, populating its key on a cache miss.

        Raises :class:`EntityNotFoundError` if the store has no such row.
        """
        key = entity_key(kind, entity_id)
        cached = await self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit {}", key)
            return kind.entity_cls.from_dict(cached)

        logger.debug("Cache miss {}", key)
        async with self._coherence_lock:
            with self.store.transaction() as uow:
                entity = kind.repo(uow).get_by_id(entity_id)
            if entity is None:
                raise EntityNotFoundError(kind.label, entity_id)
            await self._cache_entity(kind, entity)
        return entity

    async def get_page(self, kind: EntityKind, page_index: int, page_size: int) -> list[Any]:
        """Return one listing page; a page past the end is empty, not an error.

        Raises ``ValueError`` if *page_index* or *page_size* is below 1.
        """
        if page_index < 1 or page_size < 1:
            raise ValueError(f"page_index and page_size must be >= 1, got {page_index}, {page_size}")
        key = page_key(kind, page_index, page_size)
        cached = await self._cache_get(key)
        if isinstance(cached, list):
            logger.debug("Cache hit {}", key)
            return [kind.entity_cls.from_dict(item) for item in cached]

        logger.debug("Cache miss {}", key)
        skip = (page_index - 1) * page_size
        async with self._coherence_lock:
            with self.store.transaction() as uow:
                repo = kind.repo(uow)
                if skip >= repo.count():
                    return []
                items = repo.get(page_index=page_index, page_size=page_size, newest_first=kind.newest_first)

            for item in items:
                await self._cache_entity(kind, item)
            await self._cache_set(key, [item.to_dict() for item in items], self.ttl_for(kind))
        return items

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, kind: EntityKind, entity: Any, before_write: Optional[BeforeWrite] = None) -> Any:
        """Insert *entity*, commit, then write its entity key."""
        async with self._coherence_lock:
            with self.store.transaction() as uow:
                touched = list((before_write(uow, entity) if before_write else None) or ())
                kind.repo(uow).insert(entity)
                uow.save()

            logger.info("Created {} {}", kind.cache_name, entity.id)
            await self._cache_entity(kind, entity)
            await self._evict(touched)
            await self._after_write([kind, *(k for k, _ in touched)])
        return entity

    async def update(
        self,
        kind: EntityKind,
        entity_id: int,
        changes: dict[str, Any],
        before_write: Optional[BeforeWrite] = None,
    ) -> Any:
        """Apply *changes* to an existing row, commit, then refresh its key."""
        allowed = {f.name for f in fields(kind.entity_cls)} - {"id"}
        unknown = set(changes) - allowed
        if unknown:
            raise TypeError(f"Unknown {kind.cache_name} fields: {sorted(unknown)}")

        async with self._coherence_lock:
            with self.store.transaction() as uow:
                repo = kind.repo(uow)
                existing = repo.get_by_id(entity_id)
                if existing is None:
                    raise EntityNotFoundError(kind.label, entity_id)
                proposed = replace(existing, **changes)
                touched = list((before_write(uow, proposed) if before_write else None) or ())
                repo.update(proposed)
                uow.save()

            logger.info("Updated {} {}", kind.cache_name, entity_id)
            await self._cache_entity(kind, proposed)
            await self._evict(touched)
            await self._after_write([kind, *(k for k, _ in touched)])
        return proposed

    async def delete(self, kind: EntityKind, entity_id: int, before_write: Optional[BeforeWrite] = None) -> Any:
        """Delete an existing row, commit, then evict its key and any cascaded keys."""
        async with self._coherence_lock:
            with self.store.transaction() as uow:
                repo = kind.repo(uow)
                existing = repo.get_by_id(entity_id)
                if existing is None:
                    raise EntityNotFoundError(kind.label, entity_id)
                touched = list((before_write(uow, existing) if before_write else None) or ())
                repo.delete(existing)
                uow.save()

            logger.info("Deleted {} {}", kind.cache_name, entity_id)
            await self._cache_remove(entity_key(kind, entity_id))
            await self._evict(touched)
            await self._after_write([kind, *(k for k, _ in touched)])
        return existing

    async def _evict(self, touched: Iterable[tuple[EntityKind, int]]) -> None:
        for other_kind, other_id in touched:
            await self._cache_remove(entity_key(other_kind, other_id))
