"""Tests for the YAML-backed store (storage/file_store.py)."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import yaml

from todo_api.errors import StoreError, UniqueConstraintError
from todo_api.storage import FileStore
from todo_api.task_engine.model import TaskDependency, TaskItem


class TestTransactions:
    def test_empty_read(self, store: FileStore) -> None:
        with store.transaction() as uow:
            assert uow.tasks.get() == []
            assert uow.dependencies.count() == 0
        assert not store.path.exists()

    def test_insert_assigns_sequential_ids(self, store: FileStore) -> None:
        with store.transaction() as uow:
            first = uow.tasks.insert(TaskItem(title="First"))
            second = uow.tasks.insert(TaskItem(title="Second"))
        assert (first.id, second.id) == (1, 2)

        with store.transaction() as uow:
            assert [t.title for t in uow.tasks.get()] == ["First", "Second"]

    def test_ids_are_not_reused_after_delete(self, store: FileStore) -> None:
        with store.transaction() as uow:
            task = uow.tasks.insert(TaskItem(title="Gone"))
        with store.transaction() as uow:
            uow.tasks.delete(task)
        with store.transaction() as uow:
            assert uow.tasks.insert(TaskItem(title="Next")).id == 2

    def test_exception_discards_pending_writes(self, store: FileStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction() as uow:
                uow.tasks.insert(TaskItem(title="Never saved"))
                raise RuntimeError("boom")

        with store.transaction() as uow:
            assert uow.tasks.count() == 0

    def test_explicit_save_commits_before_exit(self, store: FileStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction() as uow:
                uow.tasks.insert(TaskItem(title="Saved"))
                uow.save()
                uow.tasks.insert(TaskItem(title="Lost"))
                raise RuntimeError("boom")

        with store.transaction() as uow:
            assert [t.title for t in uow.tasks.get()] == ["Saved"]

    def test_returned_entities_are_copies(self, store: FileStore) -> None:
        with store.transaction() as uow:
            uow.tasks.insert(TaskItem(title="Original"))
        with store.transaction() as uow:
            uow.tasks.get_by_id(1).title = "Changed without update"
        with store.transaction() as uow:
            assert uow.tasks.get_by_id(1).title == "Original"

    def test_update_and_delete_missing_rows_raise(self, store: FileStore) -> None:
        with store.transaction() as uow:
            with pytest.raises(StoreError):
                uow.tasks.update(TaskItem(id=9, title="Nope"))
            with pytest.raises(StoreError):
                uow.tasks.delete(TaskItem(id=9))

    def test_corrupt_file_raises_store_error(self, store: FileStore) -> None:
        store.path.write_text("tasks: [unclosed", encoding="utf-8")
        with pytest.raises(StoreError):
            with store.transaction():
                pass

    def test_persisted_document_layout(self, store: FileStore) -> None:
        with store.transaction() as uow:
            uow.tasks.insert(TaskItem(title="A", due_date="2026-01-02T00:00:00"))
            uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))

        raw = yaml.safe_load(store.path.read_text(encoding="utf-8"))
        assert raw["version"] == 1
        assert raw["next_ids"] == {"tasks": 2, "dependencies": 2}
        assert raw["tasks"][0]["due_date"] == "2026-01-02T00:00:00"
        assert raw["dependencies"] == [{"id": 1, "task_id": 1, "dependent_task_id": 2}]


class TestQueries:
    @pytest.fixture
    def seeded(self, store: FileStore) -> FileStore:
        with store.transaction() as uow:
            for i in range(1, 8):
                uow.tasks.insert(TaskItem(title=f"T{i}", status="done" if i % 2 else "todo"))
        return store

    def test_paging_oldest_first(self, seeded: FileStore) -> None:
        with seeded.transaction() as uow:
            page = uow.tasks.get(page_index=2, page_size=3)
        assert [t.id for t in page] == [4, 5, 6]

    def test_paging_newest_first(self, seeded: FileStore) -> None:
        with seeded.transaction() as uow:
            page = uow.tasks.get(page_index=1, page_size=3, newest_first=True)
            last = uow.tasks.get(page_index=3, page_size=3, newest_first=True)
        assert [t.id for t in page] == [7, 6, 5]
        assert [t.id for t in last] == [1]

    def test_filter_and_count(self, seeded: FileStore) -> None:
        with seeded.transaction() as uow:
            done = uow.tasks.get(lambda t: t.status == "done")
            assert [t.id for t in done] == [1, 3, 5, 7]
            assert uow.tasks.count(lambda t: t.status == "todo") == 3
            assert uow.tasks.count() == 7


class TestDependencyUniqueness:
    def test_duplicate_pair_rejected_by_store(self, store: FileStore) -> None:
        with store.transaction() as uow:
            uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))
            with pytest.raises(UniqueConstraintError):
                uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))
            uow.dependencies.insert(TaskDependency(task_id=2, dependent_task_id=1))

    def test_update_to_existing_pair_rejected(self, store: FileStore) -> None:
        with store.transaction() as uow:
            uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))
            moved = uow.dependencies.insert(TaskDependency(task_id=3, dependent_task_id=4))
            moved.task_id, moved.dependent_task_id = 1, 2
            with pytest.raises(UniqueConstraintError):
                uow.dependencies.update(moved)

    def test_update_keeping_own_pair_allowed(self, store: FileStore) -> None:
        with store.transaction() as uow:
            dep = uow.dependencies.insert(TaskDependency(task_id=1, dependent_task_id=2))
            uow.dependencies.update(dep)


def test_concurrent_transactions_serialize(state_dir: Path) -> None:
    # Separate store instances share only the lock file.
    stores = [FileStore(state_dir) for _ in range(4)]
    barrier = threading.Barrier(len(stores))

    def _insert_many(s: FileStore) -> None:
        barrier.wait()
        for _ in range(10):
            with s.transaction() as uow:
                uow.tasks.insert(TaskItem(title="x"))

    threads = [threading.Thread(target=_insert_many, args=(s,)) for s in stores]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    with stores[0].transaction() as uow:
        ids = [t.id for t in uow.tasks.get()]
    assert ids == list(range(1, 41))
