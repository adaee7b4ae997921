"""
Tests for ListRepository: name uniqueness, partial updates, cascading
deletes and per-list statistics.
"""

import uuid

import pytest

from todo_manager.errors import DuplicateNameError, NotFoundError
from todo_manager.lists import ListRepository
from todo_manager.models import TaskListUpdate
from todo_manager.storage import JsonFileStore
from todo_manager.tasks import TaskRepository


class TestCreateList:

    def test_create_assigns_id_and_timestamps(self, lists):
        task_list = lists.create("Groceries")

        uuid.UUID(task_list.id)
        assert task_list.name == "Groceries"
        assert task_list.created_at == task_list.updated_at
        assert lists.list_all() == [task_list]

    def test_create_trims_name(self, lists):
        assert lists.create("  Work  ").name == "Work"

    def test_duplicate_name_ignores_case(self, lists):
        """'work' collides with 'Work'."""
        lists.create("Work")
        with pytest.raises(DuplicateNameError, match="already exists"):
            lists.create("work")
        assert len(lists.list_all()) == 1

    def test_duplicate_name_ignores_surrounding_whitespace(self, lists):
        lists.create("Work")
        with pytest.raises(DuplicateNameError):
            lists.create(" WORK ")

    def test_list_all_keeps_creation_order(self, lists):
        for name in ("B", "A", "C"):
            lists.create(name)
        assert [item.name for item in lists.list_all()] == ["B", "A", "C"]


class TestReadList:

    def test_get_unknown_returns_none(self, lists):
        assert lists.get(str(uuid.uuid4())) is None

    def test_exists(self, lists):
        task_list = lists.create("Home")
        assert lists.exists(task_list.id)
        assert not lists.exists(str(uuid.uuid4()))


class TestUpdateList:

    def test_rename_bumps_updated_at(self, lists):
        task_list = lists.create("Home")
        updated = lists.update(task_list.id, TaskListUpdate(name=" House "))

        assert updated.name == "House"
        assert updated.created_at == task_list.created_at
        assert updated.updated_at > task_list.updated_at
        assert lists.get(task_list.id) == updated

    def test_rename_to_own_name_in_other_case(self, lists):
        """A list never collides with itself."""
        task_list = lists.create("home")
        assert lists.update(task_list.id, TaskListUpdate(name="Home")).name == "Home"

    def test_rename_collision_raises(self, lists):
        lists.create("Work")
        other = lists.create("Home")
        with pytest.raises(DuplicateNameError):
            lists.update(other.id, TaskListUpdate(name="WORK"))
        assert lists.get(other.id).name == "Home"

    def test_absent_name_preserves_value(self, lists):
        task_list = lists.create("Home")
        assert lists.update(task_list.id, TaskListUpdate()).name == "Home"

    def test_update_unknown_raises(self, lists):
        with pytest.raises(NotFoundError, match="Task list not found"):
            lists.update(str(uuid.uuid4()), TaskListUpdate(name="x"))


class TestDeleteList:

    def test_delete_unknown_returns_false(self, lists):
        assert lists.delete(str(uuid.uuid4())) is False

    def test_delete_cascades_to_tasks(self, lists, tasks):
        doomed = lists.create("Doomed")
        kept = lists.create("Kept")
        tasks.create(doomed.id, "a")
        tasks.create(doomed.id, "b")
        survivor = tasks.create(kept.id, "c")

        assert lists.delete(doomed.id) is True

        assert lists.get(doomed.id) is None
        assert tasks.list_all() == [survivor]

    def test_cascade_survives_restart(self, store, lists, tasks):
        """A fresh store on the same directory sees neither the list nor its tasks."""
        doomed = lists.create("Doomed")
        tasks.create(doomed.id, "a")
        lists.delete(doomed.id)

        restarted = JsonFileStore(store.data_dir)
        assert ListRepository(restarted).list_all() == []
        assert TaskRepository(restarted).list_all() == []

    def test_name_is_reusable_after_delete(self, lists):
        task_list = lists.create("Work")
        lists.delete(task_list.id)
        assert lists.create("work").name == "work"


class TestListStats:

    def test_stats_unknown_list(self, lists):
        assert lists.stats(str(uuid.uuid4())) is None

    def test_stats_empty_list(self, lists):
        task_list = lists.create("Empty")
        stats = lists.stats(task_list.id)
        assert stats.total_tasks == 0
        assert stats.completion_rate == 0.0

    def test_stats_counts_only_own_tasks(self, lists, tasks):
        mine = lists.create("Mine")
        other = lists.create("Other")
        first = tasks.create(mine.id, "one")
        tasks.create(mine.id, "two")
        tasks.create(mine.id, "three")
        tasks.create(other.id, "elsewhere")
        tasks.toggle_completion(first.id)

        stats = lists.stats(mine.id)

        assert stats.total_tasks == 3
        assert stats.completed_tasks == 1
        assert stats.pending_tasks == 2
        assert stats.completion_rate == 33.33
