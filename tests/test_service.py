from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from tasktree.errors import InvalidInput, NotFound
from tasktree.models import Subtask, Task, TaskColor, TaskDraft
from tasktree.repositories import InMemoryDocumentStore
from tasktree.schemas import FilterState, TaskCreate, TaskUpdate
from tasktree.serialization import loads
from tasktree.service import TaskManager


def persisted(store: InMemoryDocumentStore, key: str = "todo-tasks"):
    return loads(store.load(key))


class TestAdd:
    def test_scenario_add_subtask_then_delete_parent(self, manager, store):
        milk = manager.add_task({"title": "Buy milk", "tags": ["errand"], "color": "bg-card"})
        assert [t.title for t in manager.tasks] == ["Buy milk"]

        sub = manager.add_task({"title": "2% milk", "tags": [], "color": "bg-card"}, parent_id=milk.id)
        assert isinstance(sub, Subtask)
        assert [s.title for s in manager.get_task(milk.id).subtasks] == ["2% milk"]

        manager.delete_task(milk.id)
        assert manager.tasks == []
        assert manager.get_task(sub.id) is None
        assert persisted(store) == []

    def test_add_appends_and_persists(self, manager, store):
        manager.add_task({"title": "One"})
        manager.add_task({"title": "Two"})
        assert [t.title for t in manager.tasks] == ["One", "Two"]
        assert persisted(store) == manager.tasks
        assert store.save_count == 2

    def test_add_normalizes_input(self, manager):
        node = manager.add_task(
            {"title": "  Trim me  ", "tags": ["a", "a", " b ", ""], "reminder": "2025-03-02T08:00:00Z", "color": "bg-red-50"}
        )
        assert node.title == "Trim me"
        assert node.tags == ("a", "b")
        assert node.reminder == datetime(2025, 3, 2, 8, 0, tzinfo=timezone.utc)
        assert node.color is TaskColor.RED
        assert node.completed is False

    def test_add_accepts_schema_and_draft(self, manager):
        a = manager.add_task(TaskCreate(title="From schema", tags=["x"]))
        b = manager.add_task(TaskDraft(title="From draft"))
        assert (a.title, a.tags) == ("From schema", ("x",))
        assert b.title == "From draft"

    def test_ids_unique_and_created_increasing(self, manager):
        a = manager.add_task({"title": "A"})
        b = manager.add_task({"title": "B"}, parent_id=a.id)
        c = manager.add_task({"title": "C"})
        assert len({a.id, b.id, c.id}) == 3
        assert a.created < b.created < c.created

    def test_blank_title_rejected(self, manager, store):
        with pytest.raises(InvalidInput):
            manager.add_task({"title": "   "})
        with pytest.raises(InvalidInput):
            manager.add_task({"tags": ["x"]})
        assert manager.tasks == []
        assert store.save_count == 0

    def test_bad_color_or_reminder_rejected(self, manager):
        with pytest.raises(InvalidInput):
            manager.add_task({"title": "A", "color": "bg-chartreuse"})
        with pytest.raises(InvalidInput):
            manager.add_task({"title": "A", "reminder": "soon"})

    def test_unknown_parent_raises_not_found(self, manager, store):
        manager.add_task({"title": "A"})
        saves = store.save_count
        with pytest.raises(NotFound):
            manager.add_task({"title": "Orphan"}, parent_id="missing")
        assert [t.title for t in manager.tasks] == ["A"]
        assert store.save_count == saves

    def test_duplicate_id_from_factory_is_skipped(self, store):
        ids = iter(["same", "same", "other"])
        manager = TaskManager(store, id_factory=lambda: next(ids))
        a = manager.add_task({"title": "A"})
        b = manager.add_task({"title": "B"})
        assert (a.id, b.id) == ("same", "other")


class TestUpdate:
    def test_update_completed_only_changes_target(self, manager):
        a = manager.add_task({"title": "A", "tags": ["x"]})
        b = manager.add_task({"title": "B"})
        before = manager.tasks
        assert manager.update_task(b.id, {"completed": True}) is True
        after = manager.tasks
        assert after[0] == before[0]
        assert after[1] == Task(id=b.id, title="B", created=b.created, completed=True)
        assert manager.get_task(a.id).tags == ("x",)

    def test_update_subtask_with_schema(self, manager, store):
        parent = manager.add_task({"title": "Parent"})
        sub = manager.add_task({"title": "Child", "reminder": "2025-01-01T00:00:00Z"}, parent_id=parent.id)
        update = TaskUpdate(title="Renamed child", reminder=None)
        assert manager.update_task(sub.id, update) is True
        node = manager.get_task(sub.id)
        assert node.title == "Renamed child"
        assert node.reminder is None
        assert node.parent_id == parent.id
        assert persisted(store)[0].subtasks[0].title == "Renamed child"

    def test_update_leaves_unspecified_fields(self, manager):
        node = manager.add_task({"title": "A", "tags": ["x"], "color": "bg-blue-50", "reminder": "2025-01-01"})
        manager.update_task(node.id, TaskUpdate(completed=True))
        updated = manager.get_task(node.id)
        assert updated.tags == ("x",)
        assert updated.color is TaskColor.BLUE
        assert updated.reminder == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_update_missing_is_silent(self, manager):
        manager.add_task({"title": "A"})
        before = manager.tasks
        assert manager.update_task("missing", {"completed": True}) is False
        assert manager.tasks == before

    def test_blank_title_on_update_rejected(self, manager):
        node = manager.add_task({"title": "Keep"})
        with pytest.raises(InvalidInput):
            manager.update_task(node.id, {"title": "  "})
        assert manager.get_task(node.id).title == "Keep"

    def test_non_bool_completed_rejected(self, manager, store):
        node = manager.add_task({"title": "Keep"})
        saves = store.save_count
        with pytest.raises(InvalidInput) as excinfo:
            manager.update_task(node.id, {"completed": "false"})
        assert excinfo.value.field == "completed"
        assert manager.get_task(node.id).completed is False
        assert store.save_count == saves

    def test_identity_fields_cannot_be_updated(self, manager):
        node = manager.add_task({"title": "Keep"})
        with pytest.raises(InvalidInput):
            manager.update_task(node.id, {"id": "hijack"})
        assert manager.get_task(node.id) is not None


class TestToggleAndDelete:
    def test_toggle(self, manager):
        node = manager.add_task({"title": "A"})
        assert manager.toggle_complete(node.id) is True
        assert manager.get_task(node.id).completed is True
        assert manager.toggle_complete(node.id) is True
        assert manager.get_task(node.id).completed is False
        assert manager.toggle_complete("missing") is False

    def test_delete_subtask_keeps_parent_and_siblings(self, manager):
        parent = manager.add_task({"title": "P"})
        s1 = manager.add_task({"title": "S1"}, parent_id=parent.id)
        s2 = manager.add_task({"title": "S2"}, parent_id=parent.id)
        other = manager.add_task({"title": "Q"})
        assert manager.delete_task(s1.id) is True
        assert [t.id for t in manager.tasks] == [parent.id, other.id]
        assert [s.id for s in manager.get_task(parent.id).subtasks] == [s2.id]

    def test_delete_missing_is_silent(self, manager):
        manager.add_task({"title": "A"})
        assert manager.delete_task("missing") is False
        assert len(manager.tasks) == 1


class TestQueries:
    def test_tags_and_view(self, manager, now):
        a = manager.add_task({"title": "Banana", "tags": ["fruit"]})
        manager.add_task({"title": "Apple", "tags": ["fruit", "red"]})
        manager.add_task({"title": "Peel", "tags": ["kitchen"]}, parent_id=a.id)
        manager.add_task({"title": "Late", "reminder": now - timedelta(hours=1)})

        assert manager.get_all_tags() == ["fruit", "kitchen", "red"]
        assert [t.title for t in manager.get_filtered_sorted_tasks()] == ["Banana", "Apple", "Late"]
        by_title = manager.get_filtered_sorted_tasks(FilterState(sort_by="title"))
        assert [t.title for t in by_title] == ["Apple", "Banana", "Late"]
        overdue = manager.get_filtered_sorted_tasks(FilterState(status="overdue"))
        assert [t.title for t in overdue] == ["Late"]
        kitchen = manager.get_filtered_sorted_tasks(FilterState(tag="kitchen"))
        assert [t.title for t in kitchen] == ["Banana"]

    def test_tasks_snapshot_is_a_copy(self, manager):
        manager.add_task({"title": "A"})
        snapshot = manager.tasks
        snapshot.clear()
        assert len(manager.tasks) == 1


class TestLoad:
    def test_reload_restores_tree_and_order(self, store, id_factory):
        first = TaskManager(store, id_factory=id_factory)
        b = first.add_task({"title": "Banana", "reminder": "2025-05-01T10:00:00+02:00"})
        first.add_task({"title": "Apple"})
        first.add_task({"title": "Skin"}, parent_id=b.id)

        second = TaskManager(store)
        assert second.tasks == first.tasks
        assert [t.title for t in second.get_filtered_sorted_tasks()] == ["Banana", "Apple"]
        newer = second.add_task({"title": "Cherry"})
        assert newer.created > max(t.created for t in first.tasks)

    def test_malformed_document_starts_empty(self):
        store = InMemoryDocumentStore({"todo-tasks": json.dumps([{"id": "x", "title": "A", "reminder": "garbage"}])})
        manager = TaskManager(store)
        assert manager.tasks == []
        manager.add_task({"title": "Fresh"})
        assert [t.title for t in persisted(store)] == ["Fresh"]

    def test_unreadable_json_starts_empty(self):
        manager = TaskManager(InMemoryDocumentStore({"todo-tasks": "{not json"}))
        assert manager.tasks == []

    def test_custom_storage_key(self):
        store = InMemoryDocumentStore()
        manager = TaskManager(store, storage_key="other")
        manager.add_task({"title": "A"})
        assert store.load("todo-tasks") is None
        assert [t.title for t in persisted(store, "other")] == ["A"]

    def test_legacy_numeric_ids_keep_creation_order(self):
        raw = json.dumps(
            [
                {"id": "1700000000500", "title": "Second", "tags": []},
                {"id": "1700000000100", "title": "First", "tags": []},
            ]
        )
        manager = TaskManager(InMemoryDocumentStore({"todo-tasks": raw}))
        assert [t.title for t in manager.get_filtered_sorted_tasks()] == ["First", "Second"]
        added = manager.add_task({"title": "Third"})
        assert [t.title for t in manager.get_filtered_sorted_tasks()] == ["First", "Second", "Third"]
        assert added.created == 1700000000501
