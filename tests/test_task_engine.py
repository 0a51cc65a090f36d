"""Tests for the task engine (board/engine.py) and store (board/store.py)."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from project_hub.board.engine import TaskEngine
from project_hub.board.graph import DependencyCycleError, DependencyError
from project_hub.board.model import Task, TaskStatus
from project_hub.board.store import TaskStore
from project_hub.config import BoardConfig


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    d = tmp_path / ".project_hub"
    d.mkdir()
    return d


@pytest.fixture
def engine(state_dir: Path) -> TaskEngine:
    return TaskEngine(state_dir)


@pytest.fixture
def store(state_dir: Path) -> TaskStore:
    return TaskStore(state_dir)


# ---------------------------------------------------------------------------
# Store tests
# ---------------------------------------------------------------------------

class TestTaskStore:
    def test_empty_read(self, store: TaskStore) -> None:
        assert store.read_snapshot() == []

    def test_add_and_read(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="t1", title="First"))
            tx.add(Task(id="t2", title="Second"))

        tasks = store.read_snapshot()
        assert [t.id for t in tasks] == ["t1", "t2"]

    def test_duplicate_add_raises(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="t1", title="First"))
            with pytest.raises(ValueError, match="already exists"):
                tx.add(Task(id="t1", title="Duplicate"))

    def test_get_one(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="t1", title="Test"))

        t = store.get_one("t1")
        assert t is not None
        assert t.title == "Test"
        assert store.get_one("nonexistent") is None

    def test_clean_transaction_does_not_write(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.get("missing")
        assert not store.path.exists()

    def test_failed_transaction_does_not_write(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="t1", title="Kept"))

        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.get("t1").title = "Lost"
                tx.dirty = True
                raise RuntimeError("boom")

        assert store.get_one("t1").title == "Kept"

    def test_remove_rebuilds_index(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            for tid in ("a", "b", "c"):
                tx.add(Task(id=tid))
        with store.transaction() as tx:
            assert tx.remove("a") is not None
            assert tx.get("c").id == "c"
            assert tx.remove("a") is None

    def test_find_filters(self, store: TaskStore) -> None:
        with store.transaction() as tx:
            tx.add(Task(id="a", title="Login page", project_id="p1", assignee_id="u1"))
            tx.add(Task(id="b", title="Logout", project_id="p2", status=TaskStatus.DONE))
            tx.add(Task(id="c", title="Signup", project_id="p1", description="login flow"))
        with store.transaction() as tx:
            assert [t.id for t in tx.find(project_id="p1")] == ["a", "c"]
            assert [t.id for t in tx.find(status="Done")] == ["b"]
            assert [t.id for t in tx.find(assignee_id="u1")] == ["a"]
            assert [t.id for t in tx.find(search="LOGIN")] == ["a", "c"]


# ---------------------------------------------------------------------------
# Engine tests
# ---------------------------------------------------------------------------

class TestCreate:
    def test_create_appends_to_todo(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        assert a.status == TaskStatus.TODO
        assert (a.order, b.order) == (10, 20)

    def test_orders_are_per_project(self, engine: TaskEngine) -> None:
        engine.create_task("A", "p1")
        other = engine.create_task("X", "p2")
        assert other.order == 10

    def test_custom_increment(self, state_dir: Path) -> None:
        engine = TaskEngine(state_dir, BoardConfig(order_increment=1))
        engine.create_task("A", "p1")
        assert engine.create_task("B", "p1").order == 2

    def test_invalid_priority(self, engine: TaskEngine) -> None:
        with pytest.raises(ValueError):
            engine.create_task("A", "p1", priority="Urgent")

    def test_persisted(self, engine: TaskEngine, state_dir: Path) -> None:
        task = engine.create_task("A", "p1", due_date="2024-05-01", reminder="1d")
        reloaded = TaskEngine(state_dir).get_task(task.id)
        assert reloaded is not None
        assert reloaded.due_date == "2024-05-01"
        assert reloaded.reminder is not None


class TestMove:
    def test_move_before_first_task(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        moved = engine.move_task(a.id, b.id, "ToDo")
        assert moved is not None
        assert moved.order == 10
        assert engine.get_task(b.id).order == 20

    def test_move_between(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        c = engine.create_task("C", "p1")
        moved = engine.move_task(c.id, b.id, TaskStatus.TODO)
        assert moved.order == 15
        board = engine.get_board("p1")
        assert [card["id"] for card in board["ToDo"]] == [a.id, c.id, b.id]

    def test_append_into_empty_column(self, engine: TaskEngine) -> None:
        c = engine.create_task("C", "p1")
        moved = engine.move_task(c.id, None, "Done")
        assert moved.status == TaskStatus.DONE
        assert moved.order == 10
        assert moved.completed_at is not None

    def test_missing_target_appends(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        engine.create_task("B", "p1")
        moved = engine.move_task(a.id, "ghost", "ToDo")
        assert moved.order == 30

    def test_only_dragged_task_changes(self, engine: TaskEngine) -> None:
        tasks = [engine.create_task(t, "p1") for t in "ABCD"]
        before = {t.id: (t.status, t.order) for t in tasks[:3]}
        engine.move_task(tasks[3].id, tasks[1].id, "ToDo")
        after = {t.id: (t.status, t.order) for t in engine.list_tasks(project_id="p1") if t.id in before}
        assert after == before

    def test_unknown_task(self, engine: TaskEngine) -> None:
        assert engine.move_task("nope", None, "Done") is None

    def test_invalid_status(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        with pytest.raises(ValueError, match="Unknown status"):
            engine.move_task(a.id, None, "Archived")

    def test_blocked_task_can_still_move(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        assert engine.move_task(a.id, None, "InProgress").status == TaskStatus.IN_PROGRESS

    def test_move_emits_event(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        engine.move_task(a.id, None, "Review")
        events = engine.get_task_events(a.id)
        assert [e["type"] for e in events] == ["task.created", "task.moved"]
        assert events[-1]["details"]["from_status"] == "ToDo"


class TestDependencies:
    def test_add_and_block(self, engine: TaskEngine) -> None:
        x = engine.create_task("X", "p1")
        y = engine.create_task("Y", "p1")
        engine.add_dependency(x.id, y.id)
        assert engine.is_blocked(x.id) is True
        assert engine.blocking_count(y.id) == 1

        engine.move_task(y.id, None, "Done")
        assert engine.is_blocked(x.id) is False

    def test_cycle_rejected_and_graph_unchanged(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        with pytest.raises(DependencyCycleError):
            engine.add_dependency(b.id, a.id)
        assert engine.get_task(b.id).dependencies == []
        assert engine.get_dependency_graph("p1") == {a.id: [b.id], b.id: []}

    def test_add_existing_edge_is_noop(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        engine.add_dependency(a.id, b.id)
        assert engine.get_task(a.id).dependencies == [b.id]
        added = [e for e in engine.get_recent_events() if e["type"] == "dependency.added"]
        assert len(added) == 1

    def test_cross_project_rejected(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        x = engine.create_task("X", "p2")
        with pytest.raises(DependencyError, match="belongs to project"):
            engine.add_dependency(a.id, x.id)

    def test_unknown_ids(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        with pytest.raises(DependencyError):
            engine.add_dependency("nope", a.id)
        with pytest.raises(DependencyError):
            engine.add_dependency(a.id, "nope")

    def test_remove_is_idempotent(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        assert engine.remove_dependency(a.id, b.id).dependencies == []
        assert engine.remove_dependency(a.id, b.id).dependencies == []
        assert engine.remove_dependency("nope", b.id) is None

    def test_dependency_status(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        status = engine.dependency_status(a.id)
        assert status["isBlocked"] is True
        assert status["effectiveState"] == "Blocked"
        assert status["unresolved"] == [b.id]
        assert engine.dependency_status(b.id)["blocks"] == [a.id]
        assert engine.dependency_status("nope") is None


class TestUpdate:
    def test_partial_update(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        updated = engine.update_task(a.id, {"title": "A2", "priority": "High", "due_date": "2024-07-01"})
        assert updated.title == "A2"
        assert updated.priority.value == "High"
        assert engine.get_task(a.id).due_date == "2024-07-01"

    def test_status_change_appends_to_new_column(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.move_task(a.id, None, "Review")
        updated = engine.update_task(b.id, {"status": "Review"})
        assert updated.status == TaskStatus.REVIEW
        assert updated.order == 20

    def test_dependencies_replacement_is_cycle_checked(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        with pytest.raises(DependencyCycleError):
            engine.update_task(b.id, {"dependencies": [a.id]})
        assert engine.get_task(b.id).dependencies == []

    def test_dependencies_replacement(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        c = engine.create_task("C", "p1")
        engine.add_dependency(a.id, b.id)
        updated = engine.update_task(a.id, {"dependencies": [c.id]})
        assert updated.dependencies == [c.id]

    def test_unknown_field(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        with pytest.raises(ValueError, match="cannot be updated"):
            engine.update_task(a.id, {"project_id": "p2"})

    def test_unknown_task(self, engine: TaskEngine) -> None:
        assert engine.update_task("nope", {"title": "x"}) is None


class TestDelete:
    def test_delete_strips_references(self, engine: TaskEngine) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        assert engine.delete_task(b.id) is True
        assert engine.get_task(b.id) is None
        assert engine.get_task(a.id).dependencies == []

    def test_delete_without_cascade_leaves_dangling_ids(self, state_dir: Path) -> None:
        engine = TaskEngine(state_dir, BoardConfig(cascade_delete_dependencies=False))
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        engine.add_dependency(a.id, b.id)
        engine.delete_task(b.id)
        assert engine.get_task(a.id).dependencies == [b.id]
        assert engine.is_blocked(a.id) is False

    def test_delete_unknown(self, engine: TaskEngine) -> None:
        assert engine.delete_task("nope") is False

    def test_delete_project_tasks(self, engine: TaskEngine) -> None:
        engine.create_task("A", "p1")
        engine.create_task("B", "p1")
        keep = engine.create_task("X", "p2")
        removed = engine.delete_project_tasks("p1")
        assert len(removed) == 2
        assert [t.id for t in engine.list_tasks()] == [keep.id]


class TestViews:
    def test_board_has_all_columns(self, engine: TaskEngine) -> None:
        board = engine.get_board("empty")
        assert board == {"ToDo": [], "InProgress": [], "Review": [], "Done": []}

    def test_project_progress(self, engine: TaskEngine) -> None:
        assert engine.project_progress("p1") == 0
        a = engine.create_task("A", "p1")
        engine.create_task("B", "p1")
        engine.move_task(a.id, None, "Done")
        assert engine.project_progress("p1") == 50

    def test_upcoming_tasks(self, engine: TaskEngine) -> None:
        late = engine.create_task("Late", "p1", assignee_id="u1", due_date="2024-09-01")
        soon = engine.create_task("Soon", "p1", assignee_id="u1", due_date="2024-08-01")
        undated = engine.create_task("Undated", "p1", assignee_id="u1")
        done = engine.create_task("Done", "p1", assignee_id="u1", due_date="2024-07-01")
        engine.move_task(done.id, None, "Done")
        engine.create_task("Other", "p1", assignee_id="u2", due_date="2024-01-01")

        ids = [t.id for t in engine.upcoming_tasks("u1", limit=5)]
        assert ids == [soon.id, late.id, undated.id]
        assert len(engine.upcoming_tasks("u1", limit=1)) == 1

    def test_due_reminders(self, engine: TaskEngine) -> None:
        due = engine.create_task("Due", "p1", due_date="2024-06-12", reminder="1d")
        engine.create_task("Later", "p1", due_date="2024-06-20", reminder="1d")
        engine.create_task("NoReminder", "p1", due_date="2024-06-12")
        now = datetime(2024, 6, 11, 9, 0, tzinfo=timezone.utc)
        assert [t.id for t in engine.due_reminders(now)] == [due.id]

    def test_board_due_flags(self, engine: TaskEngine) -> None:
        engine.create_task("Soon", "p1", due_date="2024-06-11")
        card = engine.get_board("p1", today=date(2024, 6, 10))["ToDo"][0]
        assert card["isDueSoon"] is True

    def test_events_are_json_lines(self, engine: TaskEngine, state_dir: Path) -> None:
        a = engine.create_task("A", "p1")
        engine.update_task(a.id, {"title": "B"})
        engine.delete_task(a.id)
        path = state_dir / "artifacts" / "board_events.jsonl"
        types = [json.loads(line)["type"] for line in path.read_text().splitlines()]
        assert types == ["task.created", "task.updated", "task.deleted"]

    def test_due_reminders_accepts_naive_now(self, engine: TaskEngine) -> None:
        due = engine.create_task("Due", "p1", due_date="2024-06-12", reminder="1d")
        assert [t.id for t in engine.due_reminders(datetime(2024, 6, 20))] == [due.id]
        assert engine.due_reminders(datetime(2024, 6, 10)) == []


class TestEventLog:
    def _break_saves(self, state_dir: Path) -> None:
        (state_dir / "tasks.yaml.tmp").mkdir()

    def test_failed_create_leaves_no_event(self, engine: TaskEngine, state_dir: Path) -> None:
        self._break_saves(state_dir)
        with pytest.raises(OSError):
            engine.create_task("Never saved", "p1")
        assert engine.list_tasks() == []
        assert engine.get_recent_events() == []

    def test_failed_move_leaves_no_event(self, engine: TaskEngine, state_dir: Path) -> None:
        a = engine.create_task("A", "p1")
        self._break_saves(state_dir)
        with pytest.raises(OSError):
            engine.move_task(a.id, None, "Done")
        assert engine.get_task(a.id).status == TaskStatus.TODO
        assert [e["type"] for e in engine.get_recent_events()] == ["task.created"]

    def test_failed_dependency_add_leaves_no_event(self, engine: TaskEngine, state_dir: Path) -> None:
        a = engine.create_task("A", "p1")
        b = engine.create_task("B", "p1")
        self._break_saves(state_dir)
        with pytest.raises(OSError):
            engine.add_dependency(a.id, b.id)
        assert engine.get_task(a.id).dependencies == []
        assert [e["type"] for e in engine.get_recent_events()] == ["task.created", "task.created"]

    def test_task_events_found_beyond_recent_window(self, engine: TaskEngine) -> None:
        old = engine.create_task("Old", "p1")
        busy = engine.create_task("Busy", "p1")
        for i in range(30):
            engine.update_task(busy.id, {"title": f"Busy {i}"})

        events = engine.get_task_events(old.id, limit=2)
        assert [e["type"] for e in events] == ["task.created"]
        assert len(engine.get_task_events(busy.id, limit=5)) == 5
