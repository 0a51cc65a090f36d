"""Tests for the board task model (board/model.py)."""

from __future__ import annotations

from datetime import date, datetime, timezone

from project_hub.board.model import (
    ReminderOffset,
    Task,
    TaskPriority,
    TaskStatus,
)


class TestTaskSerialization:
    def test_to_dict_uses_camel_case(self) -> None:
        task = Task(id="t1", title="Write docs", project_id="p1", assignee_id="u1", order=12.5)
        data = task.to_dict()
        assert data["projectId"] == "p1"
        assert data["assigneeId"] == "u1"
        assert data["status"] == "ToDo"
        assert data["order"] == 12.5
        assert data["priority"] == "Medium"
        assert data["reminder"] is None

    def test_from_dict_accepts_both_key_styles(self) -> None:
        camel = Task.from_dict({"id": "t", "projectId": "p", "dueDate": "2024-01-05"})
        snake = Task.from_dict({"id": "t", "project_id": "p", "due_date": "2024-01-05"})
        assert camel.project_id == snake.project_id == "p"
        assert camel.due_date == snake.due_date == "2024-01-05"

    def test_from_dict_coerces_enums_gracefully(self) -> None:
        task = Task.from_dict({"status": "Nonsense", "priority": "High", "reminder": "1d"})
        assert task.status == TaskStatus.TODO
        assert task.priority == TaskPriority.HIGH
        assert task.reminder == ReminderOffset.ONE_DAY

    def test_from_dict_dedups_dependencies(self) -> None:
        task = Task.from_dict({"dependencies": ["a", "b", "a"]})
        assert task.dependencies == ["a", "b"]

    def test_yaml_date_objects_normalized(self) -> None:
        task = Task.from_dict({"due_date": date(2024, 3, 1)})
        assert task.due_date == "2024-03-01"

    def test_roundtrip_keeps_order_and_status(self) -> None:
        task = Task(title="x", status=TaskStatus.REVIEW, order=7.25, dependencies=["d"])
        again = Task.from_dict(task.to_dict())
        assert again.status == TaskStatus.REVIEW
        assert again.order == 7.25
        assert again.dependencies == ["d"]


class TestPlacement:
    def test_moving_into_done_sets_completed_at(self) -> None:
        task = Task()
        task.place(TaskStatus.DONE, 10)
        assert task.completed_at is not None
        assert task.is_done

    def test_leaving_done_clears_completed_at(self) -> None:
        task = Task()
        task.place(TaskStatus.DONE, 10)
        task.place(TaskStatus.REVIEW, 5)
        assert task.completed_at is None
        assert task.order == 5


class TestDueDates:
    def test_due_soon_window(self) -> None:
        task = Task(due_date="2024-06-12")
        assert task.is_due_soon(date(2024, 6, 10), 2) is True
        assert task.is_due_soon(date(2024, 6, 9), 2) is False
        assert task.is_due_soon(date(2024, 6, 12), 2) is True

    def test_overdue(self) -> None:
        task = Task(due_date="2024-06-12")
        assert task.is_overdue(date(2024, 6, 13)) is True
        assert task.is_overdue(date(2024, 6, 12)) is False

    def test_no_due_date(self) -> None:
        task = Task()
        assert task.due is None
        assert task.is_overdue(date(2030, 1, 1)) is False
        assert task.reminder_at() is None

    def test_reminder_at(self) -> None:
        task = Task(due_date="2024-06-12", reminder=ReminderOffset.TWO_DAYS)
        assert task.reminder_at() == datetime(2024, 6, 10, tzinfo=timezone.utc)
