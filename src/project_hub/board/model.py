"""Task model for the project board.

Tasks carry a float ``order`` that positions them inside their status column
and a list of ``dependencies`` (ids of tasks that must be done first).  The
blocked/available state is never stored here; it is derived from the rest of
the project's tasks by :mod:`project_hub.board.graph`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from ..utils import _generate_id, _now_iso, _parse_date


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Board-level status; one column per value."""

    TODO = "ToDo"
    IN_PROGRESS = "InProgress"
    REVIEW = "Review"
    DONE = "Done"


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def sort_key(self) -> int:
        return {"High": 0, "Medium": 1, "Low": 2}[self.value]


class ReminderOffset(str, Enum):
    """How long before the due date a reminder fires."""

    ONE_HOUR = "1h"
    ONE_DAY = "1d"
    TWO_DAYS = "2d"
    ONE_WEEK = "1w"

    @property
    def delta(self) -> timedelta:
        return {
            "1h": timedelta(hours=1),
            "1d": timedelta(days=1),
            "2d": timedelta(days=2),
            "1w": timedelta(weeks=1),
        }[self.value]


class EffectiveState(str, Enum):
    """Derived board state of a single task."""

    BLOCKED = "Blocked"
    AVAILABLE = "Available"


# camelCase wire key -> dataclass attribute
_WIRE_KEYS = {
    "projectId": "project_id",
    "assigneeId": "assignee_id",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "completedAt": "completed_at",
}


def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Optional[Enum]) -> Any:
    if raw is None or raw == "":
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


def _normalize_due_date(raw: Any) -> str:
    parsed = _parse_date(raw)
    return parsed.isoformat() if parsed else ""


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A card on a project's board."""

    id: str = field(default_factory=lambda: _generate_id("task"))
    title: str = ""
    description: str = ""
    project_id: str = ""
    assignee_id: str = ""
    status: TaskStatus = TaskStatus.TODO
    order: float = 0.0
    dependencies: list[str] = field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    reminder: Optional[ReminderOffset] = None
    due_date: str = ""  # YYYY-MM-DD

    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape used by the API and the YAML store."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "projectId": self.project_id,
            "assigneeId": self.assignee_id,
            "status": self.status.value,
            "dueDate": self.due_date,
            "order": self.order,
            "dependencies": list(self.dependencies),
            "priority": self.priority.value,
            "reminder": self.reminder.value if self.reminder else None,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from camelCase or snake_case keys, coercing enums gracefully."""
        d = {_WIRE_KEYS.get(k, k): v for k, v in data.items()}

        try:
            order = float(d.get("order") or 0.0)
        except (TypeError, ValueError):
            order = 0.0

        deps: list[str] = []
        for dep in list(d.get("dependencies") or []):
            dep_id = str(dep)
            if dep_id not in deps:
                deps.append(dep_id)

        return cls(
            id=str(d.get("id") or _generate_id("task")),
            title=str(d.get("title") or ""),
            description=str(d.get("description") or ""),
            project_id=str(d.get("project_id") or ""),
            assignee_id=str(d.get("assignee_id") or ""),
            status=_coerce_enum(TaskStatus, d.get("status"), TaskStatus.TODO),
            order=order,
            dependencies=deps,
            priority=_coerce_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            reminder=_coerce_enum(ReminderOffset, d.get("reminder"), None),
            due_date=_normalize_due_date(d.get("due_date")),
            created_at=str(d.get("created_at") or _now_iso()),
            updated_at=str(d.get("updated_at") or _now_iso()),
            completed_at=d.get("completed_at"),
        )

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    def place(self, status: TaskStatus, order: float) -> None:
        """Set column and position, keeping ``completed_at`` in step with Done."""
        if status == TaskStatus.DONE and self.status != TaskStatus.DONE:
            self.completed_at = _now_iso()
        elif status != TaskStatus.DONE:
            self.completed_at = None
        self.status = status
        self.order = order
        self.touch()

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    # ------------------------------------------------------------------
    # Due-date helpers
    # ------------------------------------------------------------------

    @property
    def due(self) -> Optional[date]:
        return _parse_date(self.due_date)

    def is_overdue(self, today: date) -> bool:
        due = self.due
        return due is not None and today > due and not self.is_done

    def is_due_soon(self, today: date, window_days: int) -> bool:
        """Due today or within the next *window_days* days, and not overdue."""
        due = self.due
        if due is None or self.is_done:
            return False
        diff = (due - today).days
        return 0 <= diff <= window_days

    def reminder_at(self) -> Optional[datetime]:
        """UTC instant the reminder fires, measured back from the start of the due day."""
        due = self.due
        if due is None or self.reminder is None:
            return None
        return datetime.combine(due, time.min, tzinfo=timezone.utc) - self.reminder.delta
