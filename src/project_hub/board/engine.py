"""Task engine: board CRUD, moves, and dependency management.

This is the entry-point for all task manipulation.  It wraps
:class:`TaskStore` with the board rules (fractional ordering, cycle-checked
dependencies, cascade cleanup on delete) and records an event line for every
mutation.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from ..config import BoardConfig
from ..constants import ARTIFACTS_DIR, BOARD_EVENTS_FILE
from ..io_utils import _append_event, _read_events
from . import graph
from .columns import board_view
from .model import ReminderOffset, Task, TaskPriority, TaskStatus, _normalize_due_date
from .ordering import compute_move, next_order
from .store import TaskStore

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "title",
    "description",
    "assignee_id",
    "status",
    "order",
    "due_date",
    "priority",
    "reminder",
    "dependencies",
}


def _status(value: Any) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value))
    except ValueError:
        valid = [s.value for s in TaskStatus]
        raise ValueError(f"Unknown status '{value}'. Valid statuses: {valid}") from None


class TaskEngine:
    """Manage tasks on every project board stored under *state_dir*.

    Parameters
    ----------
    state_dir:
        Path to the ``.project_hub/`` directory.
    config:
        Board settings; defaults apply when omitted.
    """

    def __init__(self, state_dir: Path, config: Optional[BoardConfig] = None) -> None:
        self.store = TaskStore(state_dir)
        self.config = config or BoardConfig()
        self._events_path = state_dir / ARTIFACTS_DIR / BOARD_EVENTS_FILE

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit_event(self, event_type: str, task: Task, **details: Any) -> None:
        payload: dict[str, Any] = {
            "type": event_type,
            "task_id": task.id,
            "project_id": task.project_id,
            "status": task.status.value,
        }
        if details:
            payload["details"] = details
        try:
            _append_event(self._events_path, payload)
        except OSError:
            logger.exception("Failed to append board event %s for %s", event_type, task.id)

    def get_recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        return _read_events(self._events_path, limit)

    def get_task_events(self, task_id: str, limit: int = 100) -> list[dict[str, Any]]:
        """The last *limit* events of one task, searched over the whole log."""
        events = _read_events(self._events_path, None)
        filtered = [e for e in events if str(e.get("task_id")) == task_id]
        return filtered[-limit:]

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        project_id: str,
        assignee_id: str = "",
        description: str = "",
        due_date: str = "",
        priority: Optional[str] = None,
        reminder: Optional[str] = None,
    ) -> Task:
        """Create a ToDo task appended to the end of its project's ToDo column.

        Raises ValueError for an unknown priority or reminder offset.
        """
        task_priority = TaskPriority(priority or TaskPriority.MEDIUM.value)
        task_reminder = ReminderOffset(reminder) if reminder else None
        task = Task.from_dict({
            "title": title,
            "project_id": project_id,
            "assignee_id": assignee_id,
            "description": description,
            "due_date": due_date,
            "priority": task_priority,
            "reminder": task_reminder,
        })
        with self.store.transaction() as tx:
            task.order = next_order(tx.tasks, project_id, TaskStatus.TODO, self.config.order_increment)
            tx.add(task)

        self._emit_event("task.created", task, order=task.order)
        logger.info("Created task %s in project %s: %s", task.id, project_id, title)
        return task

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_one(task_id)

    def list_tasks(
        self,
        *,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        assignee_id: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        with self.store.transaction() as tx:
            return tx.find(
                project_id=project_id,
                status=status,
                assignee_id=assignee_id,
                priority=priority,
                search=search,
            )

    def update_task(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        """Apply a partial update.  Returns the updated task or None.

        A status change without an explicit ``order`` appends the task to the
        end of its new column.  A replacement ``dependencies`` list is
        validated as a whole and raises :class:`graph.DependencyError` (or its
        cycle subclass) without touching the store.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None

            if "dependencies" in changes:
                deps = [str(d) for d in (changes["dependencies"] or [])]
                graph.validate_dependencies(tx.project_index(task.project_id), task_id, deps)
                task.dependencies = list(dict.fromkeys(deps))

            for key in ("title", "description", "assignee_id"):
                if key in changes:
                    setattr(task, key, str(changes[key] or ""))
            if "due_date" in changes:
                task.due_date = _normalize_due_date(changes["due_date"])
            if "priority" in changes:
                task.priority = TaskPriority(str(changes["priority"]))
            if "reminder" in changes:
                raw = changes["reminder"]
                task.reminder = ReminderOffset(str(raw)) if raw else None

            if "status" in changes or "order" in changes:
                new_status = _status(changes.get("status", task.status))
                if "order" in changes:
                    new_order = float(changes["order"])
                elif new_status != task.status:
                    new_order = next_order(
                        tx.tasks, task.project_id, new_status, self.config.order_increment
                    )
                else:
                    new_order = task.order
                task.place(new_status, new_order)

            task.touch()
            tx.dirty = True

        self._emit_event("task.updated", task, fields=sorted(changes.keys()))
        return task

    def delete_task(self, task_id: str) -> bool:
        """Remove a task; by default also strip it from other dependency lists."""
        with self.store.transaction() as tx:
            task = tx.remove(task_id)
            if task is None:
                return False
            cleaned: list[str] = []
            if self.config.cascade_delete_dependencies:
                cleaned = graph.strip_references(tx.project_index(task.project_id), task_id)

        self._emit_event("task.deleted", task, cleaned_dependents=cleaned)

        logger.info("Deleted task %s (dependency refs cleaned from %d tasks)", task_id, len(cleaned))
        return True

    def delete_project_tasks(self, project_id: str) -> list[str]:
        """Remove every task of a project.  Returns the removed ids."""
        with self.store.transaction() as tx:
            removed: list[str] = []
            for task in tx.find(project_id=project_id):
                tx.remove(task.id)
                removed.append(task.id)
            return removed

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def move_task(
        self,
        task_id: str,
        target_task_id: Optional[str],
        new_status: Any,
    ) -> Optional[Task]:
        """Drop *task_id* into *new_status* before *target_task_id* (or at the end).

        Only the moved task changes.  Blocked tasks are not rejected here; the
        board marks them non-draggable.
        """
        status = _status(new_status)
        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            old_status, old_order = task.status, task.order
            status, order = compute_move(
                tx.tasks, task, target_task_id, status, self.config.order_increment
            )
            task.place(status, order)
            tx.dirty = True

        self._emit_event(
            "task.moved",
            task,
            from_status=old_status.value,
            from_order=old_order,
            order=order,
            target_task_id=target_task_id,
        )
        return task

    # ------------------------------------------------------------------
    # Dependency management
    # ------------------------------------------------------------------

    def add_dependency(self, task_id: str, depends_on_id: str) -> Task:
        """Make *task_id* wait on *depends_on_id*.

        Raises :class:`graph.DependencyCycleError` if the edge would create a
        cycle and :class:`graph.DependencyError` for unknown or cross-project
        ids.  Adding an existing edge is a no-op.
        """
        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                raise graph.DependencyError(f"Task {task_id} not found")
            tasks = tx.project_index(task.project_id)
            if depends_on_id not in tasks and tx.get(depends_on_id) is not None:
                # Give the cross-project error, not "not found".
                tasks = {**tasks, depends_on_id: tx.get(depends_on_id)}
            try:
                added = graph.add_dependency(tasks, task_id, depends_on_id)
            except graph.DependencyCycleError:
                logger.warning("Rejected cyclic dependency %s -> %s", task_id, depends_on_id)
                raise
            if added:
                tx.dirty = True

        if added:
            self._emit_event("dependency.added", task, depends_on=depends_on_id)
        return task

    def remove_dependency(self, task_id: str, depends_on_id: str) -> Optional[Task]:
        """Drop the edge if present.  Returns the task, or None if it does not exist."""
        with self.store.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            removed = graph.remove_dependency({task.id: task}, task_id, depends_on_id)
            if removed:
                tx.dirty = True

        if removed:
            self._emit_event("dependency.removed", task, depends_on=depends_on_id)
        return task

    def _project_tasks(self, project_id: str) -> dict[str, Task]:
        return graph.index_tasks(t for t in self.store.read_snapshot() if t.project_id == project_id)

    def is_blocked(self, task_id: str) -> Optional[bool]:
        task = self.get_task(task_id)
        if task is None:
            return None
        return graph.is_blocked(task, self._project_tasks(task.project_id))

    def blocking_count(self, task_id: str) -> Optional[int]:
        task = self.get_task(task_id)
        if task is None:
            return None
        return graph.blocking_count(task, self._project_tasks(task.project_id))

    def dependency_status(self, task_id: str) -> Optional[dict[str, Any]]:
        """Derived dependency view of one task."""
        task = self.get_task(task_id)
        if task is None:
            return None
        tasks = self._project_tasks(task.project_id)
        unresolved = graph.unresolved_dependencies(task, tasks)
        blocks = graph.blocks(task, tasks)
        return {
            "taskId": task.id,
            "dependencies": list(task.dependencies),
            "unresolved": unresolved,
            "dangling": [d for d in task.dependencies if d not in tasks],
            "isBlocked": bool(unresolved),
            "effectiveState": graph.effective_state(task, tasks).value,
            "blocks": blocks,
            "blockingCount": len(blocks),
        }

    def get_dependency_graph(self, project_id: str) -> dict[str, list[str]]:
        """Adjacency list ``{task_id: [dependency ids]}`` for one project."""
        tasks = self._project_tasks(project_id)
        cycle = graph.find_cycle(tasks)
        if cycle:
            logger.warning("Dependency cycle detected in project %s: %s", project_id, cycle)
        return {tid: list(t.dependencies) for tid, t in tasks.items()}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_board(
        self,
        project_id: str,
        *,
        today: Optional[date] = None,
        comment_counts: Optional[Mapping[str, int]] = None,
    ) -> dict[str, list[dict[str, Any]]]:
        """Tasks of one project grouped into status columns with derived flags."""
        tasks = self._project_tasks(project_id)
        return board_view(
            tasks.values(),
            today or date.today(),
            self.config.due_soon_days,
            comment_counts,
        )

    def project_progress(self, project_id: str) -> int:
        """Percentage of the project's tasks that are Done (0 for an empty project)."""
        tasks = list(self._project_tasks(project_id).values())
        if not tasks:
            return 0
        done = sum(1 for t in tasks if t.is_done)
        return round(done * 100 / len(tasks))

    def upcoming_tasks(self, assignee_id: str, limit: int = 5) -> list[Task]:
        """Open tasks of one assignee, earliest due date first."""
        tasks = [
            t for t in self.store.read_snapshot()
            if t.assignee_id == assignee_id and not t.is_done
        ]
        tasks.sort(key=lambda t: (t.due is None, t.due_date, t.priority.sort_key))
        return tasks[:limit] if limit > 0 else tasks

    def due_reminders(self, now: Optional[datetime] = None) -> list[Task]:
        """Open tasks whose reminder time has been reached.

        A naive *now* is taken as UTC.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        due: list[Task] = []
        for task in self.store.read_snapshot():
            fire_at = task.reminder_at()
            if fire_at is not None and not task.is_done and fire_at <= now:
                due.append(task)
        return due
