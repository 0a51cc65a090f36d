"""File-based task store with exclusive locking.

Stores every project's tasks in a single YAML file (``tasks.yaml``) inside the
``.project_hub/`` directory.  All reads and writes go through
:meth:`TaskStore.transaction`, which holds an exclusive file lock for the
load-mutate-save cycle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml

from ..constants import TASKS_FILE, TASKS_LOCK_FILE
from ..io_utils import FileLock, _atomic_write_yaml
from .model import Task

logger = logging.getLogger(__name__)

STORE_VERSION = 1


# ---------------------------------------------------------------------------
# Low-level I/O
# ---------------------------------------------------------------------------

def _load_raw(path: Path) -> list[dict[str, Any]]:
    """Load the raw task list from *path*, returning ``[]`` if missing."""
    if not path.exists():
        return []
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "tasks" not in data:
        return []
    tasks = data["tasks"]
    if not isinstance(tasks, list):
        return []
    return [t for t in tasks if isinstance(t, dict)]


def _save_raw(path: Path, tasks: list[dict[str, Any]]) -> None:
    _atomic_write_yaml(path, {"version": STORE_VERSION, "tasks": tasks})


# ---------------------------------------------------------------------------
# TaskStore
# ---------------------------------------------------------------------------

class TaskStore:
    """Locked, file-backed store for :class:`Task` objects.

    Parameters
    ----------
    state_dir:
        Path to the ``.project_hub/`` directory.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / TASKS_FILE
        self._lock = FileLock(state_dir / TASKS_LOCK_FILE)

    @property
    def path(self) -> Path:
        return self._store_path

    def _load(self) -> list[Task]:
        return [Task.from_dict(d) for d in _load_raw(self._store_path)]

    def _save(self, tasks: list[Task]) -> None:
        _save_raw(self._store_path, [t.to_dict() for t in tasks])

    @contextmanager
    def transaction(self) -> Iterator["_TaskTx"]:
        """Acquire the lock, load tasks, yield a transaction, and save on exit.

        Nothing is written if the block raises or leaves ``tx.dirty`` unset::

            with store.transaction() as tx:
                task = tx.get("task-abc123")
                task.title = "Renamed"
                tx.dirty = True
        """
        with self._lock:
            tx = _TaskTx(self._load())
            yield tx
            if tx.dirty:
                self._save(tx.tasks)
                logger.debug("Saved %d tasks to %s", len(tx.tasks), self._store_path)

    def read_snapshot(self) -> list[Task]:
        """Return a detached copy of every task."""
        with self._lock:
            return self._load()

    def get_one(self, task_id: str) -> Optional[Task]:
        with self._lock:
            for t in self._load():
                if t.id == task_id:
                    return t
        return None


class _TaskTx:
    """In-memory transaction over the task list.

    Mutations are flushed to disk when the ``transaction`` context exits.
    """

    def __init__(self, tasks: list[Task]) -> None:
        self.tasks = tasks
        self.dirty = False
        self._index: dict[str, int] = {t.id: i for i, t in enumerate(tasks)}

    # -- lookups ------------------------------------------------------------

    def get(self, task_id: str) -> Optional[Task]:
        idx = self._index.get(task_id)
        return self.tasks[idx] if idx is not None else None

    def project_index(self, project_id: str) -> dict[str, Task]:
        """``{id: Task}`` for one project, sharing the live task objects."""
        return {t.id: t for t in self.tasks if t.project_id == project_id}

    def find(
        self,
        *,
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        assignee_id: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        out: list[Task] = []
        for t in self.tasks:
            if project_id and t.project_id != project_id:
                continue
            if status and t.status.value != status:
                continue
            if assignee_id and t.assignee_id != assignee_id:
                continue
            if priority and t.priority.value != priority:
                continue
            if search:
                q = search.lower()
                if q not in t.title.lower() and q not in t.description.lower() and q not in t.id.lower():
                    continue
            out.append(t)
        return out

    # -- mutations ----------------------------------------------------------

    def add(self, task: Task) -> Task:
        if task.id in self._index:
            raise ValueError(f"Task {task.id} already exists")
        self._index[task.id] = len(self.tasks)
        self.tasks.append(task)
        self.dirty = True
        return task

    def remove(self, task_id: str) -> Optional[Task]:
        """Physically remove a task, returning it."""
        idx = self._index.pop(task_id, None)
        if idx is None:
            return None
        task = self.tasks.pop(idx)
        self._index = {t.id: i for i, t in enumerate(self.tasks)}
        self.dirty = True
        return task
