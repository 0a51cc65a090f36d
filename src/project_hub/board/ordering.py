"""Fractional ordering of tasks inside a status column.

A drop computes one new ``order`` for the dragged task: the midpoint between
its new neighbours, or ``last + increment`` when appended.  Siblings are never
renumbered.  Repeated midpoint inserts between the same two neighbours halve
the gap each time, so precision eventually runs out; no renormalization is
done here.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..constants import DEFAULT_ORDER_INCREMENT
from .model import Task, TaskStatus


def column_tasks(
    tasks: Iterable[Task],
    project_id: str,
    status: TaskStatus,
    *,
    exclude_id: Optional[str] = None,
) -> list[Task]:
    """Tasks of one project column sorted by ascending ``order`` (stable)."""
    column = [
        t for t in tasks
        if t.project_id == project_id and t.status == status and t.id != exclude_id
    ]
    column.sort(key=lambda t: t.order)
    return column


def next_order(
    tasks: Iterable[Task],
    project_id: str,
    status: TaskStatus,
    increment: float = DEFAULT_ORDER_INCREMENT,
) -> float:
    """Order value that appends to the end of a column."""
    column = column_tasks(tasks, project_id, status)
    if not column:
        return increment
    return column[-1].order + increment


def compute_move(
    tasks: Iterable[Task],
    dragged: Task,
    target_id: Optional[str],
    new_status: TaskStatus,
    increment: float = DEFAULT_ORDER_INCREMENT,
) -> tuple[TaskStatus, float]:
    """Return the ``(status, order)`` that drops *dragged* before *target_id*.

    ``target_id=None`` appends to the end of the column.  A target that is not
    in the destination column (wrong status, wrong project, deleted, or the
    dragged task itself) also appends.
    """
    column = column_tasks(tasks, dragged.project_id, new_status, exclude_id=dragged.id)

    if target_id is not None:
        for idx, candidate in enumerate(column):
            if candidate.id == target_id:
                prev_order = column[idx - 1].order if idx > 0 else 0.0
                return new_status, (prev_order + candidate.order) / 2

    if not column:
        return new_status, increment
    return new_status, column[-1].order + increment
