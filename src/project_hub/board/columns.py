"""Partition a project's tasks into the four board columns."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, Optional

from ..constants import DEFAULT_DUE_SOON_DAYS
from . import graph
from .model import Task, TaskStatus


def partition_columns(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    """Group by status, each column sorted by ascending ``order``.

    Every status is present, in workflow order.  ``list.sort`` is stable, so
    equal orders keep their input order.
    """
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in TaskStatus}
    for task in tasks:
        columns[task.status].append(task)
    for column in columns.values():
        column.sort(key=lambda t: t.order)
    return columns


def card_view(
    task: Task,
    tasks: Mapping[str, Task],
    today: date,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    comment_count: int = 0,
) -> dict[str, Any]:
    """Task dict plus the derived fields the board renders."""
    blocked = graph.is_blocked(task, tasks)
    blocking = graph.blocks(task, tasks)
    overdue = task.is_overdue(today)
    data = task.to_dict()
    data.update({
        "isBlocked": blocked,
        "effectiveState": graph.effective_state(task, tasks).value,
        "draggable": not blocked,
        "blocks": blocking,
        "blockingCount": len(blocking),
        "isOverdue": overdue,
        "isDueSoon": not overdue and task.is_due_soon(today, due_soon_days),
        "commentCount": comment_count,
    })
    return data


def board_view(
    tasks: Iterable[Task],
    today: date,
    due_soon_days: int = DEFAULT_DUE_SOON_DAYS,
    comment_counts: Optional[Mapping[str, int]] = None,
) -> dict[str, list[dict[str, Any]]]:
    """Render every column as a list of card dicts keyed by status value."""
    task_list = list(tasks)
    index = graph.index_tasks(task_list)
    counts = comment_counts or {}
    return {
        status.value: [
            card_view(t, index, today, due_soon_days, counts.get(t.id, 0))
            for t in column
        ]
        for status, column in partition_columns(task_list).items()
    }
