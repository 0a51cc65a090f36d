"""Dependency graph over one project's tasks.

Edges are stored only as ``Task.dependencies`` (task -> task it waits on).
Every query here rebuilds what it needs from a ``{id: Task}`` mapping, so the
blocked/blocking view is always computed from current statuses.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Mapping, Optional

from .model import EffectiveState, Task


class DependencyError(ValueError):
    """A dependency edge cannot be added (unknown task, other project...)."""


class DependencyCycleError(DependencyError):
    """Adding the edge would make a task (transitively) depend on itself."""

    def __init__(self, task_id: str, dependency_id: str) -> None:
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(
            f"Adding dependency {task_id} -> {dependency_id} would create a cycle"
        )


def index_tasks(tasks: Iterable[Task]) -> dict[str, Task]:
    return {t.id: t for t in tasks}


def _reverse_edges(tasks: Mapping[str, Task]) -> dict[str, list[str]]:
    """``{id: [ids of tasks that list id as a dependency]}``."""
    rev: dict[str, list[str]] = defaultdict(list)
    for task in tasks.values():
        for dep_id in task.dependencies:
            rev[dep_id].append(task.id)
    return rev


def would_create_cycle(tasks: Mapping[str, Task], task_id: str, candidate_id: str) -> bool:
    """True if ``task_id -> candidate_id`` would close a cycle.

    Walks breadth-first from *task_id* along "is depended on by" edges, i.e.
    everything *task_id* transitively blocks.  Reaching *candidate_id* means
    the candidate already waits on the task.
    """
    rev = _reverse_edges(tasks)
    visited: set[str] = set()
    queue: deque[str] = deque([task_id])
    while queue:
        current = queue.popleft()
        if current == candidate_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        queue.extend(rev.get(current, []))
    return False


def add_dependency(tasks: Mapping[str, Task], task_id: str, candidate_id: str) -> bool:
    """Make *task_id* depend on *candidate_id*.

    Returns True if the edge was added, False if it already existed.  Raises
    :class:`DependencyCycleError` on a cycle and :class:`DependencyError` for
    unknown or cross-project ids; the graph is untouched in both cases.
    """
    task = tasks.get(task_id)
    candidate = tasks.get(candidate_id)
    if task is None or candidate is None:
        missing = task_id if task is None else candidate_id
        raise DependencyError(f"Task {missing} not found")
    if candidate.project_id != task.project_id:
        raise DependencyError(
            f"Task {candidate_id} belongs to project {candidate.project_id or '-'}, "
            f"not {task.project_id or '-'}"
        )
    if candidate_id in task.dependencies:
        return False
    if would_create_cycle(tasks, task_id, candidate_id):
        raise DependencyCycleError(task_id, candidate_id)
    task.dependencies.append(candidate_id)
    task.touch()
    return True


def remove_dependency(tasks: Mapping[str, Task], task_id: str, dependency_id: str) -> bool:
    """Drop the edge if present.  Returns whether anything changed."""
    task = tasks.get(task_id)
    if task is None or dependency_id not in task.dependencies:
        return False
    task.dependencies.remove(dependency_id)
    task.touch()
    return True


def validate_dependencies(tasks: Mapping[str, Task], task_id: str, dependencies: list[str]) -> None:
    """Check a whole replacement dependency list for *task_id* without applying it."""
    task = tasks.get(task_id)
    if task is None:
        raise DependencyError(f"Task {task_id} not found")
    original = list(task.dependencies)
    task.dependencies = []
    try:
        for dep_id in dependencies:
            add_dependency(tasks, task_id, dep_id)
    finally:
        task.dependencies = original


def unresolved_dependencies(task: Task, tasks: Mapping[str, Task]) -> list[str]:
    """Dependency ids that exist and are not Done.  Dangling ids are ignored."""
    unresolved: list[str] = []
    for dep_id in task.dependencies:
        dep = tasks.get(dep_id)
        if dep is not None and not dep.is_done:
            unresolved.append(dep_id)
    return unresolved


def is_blocked(task: Task, tasks: Mapping[str, Task]) -> bool:
    return bool(unresolved_dependencies(task, tasks))


def effective_state(task: Task, tasks: Mapping[str, Task]) -> EffectiveState:
    return EffectiveState.BLOCKED if is_blocked(task, tasks) else EffectiveState.AVAILABLE


def blocks(task: Task, tasks: Mapping[str, Task]) -> list[str]:
    """Ids of other tasks that list *task* as a dependency."""
    return [t.id for t in tasks.values() if t.id != task.id and task.id in t.dependencies]


def blocking_count(task: Task, tasks: Mapping[str, Task]) -> int:
    return len(blocks(task, tasks))


def strip_references(tasks: Mapping[str, Task], deleted_id: str) -> list[str]:
    """Remove *deleted_id* from every dependency list; return the ids that changed."""
    changed: list[str] = []
    for task in tasks.values():
        if deleted_id in task.dependencies:
            task.dependencies.remove(deleted_id)
            task.touch()
            changed.append(task.id)
    return changed


def find_cycle(tasks: Mapping[str, Task]) -> Optional[list[str]]:
    """Return one dependency cycle as a path of ids, or None.

    Only hand-edited stores can contain one; the add path never creates them.
    """
    white, grey, black = 0, 1, 2
    color: dict[str, int] = {tid: white for tid in tasks}
    parent: dict[str, Optional[str]] = {}

    for root in tasks:
        if color[root] != white:
            continue
        stack: list[tuple[str, int]] = [(root, 0)]
        parent[root] = None
        color[root] = grey
        while stack:
            node, idx = stack[-1]
            deps = [d for d in tasks[node].dependencies if d in tasks]
            if idx < len(deps):
                stack[-1] = (node, idx + 1)
                nxt = deps[idx]
                if color[nxt] == grey:
                    path = [nxt]
                    cur: Optional[str] = node
                    while cur is not None and cur != nxt:
                        path.append(cur)
                        cur = parent.get(cur)
                    path.append(nxt)
                    path.reverse()
                    return path
                if color[nxt] == white:
                    color[nxt] = grey
                    parent[nxt] = node
                    stack.append((nxt, 0))
            else:
                color[node] = black
                stack.pop()
    return None
