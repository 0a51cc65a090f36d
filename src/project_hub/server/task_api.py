"""Task API endpoints for the project board.

This module provides a FastAPI router with task CRUD, drag-and-drop moves,
dependency management and the board view.  It is mounted under
``/api/tasks`` by the main ``create_app`` factory.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from ..board.graph import DependencyCycleError, DependencyError
from ..hub.container import HubContainer
from .users import require_permission


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1)
    project_id: str = Field(alias="projectId")
    description: str = ""
    assignee_id: str = Field("", alias="assigneeId")
    due_date: str = Field("", alias="dueDate")
    priority: str = "Medium"
    reminder: Optional[str] = None

    model_config = {"populate_by_name": True}


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    status: Optional[str] = None
    order: Optional[float] = None
    due_date: Optional[str] = Field(None, alias="dueDate")
    priority: Optional[str] = None
    reminder: Optional[str] = None
    dependencies: Optional[list[str]] = None

    model_config = {"populate_by_name": True}


# PATCH fields that may be explicitly set to null
_CLEARABLE_FIELDS = {"assignee_id", "due_date", "reminder", "dependencies"}


class MoveTaskRequest(BaseModel):
    """Drop a task into ``status`` before ``targetTaskId`` (or at the end)."""
    target_task_id: Optional[str] = Field(None, alias="targetTaskId")
    status: str

    model_config = {"populate_by_name": True}


class AddDependencyRequest(BaseModel):
    depends_on: str = Field(alias="dependsOn")

    model_config = {"populate_by_name": True}


class TaskResponse(BaseModel):
    """Standard wrapper for task responses."""
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int


class BoardResponse(BaseModel):
    project_id: str
    columns: dict[str, list[dict[str, Any]]]


class DependencyStatusResponse(BaseModel):
    status: dict[str, Any]


class DependencyGraphResponse(BaseModel):
    graph: dict[str, list[str]]


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_task_router(get_hub: Callable[[Optional[str]], HubContainer]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_hub:
        A callable ``(project_dir_param: str | None) -> HubContainer`` that
        resolves the hub for the current request's project directory.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    def _users(project_dir: Optional[str]):
        return get_hub(project_dir).users

    can_edit = Depends(require_permission(_users, "edit_tasks"))
    can_delete = Depends(require_permission(_users, "delete"))

    def _not_found(task_id: str) -> HTTPException:
        return HTTPException(status_code=404, detail=f"Task {task_id} not found")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    @router.get("", response_model=TaskListResponse)
    async def list_tasks(
        project_dir: Optional[str] = Query(None),
        project_id: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        assignee_id: Optional[str] = Query(None),
        priority: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
    ) -> TaskListResponse:
        hub = get_hub(project_dir)
        tasks = hub.tasks.list_tasks(
            project_id=project_id,
            status=status,
            assignee_id=assignee_id,
            priority=priority,
            search=search,
        )
        data = [t.to_dict() for t in tasks]
        return TaskListResponse(tasks=data, total=len(data))

    @router.post("", response_model=TaskResponse, status_code=201, dependencies=[can_edit])
    async def create_task(
        body: CreateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        hub = get_hub(project_dir)
        if hub.projects.get(body.project_id) is None:
            raise HTTPException(status_code=404, detail=f"Project {body.project_id} not found")
        try:
            task = hub.tasks.create_task(**body.model_dump())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return TaskResponse(task=task.to_dict())

    @router.get("/board", response_model=BoardResponse)
    async def get_board(
        project_id: str = Query(...),
        project_dir: Optional[str] = Query(None),
        today: Optional[date] = Query(None),
    ) -> BoardResponse:
        hub = get_hub(project_dir)
        return BoardResponse(project_id=project_id, columns=hub.board(project_id, today=today))

    @router.get("/graph", response_model=DependencyGraphResponse)
    async def get_dependency_graph(
        project_id: str = Query(...),
        project_dir: Optional[str] = Query(None),
    ) -> DependencyGraphResponse:
        hub = get_hub(project_dir)
        return DependencyGraphResponse(graph=hub.tasks.get_dependency_graph(project_id))

    @router.get("/events")
    async def get_events(
        project_dir: Optional[str] = Query(None),
        task_id: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=1000),
    ) -> dict[str, Any]:
        engine = get_hub(project_dir).tasks
        if task_id:
            events = engine.get_task_events(task_id, limit=limit)
        else:
            events = engine.get_recent_events(limit=limit)
        return {"events": events}

    @router.get("/upcoming", response_model=TaskListResponse)
    async def upcoming_tasks(
        assignee_id: str = Query(...),
        limit: int = Query(5, ge=1, le=100),
        project_dir: Optional[str] = Query(None),
    ) -> TaskListResponse:
        tasks = get_hub(project_dir).tasks.upcoming_tasks(assignee_id, limit=limit)
        data = [t.to_dict() for t in tasks]
        return TaskListResponse(tasks=data, total=len(data))

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        task = get_hub(project_dir).tasks.get_task(task_id)
        if task is None:
            raise _not_found(task_id)
        return TaskResponse(task=task.to_dict())

    @router.patch("/{task_id}", response_model=TaskResponse, dependencies=[can_edit])
    async def update_task(
        task_id: str,
        body: UpdateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_hub(project_dir).tasks
        changes = {
            k: v for k, v in body.model_dump(exclude_unset=True).items()
            if v is not None or k in _CLEARABLE_FIELDS
        }
        try:
            task = engine.update_task(task_id, changes)
        except DependencyCycleError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if task is None:
            raise _not_found(task_id)
        return TaskResponse(task=task.to_dict())

    @router.delete("/{task_id}", dependencies=[can_delete])
    async def delete_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        if not get_hub(project_dir).delete_task(task_id):
            raise _not_found(task_id)
        return {"status": "deleted"}

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    @router.post("/{task_id}/move", response_model=TaskResponse, dependencies=[can_edit])
    async def move_task(
        task_id: str,
        body: MoveTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_hub(project_dir).tasks
        try:
            task = engine.move_task(task_id, body.target_task_id, body.status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if task is None:
            raise _not_found(task_id)
        return TaskResponse(task=task.to_dict())

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.get("/{task_id}/dependencies", response_model=DependencyStatusResponse)
    async def get_task_dependencies(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> DependencyStatusResponse:
        status = get_hub(project_dir).tasks.dependency_status(task_id)
        if status is None:
            raise _not_found(task_id)
        return DependencyStatusResponse(status=status)

    @router.post("/{task_id}/dependencies", response_model=TaskResponse, dependencies=[can_edit])
    async def add_dependency(
        task_id: str,
        body: AddDependencyRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = get_hub(project_dir).tasks
        if engine.get_task(task_id) is None:
            raise _not_found(task_id)
        try:
            task = engine.add_dependency(task_id, body.depends_on)
        except DependencyCycleError as e:
            logger.info("Dependency rejected: {}", e)
            raise HTTPException(status_code=409, detail=str(e))
        except DependencyError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return TaskResponse(task=task.to_dict())

    @router.delete(
        "/{task_id}/dependencies/{dep_id}",
        response_model=TaskResponse,
        dependencies=[can_edit],
    )
    async def remove_dependency(
        task_id: str,
        dep_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        task = get_hub(project_dir).tasks.remove_dependency(task_id, dep_id)
        if task is None:
            raise _not_found(task_id)
        return TaskResponse(task=task.to_dict())

    @router.get("/{task_id}/blocked")
    async def is_blocked(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = get_hub(project_dir).tasks
        blocked = engine.is_blocked(task_id)
        if blocked is None:
            raise _not_found(task_id)
        return {
            "taskId": task_id,
            "isBlocked": blocked,
            "blockingCount": engine.blocking_count(task_id),
        }

    return router
