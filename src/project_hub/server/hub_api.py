"""Hub API: projects, daily logs, comments, notifications and users."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..hub.container import HubContainer
from ..hub.models import Comment, DailyLog, Project, ProjectStatus
from .users import UserProfile, UserRole, require_permission

GetHub = Callable[[Optional[str]], HubContainer]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = {"populate_by_name": True}


class CreateProjectRequest(_CamelModel):
    name: str = Field(min_length=1)
    description: str = ""
    start_date: str = Field("", alias="startDate")
    end_date: str = Field("", alias="endDate")
    status: str = ProjectStatus.ON_TRACK.value
    progress: int = Field(0, ge=0, le=100)
    team: list[str] = Field(default_factory=list)


class UpdateProjectRequest(_CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    status: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    team: Optional[list[str]] = None


class CreateLogRequest(_CamelModel):
    project_id: str = Field(alias="projectId")
    user_id: str = Field("", alias="userId")
    date: str = ""
    yesterdays_tasks: str = Field("", alias="yesterdaysTasks")
    todays_plan: str = Field("", alias="todaysPlan")
    challenges: str = ""
    collaborator_ids: list[str] = Field(default_factory=list, alias="collaboratorIds")


class CreateCommentRequest(_CamelModel):
    task_id: str = Field(alias="taskId")
    user_id: str = Field("", alias="userId")
    text: str = Field(min_length=1)


class SendNotificationRequest(_CamelModel):
    recipient_ids: list[str] = Field(alias="recipientIds", min_length=1)
    message: str = Field(min_length=1)
    sender_id: Optional[str] = Field(None, alias="senderId")
    task_id: Optional[str] = Field(None, alias="taskId")


class LogReminderRequest(_CamelModel):
    date: Optional[str] = None
    project_id: Optional[str] = Field(None, alias="projectId")
    sender_id: Optional[str] = Field(None, alias="senderId")


class CreateUserRequest(_CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: str = UserRole.TEAM_MEMBER.value
    avatar: str = ""


class UpdateRoleRequest(BaseModel):
    role: str


class UpdateSettingsRequest(BaseModel):
    settings: dict[str, Any]


def _parse_day(raw: Optional[str]) -> date:
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date '{raw}', expected YYYY-MM-DD")


def _project_status(raw: str) -> ProjectStatus:
    try:
        return ProjectStatus(raw)
    except ValueError:
        valid = [s.value for s in ProjectStatus]
        raise HTTPException(status_code=400, detail=f"Unknown project status '{raw}'. Valid: {valid}")


def _permission(get_hub: GetHub, perm: str):
    return require_permission(lambda project_dir: get_hub(project_dir).users, perm)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def create_project_router(get_hub: GetHub) -> APIRouter:
    router = APIRouter(prefix="/api/projects", tags=["projects"])
    can_manage = Depends(_permission(get_hub, "manage_projects"))
    can_delete = Depends(_permission(get_hub, "delete"))

    def _get_or_404(hub: HubContainer, project_id: str) -> Project:
        project = hub.projects.get(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
        return project

    @router.get("")
    async def list_projects(
        member_id: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        projects = hub.projects.list_for_member(member_id) if member_id else hub.projects.list()
        data = [hub.project_view(p) for p in projects]
        return {"projects": data, "total": len(data)}

    @router.post("", status_code=201, dependencies=[can_manage])
    async def create_project(
        body: CreateProjectRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        _project_status(body.status)
        project = Project.from_dict(body.model_dump())
        hub.projects.upsert(project)
        return {"project": hub.project_view(project)}

    @router.get("/{project_id}")
    async def get_project(
        project_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        return {"project": hub.project_view(_get_or_404(hub, project_id))}

    @router.patch("/{project_id}", dependencies=[can_manage])
    async def update_project(
        project_id: str,
        body: UpdateProjectRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        project = _get_or_404(hub, project_id)
        changes = {
            k: v for k, v in body.model_dump(by_alias=True, exclude_unset=True).items()
            if v is not None
        }
        if "status" in changes:
            _project_status(changes["status"])
        updated = Project.from_dict({**project.to_dict(), **changes})
        hub.projects.upsert(updated)
        return {"project": hub.project_view(updated)}

    @router.delete("/{project_id}", dependencies=[can_delete])
    async def delete_project(
        project_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        if not get_hub(project_dir).delete_project(project_id):
            raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
        return {"status": "deleted"}

    return router


# ---------------------------------------------------------------------------
# Daily logs
# ---------------------------------------------------------------------------

def create_log_router(get_hub: GetHub) -> APIRouter:
    router = APIRouter(prefix="/api/logs", tags=["logs"])
    can_submit = _permission(get_hub, "submit_log")

    @router.get("")
    async def list_logs(
        project_id: Optional[str] = Query(None),
        user_id: Optional[str] = Query(None),
        on_date: Optional[str] = Query(None, alias="date"),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        logs = get_hub(project_dir).logs.query(
            project_id=project_id, user_id=user_id, on_date=on_date
        )
        return {"logs": [lg.to_dict() for lg in logs], "total": len(logs)}

    @router.post("", status_code=201)
    async def submit_log(
        body: CreateLogRequest,
        project_dir: Optional[str] = Query(None),
        caller: Optional[UserProfile] = Depends(can_submit),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        if hub.projects.get(body.project_id) is None:
            raise HTTPException(status_code=404, detail=f"Project {body.project_id} not found")
        user_id = body.user_id or (caller.id if caller else "")
        if not user_id:
            raise HTTPException(status_code=400, detail="userId is required")
        log = DailyLog.from_dict({
            **body.model_dump(),
            "user_id": user_id,
            "date": _parse_day(body.date).isoformat(),
        })
        hub.logs.upsert(log)
        return {"log": log.to_dict()}

    @router.get("/missing")
    async def members_missing_log(
        on_date: Optional[str] = Query(None, alias="date"),
        project_id: Optional[str] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        day = _parse_day(on_date)
        missing = get_hub(project_dir).members_missing_log(day, project_id)
        return {"date": day.isoformat(), "userIds": missing}

    return router


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def create_comment_router(get_hub: GetHub) -> APIRouter:
    router = APIRouter(prefix="/api/comments", tags=["comments"])
    can_comment = _permission(get_hub, "comment")
    can_delete = Depends(_permission(get_hub, "delete"))

    @router.get("")
    async def list_comments(
        task_id: str = Query(...),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        comments = get_hub(project_dir).comments.list_for_task(task_id)
        return {"comments": [c.to_dict() for c in comments], "total": len(comments)}

    @router.post("", status_code=201)
    async def add_comment(
        body: CreateCommentRequest,
        project_dir: Optional[str] = Query(None),
        caller: Optional[UserProfile] = Depends(can_comment),
    ) -> dict[str, Any]:
        hub = get_hub(project_dir)
        if hub.tasks.get_task(body.task_id) is None:
            raise HTTPException(status_code=404, detail=f"Task {body.task_id} not found")
        comment = Comment(
            task_id=body.task_id,
            user_id=body.user_id or (caller.id if caller else ""),
            text=body.text,
        )
        hub.comments.upsert(comment)
        return {"comment": comment.to_dict()}

    @router.delete("/{comment_id}", dependencies=[can_delete])
    async def delete_comment(
        comment_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        if not get_hub(project_dir).comments.delete(comment_id):
            raise HTTPException(status_code=404, detail=f"Comment {comment_id} not found")
        return {"status": "deleted"}

    return router


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

def create_notification_router(get_hub: GetHub) -> APIRouter:
    router = APIRouter(prefix="/api/notifications", tags=["notifications"])
    can_notify = _permission(get_hub, "notify")

    @router.get("")
    async def list_notifications(
        recipient_id: str = Query(...),
        unread_only: bool = Query(False),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        items = get_hub(project_dir).notifications.list_for(recipient_id, unread_only=unread_only)
        return {"notifications": [n.to_dict() for n in items], "total": len(items)}

    @router.post("", status_code=201)
    async def send_notification(
        body: SendNotificationRequest,
        project_dir: Optional[str] = Query(None),
        caller: Optional[UserProfile] = Depends(can_notify),
    ) -> dict[str, Any]:
        sent = get_hub(project_dir).notifications.send(
            body.recipient_ids,
            body.message,
            sender_id=body.sender_id or (caller.id if caller else None),
            task_id=body.task_id,
        )
        return {"notifications": [n.to_dict() for n in sent], "total": len(sent)}

    @router.put("/mark-all-read")
    async def mark_all_read(
        recipient_id: str = Query(...),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        count = get_hub(project_dir).notifications.mark_all_read(recipient_id)
        return {"status": "ok", "updated": count}

    @router.put("/{notification_id}")
    async def mark_read(
        notification_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        notification = get_hub(project_dir).notifications.mark_read(notification_id)
        if notification is None:
            raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
        return {"notification": notification.to_dict()}

    @router.post("/reminders/daily-log")
    async def send_log_reminders(
        body: LogReminderRequest,
        project_dir: Optional[str] = Query(None),
        caller: Optional[UserProfile] = Depends(can_notify),
    ) -> dict[str, Any]:
        sent = get_hub(project_dir).send_log_reminders(
            _parse_day(body.date),
            project_id=body.project_id,
            sender_id=body.sender_id or (caller.id if caller else None),
        )
        return {"notifications": [n.to_dict() for n in sent], "total": len(sent)}

    @router.post("/reminders/due-tasks", dependencies=[Depends(can_notify)])
    async def send_due_reminders(
        now: Optional[datetime] = Query(None),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        sent = get_hub(project_dir).send_due_reminders(now)
        return {"notifications": [n.to_dict() for n in sent], "total": len(sent)}

    return router


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def create_user_router(get_hub: GetHub) -> APIRouter:
    router = APIRouter(prefix="/api/users", tags=["users"])
    can_manage = Depends(_permission(get_hub, "manage_users"))

    def _role(raw: str) -> UserRole:
        try:
            return UserRole(raw)
        except ValueError:
            valid = [r.value for r in UserRole]
            raise HTTPException(status_code=400, detail=f"Unknown role '{raw}'. Valid: {valid}")

    @router.get("")
    async def list_users(
        active_only: bool = Query(True),
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        users = get_hub(project_dir).users.list_users(active_only=active_only)
        return {"users": [u.to_dict() for u in users], "total": len(users)}

    @router.post("", status_code=201, dependencies=[can_manage])
    async def create_user(
        body: CreateUserRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        user = get_hub(project_dir).users.create_user(
            body.name, body.email, role=_role(body.role), avatar=body.avatar
        )
        return {"user": user.to_dict()}

    @router.get("/{user_id}")
    async def get_user(
        user_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        user = get_hub(project_dir).users.get_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        return {"user": user.to_dict()}

    @router.put("/{user_id}/role", dependencies=[can_manage])
    async def update_role(
        user_id: str,
        body: UpdateRoleRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        user = get_hub(project_dir).users.update_role(user_id, _role(body.role))
        if user is None:
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        return {"user": user.to_dict()}

    @router.put("/{user_id}/settings")
    async def update_settings(
        user_id: str,
        body: UpdateSettingsRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        user = get_hub(project_dir).users.update_settings(user_id, body.settings)
        if user is None:
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        return {"user": user.to_dict()}

    @router.delete("/{user_id}", dependencies=[can_manage])
    async def deactivate_user(
        user_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, str]:
        if not get_hub(project_dir).users.deactivate_user(user_id):
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        return {"status": "deactivated"}

    return router
