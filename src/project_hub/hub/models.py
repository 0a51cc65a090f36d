"""Records that sit around the board: projects, daily logs, comments, notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..utils import _generate_id, _now_iso, _parse_date


class ProjectStatus(str, Enum):
    ON_TRACK = "On Track"
    AT_RISK = "At Risk"
    OFF_TRACK = "Off Track"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"


def _date_str(raw: Any) -> str:
    parsed = _parse_date(raw)
    return parsed.isoformat() if parsed else ""


def _str_list(raw: Any) -> list[str]:
    out: list[str] = []
    for item in list(raw or []):
        value = str(item)
        if value not in out:
            out.append(value)
    return out


def _pick(data: dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


@dataclass
class Project:
    id: str = field(default_factory=lambda: _generate_id("proj"))
    name: str = ""
    description: str = ""
    start_date: str = ""
    end_date: str = ""
    status: ProjectStatus = ProjectStatus.ON_TRACK
    progress: int = 0
    team: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "status": self.status.value,
            "progress": self.progress,
            "team": list(self.team),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        try:
            status = ProjectStatus(str(data.get("status") or ProjectStatus.ON_TRACK.value))
        except ValueError:
            status = ProjectStatus.ON_TRACK
        try:
            progress = int(data.get("progress") or 0)
        except (TypeError, ValueError):
            progress = 0
        return cls(
            id=str(data.get("id") or _generate_id("proj")),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            start_date=_date_str(_pick(data, "startDate", "start_date")),
            end_date=_date_str(_pick(data, "endDate", "end_date")),
            status=status,
            progress=max(0, min(100, progress)),
            team=_str_list(data.get("team")),
            created_at=str(_pick(data, "createdAt", "created_at") or _now_iso()),
        )


@dataclass
class DailyLog:
    """A team member's stand-up entry for one project and day."""

    id: str = field(default_factory=lambda: _generate_id("log"))
    project_id: str = ""
    user_id: str = ""
    date: str = ""
    yesterdays_tasks: str = ""
    todays_plan: str = ""
    challenges: str = ""
    collaborator_ids: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "userId": self.user_id,
            "date": self.date,
            "yesterdaysTasks": self.yesterdays_tasks,
            "todaysPlan": self.todays_plan,
            "challenges": self.challenges,
            "collaboratorIds": list(self.collaborator_ids),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyLog":
        return cls(
            id=str(data.get("id") or _generate_id("log")),
            project_id=str(_pick(data, "projectId", "project_id") or ""),
            user_id=str(_pick(data, "userId", "user_id") or ""),
            date=_date_str(data.get("date")),
            yesterdays_tasks=str(_pick(data, "yesterdaysTasks", "yesterdays_tasks") or ""),
            todays_plan=str(_pick(data, "todaysPlan", "todays_plan") or ""),
            challenges=str(data.get("challenges") or ""),
            collaborator_ids=_str_list(_pick(data, "collaboratorIds", "collaborator_ids")),
            created_at=str(_pick(data, "createdAt", "created_at") or _now_iso()),
        )


@dataclass
class Comment:
    id: str = field(default_factory=lambda: _generate_id("cmt"))
    task_id: str = ""
    user_id: str = ""
    text: str = ""
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "userId": self.user_id,
            "text": self.text,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            id=str(data.get("id") or _generate_id("cmt")),
            task_id=str(_pick(data, "taskId", "task_id") or ""),
            user_id=str(_pick(data, "userId", "user_id") or ""),
            text=str(data.get("text") or ""),
            timestamp=str(data.get("timestamp") or _now_iso()),
        )


@dataclass
class Notification:
    id: str = field(default_factory=lambda: _generate_id("ntf"))
    recipient_id: str = ""
    sender_id: Optional[str] = None
    message: str = ""
    timestamp: str = field(default_factory=_now_iso)
    is_read: bool = False
    task_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipientId": self.recipient_id,
            "senderId": self.sender_id,
            "message": self.message,
            "timestamp": self.timestamp,
            "isRead": self.is_read,
            "taskId": self.task_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notification":
        sender = _pick(data, "senderId", "sender_id")
        task_id = _pick(data, "taskId", "task_id")
        return cls(
            id=str(data.get("id") or _generate_id("ntf")),
            recipient_id=str(_pick(data, "recipientId", "recipient_id") or ""),
            sender_id=str(sender) if sender else None,
            message=str(data.get("message") or ""),
            timestamp=str(data.get("timestamp") or _now_iso()),
            is_read=bool(_pick(data, "isRead", "is_read", False)),
            task_id=str(task_id) if task_id else None,
        )
