from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from ..board.engine import TaskEngine
from ..config import BoardConfig, resolve_board_config
from ..constants import STATE_DIR_NAME
from ..notifications import NotificationService
from ..server.users import UserStore
from .models import Notification, Project
from .repos import CommentRepository, DailyLogRepository, NotificationRepository, ProjectRepository


class HubContainer:
    """Every store of one hub directory, plus the operations that span several of them."""

    def __init__(self, project_dir: Path, board_config: Optional[BoardConfig] = None) -> None:
        self.project_dir = project_dir.resolve()
        self.state_dir = self.project_dir / STATE_DIR_NAME
        self.state_dir.mkdir(parents=True, exist_ok=True)

        root = self.state_dir
        self.board_config = board_config or resolve_board_config(self.project_dir)
        self.tasks = TaskEngine(root, self.board_config)
        self.projects = ProjectRepository(root / "projects.yaml", root / "projects.lock")
        self.logs = DailyLogRepository(root / "logs.yaml", root / "logs.lock")
        self.comments = CommentRepository(root / "comments.yaml", root / "comments.lock")
        self.notifications = NotificationService(
            NotificationRepository(root / "notifications.yaml", root / "notifications.lock")
        )
        self.users = UserStore(root / "users.yaml", root / "users.lock")

    # -- tasks -------------------------------------------------------------

    def delete_task(self, task_id: str) -> bool:
        """Delete a task and its comments."""
        if not self.tasks.delete_task(task_id):
            return False
        self.comments.delete_for_tasks([task_id])
        return True

    def board(self, project_id: str, today: Optional[date] = None) -> dict[str, list[dict[str, Any]]]:
        return self.tasks.get_board(
            project_id, today=today, comment_counts=self.comments.counts_by_task()
        )

    # -- projects ----------------------------------------------------------

    def project_view(self, project: Project) -> dict[str, Any]:
        data = project.to_dict()
        data["derivedProgress"] = self.tasks.project_progress(project.id)
        return data

    def delete_project(self, project_id: str) -> bool:
        """Delete a project together with its tasks and their comments."""
        if self.projects.get(project_id) is None:
            return False
        removed = self.tasks.delete_project_tasks(project_id)
        self.comments.delete_for_tasks(removed)
        return self.projects.delete(project_id)

    # -- logs & reminders --------------------------------------------------

    def members_missing_log(self, on_date: date, project_id: Optional[str] = None) -> list[str]:
        """Team members (of one project, or of every project) with no log on *on_date*."""
        if project_id:
            project = self.projects.get(project_id)
            members = project.team if project else []
        else:
            members = [m for p in self.projects.list() for m in p.team]
        return self.logs.members_missing_log(members, on_date)

    def send_log_reminders(
        self,
        on_date: date,
        *,
        project_id: Optional[str] = None,
        sender_id: Optional[str] = None,
    ) -> list[Notification]:
        missing = self.members_missing_log(on_date, project_id)
        return self.notifications.send_log_reminders(missing, sender_id=sender_id)

    def send_due_reminders(self, now: Optional[datetime] = None) -> list[Notification]:
        return self.notifications.send_due_reminders(self.tasks.due_reminders(now))
