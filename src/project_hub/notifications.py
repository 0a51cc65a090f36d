"""In-app notifications for team members.

Managers notify people directly; the hub itself sends daily-log reminders
and task due-date reminders.  Notifications are stored per recipient and
read back newest first.
"""

from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger

from .board.model import Task
from .constants import DAILY_LOG_REMINDER_MESSAGE
from .hub.models import Notification
from .hub.repos import NotificationRepository


def _due_message(task: Task) -> str:
    return f"Reminder: '{task.title}' is due on {task.due_date}."


class NotificationService:
    """Send, list and acknowledge notifications."""

    def __init__(self, repo: NotificationRepository):
        """Initialize the service.

        Args:
            repo: Notification collection to write to.
        """
        self.repo = repo

    def send(
        self,
        recipient_ids: Iterable[str],
        message: str,
        *,
        sender_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> list[Notification]:
        """Send one notification to each distinct recipient.

        Args:
            recipient_ids: Users to notify.
            message: Text shown to the recipient.
            sender_id: User who sent it, None for system messages.
            task_id: Optional task the message refers to.

        Returns:
            The stored notifications.
        """
        message = message.strip()
        if not message:
            raise ValueError("Notification message must not be empty")

        sent: list[Notification] = []
        for recipient_id in dict.fromkeys(recipient_ids):
            if not recipient_id:
                continue
            notification = Notification(
                recipient_id=recipient_id,
                sender_id=sender_id,
                message=message,
                task_id=task_id,
            )
            self.repo.upsert(notification)
            sent.append(notification)
        logger.info("Sent notification to {} recipient(s)", len(sent))
        return sent

    def list_for(self, recipient_id: str, *, unread_only: bool = False) -> list[Notification]:
        return self.repo.list_for(recipient_id, unread_only=unread_only)

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        return self.repo.mark_read(notification_id)

    def mark_all_read(self, recipient_id: str) -> int:
        count = self.repo.mark_all_read(recipient_id)
        logger.debug("Marked {} notification(s) read for {}", count, recipient_id)
        return count

    def send_log_reminders(
        self,
        recipient_ids: Iterable[str],
        *,
        sender_id: Optional[str] = None,
    ) -> list[Notification]:
        """Remind each recipient to submit today's daily log."""
        recipients = list(recipient_ids)
        if not recipients:
            logger.debug("No daily log reminders to send")
            return []
        return self.send(recipients, DAILY_LOG_REMINDER_MESSAGE, sender_id=sender_id)

    def send_due_reminders(self, tasks: Iterable[Task]) -> list[Notification]:
        """Notify assignees of due tasks, at most once per task and assignee."""
        already = {
            (n.recipient_id, n.task_id)
            for n in self.repo.list()
            if n.task_id and n.sender_id is None
        }
        sent: list[Notification] = []
        for task in tasks:
            if not task.assignee_id or (task.assignee_id, task.id) in already:
                continue
            sent.extend(self.send([task.assignee_id], _due_message(task), task_id=task.id))
            already.add((task.assignee_id, task.id))
        if sent:
            logger.info("Sent {} task due reminder(s)", len(sent))
        return sent
