"""Tests for the notification service."""

from __future__ import annotations

from pathlib import Path

import pytest

from project_hub.constants import DAILY_LOG_REMINDER_MESSAGE
from project_hub.hub.repos import NotificationRepository
from project_hub.notifications import NotificationService


@pytest.fixture
def service(tmp_path: Path) -> NotificationService:
    repo = NotificationRepository(tmp_path / "notifications.yaml", tmp_path / "notifications.lock")
    return NotificationService(repo)


class TestNotificationService:
    def test_send_to_many(self, service: NotificationService) -> None:
        sent = service.send(["u1", "u2", "u1", ""], "Standup moved", sender_id="boss")
        assert [n.recipient_id for n in sent] == ["u1", "u2"]
        assert all(not n.is_read for n in sent)
        assert service.list_for("u1")[0].message == "Standup moved"

    def test_empty_message_rejected(self, service: NotificationService) -> None:
        with pytest.raises(ValueError):
            service.send(["u1"], "   ")

    def test_list_newest_first(self, service: NotificationService) -> None:
        first = service.send(["u1"], "first")[0]
        first.timestamp = "2024-01-01T00:00:00+00:00"
        service.repo.upsert(first)
        service.send(["u1"], "second")
        assert [n.message for n in service.list_for("u1")] == ["second", "first"]

    def test_mark_read(self, service: NotificationService) -> None:
        n = service.send(["u1"], "hello")[0]
        marked = service.mark_read(n.id)
        assert marked is not None and marked.is_read
        assert service.list_for("u1", unread_only=True) == []
        assert service.mark_read("nope") is None

    def test_mark_all_read(self, service: NotificationService) -> None:
        service.send(["u1"], "a")
        service.send(["u1"], "b")
        service.send(["u2"], "c")
        assert service.mark_all_read("u1") == 2
        assert service.mark_all_read("u1") == 0
        assert len(service.list_for("u2", unread_only=True)) == 1

    def test_log_reminders(self, service: NotificationService) -> None:
        sent = service.send_log_reminders(["u1", "u2"])
        assert {n.recipient_id for n in sent} == {"u1", "u2"}
        assert all(n.message == DAILY_LOG_REMINDER_MESSAGE for n in sent)
        assert service.send_log_reminders([]) == []
