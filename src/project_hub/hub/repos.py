from __future__ import annotations

import threading
from datetime import date
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

import yaml

from ..io_utils import FileLock, _atomic_write_yaml
from .models import Comment, DailyLog, Notification, Project

T = TypeVar("T")

COLLECTION_VERSION = 1


def _item_id(item: Any) -> str:
    return str(item.id)


class _YamlCollectionRepo(Generic[T]):
    """One YAML file holding a list of records under *key*.

    Every call re-reads the file under the lock, so separate processes sharing
    a state directory see each other's writes.
    """

    def __init__(
        self,
        path: Path,
        lock_path: Path,
        key: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key
        self._loader = loader
        self._dumper = dumper

    def _load(self) -> list[T]:
        if not self._path.exists():
            return []
        raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            return []
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [self._loader(item) for item in items if isinstance(item, dict)]

    def _save(self, items: list[T]) -> None:
        _atomic_write_yaml(
            self._path,
            {"version": COLLECTION_VERSION, self._key: [self._dumper(item) for item in items]},
        )

    def list(self) -> list[T]:
        with self._thread_lock, self._lock:
            return self._load()

    def get(self, item_id: str) -> Optional[T]:
        for item in self.list():
            if _item_id(item) == item_id:
                return item
        return None

    def upsert(self, item: T) -> T:
        with self._thread_lock, self._lock:
            items = self._load()
            for idx, existing in enumerate(items):
                if _item_id(existing) == _item_id(item):
                    items[idx] = item
                    break
            else:
                items.append(item)
            self._save(items)
        return item

    def delete(self, item_id: str) -> bool:
        return self.delete_where(lambda item: _item_id(item) == item_id) > 0

    def delete_where(self, predicate: Callable[[T], bool]) -> int:
        with self._thread_lock, self._lock:
            items = self._load()
            kept = [item for item in items if not predicate(item)]
            removed = len(items) - len(kept)
            if removed:
                self._save(kept)
        return removed

    def update_where(self, predicate: Callable[[T], bool], apply: Callable[[T], None]) -> list[T]:
        """Apply *apply* to every matching record and save once.  Returns the matches."""
        with self._thread_lock, self._lock:
            items = self._load()
            changed = [item for item in items if predicate(item)]
            for item in changed:
                apply(item)
            if changed:
                self._save(items)
        return changed


class ProjectRepository(_YamlCollectionRepo[Project]):
    def __init__(self, path: Path, lock_path: Path) -> None:
        super().__init__(path, lock_path, "projects", Project.from_dict, lambda p: p.to_dict())

    def list_for_member(self, user_id: str) -> list[Project]:
        return [p for p in self.list() if user_id in p.team]


class DailyLogRepository(_YamlCollectionRepo[DailyLog]):
    def __init__(self, path: Path, lock_path: Path) -> None:
        super().__init__(path, lock_path, "logs", DailyLog.from_dict, lambda lg: lg.to_dict())

    def query(
        self,
        *,
        project_id: Optional[str] = None,
        user_id: Optional[str] = None,
        on_date: Optional[str] = None,
    ) -> list[DailyLog]:
        """Matching logs, newest date first."""
        logs = [
            lg for lg in self.list()
            if (not project_id or lg.project_id == project_id)
            and (not user_id or lg.user_id == user_id)
            and (not on_date or lg.date == on_date)
        ]
        logs.sort(key=lambda lg: (lg.date, lg.created_at), reverse=True)
        return logs

    def members_missing_log(self, members: Iterable[str], on_date: date) -> list[str]:
        """Members of *members* with no log of any project on *on_date*."""
        logged = {lg.user_id for lg in self.query(on_date=on_date.isoformat())}
        return [m for m in dict.fromkeys(members) if m not in logged]


class CommentRepository(_YamlCollectionRepo[Comment]):
    def __init__(self, path: Path, lock_path: Path) -> None:
        super().__init__(path, lock_path, "comments", Comment.from_dict, lambda c: c.to_dict())

    def list_for_task(self, task_id: str) -> list[Comment]:
        comments = [c for c in self.list() if c.task_id == task_id]
        comments.sort(key=lambda c: c.timestamp)
        return comments

    def counts_by_task(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for comment in self.list():
            counts[comment.task_id] = counts.get(comment.task_id, 0) + 1
        return counts

    def delete_for_tasks(self, task_ids: Iterable[str]) -> int:
        ids = set(task_ids)
        if not ids:
            return 0
        return self.delete_where(lambda c: c.task_id in ids)


class NotificationRepository(_YamlCollectionRepo[Notification]):
    def __init__(self, path: Path, lock_path: Path) -> None:
        super().__init__(
            path, lock_path, "notifications", Notification.from_dict, lambda n: n.to_dict()
        )

    def list_for(self, recipient_id: str, *, unread_only: bool = False) -> list[Notification]:
        """Notifications for one recipient, newest first."""
        items = [
            n for n in self.list()
            if n.recipient_id == recipient_id and not (unread_only and n.is_read)
        ]
        items.sort(key=lambda n: n.timestamp, reverse=True)
        return items

    def mark_read(self, notification_id: str) -> Optional[Notification]:
        changed = self.update_where(
            lambda n: n.id == notification_id,
            lambda n: setattr(n, "is_read", True),
        )
        return changed[0] if changed else None

    def mark_all_read(self, recipient_id: str) -> int:
        changed = self.update_where(
            lambda n: n.recipient_id == recipient_id and not n.is_read,
            lambda n: setattr(n, "is_read", True),
        )
        return len(changed)
