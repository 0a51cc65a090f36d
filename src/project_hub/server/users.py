"""Multi-user management: user store, roles, and request permissions.

Users have one of three roles (Manager, Team Member, Executive) that control
what they may change.  Profiles persist to ``users.yaml`` in the state
directory.  API callers identify themselves with an ``X-User-Id`` header;
requests without one are not checked.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import Header, HTTPException, Query
from loguru import logger

from ..hub.repos import _YamlCollectionRepo
from ..utils import _generate_id, _now_iso


class UserRole(str, Enum):
    MANAGER = "Manager"             # full access
    TEAM_MEMBER = "Team Member"     # works tasks, comments, submits logs
    EXECUTIVE = "Executive"         # read-only


# Permissions per role
ROLE_PERMISSIONS: dict[str, set[str]] = {
    UserRole.MANAGER.value: {
        "view", "edit_tasks", "delete", "manage_projects", "manage_users", "notify",
    },
    UserRole.TEAM_MEMBER.value: {
        "view", "edit_tasks", "comment", "submit_log",
    },
    UserRole.EXECUTIVE.value: {
        "view",
    },
}

_AVATAR_URL = "https://i.pravatar.cc/150?u={email}"


def default_settings() -> dict[str, Any]:
    return {
        "notifications": {
            "logReminder": {"email": True, "telegram": False, "time": "17:00"},
        },
    }


@dataclass
class UserProfile:
    """A registered user."""
    id: str = field(default_factory=lambda: _generate_id("user"))
    name: str = ""
    email: str = ""
    avatar: str = ""
    role: UserRole = UserRole.TEAM_MEMBER
    settings: dict[str, Any] = field(default_factory=default_settings)
    created_at: str = field(default_factory=_now_iso)
    active: bool = True

    def has_permission(self, perm: str) -> bool:
        return perm in ROLE_PERMISSIONS.get(self.role.value, set())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "role": self.role.value,
            "settings": self.settings,
            "createdAt": self.created_at,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        try:
            role = UserRole(str(data.get("role") or UserRole.TEAM_MEMBER.value))
        except ValueError:
            role = UserRole.TEAM_MEMBER
        settings = data.get("settings")
        return cls(
            id=str(data.get("id") or _generate_id("user")),
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            avatar=str(data.get("avatar") or ""),
            role=role,
            settings=settings if isinstance(settings, dict) else default_settings(),
            created_at=str(data.get("createdAt") or data.get("created_at") or _now_iso()),
            active=bool(data.get("active", True)),
        )


class UserStore:
    """File-backed store for user profiles."""

    def __init__(self, path: Path, lock_path: Path) -> None:
        self._repo = _YamlCollectionRepo[UserProfile](
            path,
            lock_path,
            "users",
            loader=UserProfile.from_dict,
            dumper=lambda u: u.to_dict(),
        )

    def create_user(
        self,
        name: str,
        email: str,
        *,
        role: UserRole = UserRole.TEAM_MEMBER,
        avatar: str = "",
    ) -> UserProfile:
        """Create a new user. Returns the existing user if the email is taken."""
        existing = self.get_by_email(email)
        if existing:
            return existing

        user = UserProfile(
            name=name,
            email=email,
            role=role,
            avatar=avatar or _AVATAR_URL.format(email=email),
        )
        self._repo.upsert(user)
        logger.info("Created user {} ({}, {})", user.id, email, role.value)
        return user

    def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        return self._repo.get(user_id)

    def get_by_email(self, email: str) -> Optional[UserProfile]:
        wanted = email.strip().lower()
        for user in self._repo.list():
            if user.email.lower() == wanted:
                return user
        return None

    def list_users(self, active_only: bool = True) -> list[UserProfile]:
        users = self._repo.list()
        if active_only:
            users = [u for u in users if u.active]
        return users

    def update_role(self, user_id: str, role: UserRole) -> Optional[UserProfile]:
        changed = self._repo.update_where(lambda u: u.id == user_id, lambda u: setattr(u, "role", role))
        return changed[0] if changed else None

    def update_settings(self, user_id: str, settings: dict[str, Any]) -> Optional[UserProfile]:
        changed = self._repo.update_where(
            lambda u: u.id == user_id, lambda u: u.settings.update(settings)
        )
        return changed[0] if changed else None

    def deactivate_user(self, user_id: str) -> bool:
        changed = self._repo.update_where(lambda u: u.id == user_id, lambda u: setattr(u, "active", False))
        return bool(changed)


def require_permission(
    get_users: Callable[[Optional[str]], UserStore],
    perm: str,
) -> Callable[..., Optional[UserProfile]]:
    """Build a FastAPI dependency that checks *perm* for the ``X-User-Id`` caller.

    *get_users* resolves the user store for the request's ``project_dir``.

    Returns the calling user, or None for anonymous requests.
    """

    def _dependency(
        x_user_id: Optional[str] = Header(None),
        project_dir: Optional[str] = Query(None),
    ) -> Optional[UserProfile]:
        if not x_user_id:
            return None
        user = get_users(project_dir).get_by_id(x_user_id)
        if user is None:
            raise HTTPException(status_code=401, detail=f"Unknown user {x_user_id}")
        if not user.active:
            raise HTTPException(status_code=403, detail="User is deactivated")
        if not user.has_permission(perm):
            logger.warning("User {} ({}) denied '{}'", user.id, user.role.value, perm)
            raise HTTPException(
                status_code=403,
                detail=f"Role '{user.role.value}' lacks permission '{perm}'",
            )
        return user

    return _dependency
