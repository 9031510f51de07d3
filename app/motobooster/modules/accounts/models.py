from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.motobooster.docstore import DocumentSnapshot

USERS = "users"
PASSWORD_HELP_REQUESTS = "passwordHelpRequests"

DEFAULT_ROLE = "staff"


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    email: str
    full_name: str
    roles: list[str] = field(default_factory=list)
    role: str = ""  # legacy single-role field
    status: str = ""
    auth_uid: str = ""
    last_login: str | None = None

    @classmethod
    def from_snapshot(cls, snap: DocumentSnapshot) -> "UserProfile":
        d = snap.data
        roles = d.get("roles")
        return cls(
            id=snap.id,
            username=_text(d.get("username")),
            email=_text(d.get("email")),
            full_name=_text(d.get("fullName")),
            roles=[str(r) for r in roles] if isinstance(roles, list) else [],
            role=_text(d.get("role")),
            status=_text(d.get("status")),
            auth_uid=_text(d.get("authUid")),
            last_login=d.get("lastLogin"),
        )

    @property
    def is_active(self) -> bool:
        return normalize_status(self.status) == "active"

    def effective_roles(self) -> list[str]:
        if self.roles:
            return list(self.roles)
        if self.role:
            return [self.role]
        return [DEFAULT_ROLE]


def normalize_status(status: str | None) -> str:
    return (status or "").strip().lower()


@dataclass(frozen=True)
class SessionUser:
    """What the signed session cookie carries for the logged-in user."""

    id: str
    name: str
    roles: tuple[str, ...] = ()

    def to_session(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "roles": list(self.roles)}

    @classmethod
    def from_session(cls, data: Any) -> "SessionUser | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None
        roles = data.get("roles") or []
        return cls(id=str(data["id"]), name=str(data.get("name") or ""), roles=tuple(str(r) for r in roles))


@dataclass(frozen=True)
class PasswordHelpRequest:
    username: str
    created_at: str

    def to_document(self) -> dict[str, Any]:
        return {"username": self.username, "createdAt": self.created_at}
