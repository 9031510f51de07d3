from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for

from app.motobooster.modules.accounts.models import SessionUser

# Static role table; role names compare case-insensitively.
DEFAULT_PERMISSIONS: dict[str, frozenset[str]] = {
    "customers.view": frozenset({"superadmin", "admin", "employee"}),
    "customers.view.archived": frozenset({"superadmin", "admin"}),
    "customers.add": frozenset({"superadmin", "admin"}),
    "customers.edit": frozenset({"superadmin", "admin"}),
    "customers.archive": frozenset({"superadmin", "admin"}),
    "customers.unarchive": frozenset({"superadmin"}),
    "customers.delete": frozenset({"superadmin"}),
}


def can(role_ids: Iterable[str] | None, permission_key: str) -> bool:
    allowed = DEFAULT_PERMISSIONS.get(permission_key)
    if not role_ids or not allowed:
        return False
    return any(str(r).strip().lower() in allowed for r in role_ids)


def user_has_permission(user: SessionUser | None, permission_key: str) -> bool:
    if not user:
        return False
    return can(user.roles, permission_key)


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: SessionUser | None = getattr(g, "current_user", None)
            if not user:
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for("auth.login_get", next=nxt))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
