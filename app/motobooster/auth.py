from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.motobooster.audit import record_event
from app.motobooster.docstore import DocumentStoreError, current_store
from app.motobooster.identity import current_identity
from app.motobooster.modules.accounts.models import SessionUser
from app.motobooster.modules.accounts.service import (
    LoginError,
    PasswordHelpError,
    request_password_help,
    resolve_login,
)

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds

SESSION_KEY = "auth_user"


def _check_rate_limit(ip: str) -> bool:
    cutoff = datetime.utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie (no store round trip).
    Also assigns a per-request request_id for audit/log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = SessionUser.from_session(session.get(SESSION_KEY))
    if g.current_user is None:
        session.pop(SESSION_KEY, None)


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt, username="")


@bp.post("/login")
def login_post():
    identifier = request.form.get("username") or ""
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))
    _record_attempt(ip)

    try:
        user = resolve_login(current_store(), current_identity(), identifier, password)
    except LoginError as e:
        flash(f"{e.title}: {e.message}", "danger")
        return render_template("auth/login.html", next=nxt, username=identifier.strip()), 401

    session[SESSION_KEY] = user.to_session()
    _login_attempts[ip].clear()
    try:
        record_event(current_store(), actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    except DocumentStoreError:
        current_app.logger.warning("Could not record login audit event for %s", user.id, exc_info=True)

    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("routes.index"))


@bp.post("/password-help")
def password_help_post():
    username = request.form.get("username") or ""
    try:
        request_password_help(current_store(), username)
    except PasswordHelpError as e:
        flash(str(e), "warning")
        return redirect(url_for("auth.login_get"))
    except DocumentStoreError:
        current_app.logger.exception("Failed to record password help request")
    flash("Your request was sent. An admin will review it.", "info")
    return redirect(url_for("auth.login_get"))


@bp.get("/logout")
def logout():
    session.pop(SESSION_KEY, None)
    return redirect(url_for("auth.login_get"))
