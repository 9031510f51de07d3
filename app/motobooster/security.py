import secrets

from flask import Request, session

CSRF_SESSION_KEY = "csrf_token"


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Token may come from the form field or the X-CSRF-Token header."""
    token = req.form.get(CSRF_SESSION_KEY) or req.headers.get("X-CSRF-Token")
    expected = session.get(CSRF_SESSION_KEY)
    return bool(token and expected and secrets.compare_digest(token, expected))
