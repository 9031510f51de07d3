"""
Login resolution against the `users` profile collection.

Flow:
- identifier with "@"  -> sign in with it as the email, then find the profile
  by authUid (falling back to the email field, backfilling authUid).
- bare username        -> profile by exact username, sign in with its email,
  backfill authUid if the profile has none yet.
- profile status must normalize to "active".
- lastLogin is stamped on success.

Every failure is a LoginError carrying a user-facing title and message only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from app.motobooster.audit import utc_now_iso
from app.motobooster.docstore import DocumentSnapshot, DocumentStore, DocumentStoreError
from app.motobooster.identity import AuthError, IdentityProvider
from app.motobooster.modules.accounts.models import (
    PASSWORD_HELP_REQUESTS,
    USERS,
    PasswordHelpRequest,
    SessionUser,
    UserProfile,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials."
LOGIN_FAILED = "Login failed. Please try again."


class LoginError(Exception):
    def __init__(self, title: str, message: str) -> None:
        super().__init__(message)
        self.title = title
        self.message = message


class PasswordHelpError(Exception):
    pass


def _first(store: DocumentStore, field_name: str, value: str) -> DocumentSnapshot | None:
    hits = store.query(USERS, field_name, value, limit=1)
    return hits[0] if hits else None


def _backfill_auth_uid(store: DocumentStore, profile_id: str, uid: str) -> None:
    try:
        store.update(USERS, profile_id, {"authUid": uid})
    except DocumentStoreError:
        logger.warning("Failed to backfill authUid on user profile %s", profile_id, exc_info=True)


def resolve_login(
    store: DocumentStore,
    identity: IdentityProvider,
    identifier: str | None,
    password: str | None,
    *,
    now: Callable[[], str] = utc_now_iso,
) -> SessionUser:
    identifier = (identifier or "").strip()
    password = (password or "").strip()
    if not identifier or not password:
        raise LoginError("Missing Information", "Please enter both username and password.")

    try:
        snap: DocumentSnapshot | None = None
        login_email = identifier
        if "@" not in identifier:
            snap = _first(store, "username", identifier)
            if snap is None:
                raise LoginError("Login Failed", INVALID_CREDENTIALS)
            login_email = UserProfile.from_snapshot(snap).email
            if not login_email:
                raise LoginError(
                    "Login Failed",
                    "This user does not have an email configured. Please contact an administrator.",
                )

        try:
            uid = identity.sign_in(login_email, password)
        except AuthError as e:
            logger.info("Sign-in rejected for %s: %s", login_email, e)
            raise LoginError("Login Error", LOGIN_FAILED) from e

        if snap is None:
            snap = _first(store, "authUid", uid)
            if snap is None:
                snap = _first(store, "email", login_email)
                if snap is not None:
                    _backfill_auth_uid(store, snap.id, uid)
            if snap is None:
                raise LoginError(
                    "Login Failed",
                    "No user profile found for this account. Please contact an administrator.",
                )
        elif not UserProfile.from_snapshot(snap).auth_uid:
            _backfill_auth_uid(store, snap.id, uid)

        profile = UserProfile.from_snapshot(snap)
        if not profile.is_active:
            raise LoginError("Account Inactive", "This account is not active.")

        try:
            store.update(USERS, profile.id, {"lastLogin": now()})
        except DocumentStoreError:
            logger.warning("Failed to update lastLogin for %s", profile.id, exc_info=True)
    except DocumentStoreError as e:
        logger.exception("Login lookup failed for %s", identifier)
        raise LoginError("Login Error", LOGIN_FAILED) from e

    return SessionUser(
        id=profile.id,
        name=profile.full_name or profile.username or identifier,
        roles=tuple(profile.effective_roles()),
    )


def request_password_help(
    store: DocumentStore,
    username: str | None,
    *,
    now: Callable[[], str] = utc_now_iso,
) -> PasswordHelpRequest:
    """
    Record that `username` needs a password reset. Raises PasswordHelpError for
    input the user can fix; store failures propagate as DocumentStoreError.
    """
    username = (username or "").strip()
    if not username:
        raise PasswordHelpError("Please enter a username.")
    if _first(store, "username", username) is None:
        raise PasswordHelpError("No account found with that username. Please check the spelling and try again.")
    req = PasswordHelpRequest(username=username, created_at=now())
    store.create(PASSWORD_HELP_REQUESTS, req.to_document())
    return req
