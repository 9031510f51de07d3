from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import check_password_hash, generate_password_hash

from app.motobooster.models import LocalCredential


class AuthError(RuntimeError):
    """The identity provider rejected the sign-in (or could not be reached)."""


class IdentityProvider:
    def sign_in(self, email: str, password: str) -> str:
        """Return the provider's stable user id, or raise AuthError."""
        raise NotImplementedError


@dataclass(frozen=True)
class LocalIdentityProvider(IdentityProvider):
    """Werkzeug password hashes stored in `local_credentials`."""

    sessions: sessionmaker

    def sign_in(self, email: str, password: str) -> str:
        email = (email or "").strip().lower()
        s: Session = self.sessions()
        try:
            cred = s.query(LocalCredential).filter(LocalCredential.email == email).one_or_none()
        except Exception as e:
            raise AuthError(f"Credential lookup failed: {e}") from e
        finally:
            s.close()
        if not cred or not check_password_hash(cred.password_hash, password or ""):
            raise AuthError("INVALID_LOGIN_CREDENTIALS")
        return cred.uid

    def register(self, email: str, password: str, *, uid: str | None = None) -> str:
        """Create a credential (used by seed scripts and tests)."""
        cred = LocalCredential(
            uid=uid or uuid.uuid4().hex,
            email=(email or "").strip().lower(),
            password_hash=generate_password_hash(password),
        )
        s: Session = self.sessions()
        try:
            s.add(cred)
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()
        return cred.uid


@dataclass(frozen=True)
class FirebaseIdentityProvider(IdentityProvider):
    """
    Email/password sign-in through the Firebase Auth REST API.
    The Admin SDK cannot verify passwords, so this talks to Identity Toolkit directly.
    """

    api_key: str
    base_url: str = "https://identitytoolkit.googleapis.com/v1"
    timeout_seconds: int = 15

    def sign_in(self, email: str, password: str) -> str:
        url = f"{self.base_url.rstrip('/')}/accounts:signInWithPassword?" + urllib.parse.urlencode({"key": self.api_key})
        body = json.dumps({"email": email, "password": password, "returnSecureToken": True}).encode("utf-8")
        req = urllib.request.Request(url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            try:
                detail = json.loads(e.read().decode("utf-8")).get("error", {}).get("message", "")
            except Exception:
                detail = ""
            raise AuthError(detail or f"HTTP {e.code} from Firebase Auth") from e
        except Exception as e:
            raise AuthError(f"Firebase Auth request failed: {e}") from e

        uid = (payload or {}).get("localId")
        if not uid:
            raise AuthError("Firebase Auth response had no localId")
        return str(uid)


def identity_from_config(config: dict, sessions: sessionmaker | None = None) -> IdentityProvider:
    backend = (config.get("IDENTITY_BACKEND") or "local").strip().lower()
    if backend == "firebase":
        return FirebaseIdentityProvider(api_key=(config.get("FIREBASE_API_KEY") or "").strip())
    if sessions is None:
        raise AuthError("Local identity provider needs a sessionmaker (call init_db first).")
    return LocalIdentityProvider(sessions=sessions)


def current_identity() -> IdentityProvider:
    from flask import current_app

    return current_app.extensions["identity"]
