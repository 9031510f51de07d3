import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    docstore_backend: str
    identity_backend: str
    firebase_project_id: str
    firebase_client_email: str
    firebase_private_key: str
    firebase_api_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///motobooster.db"),
        docstore_backend=_getenv("DOCSTORE_BACKEND", "sql").lower(),
        identity_backend=_getenv("IDENTITY_BACKEND", "local").lower(),
        firebase_project_id=_getenv("FIREBASE_PROJECT_ID", ""),
        firebase_client_email=_getenv("FIREBASE_CLIENT_EMAIL", ""),
        # Service account keys are usually pasted with literal "\n" sequences.
        firebase_private_key=_getenv("FIREBASE_PRIVATE_KEY", "").replace("\\n", "\n"),
        firebase_api_key=_getenv("FIREBASE_API_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DOCSTORE_BACKEND": s.docstore_backend,
        "IDENTITY_BACKEND": s.identity_backend,
        "FIREBASE_PROJECT_ID": s.firebase_project_id,
        "FIREBASE_CLIENT_EMAIL": s.firebase_client_email,
        "FIREBASE_PRIVATE_KEY": s.firebase_private_key,
        "FIREBASE_API_KEY": s.firebase_api_key,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
    }
