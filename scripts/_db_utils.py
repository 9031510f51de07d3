from __future__ import annotations

import os
import sys
from pathlib import Path

from sqlalchemy import create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.motobooster.config import load_config  # noqa: E402
from app.motobooster.db import make_sessionmaker  # noqa: E402
from app.motobooster.docstore import DocumentStore, docstore_from_config  # noqa: E402
from app.motobooster.identity import IdentityProvider, identity_from_config  # noqa: E402
from app.motobooster.models import Base  # noqa: E402


def script_backends(database_url: str | None = None) -> tuple[DocumentStore, IdentityProvider]:
    """
    Store + identity provider for scripts, built from the same env vars as the app
    but without importing the Flask app factory.
    """
    config = load_config()
    db_url = (database_url or os.environ.get("DATABASE_URL") or config["DATABASE_URL"]).strip()
    config["DATABASE_URL"] = db_url
    engine = create_engine(db_url, future=True, pool_pre_ping=True)
    if config["DOCSTORE_BACKEND"] == "sql" or config["IDENTITY_BACKEND"] == "local":
        # Idempotent; the Alembic migration skips tables that already exist.
        Base.metadata.create_all(bind=engine)
    sessions = make_sessionmaker(engine)
    return docstore_from_config(config, sessions), identity_from_config(config, sessions)
