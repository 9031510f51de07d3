"""
Release phase.

The SQL tables only matter when DOCSTORE_BACKEND=sql or IDENTITY_BACKEND=local;
an all-Firebase deployment skips migrations and only seeds the admin profile.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.motobooster.config import load_config  # noqa: E402


def _uses_sql(config: dict) -> bool:
    return config["DOCSTORE_BACKEND"] == "sql" or config["IDENTITY_BACKEND"] == "local"


def _migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    config = load_config()
    db_url = (os.environ.get("DATABASE_URL") or config["DATABASE_URL"]).strip()
    print(
        f"[release] env={config['ENV']} docstore={config['DOCSTORE_BACKEND']} identity={config['IDENTITY_BACKEND']}",
        flush=True,
    )

    if _uses_sql(config):
        if config["ENV"] in ("prod", "production") and db_url.startswith("sqlite"):
            raise RuntimeError("Refusing to release against a sqlite DATABASE_URL in production.")
        print("[release] alembic upgrade head", flush=True)
        _migrate(db_url)
    else:
        print("[release] no SQL backend configured; skipping migrations", flush=True)

    from scripts import init_db

    print("[release] seeding admin profile", flush=True)
    init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
