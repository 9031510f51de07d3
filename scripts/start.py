#!/usr/bin/env python3
"""
Container entry point: release phase, then gunicorn in place of this process.

Env:
  PORT             listen port (default 8080)
  WEB_CONCURRENCY  gunicorn workers (default 2)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _int_env(name: str, default: int, lo: int, hi: int) -> int:
    raw = (os.environ.get(name) or "").strip() or str(default)
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if value < lo or value > hi:
        print(f"ERROR: {name}={raw!r} must be an integer {lo}-{hi}.", flush=True)
        sys.exit(1)
    return value


def main() -> None:
    port = _int_env("PORT", 8080, 1, 65535)
    workers = _int_env("WEB_CONCURRENCY", 2, 1, 32)

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== gunicorn app.wsgi:app on :{port} ({workers} workers) ===", flush=True)
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            f"--bind=0.0.0.0:{port}",
            f"--workers={workers}",
            "--timeout=60",
            "--access-logfile=-",
            "--error-logfile=-",
        ],
    )


if __name__ == "__main__":
    main()
