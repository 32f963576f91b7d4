#!/usr/bin/env python3
"""
Container entry point.

1. Runs migrations + super-admin seed (release.py)
2. Replaces this process with gunicorn serving app.wsgi:app

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

DEFAULT_PORT = 8080
DEFAULT_WORKERS = 2


def parse_port(raw: str | None) -> int:
    raw = (raw or "").strip()
    if not raw:
        return DEFAULT_PORT
    port = int(raw)
    if port < 1 or port > 65535:
        raise ValueError(f"port {port} out of range")
    return port


def gunicorn_argv(port: int, workers: int = DEFAULT_WORKERS) -> list[str]:
    # --preload: resources are bootstrapped once; the fork hook in create_app
    # drops inherited DB connections in each worker.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = parse_port(os.environ.get("PORT"))
    except ValueError:
        print(f"ERROR: Invalid PORT value {os.environ.get('PORT')!r}. Must be integer 1-65535.", flush=True)
        sys.exit(1)
    try:
        workers = int(os.environ.get("WEB_CONCURRENCY") or DEFAULT_WORKERS)
    except ValueError:
        workers = DEFAULT_WORKERS

    print("=== Running release phase ===", flush=True)
    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"=== Starting gunicorn on 0.0.0.0:{port} ({workers} workers) ===", flush=True)
    os.execvp("gunicorn", gunicorn_argv(port, workers))


if __name__ == "__main__":
    main()
