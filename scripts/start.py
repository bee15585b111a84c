#!/usr/bin/env python3
"""
Container entrypoint: release (migrate + seed), then replace this process
with gunicorn serving `app.wsgi:app`.

Environment: PORT (default 8080), WEB_CONCURRENCY (default 2).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def listen_port() -> int:
    raw = (os.environ.get("PORT") or "").strip() or "8080"
    if not raw.isdigit() or not 1 <= int(raw) <= 65535:
        raise SystemExit(f"PORT must be an integer between 1 and 65535, got {raw!r}")
    return int(raw)


def gunicorn_argv(port: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        f"--bind=0.0.0.0:{port}",
        f"--workers={os.environ.get('WEB_CONCURRENCY', '2')}",
        "--timeout=60",
        "--preload",
        "--access-logfile=-",
        "--error-logfile=-",
    ]


def main() -> None:
    port = listen_port()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        raise SystemExit(f"Release failed: {e}") from e

    argv = gunicorn_argv(port)
    print(f"[start] {' '.join(argv)}", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
