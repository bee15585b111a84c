"""
Run one SLA alert pass outside the web process (cron / scheduled job).

Usage:
  python scripts/sla_alerts.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    from app.boaz import create_app
    from app.boaz.db import session_scope
    from app.boaz.modules.support.alerts import run_sla_alerts

    app = create_app()
    with app.app_context(), session_scope(app) as s:
        result = run_sla_alerts(s, app.config)
    print(f"SLA alerts: {result}", flush=True)


if __name__ == "__main__":
    main()
