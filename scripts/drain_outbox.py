#!/usr/bin/env python
"""
Deliver queued notification emails.

Emails are written to the outbox in the same transaction as the nomination
change that caused them and are normally sent right after commit. Anything
that failed to send (SMTP outage, bad credentials) stays queued; run this from
cron or by hand to push it out.

Usage:
    python scripts/drain_outbox.py
    python scripts/drain_outbox.py --include-failed

Environment:
    DATABASE_URL, NOTIFICATION_BACKEND, SMTP_* (same as the web app)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.bestbosses import create_app
from app.bestbosses.db import session_scope
from app.bestbosses.modules.notifications.service import deliver_pending, requeue_failed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Deliver pending notification emails.")
    parser.add_argument(
        "--include-failed",
        action="store_true",
        help="Also retry messages that exhausted NOTIFICATION_MAX_ATTEMPTS",
    )
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context(), session_scope(app) as s:
        if args.include_failed:
            requeued = requeue_failed(s)
            s.commit()
            print(f"Requeued {requeued} failed message(s).")
        report = deliver_pending(s)

    print(f"Sent: {report.sent}  Failed: {report.failed}")
    for w in report.warnings:
        print(f"  - {w}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
