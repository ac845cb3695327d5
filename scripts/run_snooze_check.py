#!/usr/bin/env python3
"""Run the snooze reactivation check for one organization.

Usage:
    python scripts/run_snooze_check.py <organization_id>

Evaluates snoozed proposals that have follow-up correspondence. Intended to
be triggered by cron or another external scheduler.
Exits 0 on success, 1 on failure, 2 when the AI quota was exhausted.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dealflow.db.session import SessionLocal, check_db_connection
from dealflow.llm.errors import QUOTA_GUIDANCE
from dealflow.services.judgment import JudgmentService
from dealflow.services.notifications import FounderNotifier
from dealflow.services.proposals.snooze_scheduler import check_snoozed_proposals


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("usage: run_snooze_check.py <organization_id>", file=sys.stderr)
        return 1
    organization_id = args[0]

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        check_db_connection()
    except Exception as e:
        print(f"ERROR: database unreachable: {e}", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        judgment = JudgmentService()
        result = check_snoozed_proposals(
            db, organization_id, judgment, notifier=FounderNotifier(judgment)
        )
        print(
            f"checked={result.checked} "
            f"reactivated={result.reactivated} "
            f"rejected={result.rejected} "
            f"keep_snoozed={result.keep_snoozed} "
            f"failed={result.failed}"
        )
        if result.quota_exceeded:
            print(QUOTA_GUIDANCE, file=sys.stderr)
            return 2
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
