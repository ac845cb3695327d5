#!/usr/bin/env python3
"""Recompute deal scores from their event ledgers.

Usage:
    python scripts/recompute_scores.py            # every deal
    python scripts/recompute_scores.py 12 40 41   # selected deals

Decay is relative to now, so a periodic run keeps scores current for deals
that receive no new events.
Exits 0 when every deal recomputed, 1 otherwise.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dealflow.db.session import SessionLocal, check_db_connection
from dealflow.services.scoring.aggregator import recompute_scores


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    try:
        deal_ids = [int(a) for a in args] or None
    except ValueError:
        print("usage: recompute_scores.py [deal_id ...]", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        check_db_connection()
    except Exception as e:
        print(f"ERROR: database unreachable: {e}", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        scores, failed = recompute_scores(db, deal_ids)
        print(f"recomputed={len(scores)} failed={len(failed)}")
        if failed:
            print(f"failed_deal_ids={','.join(str(d) for d in failed)}", file=sys.stderr)
        return 0 if not failed else 1
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
