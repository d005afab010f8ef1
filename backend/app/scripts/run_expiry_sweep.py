"""
Run the candidate expiry sweep once (local stand-in for the external cron).

Usage (from backend/ with DATABASE_URL set):
  python -m app.scripts.run_expiry_sweep
  python -m app.scripts.run_expiry_sweep --cleanup 30
"""
from __future__ import annotations

import sys
from app.components.expiry.service import run_candidate_cleanup, run_expiry_sweep
from app.platform.database import SessionLocal


def main() -> None:
    args = sys.argv[1:]
    db = SessionLocal()
    try:
        result = run_expiry_sweep(db, trigger="script")
        print(f"Expired {result['expired_count']} candidates at {result['processed_at']}")
        if args[:1] == ["--cleanup"]:
            days = int(args[1]) if len(args) > 1 else None
            deleted = run_candidate_cleanup(db, trigger="script", older_than_days=days)
            print(f"Deleted {deleted} old candidates")
    finally:
        db.close()


if __name__ == "__main__":
    main()
