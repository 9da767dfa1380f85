"""
Run one alert sweep on demand.

Same code path as the scheduled task and GET /alert-check.

Usage (inside api container):
  python scripts/run_alert_sweep.py
  python scripts/run_alert_sweep.py --user-id user_3f2a...
  python scripts/run_alert_sweep.py --test-to someone@example.com
"""

from __future__ import annotations

import json
import os
import sys

# Ensure /app is on sys.path when run as a script inside the container.
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--user-id", default=None, help="targeted diagnostic sweep for one subject")
    parser.add_argument("--test-to", default=None, help="send a connectivity-check email and exit")
    args = parser.parse_args()

    from core.database import SessionLocal
    from core.exceptions import APIException
    from core.logging import setup_logging
    from services.alert_sweep import run_alert_sweep, send_connectivity_check

    setup_logging()

    try:
        if args.test_to:
            result = send_connectivity_check(None, args.test_to)
        else:
            db = SessionLocal()
            try:
                result = run_alert_sweep(db, user_id=args.user_id).as_dict()
            finally:
                db.close()
    except APIException as e:
        print(f"ERROR: {e.detail}")
        return 2

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if result["status"] == "success" else 1


if __name__ == "__main__":
    raise SystemExit(main())
