"""
Client-side demo: register a subject, check in, push to the API and watch
the countdown tick.

Usage:
  python scripts/liveness_demo.py --name Ada --guardian-email g@example.com --seconds 5
"""

from __future__ import annotations

import asyncio
import os
import sys

_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)


async def _run(args) -> int:
    from services.liveness_tracker import GuardianContact, LivenessTracker, UserContact
    from services.sync_client import StateSynchronizer

    tracker = LivenessTracker(threshold_seconds=args.threshold, policy="window")
    sync = StateSynchronizer(base_url=args.base_url)
    sync.on_status(lambda status, error: print(f"sync: {status.value}" + (f" ({error})" if error else "")))

    tracker.update_profile(
        UserContact(name=args.name),
        (GuardianContact(name=args.guardian_name, email=args.guardian_email),),
        language=args.language,
    )
    tracker.register()
    tracker.subscribe(sync.schedule)
    tracker.check_in()

    def show(view):
        print(f"live={view.is_live} seconds_to_alert={view.seconds_to_alert} streak={view.streak}")

    ticker = asyncio.create_task(tracker.run(show))
    await asyncio.sleep(args.seconds)
    ticker.cancel()
    await asyncio.gather(ticker, return_exceptions=True)
    await sync.wait_idle()
    return 0 if sync.status.value == "success" else 1


def main() -> int:
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--name", required=True)
    parser.add_argument("--guardian-name", default="Guardian")
    parser.add_argument("--guardian-email", required=True)
    parser.add_argument("--language", default="en", choices=["en", "zh"])
    parser.add_argument("--threshold", type=int, default=120, help="alert threshold in seconds")
    parser.add_argument("--seconds", type=float, default=5.0, help="how long to watch the ticker")
    parser.add_argument("--base-url", default=None, help="API base URL (default: SYNC_BASE_URL)")
    args = parser.parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
