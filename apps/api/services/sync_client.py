"""
State Synchronizer, client half.

Pushes full SubjectState snapshots to POST /sync. Pushes are
fire-and-forget relative to the caller: the check-in is already applied
locally and is never rolled back when a push fails. The outcome is
exposed as an observable SyncStatus instead of being swallowed.

Pushes are serialized: while one is in flight, further requests collapse
into a single follow-up push of the newest snapshot.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional
import asyncio
import logging

import requests

from core.config import settings
from services.liveness_tracker import SubjectState

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


def to_payload(snapshot: SubjectState) -> dict:
    """Serialize a snapshot to the /sync request body."""
    return {
        "userId": snapshot.user_id,
        "language": snapshot.language,
        "lastCheckIn": snapshot.last_check_in,
        "streak": snapshot.streak,
        "isRegistered": snapshot.is_registered,
        "userContact": {
            "name": snapshot.user_contact.name,
            "email": snapshot.user_contact.email,
            "phone": snapshot.user_contact.phone,
        },
        "emergencyContacts": [
            {"id": c.id, "name": c.name, "email": c.email, "phone": c.phone}
            for c in snapshot.emergency_contacts
        ],
        "checkInHistory": [
            {"timestamp": r.timestamp, "dateString": r.date_string, "timeString": r.time_string}
            for r in snapshot.check_in_history
        ],
    }


StatusListener = Callable[[SyncStatus, Optional[str]], None]


class StateSynchronizer:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        self.url = (base_url or settings.SYNC_BASE_URL).rstrip("/") + "/sync"
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT
        self.status = SyncStatus.IDLE
        self.last_error: Optional[str] = None
        self._listeners: List[StatusListener] = []
        self._pending: Optional[SubjectState] = None
        self._worker: Optional[asyncio.Task] = None

    def on_status(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _set_status(self, status: SyncStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.last_error = error
        for listener in list(self._listeners):
            listener(status, error)

    def _post(self, payload: dict) -> None:
        r = requests.post(self.url, json=payload, timeout=self.timeout)
        if not r.ok:
            try:
                message = r.json().get("error")
            except ValueError:
                message = None
            raise requests.HTTPError(f"HTTP {r.status_code}: {message or r.reason}", response=r)

    async def push(self, snapshot: SubjectState) -> bool:
        """Push one snapshot. Returns True on success; never raises for transport errors."""
        if not snapshot.is_registered:
            return False
        self._set_status(SyncStatus.SYNCING)
        try:
            await asyncio.to_thread(self._post, to_payload(snapshot))
        except requests.exceptions.RequestException as e:
            logger.warning(f"Cloud sync paused for {snapshot.user_id}: {e}")
            self._set_status(SyncStatus.ERROR, str(e))
            return False
        self._set_status(SyncStatus.SUCCESS)
        return True

    def schedule(self, snapshot: SubjectState) -> None:
        """Queue a push without waiting for it. Must be called from the event loop."""
        self._pending = snapshot
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending is not None:
            snapshot, self._pending = self._pending, None
            await self.push(snapshot)

    async def wait_idle(self) -> None:
        """Wait for the current push chain to finish (tests, shutdown)."""
        if self._worker is not None:
            await self._worker
