"""
Sync API Router

POST /sync: the client pushes its full subject snapshot after every local
mutation. Safe to repeat; see services.state_sync.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from schemas import SyncPayload, SyncResponse
from services.state_sync import push_snapshot

router = APIRouter(tags=["Sync"])


@router.post("/sync", response_model=SyncResponse)
def sync_state(payload: SyncPayload, db: Session = Depends(get_db)):
    """
    Upsert the subject, append its newest check-in, replace its guardians.

    Errors are rendered as {"error": message}: 422 for invalid payloads,
    409 for guardian ids owned by another subject, 500 for store failures.
    """
    result = push_snapshot(db, payload)
    return SyncResponse(success=True, userId=result.user_id)
