"""Waitlist API routes."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gathering.clock import utcnow
from gathering.database import get_db
from gathering.schemas.waitlist import WaitlistEntryOut, WaitlistJoin, WaitlistStatusOut
from gathering.services import waitlist_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/waitlist", response_model=WaitlistEntryOut, status_code=status.HTTP_201_CREATED)
def join_waitlist(
    event_id: str,
    payload: WaitlistJoin,
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """Join the waitlist of an event that is at capacity."""
    entry = waitlist_service.join_waitlist(db, event_id, payload.user_id, now)
    return WaitlistEntryOut(
        entry_id=entry.entry_id,
        event_id=entry.event_id,
        user_id=entry.user_id,
        position=waitlist_service.position(db, event_id, payload.user_id, now),
        joined_at=entry.joined_at,
        notified_at=entry.notified_at,
        expires_at=entry.expires_at,
    )


@router.get("/{event_id}/waitlist/{user_id}", response_model=WaitlistStatusOut)
def get_waitlist_status(
    event_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """A user's place in the queue, or the offer they currently hold."""
    return waitlist_service.waitlist_status(db, event_id, user_id, now)


@router.delete("/{event_id}/waitlist/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def leave_waitlist(event_id: str, user_id: str, db: Session = Depends(get_db)):
    waitlist_service.leave_waitlist(db, event_id, user_id)
