"""RSVP API routes."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from gathering.clock import utcnow
from gathering.database import get_db
from gathering.schemas.rsvp import RSVPListOut, RSVPOut, RSVPSubmit
from gathering.services import rsvp_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/{event_id}/rsvps", response_model=RSVPOut)
def submit_rsvp(
    event_id: str,
    payload: RSVPSubmit,
    response: Response,
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """Submit or change a response; a YES is subject to capacity."""
    rsvp, created = rsvp_service.submit_rsvp(db, event_id, payload.user_id, payload.response, now)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return rsvp


@router.get("/{event_id}/rsvps", response_model=RSVPListOut)
def list_rsvps(event_id: str, db: Session = Depends(get_db)):
    """All responses for an event with per-response counts."""
    rsvps = rsvp_service.list_rsvps(db, event_id)
    return RSVPListOut(
        event_id=event_id,
        counts=rsvp_service.response_counts(rsvps),
        rsvps=[RSVPOut.model_validate(r) for r in rsvps],
    )


@router.get("/{event_id}/rsvps/{user_id}", response_model=RSVPOut)
def get_rsvp(event_id: str, user_id: str, db: Session = Depends(get_db)):
    rsvp = rsvp_service.get_rsvp(db, event_id, user_id)
    if not rsvp:
        raise HTTPException(status_code=404, detail={"code": "RSVP_NOT_FOUND", "message": "RSVP not found"})
    return rsvp


@router.delete("/{event_id}/rsvps/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_rsvp(event_id: str, user_id: str, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """Withdraw a response entirely."""
    rsvp_service.remove_rsvp(db, event_id, user_id, now)
