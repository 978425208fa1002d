"""Invite link API routes."""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gathering.clock import utcnow
from gathering.database import get_db
from gathering.schemas.notification import InvitationOut, InviteLinkCreate, InviteLinkOut
from gathering.services import invite_service
from gathering.services.event_state import derive_state

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/events/{event_id}/invite-links", response_model=InviteLinkOut, status_code=status.HTTP_201_CREATED)
def create_invite_link(event_id: str, payload: InviteLinkCreate, db: Session = Depends(get_db)):
    """Create a shareable invite link (organizer only)."""
    return invite_service.create_invite_link(db, event_id, payload.actor_user_id, payload.expires_at)


@router.get("/invitations/{token}", response_model=InvitationOut)
def resolve_invitation(token: str, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """Public lookup of the event behind an invite link."""
    link, event = invite_service.resolve_invite_link(db, token, now)
    return InvitationOut(
        token=link.token,
        event_id=event.event_id,
        title=event.title,
        start_time=event.start_time,
        effective_state=derive_state(event, now).value,
    )
