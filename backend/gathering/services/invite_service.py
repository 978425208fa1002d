"""Invitation links — shareable tokens pointing at an event."""
import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from gathering.clock import as_utc
from gathering.errors import NotFound, StateConflict
from gathering.models.event import Event
from gathering.models.invite_link import InviteLink
from gathering.services import event_service

logger = logging.getLogger(__name__)


def create_invite_link(
    db: Session,
    event_id: str,
    actor_user_id: str,
    expires_at: Optional[datetime] = None,
) -> InviteLink:
    event = event_service.get_event(db, event_id)
    event_service.check_organizer(event, actor_user_id)

    link = InviteLink(
        event_id=event.event_id,
        token=secrets.token_urlsafe(24),
        is_active=True,
        expires_at=as_utc(expires_at),
    )
    db.add(link)
    db.commit()
    db.refresh(link)
    logger.info("Created invite link %s for event %s", link.link_id, event_id)
    return link


def resolve_invite_link(db: Session, token: str, now: datetime) -> tuple[InviteLink, Event]:
    """Look up an active, unexpired link and the event it points to."""
    link = db.query(InviteLink).filter(InviteLink.token == token).first()
    if not link:
        raise NotFound("INVITE_LINK_NOT_FOUND", "Invite link not found")
    if not link.is_active or (link.expires_at is not None and as_utc(now) > link.expires_at):
        raise StateConflict("INVITE_LINK_INACTIVE", "This invite link is no longer active")
    return link, event_service.get_event(db, link.event_id)


def deactivate_event_links(db: Session, event_id: str) -> int:
    """Bulk-deactivate every link for an event inside the caller's transaction."""
    return (
        db.query(InviteLink)
        .filter(InviteLink.event_id == event_id, InviteLink.is_active.is_(True))
        .update({InviteLink.is_active: False}, synchronize_session=False)
    )
