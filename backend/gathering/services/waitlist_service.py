"""Waitlist queue — FIFO overflow for events at capacity.

Ordering is ``joined_at`` ascending with ``entry_id`` (insertion order) as the
tie-breaker. An entry moves through three phases:

* waiting: ``notified_at`` is NULL, the entry holds a queue position;
* offered: promoted on a vacancy, it reserves one slot until ``expires_at``;
* expired: ``now > expires_at``; it is ignored on reads and deleted the next
  time a write path (a vacancy or a rejoin) touches it.

Nothing runs on a timer. Expiry is evaluated with the caller's ``now``.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gathering.clock import as_utc
from gathering.config import settings
from gathering.errors import NotFound, StateConflict, ValidationError
from gathering.models.event import Event, EventState
from gathering.models.notification import NotificationType
from gathering.models.rsvp import RSVP, RSVPResponse
from gathering.models.waitlist import WaitlistEntry
from gathering.services import event_service, notification_service
from gathering.services.event_state import derive_state

logger = logging.getLogger(__name__)


def grace_window() -> timedelta:
    return timedelta(hours=settings.WAITLIST_GRACE_HOURS)


def is_expired(entry: WaitlistEntry, now: datetime) -> bool:
    return entry.expires_at is not None and as_utc(now) > as_utc(entry.expires_at)


def is_offered(entry: WaitlistEntry, now: datetime) -> bool:
    return entry.notified_at is not None and not is_expired(entry, now)


def _ordered_entries(db: Session, event_id: str) -> list[WaitlistEntry]:
    return (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.event_id == event_id)
        .order_by(WaitlistEntry.joined_at.asc(), WaitlistEntry.entry_id.asc())
        .all()
    )


def live_entries(db: Session, event_id: str, now: datetime) -> list[WaitlistEntry]:
    """All unexpired entries in FIFO order (waiting and offered)."""
    return [e for e in _ordered_entries(db, event_id) if not is_expired(e, now)]


def waiting_entries(db: Session, event_id: str, now: datetime) -> list[WaitlistEntry]:
    """Entries still queued for an offer, in FIFO order."""
    return [e for e in live_entries(db, event_id, now) if e.notified_at is None]


def yes_count(db: Session, event_id: str, exclude_user_id: Optional[str] = None) -> int:
    query = db.query(RSVP).filter(RSVP.event_id == event_id, RSVP.response == RSVPResponse.yes)
    if exclude_user_id is not None:
        query = query.filter(RSVP.user_id != exclude_user_id)
    return query.count()


def reserved_count(db: Session, event_id: str, now: datetime, exclude_user_id: Optional[str] = None) -> int:
    """Slots held by outstanding, unexpired offers."""
    return sum(
        1
        for e in _ordered_entries(db, event_id)
        if is_offered(e, now) and e.user_id != exclude_user_id
    )


def occupied_slots(db: Session, event: Event, now: datetime, exclude_user_id: Optional[str] = None) -> int:
    """YES RSVPs plus reserved offers, optionally ignoring one user's own records."""
    return yes_count(db, event.event_id, exclude_user_id) + reserved_count(db, event.event_id, now, exclude_user_id)


def is_at_capacity(db: Session, event: Event, now: datetime, exclude_user_id: Optional[str] = None) -> bool:
    if event.capacity is None:
        return False
    return occupied_slots(db, event, now, exclude_user_id) >= event.capacity


def get_entry(db: Session, event_id: str, user_id: str) -> Optional[WaitlistEntry]:
    return (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.event_id == event_id, WaitlistEntry.user_id == user_id)
        .first()
    )


def join_waitlist(db: Session, event_id: str, user_id: str, now: datetime) -> WaitlistEntry:
    """Queue ``user_id`` behind everyone already waiting for ``event_id``."""
    event = event_service.lock_event(db, event_id)
    event_service.get_user(db, user_id)

    if derive_state(event, now) != EventState.published:
        raise StateConflict("EVENT_NOT_ACCEPTING_RSVPS", "Cannot join waitlist for this event")
    if not event.waitlist_enabled:
        raise ValidationError("WAITLIST_NOT_ENABLED", "Waitlist is not enabled for this event")
    if event.capacity is None:
        raise ValidationError("NO_CAPACITY_LIMIT", "Event does not have a capacity limit")

    existing_rsvp = (
        db.query(RSVP)
        .filter(RSVP.event_id == event_id, RSVP.user_id == user_id)
        .first()
    )
    if existing_rsvp:
        raise StateConflict("ALREADY_RSVPD", "You have already responded to this event")

    existing = get_entry(db, event_id, user_id)
    if existing and not is_expired(existing, now):
        raise StateConflict("ALREADY_ON_WAITLIST", "You are already on the waitlist")

    if not is_at_capacity(db, event, now):
        raise StateConflict("EVENT_NOT_AT_CAPACITY", "Event is not at capacity. You can RSVP directly.")

    if existing:
        # Lapsed offer: discard it and rejoin at the back
        db.delete(existing)
        db.flush()

    entry = WaitlistEntry(event_id=event_id, user_id=user_id, joined_at=as_utc(now))
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StateConflict("ALREADY_ON_WAITLIST", "You are already on the waitlist")
    db.refresh(entry)
    logger.info("User %s joined waitlist for event %s", user_id, event_id)
    return entry


def leave_waitlist(db: Session, event_id: str, user_id: str) -> None:
    event_service.lock_event(db, event_id)
    entry = get_entry(db, event_id, user_id)
    if not entry:
        raise NotFound("NOT_ON_WAITLIST", "You are not on the waitlist")
    db.delete(entry)
    db.commit()
    logger.info("User %s left waitlist for event %s", user_id, event_id)


def position(db: Session, event_id: str, user_id: str, now: datetime) -> Optional[int]:
    """1-indexed queue position, or None while the user holds an offer.

    Advisory read: no lock is taken.
    """
    event_service.get_event(db, event_id)
    entry = get_entry(db, event_id, user_id)
    if not entry or is_expired(entry, now):
        raise NotFound("NOT_ON_WAITLIST", "You are not on the waitlist")
    if entry.notified_at is not None:
        return None
    for rank, waiting in enumerate(waiting_entries(db, event_id, now), start=1):
        if waiting.entry_id == entry.entry_id:
            return rank
    return None


def waitlist_status(db: Session, event_id: str, user_id: str, now: datetime) -> dict:
    event = event_service.get_event(db, event_id)
    entry = get_entry(db, event_id, user_id)
    status = {
        "on_waitlist": False,
        "waitlist_enabled": event.waitlist_enabled,
        "capacity": event.capacity,
        "position": None,
        "total_waiting": len(waiting_entries(db, event_id, now)),
        "joined_at": None,
        "notified_at": None,
        "expires_at": None,
    }
    if entry is None or is_expired(entry, now):
        return status
    status.update(
        on_waitlist=True,
        position=position(db, event_id, user_id, now),
        joined_at=entry.joined_at,
        notified_at=entry.notified_at,
        expires_at=entry.expires_at,
    )
    return status


def on_vacancy(
    db: Session,
    event: Event,
    now: datetime,
    outbox: Optional[list] = None,
) -> Optional[WaitlistEntry]:
    """Offer one freed slot to the head of the queue.

    Runs inside the caller's transaction, which must already hold the event
    lock. Expired entries met during the scan are deleted. The notification
    is only recorded here and appended to ``outbox``; the caller dispatches
    it after commit.
    """
    now = as_utc(now)
    promoted = None
    for entry in _ordered_entries(db, event.event_id):
        if is_expired(entry, now):
            logger.info("Discarding expired waitlist offer for user %s (event %s)", entry.user_id, event.event_id)
            db.delete(entry)
            continue
        if entry.notified_at is None and promoted is None:
            promoted = entry

    db.flush()
    if promoted is None:
        return None

    if event.capacity is not None and occupied_slots(db, event, now) >= event.capacity:
        logger.info("No free slot on event %s; vacancy does not promote", event.event_id)
        return None

    promoted.notified_at = now
    promoted.expires_at = now + grace_window()
    notification = notification_service.record(
        db,
        user_id=promoted.user_id,
        event_id=event.event_id,
        type=NotificationType.waitlist_spot_available,
        message=(
            f'A spot has opened up for "{event.title}"! '
            f"You have {settings.WAITLIST_GRACE_HOURS} hours to confirm your attendance."
        ),
    )
    if outbox is not None:
        outbox.append(notification)
    logger.info("Promoted user %s from waitlist for event %s", promoted.user_id, event.event_id)
    return promoted
