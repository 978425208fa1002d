"""RSVP admission controller.

A YES is admitted only while ``yes_count + reserved_offers < capacity``
(other users only), evaluated under the event row lock together with the
write. Admission never queues: a rejected YES must join the waitlist
explicitly. Any YES that goes away is a vacancy handed to the waitlist in
the same transaction.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from gathering.clock import as_utc
from gathering.errors import NotFound, StateConflict
from gathering.models.event import Event, EventState
from gathering.models.rsvp import RSVP, RSVPResponse
from gathering.services import event_service, notification_service, waitlist_service
from gathering.services.event_state import derive_state

logger = logging.getLogger(__name__)

_CLOSED_REASONS = {
    EventState.draft: ("EVENT_NOT_PUBLISHED", "Cannot RSVP to a draft event"),
    EventState.cancelled: ("EVENT_CANCELLED", "Cannot RSVP to a cancelled event"),
    EventState.completed: ("EVENT_COMPLETED", "Cannot RSVP to a completed event"),
    EventState.ongoing: ("EVENT_ONGOING", "Cannot RSVP to an event that has already started"),
    EventState.closed: (
        "RSVP_DEADLINE_PASSED",
        "RSVP deadline has passed. Please contact the organizer if you need to change your RSVP.",
    ),
}


def _ensure_accepting_rsvps(event: Event, now: datetime) -> None:
    state = derive_state(event, now)
    if state in _CLOSED_REASONS:
        code, message = _CLOSED_REASONS[state]
        raise StateConflict(code, message)


def get_rsvp(db: Session, event_id: str, user_id: str) -> Optional[RSVP]:
    return (
        db.query(RSVP)
        .filter(RSVP.event_id == event_id, RSVP.user_id == user_id)
        .first()
    )


def list_rsvps(db: Session, event_id: str) -> list[RSVP]:
    event_service.get_event(db, event_id)
    return (
        db.query(RSVP)
        .filter(RSVP.event_id == event_id)
        .order_by(RSVP.created_at.asc())
        .all()
    )


def response_counts(rsvps: list[RSVP]) -> dict[str, int]:
    counts = {r.value: 0 for r in RSVPResponse}
    for rsvp in rsvps:
        counts[rsvp.response.value] += 1
    return counts


def _is_vacancy(event: Event, previous: Optional[RSVPResponse], new: Optional[RSVPResponse]) -> bool:
    return (
        previous == RSVPResponse.yes
        and new != RSVPResponse.yes
        and event.capacity is not None
        and event.waitlist_enabled
    )


def _check_capacity(db: Session, event: Event, user_id: str, now: datetime) -> None:
    if waitlist_service.is_at_capacity(db, event, now, exclude_user_id=user_id):
        if event.waitlist_enabled:
            raise StateConflict(
                "EVENT_AT_CAPACITY_WAITLIST_AVAILABLE",
                "Event is at capacity. You can join the waitlist instead.",
            )
        raise StateConflict("EVENT_AT_CAPACITY", "Event is at capacity")


def submit_rsvp(
    db: Session,
    event_id: str,
    user_id: str,
    response: RSVPResponse,
    now: datetime,
) -> tuple[RSVP, bool]:
    """Record ``user_id``'s response. Returns the RSVP and whether it was new."""
    now = as_utc(now)
    event = event_service.lock_event(db, event_id)
    event_service.get_user(db, user_id)
    _ensure_accepting_rsvps(event, now)

    existing = get_rsvp(db, event_id, user_id)
    previous = existing.response if existing else None

    if response == RSVPResponse.yes and previous != RSVPResponse.yes:
        _check_capacity(db, event, user_id, now)

    if existing:
        rsvp = existing
        rsvp.response = response
    else:
        rsvp = RSVP(event_id=event_id, user_id=user_id, response=response, created_at=now)
        db.add(rsvp)
    # A resubmission is the reconfirmation
    rsvp.needs_reconfirmation = False
    rsvp.updated_at = now

    vacancy = _is_vacancy(event, previous, response)
    held = waitlist_service.get_entry(db, event_id, user_id)
    if held is not None:
        if response == RSVPResponse.yes:
            logger.info("User %s claimed waitlist slot for event %s", user_id, event_id)
        elif waitlist_service.is_offered(held, now):
            # Declining an offer releases the reserved slot
            vacancy = True
            logger.info("User %s declined waitlist offer for event %s", user_id, event_id)
        db.delete(held)

    notifications = []
    if vacancy:
        db.flush()
        waitlist_service.on_vacancy(db, event, now, outbox=notifications)

    db.commit()
    if previous != response:
        action = "changed their RSVP to" if existing else "RSVP'd"
        logger.info("[RSVP] User %s %s %s for event %s", user_id, action, response.value, event_id)
    notification_service.dispatch(db, notifications)
    db.refresh(rsvp)
    return rsvp, existing is None


def remove_rsvp(db: Session, event_id: str, user_id: str, now: datetime) -> None:
    """Explicit withdrawal by the user; removing a YES frees a slot."""
    now = as_utc(now)
    event = event_service.lock_event(db, event_id)

    if derive_state(event, now) != EventState.published:
        raise StateConflict(
            "RSVP_MODIFICATIONS_CLOSED",
            "Cannot modify RSVP. The event is no longer accepting RSVP changes.",
        )

    rsvp = get_rsvp(db, event_id, user_id)
    if not rsvp:
        raise NotFound("RSVP_NOT_FOUND", "RSVP not found")

    previous = rsvp.response
    db.delete(rsvp)

    notifications = []
    if _is_vacancy(event, previous, None):
        db.flush()
        waitlist_service.on_vacancy(db, event, now, outbox=notifications)

    db.commit()
    logger.info("[RSVP] User %s removed their %s RSVP for event %s", user_id, previous.value, event_id)
    notification_service.dispatch(db, notifications)
