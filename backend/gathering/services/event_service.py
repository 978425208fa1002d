"""Core event service — lifecycle transitions and event editing.

Responsibilities:
- Authorization hook: only the creator may edit, publish or cancel
- Transition guard: DRAFT -> PUBLISHED, and cancel while not CANCELLED/COMPLETED
- Significant-change detection (start time, location) with reconfirmation fan-out
- Cancellation fan-out and invite-link deactivation
- Per-event row lock shared by every write path (admission, waitlist, lifecycle)
"""
import logging
from datetime import datetime
from typing import Optional, Any

from sqlalchemy.orm import Session

from gathering.clock import as_utc
from gathering.errors import Forbidden, NotFound, StateConflict, ValidationError
from gathering.models.event import Event, EventState
from gathering.models.notification import NotificationType
from gathering.models.rsvp import RSVP
from gathering.models.user import User
from gathering.services import invite_service, notification_service
from gathering.services.event_state import can_cancel, derive_state, state_label

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title",
    "description",
    "location",
    "notes",
    "start_time",
    "end_time",
    "rsvp_deadline",
    "capacity",
    "waitlist_enabled",
)

NON_NULLABLE_FIELDS = ("title", "waitlist_enabled")


def get_event(db: Session, event_id: str) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise NotFound("EVENT_NOT_FOUND", "Event not found")
    return event


def lock_event(db: Session, event_id: str) -> Event:
    """Load the event with ``SELECT ... FOR UPDATE``.

    Every write to admission, waitlist or lifecycle state goes through this
    first, so check-then-write sequences on one event are serialized.
    """
    event = db.query(Event).filter(Event.event_id == event_id).with_for_update().first()
    if not event:
        raise NotFound("EVENT_NOT_FOUND", "Event not found")
    return event


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise NotFound("USER_NOT_FOUND", "User not found")
    return user


def check_organizer(event: Event, actor_user_id: str) -> None:
    """Only the event creator may change the event."""
    if event.creator_id != actor_user_id:
        raise Forbidden("NOT_EVENT_ORGANIZER", "Only the organizer may modify this event.")


def _validate_schedule(
    start_time: datetime,
    end_time: Optional[datetime],
    rsvp_deadline: Optional[datetime],
    capacity: Optional[int],
) -> None:
    if end_time is not None and as_utc(end_time) <= as_utc(start_time):
        raise ValidationError("INVALID_END_TIME", "End time must be after start time")
    if rsvp_deadline is not None and as_utc(rsvp_deadline) > as_utc(start_time):
        raise ValidationError("INVALID_RSVP_DEADLINE", "RSVP deadline must not be after the start time")
    if capacity is not None and capacity < 1:
        raise ValidationError("INVALID_CAPACITY", "Capacity must be a positive integer")


def create_event(
    db: Session,
    creator_id: str,
    title: str,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    rsvp_deadline: Optional[datetime] = None,
    capacity: Optional[int] = None,
    waitlist_enabled: bool = False,
    location: Optional[str] = None,
    description: Optional[str] = None,
    notes: Optional[str] = None,
    publish: bool = False,
) -> Event:
    """Create an event owned by ``creator_id``; drafts unless ``publish``."""
    get_user(db, creator_id)
    _validate_schedule(start_time, end_time, rsvp_deadline, capacity)

    event = Event(
        creator_id=creator_id,
        title=title,
        description=description,
        location=location,
        notes=notes,
        state=EventState.published if publish else EventState.draft,
        start_time=as_utc(start_time),
        end_time=as_utc(end_time),
        rsvp_deadline=as_utc(rsvp_deadline),
        capacity=capacity,
        waitlist_enabled=waitlist_enabled,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by %s as %s", title, event.event_id, creator_id, event.state.value)
    return event


def list_events(
    db: Session,
    creator_id: Optional[str] = None,
    include_cancelled: bool = False,
) -> list[Event]:
    query = db.query(Event)
    if creator_id:
        query = query.filter(Event.creator_id == creator_id)
    if not include_cancelled:
        query = query.filter(Event.state != EventState.cancelled)
    return query.order_by(Event.start_time).all()


def publish_event(db: Session, event_id: str, actor_user_id: str) -> Event:
    """DRAFT -> PUBLISHED. The only way out of DRAFT."""
    event = lock_event(db, event_id)
    check_organizer(event, actor_user_id)

    if event.state != EventState.draft:
        raise StateConflict(
            "INVALID_STATE_TRANSITION",
            f"Cannot publish event with state: {event.state.value}",
        )

    event.state = EventState.published
    db.commit()
    db.refresh(event)
    logger.info("Published event %s", event_id)
    return event


def cancel_event(
    db: Session,
    event_id: str,
    actor_user_id: str,
    now: datetime,
    message: Optional[str] = None,
) -> tuple[Event, int]:
    """Cancel an event and notify everyone who responded.

    Returns the event and the number of cancellation notices recorded.
    """
    event = lock_event(db, event_id)
    check_organizer(event, actor_user_id)

    if not can_cancel(event, now):
        raise StateConflict(
            "INVALID_STATE_TRANSITION",
            f"Cannot cancel event with state: {state_label(derive_state(event, now))}",
        )

    event.state = EventState.cancelled
    deactivated = invite_service.deactivate_event_links(db, event.event_id)

    notice = f'"{event.title}" has been cancelled.'
    if message:
        notice = f"{notice} {message}"
    rsvps = db.query(RSVP).filter(RSVP.event_id == event.event_id).all()
    notifications = [
        notification_service.record(
            db,
            user_id=rsvp.user_id,
            event_id=event.event_id,
            type=NotificationType.event_cancelled,
            message=notice,
        )
        for rsvp in rsvps
    ]

    db.commit()
    logger.info(
        "Cancelled event %s; deactivated %d invite links, notified %d users",
        event_id, deactivated, len(notifications),
    )
    notification_service.dispatch(db, notifications)
    db.refresh(event)
    return event, len(notifications)


def _significant_changes(event: Event, updates: dict[str, Any]) -> list[str]:
    """Describe edits that invalidate earlier confirmations."""
    changes = []
    if "start_time" in updates and updates["start_time"] is not None:
        if as_utc(updates["start_time"]) != as_utc(event.start_time):
            changes.append("date/time")
    if "location" in updates and updates["location"] != event.location:
        changes.append("location")
    return changes


def update_event(
    db: Session,
    event_id: str,
    actor_user_id: str,
    updates: dict[str, Any],
    now: datetime,
) -> tuple[Event, int]:
    """Apply field edits; a significant change on a published event asks every
    respondent to reconfirm.

    Returns the event and the number of EVENT_UPDATED notices recorded.
    """
    event = lock_event(db, event_id)
    check_organizer(event, actor_user_id)

    state = derive_state(event, now)
    if state in (EventState.cancelled, EventState.completed):
        raise StateConflict(
            "INVALID_STATE_TRANSITION",
            f"Cannot edit event with state: {state_label(state)}",
        )

    updates = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS}
    if not updates:
        raise ValidationError("NO_FIELDS_TO_UPDATE", "No fields to update")
    if "start_time" in updates and updates["start_time"] is None:
        raise ValidationError("INVALID_START_TIME", "Start time cannot be cleared")
    for field in NON_NULLABLE_FIELDS:
        if field in updates and updates[field] is None:
            raise ValidationError("INVALID_FIELD_VALUE", f"{field} cannot be cleared")

    _validate_schedule(
        updates.get("start_time", event.start_time),
        updates.get("end_time", event.end_time),
        updates.get("rsvp_deadline", event.rsvp_deadline),
        updates.get("capacity", event.capacity),
    )

    changes = _significant_changes(event, updates)
    was_published = event.state == EventState.published

    for field, value in updates.items():
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(event, field, value)
    event.updated_at = as_utc(now)

    notifications = []
    if changes and was_published:
        message = (
            f'The {" and ".join(changes)} for "{event.title}" has been updated. '
            "Please review the changes."
        )
        rsvps = db.query(RSVP).filter(RSVP.event_id == event.event_id).all()
        for rsvp in rsvps:
            rsvp.needs_reconfirmation = True
            notifications.append(
                notification_service.record(
                    db,
                    user_id=rsvp.user_id,
                    event_id=event.event_id,
                    type=NotificationType.event_updated,
                    message=message,
                )
            )

    db.commit()
    logger.info("Updated event %s (significant changes: %s)", event_id, ", ".join(changes) or "none")
    notification_service.dispatch(db, notifications)
    db.refresh(event)
    return event, len(notifications)
