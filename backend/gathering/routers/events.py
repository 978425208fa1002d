"""Event API routes — delegates to event_service for lifecycle enforcement."""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from gathering.clock import utcnow
from gathering.database import get_db
from gathering.models.event import Event
from gathering.schemas.event import (
    EventActionRequest,
    EventCancelOut,
    EventCancelRequest,
    EventCreate,
    EventOut,
    EventStateOut,
    EventUpdate,
    EventUpdateOut,
)
from gathering.services import event_service
from gathering.services.event_state import can_accept_rsvps, can_cancel, derive_state, state_label

logger = logging.getLogger(__name__)
router = APIRouter()


def to_event_out(event: Event, now: datetime) -> EventOut:
    """Serialize an event together with its state at ``now``."""
    out = EventOut.model_validate(event)
    effective = derive_state(event, now)
    out.state = event.state.value
    out.effective_state = effective.value
    out.state_label = state_label(effective)
    return out


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """Create a new event (draft unless ``publish`` is set)."""
    event = event_service.create_event(db=db, **payload.model_dump())
    return to_event_out(event, now)


@router.get("/", response_model=list[EventOut])
def list_events(
    creator_id: Optional[str] = Query(None),
    include_cancelled: bool = Query(False),
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """List events with optional filters."""
    events = event_service.list_events(db, creator_id=creator_id, include_cancelled=include_cancelled)
    return [to_event_out(e, now) for e in events]


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """Fetch a single event with its derived state."""
    return to_event_out(event_service.get_event(db, event_id), now)


@router.get("/{event_id}/state", response_model=EventStateOut)
def get_event_state(event_id: str, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """Derived lifecycle state without the full event payload."""
    event = event_service.get_event(db, event_id)
    effective = derive_state(event, now)
    return EventStateOut(
        event_id=event.event_id,
        stored_state=event.state.value,
        effective_state=effective.value,
        state_label=state_label(effective),
        can_cancel=can_cancel(event, now),
        accepting_rsvps=can_accept_rsvps(event, now),
    )


@router.patch("/{event_id}", response_model=EventUpdateOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    actor_user_id: str = Query(..., description="ID of the user performing the update"),
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """Edit an event (organizer only); significant changes ask respondents to reconfirm."""
    event, notified = event_service.update_event(
        db=db,
        event_id=event_id,
        actor_user_id=actor_user_id,
        updates=payload.model_dump(exclude_unset=True),
        now=now,
    )
    return EventUpdateOut(event=to_event_out(event, now), notified_count=notified)


@router.post("/{event_id}/publish", response_model=EventOut)
def publish_event(
    event_id: str,
    payload: EventActionRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """Publish a draft event (organizer only)."""
    event = event_service.publish_event(db, event_id, payload.actor_user_id)
    return to_event_out(event, now)


@router.post("/{event_id}/cancel", response_model=EventCancelOut)
def cancel_event(
    event_id: str,
    payload: EventCancelRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(utcnow),
):
    """Cancel an event (organizer only) and notify everyone who responded."""
    event, notified = event_service.cancel_event(
        db=db,
        event_id=event_id,
        actor_user_id=payload.actor_user_id,
        now=now,
        message=payload.message,
    )
    return EventCancelOut(event=to_event_out(event, now), notified_count=notified)
