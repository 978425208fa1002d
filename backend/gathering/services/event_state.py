"""Effective lifecycle state of an event.

The stored ``Event.state`` only records explicit transitions (DRAFT,
PUBLISHED, CANCELLED and, if ever set, COMPLETED). Everything the clock
decides (RSVPs closing, the event starting, the event ending) is computed
here on every read from the stored fields and an explicit ``now``. No
background job ever writes these substates back.

All functions are pure: same inputs, same output, inputs untouched.
"""
from datetime import datetime, timedelta

from gathering.clock import as_utc
from gathering.config import settings
from gathering.models.event import Event, EventState

_EXPLICIT_STATES = (EventState.draft, EventState.cancelled, EventState.completed)

_STATE_LABELS = {
    EventState.draft: "Draft",
    EventState.published: "Published",
    EventState.closed: "RSVPs Closed",
    EventState.ongoing: "In Progress",
    EventState.completed: "Completed",
    EventState.cancelled: "Cancelled",
}


def effective_end(event: Event) -> datetime:
    """End time used for COMPLETED; falls back to start + default duration."""
    if event.end_time is not None:
        return as_utc(event.end_time)
    return as_utc(event.start_time) + timedelta(hours=settings.DEFAULT_EVENT_DURATION_HOURS)


def derive_state(event: Event, now: datetime) -> EventState:
    """Compute the externally visible state of ``event`` at ``now``."""
    if event.state in _EXPLICIT_STATES:
        return event.state

    now = as_utc(now)
    if now >= effective_end(event):
        return EventState.completed
    if now >= as_utc(event.start_time):
        return EventState.ongoing
    if event.rsvp_deadline is not None and now >= as_utc(event.rsvp_deadline):
        return EventState.closed
    return EventState.published


def state_label(state: EventState) -> str:
    return _STATE_LABELS.get(state, str(state.value))


def can_cancel(event: Event, now: datetime) -> bool:
    return derive_state(event, now) not in (EventState.cancelled, EventState.completed)


def can_accept_rsvps(event: Event, now: datetime) -> bool:
    return derive_state(event, now) == EventState.published
