"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    creator_id: str
    title: str = Field(min_length=1, max_length=255)
    start_time: datetime
    end_time: Optional[datetime] = None
    rsvp_deadline: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    waitlist_enabled: bool = False
    location: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    publish: bool = False


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    rsvp_deadline: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    waitlist_enabled: Optional[bool] = None


class EventOut(BaseModel):
    event_id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    state: str
    effective_state: Optional[str] = None
    state_label: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    rsvp_deadline: Optional[datetime] = None
    capacity: Optional[int] = None
    waitlist_enabled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EventStateOut(BaseModel):
    event_id: str
    stored_state: str
    effective_state: str
    state_label: str
    can_cancel: bool
    accepting_rsvps: bool


class EventActionRequest(BaseModel):
    actor_user_id: str


class EventCancelRequest(BaseModel):
    actor_user_id: str
    message: Optional[str] = None


class EventCancelOut(BaseModel):
    event: EventOut
    notified_count: int


class EventUpdateOut(BaseModel):
    event: EventOut
    notified_count: int
