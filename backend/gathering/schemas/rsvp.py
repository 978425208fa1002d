"""Pydantic schemas for RSVPs."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from gathering.models.rsvp import RSVPResponse


class RSVPSubmit(BaseModel):
    user_id: str
    response: RSVPResponse


class RSVPOut(BaseModel):
    rsvp_id: str
    event_id: str
    user_id: str
    response: RSVPResponse
    needs_reconfirmation: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RSVPListOut(BaseModel):
    event_id: str
    counts: dict[str, int]
    rsvps: list[RSVPOut]
