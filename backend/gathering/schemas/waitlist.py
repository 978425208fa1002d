"""Pydantic schemas for the waitlist."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class WaitlistJoin(BaseModel):
    user_id: str


class WaitlistEntryOut(BaseModel):
    entry_id: int
    event_id: str
    user_id: str
    position: Optional[int] = None
    joined_at: datetime
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class WaitlistStatusOut(BaseModel):
    on_waitlist: bool
    waitlist_enabled: bool
    capacity: Optional[int] = None
    position: Optional[int] = None
    total_waiting: int
    joined_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
