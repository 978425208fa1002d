"""Pydantic schemas for Notifications and invite links."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from gathering.models.notification import NotificationType


class NotificationOut(BaseModel):
    notification_id: str
    user_id: str
    event_id: Optional[str] = None
    type: NotificationType
    message: str
    read: bool
    created_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UnreadCountOut(BaseModel):
    unread_count: int


class InviteLinkCreate(BaseModel):
    actor_user_id: str
    expires_at: Optional[datetime] = None


class InviteLinkOut(BaseModel):
    link_id: str
    event_id: str
    token: str
    is_active: bool
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class InvitationOut(BaseModel):
    token: str
    event_id: str
    title: str
    start_time: datetime
    effective_state: str
