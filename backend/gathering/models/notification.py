"""Notification ORM model — the durable record written by the notification sink."""
import uuid
import enum
from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from gathering.database import Base, UTCDateTime


class NotificationType(str, enum.Enum):
    waitlist_spot_available = "WAITLIST_SPOT_AVAILABLE"
    event_updated = "EVENT_UPDATED"
    event_cancelled = "EVENT_CANCELLED"


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=True)
    type = Column(SAEnum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, server_default=func.now())
    delivered_at = Column(UTCDateTime, nullable=True)
