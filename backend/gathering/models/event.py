"""Event ORM model.

Only the explicit lifecycle states are persisted in ``state``; ONGOING,
CLOSED and time-based COMPLETED are derived on read by
``gathering.services.event_state``.
"""
import uuid
import enum
from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, CheckConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from gathering.database import Base, UTCDateTime


class EventState(str, enum.Enum):
    draft = "DRAFT"
    published = "PUBLISHED"
    ongoing = "ONGOING"
    closed = "CLOSED"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"),
    )

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    creator_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    state = Column(SAEnum(EventState), nullable=False, default=EventState.draft)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=True)
    rsvp_deadline = Column(UTCDateTime, nullable=True)
    capacity = Column(Integer, nullable=True)
    waitlist_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    rsvps = relationship("RSVP", back_populates="event", cascade="all, delete-orphan")
    waitlist_entries = relationship("WaitlistEntry", back_populates="event", cascade="all, delete-orphan")
