"""RSVP ORM model — one response per (event, user)."""
import uuid
import enum
from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from gathering.database import Base, UTCDateTime


class RSVPResponse(str, enum.Enum):
    yes = "YES"
    no = "NO"
    maybe = "MAYBE"


class RSVP(Base):
    __tablename__ = "rsvps"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_rsvps_event_user"),
    )

    rsvp_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    response = Column(SAEnum(RSVPResponse), nullable=False)
    needs_reconfirmation = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("Event", back_populates="rsvps")
