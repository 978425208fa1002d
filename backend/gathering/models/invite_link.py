"""InviteLink ORM model."""
import uuid
from sqlalchemy import Column, String, Boolean, ForeignKey
from sqlalchemy.sql import func
from gathering.database import Base, UTCDateTime


class InviteLink(Base):
    __tablename__ = "invite_links"

    link_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False, index=True)
    token = Column(String(64), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())
    expires_at = Column(UTCDateTime, nullable=True)
