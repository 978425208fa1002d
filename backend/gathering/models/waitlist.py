"""WaitlistEntry ORM model.

``entry_id`` is autoincrementing so it doubles as the insertion-order
tie-breaker when two entries share ``joined_at``. ``expires_at`` is set
together with ``notified_at`` and always equals it plus the grace window.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from gathering.database import Base, UTCDateTime


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_waitlist_event_user"),
    )

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    joined_at = Column(UTCDateTime, nullable=False)
    notified_at = Column(UTCDateTime, nullable=True)
    expires_at = Column(UTCDateTime, nullable=True)

    event = relationship("Event", back_populates="waitlist_entries")
