"""User ORM model."""
import uuid
from sqlalchemy import Column, String
from sqlalchemy.sql import func
from gathering.database import Base, UTCDateTime


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    display_name = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())
