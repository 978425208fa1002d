"""Notification API routes."""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gathering.database import get_db
from gathering.schemas.notification import NotificationOut, UnreadCountOut
from gathering.services import notification_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[NotificationOut])
def list_notifications(
    user_id: str = Query(...),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """A user's notifications, newest first."""
    return notification_service.list_notifications(db, user_id, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCountOut)
def unread_count(user_id: str = Query(...), db: Session = Depends(get_db)):
    return UnreadCountOut(unread_count=notification_service.unread_count(db, user_id))


@router.post("/mark-all-read", response_model=UnreadCountOut)
def mark_all_read(user_id: str = Query(...), db: Session = Depends(get_db)):
    """Mark every notification read; returns the remaining unread count."""
    notification_service.mark_all_read(db, user_id)
    return UnreadCountOut(unread_count=0)


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, user_id: str = Query(...), db: Session = Depends(get_db)):
    return notification_service.mark_read(db, notification_id, user_id)
