"""Notification orchestration — transactional outbox plus best-effort delivery.

``record`` adds a Notification row to the caller's session, so it commits or
rolls back together with the state change that caused it. ``dispatch`` runs
only after that commit and hands each record to the delivery sink; a sink
failure is logged and left undelivered, never propagated to the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from gathering.errors import NotFound
from gathering.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def deliver(self, notification: Notification) -> None: ...


class LoggingSink:
    """Default sink: delivery providers live outside this service."""

    def deliver(self, notification: Notification) -> None:
        logger.info(
            "[Notification] %s -> user %s (event %s): %s",
            notification.type.value, notification.user_id, notification.event_id, notification.message,
        )


_sink: NotificationSink = LoggingSink()


def get_sink() -> NotificationSink:
    return _sink


def set_sink(sink: NotificationSink) -> NotificationSink:
    """Install a delivery sink, returning the previous one."""
    global _sink
    previous = _sink
    _sink = sink
    return previous


def record(
    db: Session,
    user_id: str,
    event_id: Optional[str],
    type: NotificationType,
    message: str,
) -> Notification:
    """Append a notification to the current unit of work (not yet committed)."""
    notification = Notification(user_id=user_id, event_id=event_id, type=type, message=message)
    db.add(notification)
    return notification


def dispatch(db: Session, notifications: Iterable[Notification]) -> int:
    """Deliver already-committed notifications; returns how many succeeded."""
    delivered = 0
    for notification in notifications:
        try:
            get_sink().deliver(notification)
            notification.delivered_at = datetime.now(timezone.utc)
            db.commit()
            delivered += 1
        except Exception:
            db.rollback()
            logger.exception(
                "Delivery failed for notification %s (%s) to user %s",
                notification.notification_id, notification.type.value, notification.user_id,
            )
    return delivered


def list_notifications(db: Session, user_id: str, unread_only: bool = False) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).all()


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .count()
    )


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.notification_id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFound("NOTIFICATION_NOT_FOUND", "Notification not found")
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
