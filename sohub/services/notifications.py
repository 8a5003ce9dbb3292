"""
Notification log for order activity.
Every entry is broadcast-scoped ("All"); read/clear act on the whole scope.
"""
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models.choices import NOTIFICATION_SCOPE_ALL
from ..models.models import Notification, Order, User
from .time_utils import iso_or_none, utcnow


def describe(action: str, actor: Optional[User], order: Order) -> str:
    username = (actor.username if actor else None) or "User"
    customer = order.customer_name or "Unknown"
    code = order.order_code or "N/A"
    return f"{action} by {username} for {customer} (Order ID: {code})"


def append_notification(
    db: Session,
    message: str,
    user_id: Optional[uuid.UUID] = None,
    role: str = NOTIFICATION_SCOPE_ALL,
) -> Notification:
    """
    Append a notification entry.

    Args:
        db: Database session
        message: Human-readable description of the event
        user_id: User whose action produced the event
        role: Broadcast scope tag

    Returns:
        The persisted Notification
    """
    notification = Notification(
        message=message,
        timestamp=utcnow(),
        is_read=False,
        role=role,
        user_id=user_id,
    )
    db.add(notification)
    db.commit()
    return notification


def list_notifications(db: Session, limit: Optional[int] = None) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.role == NOTIFICATION_SCOPE_ALL)
        .order_by(Notification.timestamp.desc())
        .limit(limit or settings.notifications_page_size)
        .all()
    )


def mark_all_read(db: Session) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.role == NOTIFICATION_SCOPE_ALL)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def clear_all(db: Session) -> int:
    result = db.execute(
        delete(Notification)
        .where(Notification.role == NOTIFICATION_SCOPE_ALL)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0


def notification_to_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": str(n.id),
        "message": n.message,
        "timestamp": iso_or_none(n.timestamp),
        "is_read": n.is_read,
        "role": n.role,
        "user_id": str(n.user_id) if n.user_id else None,
    }
