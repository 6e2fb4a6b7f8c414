"""
Notification Service.

Central service for creating and querying in-app notifications.  The
workflow engine calls ``notify`` at every transition (submission, auto
approval, step approved/rejected, final approval, new assignment).

Delivery is fire-and-forget: ``notify`` runs after the workflow transaction
has committed and never lets a failure escape, so a broken notification
table cannot undo an approval.
"""

import logging
from datetime import datetime, timezone

from app.models import db
from app.models.notification import DEFAULT_TITLES, NOTIFICATION_TYPES, Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, description, type="system", title=None,
               related_id=None, additional_info=None):
        """
        Create a single notification record.

        Raises:
            ValueError: missing recipient/description or unknown type.

        Returns:
            The created Notification instance (already committed).
        """
        if not user_id:
            raise ValueError("user_id is required")
        if not description:
            raise ValueError("description is required")
        if type not in NOTIFICATION_TYPES:
            raise ValueError(
                f"Invalid notification type {type!r}. Must be one of: {', '.join(sorted(NOTIFICATION_TYPES))}"
            )

        notif = Notification(
            user_id=user_id,
            type=type,
            title=title or DEFAULT_TITLES.get(type, "New Notification"),
            description=description,
            related_id=related_id,
            additional_info=additional_info,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def notify(user_id, title, related_id, description, *, type="system",
               additional_info=None):
        """Fire-and-forget wrapper around ``create``.

        Returns the Notification, or None when delivery failed (logged).
        """
        try:
            return NotificationService.create(
                user_id=user_id,
                title=title,
                related_id=related_id,
                description=description,
                type=type,
                additional_info=additional_info,
            )
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification delivery failed",
                extra={"user_id": user_id, "event_type": type},
            )
            return None

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=True, limit=50, offset=0):
        """
        Retrieve notifications for a user, newest first.
        """
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark one of the user's notifications as read.  None if not theirs."""
        notif = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all notifications for a user as read."""
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter_by(user_id=user_id, is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count
