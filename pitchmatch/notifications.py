"""Notification store.

Notifications are written by the service that performs the triggering
mutation, inside the same transaction: :func:`notify` only stages the row
and the caller's ``atomic`` block commits both together.
"""

from typing import Any, Optional

from sqlalchemy import update
from sqlmodel import Session, col, select

from pitchmatch.database import atomic
from pitchmatch.errors import ForbiddenError, NotFoundError
from pitchmatch.logging import logger
from pitchmatch.metrics import count_notification, instrument
from pitchmatch.models import NotificationRow
from pitchmatch.repository import RepositoryFactory
from pitchmatch.utils import clamp_limit, clamp_offset, parse_id

DEFAULT_NOTIFICATION_LIMIT = 20


def notify(session: Session, profile_id: int, payload: Any) -> NotificationRow:
    """Stage one notification for ``profile_id`` without committing.

    Args:
        session: Session holding the triggering mutation
        profile_id: Recipient profile
        payload: ConnectionRequestPayload, FavoritePayload or MessagePayload

    Returns:
        The staged notification, with its id assigned
    """
    notification = NotificationRow.from_payload(profile_id, payload)
    session.add(notification)
    session.flush()
    return notification


def announce(notification: NotificationRow) -> None:
    """Record a committed notification in logs and metrics."""
    count_notification(notification.type)
    logger.debug(
        f"🔔 Notification {notification.id} ({notification.type}) "
        f"sent to profile {notification.profile_id}"
    )


class NotificationService:
    """Per-profile notification listing and read state.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        self.notifications = RepositoryFactory(session).for_entity(NotificationRow)

    @instrument("list_notifications", component="notifications")
    def list_notifications(
        self,
        profile_id: int,
        is_read: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[NotificationRow]:
        """Notifications addressed to ``profile_id``, newest first.

        Args:
            profile_id: Recipient profile
            is_read: Optional read-state filter
            limit: Page size (default 20, capped)
            offset: Rows to skip
        """
        stmt = select(NotificationRow).where(NotificationRow.profile_id == profile_id)
        if is_read is not None:
            stmt = stmt.where(NotificationRow.is_read == is_read)
        stmt = (
            stmt.order_by(col(NotificationRow.created_at).desc(), col(NotificationRow.id).desc())
            .limit(clamp_limit(limit, DEFAULT_NOTIFICATION_LIMIT))
            .offset(clamp_offset(offset))
        )
        return list(self.session.exec(stmt).all())

    @instrument("mark_notification_read", component="notifications")
    def mark_one_read(self, notification_id: Any, acting_profile_id: int) -> NotificationRow:
        """Mark one of the caller's notifications as read.

        Raises:
            NotFoundError: If the notification does not exist
            ForbiddenError: If it is addressed to another profile
        """
        notification = self.notifications.get(parse_id(notification_id, "notification_id"))
        if notification is None:
            raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")
        if notification.profile_id != acting_profile_id:
            raise ForbiddenError("You can only mark your own notifications as read")

        notification.is_read = True
        with atomic(self.session):
            self.session.add(notification)
        self.session.refresh(notification)
        return notification

    @instrument("mark_all_notifications_read", component="notifications")
    def mark_all_read(self, profile_id: int) -> int:
        """Mark every unread notification of ``profile_id`` as read.

        Returns:
            Number of notifications that changed (0 on a repeated call)
        """
        stmt = (
            update(NotificationRow)
            .where(col(NotificationRow.profile_id) == profile_id)
            .where(col(NotificationRow.is_read).is_(False))
            .values(is_read=True)
        )
        with atomic(self.session):
            result = self.session.connection().execute(stmt)
        count = result.rowcount or 0
        logger.info(f"✅ Marked {count} notifications read for profile {profile_id}")
        return count

    @instrument("unread_notification_count", component="notifications")
    def unread_count(self, profile_id: int) -> int:
        """Number of unread notifications for ``profile_id``."""
        return self.notifications.count_by(profile_id=profile_id, is_read=False)


__all__ = ["NotificationService", "notify", "announce", "DEFAULT_NOTIFICATION_LIMIT"]
