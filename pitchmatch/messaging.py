"""Messaging inside accepted connections."""

from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.sql import func
from sqlmodel import Session, col, select

from pitchmatch.config import MessageSortField, SortOrder
from pitchmatch.database import atomic
from pitchmatch.errors import ForbiddenError, InvalidInputError, NotFoundError
from pitchmatch.logging import logger
from pitchmatch.metrics import instrument
from pitchmatch.models import ConnectionRow, ConnectionStatus, MessagePayload, MessageRow
from pitchmatch.notifications import announce, notify
from pitchmatch.profiles import profile_summaries
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import MessageEntry
from pitchmatch.utils import clamp_limit, clamp_offset, clean_text, parse_id

DEFAULT_MESSAGE_LIMIT = 50


class MessageService:
    """Send, read and list messages.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        repos = RepositoryFactory(session)
        self.messages = repos.for_entity(MessageRow)
        self.connections = repos.for_entity(ConnectionRow)

    def _require_connection(self, connection_id: Any) -> ConnectionRow:
        connection = self.connections.get(parse_id(connection_id, "connection_id"))
        if connection is None:
            raise NotFoundError("Connection not found", code="CONNECTION_NOT_FOUND")
        return connection

    @instrument("send_message", component="messaging")
    def send_message(self, sender_id: int, connection_id: Any, content: Optional[str]) -> MessageRow:
        """Send a message on an accepted connection and notify the other party.

        Args:
            sender_id: Acting profile
            connection_id: Accepted connection the sender belongs to
            content: Message body; stored trimmed

        Returns:
            The stored message

        Raises:
            NotFoundError: If the connection does not exist
            ForbiddenError: CONNECTION_NOT_ACCEPTED or NOT_CONNECTION_PARTICIPANT
            InvalidInputError: MISSING_OR_EMPTY_CONTENT
        """
        connection = self._require_connection(connection_id)
        if connection.status != ConnectionStatus.ACCEPTED:
            raise ForbiddenError(
                "Messages can only be sent on accepted connections",
                code="CONNECTION_NOT_ACCEPTED",
            )
        if not connection.involves(sender_id):
            raise ForbiddenError(
                "You are not a participant in this connection",
                code="NOT_CONNECTION_PARTICIPANT",
            )
        body = clean_text(content) if isinstance(content, str) else None
        if body is None:
            raise InvalidInputError(
                "Message content is required", code="MISSING_OR_EMPTY_CONTENT"
            )

        message = MessageRow(connection_id=connection.id, sender_id=sender_id, content=body)
        with atomic(self.session):
            self.messages.stage(message)
            notification = notify(
                self.session,
                connection.other_party(sender_id),
                MessagePayload(message_id=message.id),
            )

        announce(notification)
        self.session.refresh(message)
        logger.info(f"✅ Message {message.id} sent on connection {connection.id}")
        return message

    @instrument("mark_message_read", component="messaging")
    def mark_read(self, message_id: Any, acting_profile_id: int) -> MessageRow:
        """Mark a received message as read.

        Raises:
            NotFoundError: If the message or its connection does not exist
            ForbiddenError: SENDER_CANNOT_MARK_READ, or the caller is not the
                counterpart in the message's connection
        """
        message = self.messages.get(parse_id(message_id, "message_id"))
        if message is None:
            raise NotFoundError("Message not found", code="MESSAGE_NOT_FOUND")
        if message.sender_id == acting_profile_id:
            raise ForbiddenError(
                "Cannot mark your own message as read", code="SENDER_CANNOT_MARK_READ"
            )

        connection = self._require_connection(message.connection_id)
        if not connection.involves(acting_profile_id):
            raise ForbiddenError("You are not a participant in this connection")
        if connection.other_party(acting_profile_id) != message.sender_id:
            raise ForbiddenError("Message was not sent to you")

        message.is_read = True
        with atomic(self.session):
            self.session.add(message)
        self.session.refresh(message)
        return message

    @instrument("list_messages", component="messaging")
    def list_messages(
        self,
        connection_id: Any,
        acting_profile_id: int,
        sort: str = MessageSortField.CREATED_AT,
        order: str = SortOrder.ASC,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[MessageEntry]:
        """Messages of a connection the caller participates in.

        Args:
            connection_id: Connection to read
            acting_profile_id: Acting profile (must be a participant)
            sort: created_at, id, is_read or sender_id; anything else sorts by created_at
            order: "asc" (default) or "desc"
            limit: Page size (default 50, capped)
            offset: Rows to skip

        Raises:
            NotFoundError: If the connection does not exist
            ForbiddenError: If the caller is not a participant
            InvalidInputError: INVALID_ORDER for an unknown order
        """
        connection = self._require_connection(connection_id)
        if not connection.involves(acting_profile_id):
            raise ForbiddenError("You are not a participant in this connection")

        try:
            sort_field = MessageSortField(sort)
        except ValueError:
            sort_field = MessageSortField.CREATED_AT
        direction = _parse_order(order)

        sort_column = col(getattr(MessageRow, sort_field.value))
        id_column = col(MessageRow.id)
        if direction == SortOrder.DESC:
            ordering = (sort_column.desc(), id_column.desc())
        else:
            ordering = (sort_column.asc(), id_column.asc())

        stmt = (
            select(MessageRow)
            .where(MessageRow.connection_id == connection.id)
            .order_by(*ordering)
            .limit(clamp_limit(limit, DEFAULT_MESSAGE_LIMIT))
            .offset(clamp_offset(offset))
        )
        rows = self.session.exec(stmt).all()
        senders = profile_summaries(self.session, [row.sender_id for row in rows])
        return [
            {
                "id": row.id,  # type: ignore[typeddict-item]
                "connection_id": row.connection_id,
                "sender_id": row.sender_id,
                "content": row.content,
                "is_read": row.is_read,
                "created_at": row.created_at,
                "sender": senders.get(row.sender_id),
            }
            for row in rows
        ]

    @instrument("unread_message_count", component="messaging")
    def unread_count(self, profile_id: int) -> int:
        """Unread messages sent to ``profile_id`` across accepted connections."""
        stmt = (
            select(func.count())
            .select_from(MessageRow)
            .join(ConnectionRow, col(ConnectionRow.id) == col(MessageRow.connection_id))
            .where(
                or_(
                    ConnectionRow.requester_id == profile_id,
                    ConnectionRow.recipient_id == profile_id,
                ),
                and_(
                    col(MessageRow.sender_id) != profile_id,
                    col(MessageRow.is_read).is_(False),
                ),
            )
        )
        return self.session.exec(stmt).one()


def _parse_order(order: str) -> SortOrder:
    try:
        return SortOrder(order)
    except ValueError as exc:
        raise InvalidInputError("Order must be 'asc' or 'desc'", code="INVALID_ORDER") from exc


__all__ = ["MessageService", "DEFAULT_MESSAGE_LIMIT"]
