"""Connection graph between profiles.

A connection is requested by one profile and answered once by the other.
At most one connection exists per unordered pair of profiles, enforced both
by a pre-check and by the ``uq_connection_pair`` constraint on the
normalized pair, so concurrent opposite-direction requests cannot both
succeed.

Lifecycle::

    pending --accepted--> accepted
    pending --rejected--> rejected

Accepted and rejected are terminal.
"""

from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from pitchmatch.database import atomic
from pitchmatch.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from pitchmatch.logging import logger
from pitchmatch.metrics import instrument
from pitchmatch.models import (
    ConnectionDecision,
    ConnectionRequestPayload,
    ConnectionRow,
    ConnectionStatus,
)
from pitchmatch.notifications import announce, notify
from pitchmatch.profiles import profile_summaries, require_profile
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import ConnectionCheck, ConnectionEntry
from pitchmatch.utils import clamp_limit, clamp_offset, parse_id, utc_now_iso


def find_between(session: Session, profile_a: int, profile_b: int) -> Optional[ConnectionRow]:
    """Connection between two profiles in either direction, if any."""
    stmt = select(ConnectionRow).where(
        ConnectionRow.pair_low == min(profile_a, profile_b),
        ConnectionRow.pair_high == max(profile_a, profile_b),
    )
    return session.exec(stmt).first()


def connected_profile_ids(session: Session, profile_id: int) -> set[int]:
    """Ids of every profile sharing a connection (any status) with ``profile_id``."""
    stmt = select(ConnectionRow).where(
        or_(ConnectionRow.requester_id == profile_id, ConnectionRow.recipient_id == profile_id)
    )
    return {conn.other_party(profile_id) for conn in session.exec(stmt).all()}


class ConnectionService:
    """Request, answer, list and inspect connections.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        self.connections = RepositoryFactory(session).for_entity(ConnectionRow)

    def _require_connection(self, connection_id: Any) -> ConnectionRow:
        connection = self.connections.get(parse_id(connection_id, "connection_id"))
        if connection is None:
            raise NotFoundError("Connection not found", code="CONNECTION_NOT_FOUND")
        return connection

    @instrument("request_connection", component="connections")
    def request_connection(self, requester_id: int, recipient_id: Any) -> ConnectionRow:
        """Create a pending connection and notify the recipient.

        Checks run in order: self-connection, recipient existence, existing
        connection in either direction. The connection and the recipient's
        notification are committed together.

        Args:
            requester_id: Acting profile
            recipient_id: Profile being asked to connect

        Returns:
            The new pending connection

        Raises:
            InvalidInputError: SELF_CONNECTION_NOT_ALLOWED
            NotFoundError: RECIPIENT_NOT_FOUND
            ConflictError: CONNECTION_ALREADY_EXISTS
        """
        recipient_id = parse_id(recipient_id, "recipient_id")
        if recipient_id == requester_id:
            raise InvalidInputError(
                "Cannot send connection request to yourself",
                code="SELF_CONNECTION_NOT_ALLOWED",
            )
        require_profile(self.session, recipient_id, code="RECIPIENT_NOT_FOUND", field="recipient_id")
        if find_between(self.session, requester_id, recipient_id) is not None:
            raise ConflictError(
                "Connection already exists between these profiles",
                code="CONNECTION_ALREADY_EXISTS",
            )

        connection = ConnectionRow.between(requester_id, recipient_id)
        try:
            with atomic(self.session):
                self.connections.stage(connection)
                notification = notify(
                    self.session,
                    recipient_id,
                    ConnectionRequestPayload(connection_id=connection.id),
                )
        except IntegrityError as exc:
            raise ConflictError(
                "Connection already exists between these profiles",
                code="CONNECTION_ALREADY_EXISTS",
            ) from exc

        announce(notification)
        self.session.refresh(connection)
        logger.info(
            f"✅ Connection {connection.id} requested: {requester_id} -> {recipient_id}"
        )
        return connection

    @instrument("respond_to_connection", component="connections")
    def respond_to_connection(
        self, connection_id: Any, acting_profile_id: int, decision: str
    ) -> ConnectionRow:
        """Accept or reject a pending connection as its recipient.

        Acceptance notifies the requester in the same transaction; rejection
        sends no notification.

        Args:
            connection_id: Connection to answer
            acting_profile_id: Acting profile (must be the recipient)
            decision: "accepted" or "rejected"

        Returns:
            The updated connection

        Raises:
            InvalidInputError: INVALID_STATUS for any other decision
            NotFoundError: If the connection does not exist
            ForbiddenError: If the caller is not the recipient
            InvalidStateError: If the connection is no longer pending
        """
        try:
            parsed = ConnectionDecision(decision)
        except ValueError as exc:
            raise InvalidInputError(
                "Status must be 'accepted' or 'rejected'", code="INVALID_STATUS"
            ) from exc

        connection = self._require_connection(connection_id)
        if connection.recipient_id != acting_profile_id:
            raise ForbiddenError("Only the recipient can respond to this connection")
        if connection.status != ConnectionStatus.PENDING:
            raise InvalidStateError(
                f"Connection is already {connection.status}"
            )

        connection.status = parsed.value
        connection.updated_at = utc_now_iso()
        notification = None
        with atomic(self.session):
            self.connections.stage(connection)
            if parsed == ConnectionDecision.ACCEPTED:
                notification = notify(
                    self.session,
                    connection.requester_id,
                    ConnectionRequestPayload(connection_id=connection.id, accepted=True),
                )

        if notification is not None:
            announce(notification)
        self.session.refresh(connection)
        logger.info(f"✅ Connection {connection.id} {connection.status}")
        return connection

    @instrument("get_connection", component="connections")
    def get_connection(self, connection_id: Any, acting_profile_id: int) -> ConnectionRow:
        """Read a connection the caller participates in.

        Raises:
            NotFoundError: If the connection does not exist
            ForbiddenError: If the caller is not a participant
        """
        connection = self._require_connection(connection_id)
        if not connection.involves(acting_profile_id):
            raise ForbiddenError("You are not a participant in this connection")
        return connection

    @instrument("list_connections", component="connections")
    def list_connections(
        self,
        profile_id: int,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[ConnectionEntry]:
        """Connections where ``profile_id`` is either party, in creation order.

        Args:
            profile_id: Listing profile
            status: Optional status filter (pending, accepted, rejected)
            limit: Page size (default 10, capped)
            offset: Rows to skip

        Returns:
            Entries with the connection, its direction and the counterpart's summary

        Raises:
            InvalidInputError: INVALID_STATUS for an unknown status filter
        """
        stmt = select(ConnectionRow).where(
            or_(ConnectionRow.requester_id == profile_id, ConnectionRow.recipient_id == profile_id)
        )
        if status is not None:
            try:
                stmt = stmt.where(ConnectionRow.status == ConnectionStatus(status).value)
            except ValueError as exc:
                raise InvalidInputError(
                    "Status must be 'pending', 'accepted' or 'rejected'", code="INVALID_STATUS"
                ) from exc
        stmt = stmt.order_by(col(ConnectionRow.id)).limit(clamp_limit(limit)).offset(clamp_offset(offset))
        rows = self.session.exec(stmt).all()

        summaries = profile_summaries(self.session, [row.other_party(profile_id) for row in rows])
        return [
            {
                "connection": row.to_data(),
                "direction": row.direction_for(profile_id).value,
                "counterpart": summaries.get(row.other_party(profile_id)),
            }
            for row in rows
        ]

    @instrument("check_connection", component="connections")
    def check_connection(self, profile_id: int, other_profile_id: Any) -> ConnectionCheck:
        """Describe the connection between the caller and another profile.

        Raises:
            NotFoundError: If the other profile does not exist
        """
        other = require_profile(self.session, other_profile_id, field="other_profile_id")
        connection = find_between(self.session, profile_id, other.id)  # type: ignore[arg-type]
        if connection is None:
            return {"exists": False, "connection": None, "direction": None, "status": None}
        return {
            "exists": True,
            "connection": connection.to_data(),
            "direction": connection.direction_for(profile_id).value,
            "status": connection.status,
        }


__all__ = ["ConnectionService", "find_between", "connected_profile_ids"]
