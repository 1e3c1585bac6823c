"""Service facade for PitchMatch.

A :class:`PitchMatchService` owns the database manager and hands out a
:class:`Services` bundle per unit of work. Every domain service in the
bundle shares one session, so a request boundary resolves the caller once
and threads the acting profile id into each call.

Example:
    >>> app = PitchMatchService()
    >>> app.initialize()
    >>> with app.session_scope() as services:
    ...     caller = services.profiles.resolve_caller("user_abc")
    ...     ranked = services.recommendations.recommend(caller.id)
    >>> app.close()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from pitchmatch.analytics import AnalyticsService
from pitchmatch.connections import ConnectionService
from pitchmatch.database import DatabaseManager
from pitchmatch.favorites import FavoriteService
from pitchmatch.logging import clear_request_context, logger, set_request_context
from pitchmatch.messaging import MessageService
from pitchmatch.notifications import NotificationService
from pitchmatch.profiles import ProfileService
from pitchmatch.recommendations import RecommendationService
from pitchmatch.types import PlatformStatistics
from pitchmatch.videos import VideoService


@dataclass(frozen=True)
class Services:
    """Domain services bound to a single session."""

    session: Session
    profiles: ProfileService
    connections: ConnectionService
    messages: MessageService
    favorites: FavoriteService
    notifications: NotificationService
    recommendations: RecommendationService
    videos: VideoService
    analytics: AnalyticsService

    @classmethod
    def for_session(cls, session: Session) -> "Services":
        return cls(
            session=session,
            profiles=ProfileService(session),
            connections=ConnectionService(session),
            messages=MessageService(session),
            favorites=FavoriteService(session),
            notifications=NotificationService(session),
            recommendations=RecommendationService(session),
            videos=VideoService(session),
            analytics=AnalyticsService(session),
        )


class PitchMatchService:
    """Owns storage and builds per-request service bundles.

    Args:
        db: Database manager (creates new if None)
    """

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or DatabaseManager()

    def initialize(self, force: bool = False) -> None:
        """Create the schema, dropping existing tables first when ``force``."""
        self.db.initialize()
        if force:
            self.db.reset()
        logger.info("✅ PitchMatch initialized")

    def close(self) -> None:
        """Release database resources."""
        self.db.close()
        logger.info("✅ PitchMatch closed")

    @contextmanager
    def session_scope(self, request_id: Optional[str] = None) -> Iterator[Services]:
        """Yield a :class:`Services` bundle on a fresh session.

        Args:
            request_id: Optional correlation id bound to every log line
                emitted inside the block
        """
        set_request_context(request_id=request_id)
        try:
            with self.db.session_scope() as session:
                yield Services.for_session(session)
        finally:
            clear_request_context()

    def get_statistics(self) -> PlatformStatistics:
        """Row counts per table.

        Example:
            >>> stats = app.get_statistics()
            >>> print(f"Total profiles: {stats['profiles']}")
        """
        return self.db.get_statistics()


__all__ = ["PitchMatchService", "Services"]
