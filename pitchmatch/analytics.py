"""Profile view log and per-profile engagement analytics."""

from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.sql import func
from sqlmodel import Session, col, select

from pitchmatch.config import TimeRange, settings
from pitchmatch.errors import InvalidInputError
from pitchmatch.logging import logger
from pitchmatch.metrics import instrument
from pitchmatch.models import (
    ConnectionRow,
    ConnectionStatus,
    FavoriteRow,
    ProfileRow,
    ProfileViewRow,
    VideoRow,
)
from pitchmatch.profiles import require_profile
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import ProfileAnalytics, ProfileViewEntry
from pitchmatch.utils import format_iso, utc_now


class AnalyticsService:
    """Record profile views and aggregate engagement for one profile.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        repos = RepositoryFactory(session)
        self.profile_views = repos.for_entity(ProfileViewRow)
        self.connections = repos.for_entity(ConnectionRow)
        self.videos = repos.for_entity(VideoRow)
        self.favorites = repos.for_entity(FavoriteRow)

    @instrument("record_profile_view", component="analytics")
    def record_profile_view(
        self, viewed_profile_id: Any, viewer_profile_id: Optional[int] = None
    ) -> Optional[ProfileViewRow]:
        """Append one view of ``viewed_profile_id`` to the view log.

        Args:
            viewed_profile_id: Profile being viewed
            viewer_profile_id: Viewing profile, or None for anonymous

        Returns:
            The stored view, or None when a profile views itself

        Raises:
            NotFoundError: If either profile does not exist
        """
        viewed = require_profile(self.session, viewed_profile_id)
        if viewer_profile_id is not None:
            viewer = require_profile(self.session, viewer_profile_id, field="viewer_profile_id")
            if viewer.id == viewed.id:
                return None
            viewer_profile_id = viewer.id
        view = self.profile_views.create(
            ProfileViewRow(viewer_id=viewer_profile_id, viewed_profile_id=viewed.id)  # type: ignore[arg-type]
        )
        logger.debug(f"👁️  Profile {viewed.id} viewed by {viewer_profile_id or 'anonymous'}")
        return view

    @instrument("profile_analytics", component="analytics")
    def profile_analytics(self, profile_id: Any, time_range: str = TimeRange.ALL) -> ProfileAnalytics:
        """Engagement summary for one profile.

        Only profile views are restricted to ``time_range``; connection,
        video and favorite figures always cover the full history.

        Args:
            profile_id: Profile to summarize
            time_range: "7d", "30d" or "all"

        Returns:
            Counts plus the most recent views, newest first

        Raises:
            NotFoundError: If the profile does not exist
            InvalidInputError: INVALID_TIME_RANGE for an unknown range
        """
        profile = require_profile(self.session, profile_id)
        try:
            window = TimeRange(time_range)
        except ValueError as exc:
            raise InvalidInputError(
                "Time range must be '7d', '30d' or 'all'", code="INVALID_TIME_RANGE"
            ) from exc
        pid: int = profile.id  # type: ignore[assignment]
        cutoff = format_iso(window.cutoff(utc_now()))

        views_filter = [ProfileViewRow.viewed_profile_id == pid]
        if cutoff is not None:
            views_filter.append(col(ProfileViewRow.created_at) >= cutoff)

        total_profile_views = self.session.exec(
            select(func.count()).select_from(ProfileViewRow).where(*views_filter)
        ).one()
        total_connections = self.session.exec(
            select(func.count())
            .select_from(ConnectionRow)
            .where(
                or_(ConnectionRow.requester_id == pid, ConnectionRow.recipient_id == pid),
                ConnectionRow.status == ConnectionStatus.ACCEPTED.value,
            )
        ).one()
        total_video_views = self.session.exec(
            select(func.coalesce(func.sum(VideoRow.views_count), 0)).where(
                VideoRow.profile_id == pid
            )
        ).one()

        recent_stmt = (
            select(ProfileViewRow, ProfileRow)
            .join(ProfileRow, col(ProfileRow.id) == col(ProfileViewRow.viewer_id), isouter=True)
            .where(*views_filter)
            .order_by(col(ProfileViewRow.created_at).desc(), col(ProfileViewRow.id).desc())
            .limit(settings.recent_views_limit)
        )
        recent: list[ProfileViewEntry] = [
            {
                "id": view.id,  # type: ignore[typeddict-item]
                "viewer_id": view.viewer_id,
                "created_at": view.created_at,
                "viewer": viewer.summary() if viewer is not None else None,
            }
            for view, viewer in self.session.exec(recent_stmt).all()
        ]

        return {
            "profile_id": pid,
            "time_range": window.value,
            "total_profile_views": total_profile_views,
            "total_connections": total_connections,
            "pending_connection_requests": self.connections.count_by(
                recipient_id=pid, status=ConnectionStatus.PENDING.value
            ),
            "total_video_uploads": self.videos.count_by(profile_id=pid),
            "total_video_views": int(total_video_views),
            "favorited_by_count": self.favorites.count_by(favorited_profile_id=pid),
            "recent_profile_views": recent,
        }


__all__ = ["AnalyticsService"]
