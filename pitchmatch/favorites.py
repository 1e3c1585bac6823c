"""Favorites: one-directional bookmarks between profiles."""

from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from pitchmatch.database import atomic
from pitchmatch.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from pitchmatch.logging import logger
from pitchmatch.metrics import instrument
from pitchmatch.models import FavoritePayload, FavoriteRow
from pitchmatch.notifications import announce, notify
from pitchmatch.profiles import profile_summaries, require_profile
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import FavoriteEntry
from pitchmatch.utils import clamp_limit, clamp_offset, parse_id


def favorited_profile_ids(session: Session, profile_id: int) -> set[int]:
    """Ids of every profile ``profile_id`` has favorited."""
    stmt = select(FavoriteRow.favorited_profile_id).where(FavoriteRow.profile_id == profile_id)
    return set(session.exec(stmt).all())


class FavoriteService:
    """Add, remove and list favorites.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        self.favorites = RepositoryFactory(session).for_entity(FavoriteRow)

    @instrument("add_favorite", component="favorites")
    def add_favorite(self, profile_id: int, favorited_profile_id: Any) -> FavoriteRow:
        """Favorite another profile and notify it.

        Raises:
            InvalidInputError: SELF_FAVORITE_NOT_ALLOWED
            NotFoundError: If the target profile does not exist
            ConflictError: FAVORITE_ALREADY_EXISTS
        """
        target_id = parse_id(favorited_profile_id, "favorited_profile_id")
        if target_id == profile_id:
            raise InvalidInputError(
                "Cannot favorite your own profile", code="SELF_FAVORITE_NOT_ALLOWED"
            )
        require_profile(self.session, target_id, field="favorited_profile_id")
        if self.favorites.find_one_by(profile_id=profile_id, favorited_profile_id=target_id):
            raise ConflictError("Profile already favorited", code="FAVORITE_ALREADY_EXISTS")

        favorite = FavoriteRow(profile_id=profile_id, favorited_profile_id=target_id)
        try:
            with atomic(self.session):
                self.favorites.stage(favorite)
                notification = notify(
                    self.session, target_id, FavoritePayload(favorite_id=favorite.id)
                )
        except IntegrityError as exc:
            raise ConflictError(
                "Profile already favorited", code="FAVORITE_ALREADY_EXISTS"
            ) from exc

        announce(notification)
        self.session.refresh(favorite)
        logger.info(f"✅ Profile {profile_id} favorited profile {target_id}")
        return favorite

    @instrument("remove_favorite", component="favorites")
    def remove_favorite(self, favorite_id: Any, acting_profile_id: int) -> FavoriteRow:
        """Delete one of the caller's favorites.

        Returns:
            A transient copy of the removed favorite

        Raises:
            NotFoundError: If the favorite does not exist
            ForbiddenError: If the caller does not own it
        """
        favorite = self.favorites.get(parse_id(favorite_id, "favorite_id"))
        if favorite is None:
            raise NotFoundError("Favorite not found", code="FAVORITE_NOT_FOUND")
        if favorite.profile_id != acting_profile_id:
            raise ForbiddenError("You can only remove your own favorites")

        removed = FavoriteRow(**favorite.model_dump())
        with atomic(self.session):
            self.favorites.remove(favorite)
        logger.info(f"🗑️  Favorite {removed.id} removed")
        return removed

    @instrument("list_favorites", component="favorites")
    def list_favorites(
        self,
        profile_id: int,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[FavoriteEntry]:
        """Favorites owned by ``profile_id`` with the favorited profile's summary."""
        stmt = (
            select(FavoriteRow)
            .where(FavoriteRow.profile_id == profile_id)
            .order_by(col(FavoriteRow.id))
            .limit(clamp_limit(limit))
            .offset(clamp_offset(offset))
        )
        rows = self.session.exec(stmt).all()
        targets = profile_summaries(self.session, [row.favorited_profile_id for row in rows])
        return [
            {
                "id": row.id,  # type: ignore[typeddict-item]
                "profile_id": row.profile_id,
                "favorited_profile_id": row.favorited_profile_id,
                "created_at": row.created_at,
                "favorited_profile": targets.get(row.favorited_profile_id),
            }
            for row in rows
        ]

    @instrument("is_favorited", component="favorites")
    def is_favorited(self, profile_id: int, other_profile_id: Any) -> bool:
        """Whether ``profile_id`` has favorited ``other_profile_id``."""
        target_id = parse_id(other_profile_id, "other_profile_id")
        return self.favorites.find_one_by(profile_id=profile_id, favorited_profile_id=target_id) is not None


__all__ = ["FavoriteService", "favorited_profile_ids"]
