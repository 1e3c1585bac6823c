"""Generic repository pattern for type-safe database operations.

This module provides a Generic Repository[T] implementation for SQLModel
entities. Domain services use it for single-table reads and writes and fall
back to explicit ``select`` statements for joins and aggregates.

Example:
    >>> from pitchmatch.repository import Repository
    >>> from pitchmatch.models import ProfileRow
    >>>
    >>> profiles = Repository[ProfileRow](session, ProfileRow)
    >>> profile = profiles.get(42)  # ProfileRow | None
    >>> investors = profiles.find_by(role="investor")
    >>> by_id = profiles.get_many([1, 2, 3])  # dict[int, ProfileRow]
"""

from collections.abc import Iterable, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository implementation for SQLModel entities.

    ``create``, ``update`` and ``delete`` commit immediately. ``stage`` and
    ``remove`` only flush, leaving the commit to an enclosing
    :func:`pitchmatch.database.atomic` block so several rows can be written
    as one unit.

    Type Parameter:
        T: SQLModel entity type (ProfileRow, ConnectionRow, etc.)

    Args:
        session: SQLModel Session instance
        model: SQLModel class

    Example:
        >>> repo = Repository[ConnectionRow](session, ConnectionRow)
        >>> pending = repo.find_by(recipient_id=7, status="pending")
        >>> repo.count_by(recipient_id=7, status="pending")
        1
    """

    def __init__(self, session: Session, model: type[T]):
        """Initialize repository.

        Args:
            session: SQLModel Session for database operations
            model: SQLModel class (e.g., ProfileRow, VideoRow)
        """
        self.session = session
        self.model = model

    def get(self, entity_id: int) -> T | None:
        """Get entity by primary key.

        Args:
            entity_id: Primary key value

        Returns:
            Entity instance or None if not found
        """
        return self.session.get(self.model, entity_id)

    def get_many(self, entity_ids: Iterable[int]) -> dict[int, T]:
        """Load several entities by primary key in one query.

        Args:
            entity_ids: Primary key values (duplicates allowed)

        Returns:
            Mapping of id to entity for the ids that exist
        """
        ids = set(entity_ids)
        if not ids:
            return {}
        pk = getattr(self.model, "id")
        stmt = select(self.model).where(pk.in_(ids))
        return {entity.id: entity for entity in self.session.exec(stmt).all()}  # type: ignore[attr-defined]

    def get_all(self, limit: int = 100, offset: int = 0) -> Sequence[T]:
        """Get all entities with pagination.

        Args:
            limit: Maximum number of results (default 100)
            offset: Number of results to skip (default 0)

        Returns:
            Sequence of entity instances in primary key order
        """
        pk = getattr(self.model, "id")
        stmt = select(self.model).order_by(pk).limit(limit).offset(offset)
        return self.session.exec(stmt).all()

    def create(self, entity: T) -> T:
        """Create new entity and commit.

        Args:
            entity: Entity instance to create

        Returns:
            Created entity with refreshed state from database
        """
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def update(self, entity: T) -> T:
        """Persist changes to an existing entity and commit.

        Args:
            entity: Entity instance to update (must exist in database)

        Returns:
            Updated entity with refreshed state from database
        """
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete(self, entity_id: int) -> bool:
        """Delete entity by ID and commit.

        Args:
            entity_id: Primary key value

        Returns:
            True if deleted, False if not found
        """
        entity = self.get(entity_id)
        if entity:
            self.session.delete(entity)
            self.session.commit()
            return True
        return False

    def stage(self, entity: T) -> T:
        """Add an entity and flush so its id is assigned, without committing.

        Args:
            entity: Entity instance to insert or update

        Returns:
            The same entity, now holding its primary key
        """
        self.session.add(entity)
        self.session.flush()
        return entity

    def remove(self, entity: T) -> None:
        """Mark an entity for deletion and flush, without committing."""
        self.session.delete(entity)
        self.session.flush()

    def _filtered(self, stmt: Any, filters: dict[str, Any]) -> Any:
        for key, value in filters.items():
            if not hasattr(self.model, key):
                raise AttributeError(f"{self.model.__name__} has no attribute {key!r}")
            stmt = stmt.where(getattr(self.model, key) == value)
        return stmt

    def find_by(self, **filters: Any) -> Sequence[T]:
        """Find entities matching equality filters.

        Args:
            **filters: Keyword arguments for filtering (attribute=value)

        Returns:
            Sequence of matching entities in primary key order

        Raises:
            AttributeError: If a filter names an unknown attribute
        """
        pk = getattr(self.model, "id")
        stmt = self._filtered(select(self.model), filters).order_by(pk)
        return self.session.exec(stmt).all()

    def find_one_by(self, **filters: Any) -> T | None:
        """Return the first entity matching equality filters, or None."""
        pk = getattr(self.model, "id")
        stmt = self._filtered(select(self.model), filters).order_by(pk).limit(1)
        return self.session.exec(stmt).first()

    def count(self) -> int:
        """Count total number of entities."""
        stmt = select(func.count()).select_from(self.model)
        return self.session.exec(stmt).one()

    def count_by(self, **filters: Any) -> int:
        """Count entities matching equality filters."""
        stmt = self._filtered(select(func.count()).select_from(self.model), filters)
        return self.session.exec(stmt).one()

    def exists(self, entity_id: int) -> bool:
        """Check if entity exists by ID."""
        return self.get(entity_id) is not None


# =============================================================================
# Repository Factory Helper
# =============================================================================


class RepositoryFactory:
    """Factory for creating type-safe repositories bound to one session.

    Example:
        >>> factory = RepositoryFactory(session)
        >>> profiles = factory.for_entity(ProfileRow)
        >>> videos = factory.for_entity(VideoRow)
    """

    def __init__(self, session: Session):
        """Initialize repository factory.

        Args:
            session: SQLModel Session for database operations
        """
        self.session = session

    def for_entity(self, model: type[T]) -> Repository[T]:
        """Create repository for specific entity type.

        Args:
            model: SQLModel class (e.g., ProfileRow)

        Returns:
            Type-safe Repository[T] instance
        """
        return Repository[T](self.session, model)


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository", "RepositoryFactory"]
