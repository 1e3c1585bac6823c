"""Database management for PitchMatch.

This module provides SQLite database management with:
- Engine and session management (WAL mode for file databases)
- Foreign key enforcement on every connection
- Transaction scoping for multi-row atomic writes
- Index creation for query optimization
- Table statistics for the status command

Example:
    >>> from pitchmatch.database import DatabaseManager, atomic
    >>>
    >>> db = DatabaseManager("sqlite://")
    >>> db.initialize()
    >>>
    >>> with db.session_scope() as session:
    ...     with atomic(session):
    ...         session.add(ProfileRow(user_id="user_1", role="investor"))
    >>>
    >>> db.close()
"""

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import event, func
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from pitchmatch.config import settings
from pitchmatch.logging import logger
from pitchmatch.models import (
    ConnectionRow,
    EntrepreneurProfileRow,
    FavoriteRow,
    InvestorProfileRow,
    MessageRow,
    NotificationRow,
    ProfileRow,
    ProfileViewRow,
    VideoRow,
    VideoViewRow,
)
from pitchmatch.types import PlatformStatistics

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

STATISTICS_TABLES: dict[str, type[SQLModel]] = {
    "profiles": ProfileRow,
    "entrepreneur_profiles": EntrepreneurProfileRow,
    "investor_profiles": InvestorProfileRow,
    "connections": ConnectionRow,
    "messages": MessageRow,
    "favorites": FavoriteRow,
    "notifications": NotificationRow,
    "videos": VideoRow,
    "profile_views": ProfileViewRow,
    "video_views": VideoViewRow,
}

INDEX_STATEMENTS = (
    "CREATE INDEX IF NOT EXISTS idx_profile_role_created ON profilerow(role, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_message_connection_created ON messagerow(connection_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_notification_profile_created ON notificationrow(profile_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_notification_profile_unread ON notificationrow(profile_id, is_read)",
    "CREATE INDEX IF NOT EXISTS idx_profile_view_viewed_created ON profileviewrow(viewed_profile_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_video_profile_created ON videorow(profile_id, created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_connection_status_recipient ON connectionrow(recipient_id, status)",
)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


# =============================================================================
# Transaction Helpers
# =============================================================================


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """Commit everything staged inside the block, or nothing.

    Args:
        session: Session whose pending changes belong to one unit of work

    Raises:
        Exception: Any exception raised inside the block, after rollback

    Example:
        >>> with atomic(session):
        ...     session.add(connection)
        ...     session.flush()
        ...     session.add(NotificationRow.from_payload(...))
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Manages the PitchMatch database engine and sessions.

    Features:
    - SQLite WAL mode and busy timeout for file databases
    - Shared single connection for in-memory databases
    - Foreign key enforcement
    - Index creation for listing and analytics queries

    Args:
        database_url: SQLAlchemy URL (defaults to settings.database_url)

    Example:
        >>> db = DatabaseManager()
        >>> db.initialize()
        >>> stats = db.get_statistics()
        >>> db.close()
    """

    def __init__(self, database_url: str | None = None):
        """Initialize database manager.

        Args:
            database_url: SQLAlchemy URL (defaults to settings.database_url)
        """
        self.database_url = database_url or settings.database_url
        self.engine: Engine | None = None
        self.session: Session | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        return self.database_url in IN_MEMORY_URLS

    def initialize(self) -> None:
        """Initialize database engine and create tables.

        This method:
        1. Creates the engine (shared connection for in-memory SQLite)
        2. Creates all tables from SQLModel metadata
        3. Enables WAL mode and tunes PRAGMAs for file databases
        4. Creates supplementary indexes
        """
        if self.is_in_memory:
            self.engine = create_engine(
                self.database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif self.is_sqlite:
            self.engine = create_engine(
                self.database_url,
                echo=False,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        else:
            self.engine = create_engine(self.database_url, echo=False, pool_pre_ping=True)

        if self.is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        SQLModel.metadata.create_all(self.engine)

        if self.is_sqlite and not self.is_in_memory:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
                conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
                conn.exec_driver_sql("PRAGMA temp_store = MEMORY;")
                conn.commit()

        self.create_indexes()

        self.session = Session(self.engine)
        logger.info(f"✅ Database initialized at {self.database_url}")

    def create_indexes(self) -> None:
        """Create composite indexes for listing and analytics queries."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")

        with self.engine.connect() as conn:
            for statement in INDEX_STATEMENTS:
                conn.exec_driver_sql(statement)
            conn.commit()

        logger.debug("✅ Database indexes created")

    def new_session(self) -> Session:
        """Open an independent session on the engine."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        return Session(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Yield a fresh session and close it afterwards.

        Uncommitted changes are rolled back when the block raises.
        """
        session = self.new_session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_statistics(self) -> PlatformStatistics:
        """Count rows in every table.

        Returns:
            Mapping of table label to row count
        """
        if self.session is None:
            raise RuntimeError("Database not initialized")

        stats: dict[str, int] = {}
        for label, model in STATISTICS_TABLES.items():
            stats[label] = self.session.exec(
                select(func.count()).select_from(model)
            ).one()
        return stats  # type: ignore[return-value]

    def drop_all(self) -> None:
        """Drop every table."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        SQLModel.metadata.drop_all(self.engine)
        logger.warning("🗑️  All tables dropped")

    def reset(self) -> None:
        """Drop and recreate every table. Used by ``pitchmatch init --force``."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        if self.session is not None:
            self.session.close()
        self.drop_all()
        SQLModel.metadata.create_all(self.engine)
        self.create_indexes()
        self.session = Session(self.engine)
        logger.info("✅ Database reset")

    def close(self) -> None:
        """Close database connection and cleanup resources."""
        if self.session is not None:
            self.session.close()
            self.session = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["DatabaseManager", "atomic"]
