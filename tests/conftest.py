"""Pytest configuration and shared fixtures for PitchMatch tests."""

import os
import sys
import tempfile

# Settings are read at import time, so the environment must be set first
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="pitchmatch-test-"))

from collections.abc import Callable, Generator  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
from loguru import logger  # noqa: E402
from sqlmodel import Session  # noqa: E402

from pitchmatch.database import DatabaseManager  # noqa: E402
from pitchmatch.models import (  # noqa: E402
    EntrepreneurProfileRow,
    InvestorProfileRow,
    ProfileRow,
    Role,
    VideoRow,
)
from pitchmatch.service import Services  # noqa: E402


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Keep test output quiet: only errors reach stderr."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db() -> Generator[DatabaseManager, None, None]:
    """Initialized in-memory database."""
    manager = DatabaseManager("sqlite://")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def session(db: DatabaseManager) -> Generator[Session, None, None]:
    """Session on the in-memory database."""
    with db.session_scope() as session:
        yield session


@pytest.fixture
def services(session: Session) -> Services:
    """Every domain service bound to the test session."""
    return Services.for_session(session)


@pytest.fixture
def file_db(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """Initialized file-backed database (WAL mode, busy timeout)."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'pitchmatch.db'}")
    manager.initialize()
    yield manager
    manager.close()


# =============================================================================
# Factories
# =============================================================================


def _timestamp(day: int, hour: int = 0) -> str:
    return f"2024-01-{day:02d}T{hour:02d}:00:00.000000Z"


@pytest.fixture
def timestamp() -> Callable[..., str]:
    """Fixed ISO timestamps in January 2024, for ordering-sensitive tests."""
    return _timestamp


@pytest.fixture
def make_profile(session: Session) -> Callable[..., ProfileRow]:
    """Insert a profile, optionally with its role extension.

    Extension keyword arguments (industry, location, startup_name, ...) are
    routed to the extension matching ``role``; passing ``extension=False``
    leaves the profile without one.
    """
    counter = {"n": 0}

    def _make(
        role: Role | str = Role.ENTREPRENEUR,
        user_id: Optional[str] = None,
        created_at: Optional[str] = None,
        bio: Optional[str] = None,
        extension: bool = True,
        **fields: Any,
    ) -> ProfileRow:
        counter["n"] += 1
        role = Role(role)
        profile = ProfileRow(
            user_id=user_id or f"user_{counter['n']}",
            role=role.value,
            bio=bio,
            **({"created_at": created_at} if created_at else {}),
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)

        if extension:
            if role == Role.ENTREPRENEUR:
                fields.setdefault("startup_name", f"Startup {counter['n']}")
                session.add(EntrepreneurProfileRow(profile_id=profile.id, **fields))
            else:
                session.add(InvestorProfileRow(profile_id=profile.id, **fields))
            session.commit()
        return profile

    return _make


@pytest.fixture
def entrepreneur(make_profile: Callable[..., ProfileRow]) -> ProfileRow:
    """Fintech entrepreneur in NYC."""
    return make_profile(
        Role.ENTREPRENEUR, user_id="founder", industry="Fintech", location="NYC"
    )


@pytest.fixture
def investor(make_profile: Callable[..., ProfileRow]) -> ProfileRow:
    """Fintech investor in San Francisco."""
    return make_profile(
        Role.INVESTOR, user_id="backer", industry_focus="fintech", location="San Francisco"
    )


@pytest.fixture
def make_video(session: Session) -> Callable[..., VideoRow]:
    """Insert a video owned by ``profile``."""

    def _make(profile: ProfileRow, title: str = "Seed round pitch", **fields: Any) -> VideoRow:
        video = VideoRow(
            profile_id=profile.id,  # type: ignore[arg-type]
            title=title,
            video_url=fields.pop("video_url", "https://cdn.example.com/pitch.mp4"),
            **fields,
        )
        session.add(video)
        session.commit()
        session.refresh(video)
        return video

    return _make
