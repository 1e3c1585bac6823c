"""PitchMatch - matching entrepreneurs with investors.

This package provides the domain core of the PitchMatch platform: profiles
and role extensions, connection requests, messaging, favorites,
notifications, pitch videos, recommendations and profile analytics, stored
in SQLite through SQLModel.

Example:
    >>> from pitchmatch import PitchMatchService
    >>>
    >>> app = PitchMatchService()
    >>> app.initialize()
    >>> with app.session_scope() as services:
    ...     caller = services.profiles.resolve_caller("user_abc")
    ...     ranked = services.recommendations.recommend(caller.id, limit=5)
    >>> app.close()
"""

__version__ = "0.1.0"

from pitchmatch.config import settings  # noqa: E402
from pitchmatch.database import DatabaseManager  # noqa: E402
from pitchmatch.errors import (  # noqa: E402
    ConflictError,
    ErrorKind,
    ForbiddenError,
    InternalError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PitchMatchError,
    UnauthenticatedError,
)
from pitchmatch.models import (  # noqa: E402
    ConnectionRow,
    ConnectionStatus,
    EntrepreneurProfileCreate,
    EntrepreneurProfileRow,
    FavoriteRow,
    InvestorProfileCreate,
    InvestorProfileRow,
    MessageRow,
    NotificationRow,
    ProfileCreate,
    ProfileRow,
    Role,
    VideoCreate,
    VideoRow,
    VideoUpload,
)
from pitchmatch.service import PitchMatchService, Services  # noqa: E402

__all__ = [
    # Main components
    "PitchMatchService",
    "Services",
    "DatabaseManager",
    # Configuration
    "settings",
    # Errors
    "PitchMatchError",
    "ErrorKind",
    "UnauthenticatedError",
    "NotFoundError",
    "InvalidInputError",
    "ForbiddenError",
    "ConflictError",
    "InvalidStateError",
    "InternalError",
    # Input models
    "ProfileCreate",
    "EntrepreneurProfileCreate",
    "InvestorProfileCreate",
    "VideoCreate",
    "VideoUpload",
    # Enums
    "Role",
    "ConnectionStatus",
    # SQLModel tables
    "ProfileRow",
    "EntrepreneurProfileRow",
    "InvestorProfileRow",
    "ConnectionRow",
    "MessageRow",
    "FavoriteRow",
    "NotificationRow",
    "VideoRow",
]
