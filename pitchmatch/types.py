"""Type definitions for PitchMatch result shapes.

Enriched list and aggregate results are returned as plain dictionaries so a
request boundary can serialize them directly. These TypedDicts document
their structure.

Example:
    >>> from pitchmatch.types import ProfileSummary
    >>> summary: ProfileSummary = {
    ...     "id": 1,
    ...     "user_id": "user_abc",
    ...     "role": "investor",
    ...     "profile_picture": None,
    ...     "bio": "Seed investor",
    ... }
"""

from typing import NotRequired, Required, TypedDict


# =============================================================================
# Core Entity Types
# =============================================================================


class ProfileSummary(TypedDict):
    """Public subset of a profile embedded in other results.

    Attributes:
        id: Profile identifier
        user_id: External identity the profile belongs to
        role: "entrepreneur" or "investor"
        profile_picture: Optional avatar URL
        bio: Optional free-text bio
    """

    id: int
    user_id: str
    role: str
    profile_picture: str | None
    bio: str | None


class ConnectionData(TypedDict):
    """Stored connection fields.

    Attributes:
        id: Connection identifier
        requester_id: Profile that initiated the request
        recipient_id: Profile that received the request
        status: "pending", "accepted" or "rejected"
        created_at: ISO8601 UTC creation timestamp
        updated_at: ISO8601 UTC timestamp of the last transition
    """

    id: int
    requester_id: int
    recipient_id: int
    status: str
    created_at: str
    updated_at: str


class ExtensionData(TypedDict, total=False):
    """Role-specific fields attached to a profile.

    Entrepreneur extensions carry startup fields, investor extensions carry
    preference fields; ``location`` is shared.
    """

    startup_name: NotRequired[str]
    business_description: NotRequired[str | None]
    industry: NotRequired[str | None]
    funding_stage: NotRequired[str | None]
    website: NotRequired[str | None]
    investment_preferences: NotRequired[str | None]
    industry_focus: NotRequired[str | None]
    funding_capacity: NotRequired[str | None]
    location: NotRequired[str | None]


# =============================================================================
# Enriched Results
# =============================================================================


class ConnectionEntry(TypedDict):
    """Connection row enriched for one participant's listing.

    Attributes:
        connection: Stored connection fields
        direction: "sent" when the listing profile is the requester
        counterpart: Summary of the other participant
    """

    connection: ConnectionData
    direction: str
    counterpart: ProfileSummary | None


class ConnectionCheck(TypedDict):
    """Relationship between two profiles.

    Attributes:
        exists: Whether any connection exists in either direction
        connection: The connection, when it exists
        direction: "sent" or "received" from the asking profile's view
        status: Connection status, when it exists
    """

    exists: bool
    connection: ConnectionData | None
    direction: str | None
    status: str | None


class MessageEntry(TypedDict):
    """Message with a summary of its sender."""

    id: int
    connection_id: int
    sender_id: int
    content: str
    is_read: bool
    created_at: str
    sender: ProfileSummary | None


class FavoriteEntry(TypedDict):
    """Favorite with a summary of the favorited profile."""

    id: int
    profile_id: int
    favorited_profile_id: int
    created_at: str
    favorited_profile: ProfileSummary | None


class BrowseEntry(TypedDict, total=False):
    """Profile joined with its role extension for browsing.

    Attributes:
        profile: Profile summary (required)
        created_at: Profile creation timestamp used for ordering (required)
        extension: Role extension fields
    """

    profile: Required[ProfileSummary]
    created_at: Required[str]
    extension: NotRequired[ExtensionData]


class RecommendedProfile(TypedDict):
    """Ranked recommendation candidate.

    Attributes:
        profile: Candidate profile summary
        created_at: Candidate creation timestamp (secondary sort key)
        extension: Candidate role extension fields, if any
        relevance_score: Match score in the range 0-4
    """

    profile: ProfileSummary
    created_at: str
    extension: ExtensionData | None
    relevance_score: int


# =============================================================================
# Videos and Analytics
# =============================================================================


class VideoViewResult(TypedDict):
    """Outcome of recording one video view."""

    video_id: int
    viewer_id: int | None
    views_count: int


class ProfileViewEntry(TypedDict):
    """One recent profile view."""

    id: int
    viewer_id: int | None
    created_at: str
    viewer: ProfileSummary | None


class ProfileAnalytics(TypedDict):
    """Engagement summary for one profile.

    Attributes:
        profile_id: Profile the summary describes
        time_range: Window applied to profile views ("7d", "30d", "all")
        total_profile_views: Profile views within the window
        total_connections: Accepted connections involving the profile
        pending_connection_requests: Pending requests awaiting the profile
        total_video_uploads: Videos owned by the profile
        total_video_views: Sum of view counters across owned videos
        favorited_by_count: Profiles that favorited this one
        recent_profile_views: Newest views within the window
    """

    profile_id: int
    time_range: str
    total_profile_views: int
    total_connections: int
    pending_connection_requests: int
    total_video_uploads: int
    total_video_views: int
    favorited_by_count: int
    recent_profile_views: list[ProfileViewEntry]


class PlatformStatistics(TypedDict):
    """Row counts per table, reported by the status command."""

    profiles: int
    entrepreneur_profiles: int
    investor_profiles: int
    connections: int
    messages: int
    favorites: int
    notifications: int
    videos: int
    profile_views: int
    video_views: int


# =============================================================================
# Type Aliases for Common Patterns
# =============================================================================

# Timestamp string type
ISOTimestamp = str

# Identifier accepted at the boundary before parsing
RawId = int | str
