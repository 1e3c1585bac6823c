"""Data models for PitchMatch.

This module defines both Pydantic validation models (for caller input)
and SQLModel ORM models (for database persistence).

Models are organized into three sections:
1. Enumerations and notification payloads
2. Pydantic input models
3. SQLModel tables for database persistence
"""

from enum import StrEnum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field as PydanticField, TypeAdapter, field_validator
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from pitchmatch.types import ConnectionData, ExtensionData, ProfileSummary
from pitchmatch.utils import clean_text, utc_now_iso

# =============================================================================
# Section 1: Enumerations and Notification Payloads
# =============================================================================


class Role(StrEnum):
    """Profile role."""

    ENTREPRENEUR = "entrepreneur"
    INVESTOR = "investor"

    @property
    def opposite(self) -> "Role":
        """Role that this role is matched against."""
        return Role.INVESTOR if self == Role.ENTREPRENEUR else Role.ENTREPRENEUR


class ConnectionStatus(StrEnum):
    """Connection lifecycle state. Only PENDING has outgoing transitions."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConnectionDecision(StrEnum):
    """Recipient's answer to a pending connection."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConnectionDirection(StrEnum):
    """Direction of a connection relative to one participant."""

    SENT = "sent"
    RECEIVED = "received"


class NotificationType(StrEnum):
    """Notification categories."""

    CONNECTION_REQUEST = "connection_request"
    FAVORITE = "favorite"
    MESSAGE = "message"


CONNECTION_REQUEST_CONTENT = "You have a new connection request"
CONNECTION_ACCEPTED_CONTENT = "Your connection request was accepted"
FAVORITE_CONTENT = "Someone favorited your profile"
MESSAGE_CONTENT = "You have a new message"


class ConnectionRequestPayload(BaseModel):
    """Notification about a connection request or its acceptance.

    Attributes:
        connection_id: Connection the notification refers to
        accepted: True when announcing acceptance to the requester
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["connection_request"] = "connection_request"
    connection_id: int
    accepted: bool = False

    @property
    def reference_id(self) -> int:
        return self.connection_id

    @property
    def content(self) -> str:
        return CONNECTION_ACCEPTED_CONTENT if self.accepted else CONNECTION_REQUEST_CONTENT


class FavoritePayload(BaseModel):
    """Notification that someone favorited the recipient."""

    model_config = ConfigDict(frozen=True)

    type: Literal["favorite"] = "favorite"
    favorite_id: int

    @property
    def reference_id(self) -> int:
        return self.favorite_id

    @property
    def content(self) -> str:
        return FAVORITE_CONTENT


class MessagePayload(BaseModel):
    """Notification about a new message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["message"] = "message"
    message_id: int

    @property
    def reference_id(self) -> int:
        return self.message_id

    @property
    def content(self) -> str:
        return MESSAGE_CONTENT


NotificationPayload = Annotated[
    Union[ConnectionRequestPayload, FavoritePayload, MessagePayload],
    PydanticField(discriminator="type"),
]

notification_payload_adapter: TypeAdapter[Any] = TypeAdapter(NotificationPayload)


# =============================================================================
# Section 2: Pydantic Input Models
# =============================================================================


class InputModel(BaseModel):
    """Base for caller-supplied input.

    Strings are stripped; blank optional strings become None. Unknown fields
    are rejected, so identity fields such as ``user_id`` cannot be supplied.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            return clean_text(v)
        return v


class ProfileCreate(InputModel):
    """Input for creating a base profile."""

    role: Role
    profile_picture: Optional[str] = None
    bio: Optional[str] = None


class ProfileUpdate(InputModel):
    """Partial update of a base profile. Unset fields are left untouched."""

    role: Optional[Role] = None
    profile_picture: Optional[str] = None
    bio: Optional[str] = None


class EntrepreneurProfileCreate(InputModel):
    """Input for creating an entrepreneur extension."""

    startup_name: str = PydanticField(min_length=1)
    business_description: Optional[str] = None
    industry: Optional[str] = None
    funding_stage: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None


class EntrepreneurProfileUpdate(InputModel):
    """Partial update of an entrepreneur extension."""

    startup_name: Optional[str] = PydanticField(default=None, min_length=1)
    business_description: Optional[str] = None
    industry: Optional[str] = None
    funding_stage: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None

    @field_validator("startup_name")
    @classmethod
    def startup_name_not_cleared(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("startup_name cannot be empty")
        return v


class InvestorProfileCreate(InputModel):
    """Input for creating an investor extension."""

    investment_preferences: Optional[str] = None
    industry_focus: Optional[str] = None
    funding_capacity: Optional[str] = None
    location: Optional[str] = None


class InvestorProfileUpdate(InvestorProfileCreate):
    """Partial update of an investor extension."""


class VideoCreate(InputModel):
    """Input for registering a pitch video by URL."""

    profile_id: int = PydanticField(gt=0)
    title: str = PydanticField(min_length=1)
    video_url: str = PydanticField(min_length=1)
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = PydanticField(default=None, ge=0, strict=True)


class VideoUpdate(InputModel):
    """Partial update of video metadata."""

    title: Optional[str] = PydanticField(default=None, min_length=1)
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = PydanticField(default=None, ge=0, strict=True)

    @field_validator("title")
    @classmethod
    def title_not_cleared(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("title cannot be empty")
        return v


class VideoUpload(InputModel):
    """Uploaded file metadata, checked before a video is accepted.

    Attributes:
        profile_id: Owning profile
        title: Video title
        content_type: MIME type reported for the upload
        size_bytes: Upload size in bytes
        video_url: Storage URL, once the file has been stored
    """

    profile_id: int = PydanticField(gt=0)
    title: str = PydanticField(min_length=1)
    content_type: str = PydanticField(min_length=1)
    size_bytes: int = PydanticField(ge=0)
    description: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = PydanticField(default=None, ge=0, strict=True)


# =============================================================================
# Section 3: SQLModel Tables for Database Persistence
# =============================================================================


class ProfileRow(SQLModel, table=True):
    """Persisted base profile, one per external identity.

    Attributes:
        id: Profile ID (primary key)
        user_id: External identity (unique)
        role: "entrepreneur" or "investor" (indexed)
        profile_picture: Avatar URL
        bio: Free-text bio
        created_at: ISO8601 UTC creation timestamp (indexed)
        updated_at: ISO8601 UTC last update timestamp
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    role: str = Field(index=True)
    profile_picture: Optional[str] = None
    bio: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso, index=True)
    updated_at: str = Field(default_factory=utc_now_iso)

    def summary(self) -> ProfileSummary:
        """Public subset embedded in connection, message and favorite results."""
        return {
            "id": self.id,  # type: ignore[typeddict-item]
            "user_id": self.user_id,
            "role": self.role,
            "profile_picture": self.profile_picture,
            "bio": self.bio,
        }


class EntrepreneurProfileRow(SQLModel, table=True):
    """Entrepreneur extension of a profile.

    Attributes:
        id: Extension ID (primary key)
        profile_id: FK to ProfileRow.id (unique)
        startup_name: Startup name (required)
        business_description: Pitch summary
        industry: Industry, used for matching
        funding_stage: Funding stage
        location: Location, used for matching
        website: Startup website
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profilerow.id", unique=True, index=True)
    startup_name: str
    business_description: Optional[str] = None
    industry: Optional[str] = Field(default=None, index=True)
    funding_stage: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def matching_attributes(self) -> tuple[Optional[str], Optional[str]]:
        """(industry, location) used by the recommendation scorer."""
        return self.industry, self.location

    def extension_data(self) -> ExtensionData:
        return {
            "startup_name": self.startup_name,
            "business_description": self.business_description,
            "industry": self.industry,
            "funding_stage": self.funding_stage,
            "location": self.location,
            "website": self.website,
        }


class InvestorProfileRow(SQLModel, table=True):
    """Investor extension of a profile.

    Attributes:
        id: Extension ID (primary key)
        profile_id: FK to ProfileRow.id (unique)
        investment_preferences: Free-text investment thesis
        industry_focus: Preferred industry, used for matching
        funding_capacity: Typical ticket size
        location: Location, used for matching
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profilerow.id", unique=True, index=True)
    investment_preferences: Optional[str] = None
    industry_focus: Optional[str] = Field(default=None, index=True)
    funding_capacity: Optional[str] = None
    location: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def matching_attributes(self) -> tuple[Optional[str], Optional[str]]:
        """(industry_focus, location) used by the recommendation scorer."""
        return self.industry_focus, self.location

    def extension_data(self) -> ExtensionData:
        return {
            "investment_preferences": self.investment_preferences,
            "industry_focus": self.industry_focus,
            "funding_capacity": self.funding_capacity,
            "location": self.location,
        }


class ConnectionRow(SQLModel, table=True):
    """Directed relationship request between two profiles.

    ``pair_low``/``pair_high`` hold the two party ids in ascending order so
    the unique constraint covers both directions.

    Attributes:
        id: Connection ID (primary key)
        requester_id: FK to the requesting profile (indexed)
        recipient_id: FK to the receiving profile (indexed)
        pair_low: Smaller party id
        pair_high: Larger party id
        status: pending, accepted or rejected
        created_at: ISO8601 UTC creation timestamp
        updated_at: ISO8601 UTC last transition timestamp
    """

    __table_args__ = (
        UniqueConstraint("pair_low", "pair_high", name="uq_connection_pair"),
        CheckConstraint("requester_id <> recipient_id", name="ck_connection_not_self"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    requester_id: int = Field(foreign_key="profilerow.id", index=True)
    recipient_id: int = Field(foreign_key="profilerow.id", index=True)
    pair_low: int
    pair_high: int
    status: str = Field(default=ConnectionStatus.PENDING.value, index=True)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @classmethod
    def between(cls, requester_id: int, recipient_id: int) -> "ConnectionRow":
        """Build a pending connection with its normalized pair."""
        return cls(
            requester_id=requester_id,
            recipient_id=recipient_id,
            pair_low=min(requester_id, recipient_id),
            pair_high=max(requester_id, recipient_id),
            status=ConnectionStatus.PENDING.value,
        )

    def involves(self, profile_id: int) -> bool:
        return profile_id in (self.requester_id, self.recipient_id)

    def other_party(self, profile_id: int) -> int:
        """Id of the participant that is not ``profile_id``."""
        return self.recipient_id if profile_id == self.requester_id else self.requester_id

    def direction_for(self, profile_id: int) -> ConnectionDirection:
        if profile_id == self.requester_id:
            return ConnectionDirection.SENT
        return ConnectionDirection.RECEIVED

    def to_data(self) -> ConnectionData:
        return {
            "id": self.id,  # type: ignore[typeddict-item]
            "requester_id": self.requester_id,
            "recipient_id": self.recipient_id,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class MessageRow(SQLModel, table=True):
    """Message exchanged inside an accepted connection.

    Attributes:
        id: Message ID (primary key)
        connection_id: FK to ConnectionRow.id (indexed)
        sender_id: FK to the sending profile
        content: Trimmed, non-empty body
        is_read: Set by the counterpart
        created_at: ISO8601 UTC creation timestamp
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    connection_id: int = Field(foreign_key="connectionrow.id", index=True)
    sender_id: int = Field(foreign_key="profilerow.id", index=True)
    content: str
    is_read: bool = Field(default=False)
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class FavoriteRow(SQLModel, table=True):
    """Bookmark of one profile by another.

    Attributes:
        id: Favorite ID (primary key)
        profile_id: FK to the owner profile (indexed)
        favorited_profile_id: FK to the bookmarked profile (indexed)
        created_at: ISO8601 UTC creation timestamp
    """

    __table_args__ = (
        UniqueConstraint("profile_id", "favorited_profile_id", name="uq_favorite_pair"),
        CheckConstraint("profile_id <> favorited_profile_id", name="ck_favorite_not_self"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profilerow.id", index=True)
    favorited_profile_id: int = Field(foreign_key="profilerow.id", index=True)
    created_at: str = Field(default_factory=utc_now_iso)


class NotificationRow(SQLModel, table=True):
    """Notification addressed to one profile.

    Attributes:
        id: Notification ID (primary key)
        profile_id: FK to the recipient profile (indexed)
        type: connection_request, favorite or message
        content: Human-readable text
        reference_id: Id of the connection, favorite or message
        is_read: Read flag
        created_at: ISO8601 UTC creation timestamp (indexed)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profilerow.id", index=True)
    type: str
    content: str
    reference_id: Optional[int] = None
    is_read: bool = Field(default=False, index=True)
    created_at: str = Field(default_factory=utc_now_iso, index=True)

    @classmethod
    def from_payload(cls, profile_id: int, payload: Any) -> "NotificationRow":
        """Create NotificationRow from a typed notification payload."""
        return cls(
            profile_id=profile_id,
            type=str(payload.type),
            content=payload.content,
            reference_id=payload.reference_id,
        )

    @property
    def payload(self) -> Any:
        """Typed payload reconstructed from ``type`` and ``reference_id``."""
        data: dict[str, Any] = {"type": self.type}
        if self.type == NotificationType.CONNECTION_REQUEST:
            data["connection_id"] = self.reference_id
            data["accepted"] = self.content == CONNECTION_ACCEPTED_CONTENT
        elif self.type == NotificationType.FAVORITE:
            data["favorite_id"] = self.reference_id
        elif self.type == NotificationType.MESSAGE:
            data["message_id"] = self.reference_id
        return notification_payload_adapter.validate_python(data)


class VideoRow(SQLModel, table=True):
    """Pitch video owned by a profile.

    Attributes:
        id: Video ID (primary key)
        profile_id: FK to the owner profile (indexed)
        title: Title
        description: Description
        video_url: Storage URL
        thumbnail_url: Thumbnail URL
        duration: Length in seconds
        views_count: Number of recorded views (indexed)
        created_at: ISO8601 UTC creation timestamp (indexed)
        updated_at: ISO8601 UTC last update timestamp
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profilerow.id", index=True)
    title: str
    description: Optional[str] = None
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None
    views_count: int = Field(default=0, index=True)
    created_at: str = Field(default_factory=utc_now_iso, index=True)
    updated_at: str = Field(default_factory=utc_now_iso)


class ProfileViewRow(SQLModel, table=True):
    """One view of a profile page.

    Attributes:
        id: View ID (primary key)
        viewer_id: FK to the viewing profile, None for anonymous
        viewed_profile_id: FK to the viewed profile (indexed)
        created_at: ISO8601 UTC view timestamp (indexed)
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    viewer_id: Optional[int] = Field(default=None, foreign_key="profilerow.id")
    viewed_profile_id: int = Field(foreign_key="profilerow.id", index=True)
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class VideoViewRow(SQLModel, table=True):
    """One view of a video.

    Attributes:
        id: View ID (primary key)
        video_id: FK to VideoRow.id (indexed)
        viewer_id: FK to the viewing profile, None for anonymous
        created_at: ISO8601 UTC view timestamp
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    video_id: int = Field(foreign_key="videorow.id", index=True)
    viewer_id: Optional[int] = Field(default=None, foreign_key="profilerow.id")
    created_at: str = Field(default_factory=utc_now_iso)


ExtensionRow = EntrepreneurProfileRow | InvestorProfileRow

EXTENSION_TABLES: dict[Role, type[SQLModel]] = {
    Role.ENTREPRENEUR: EntrepreneurProfileRow,
    Role.INVESTOR: InvestorProfileRow,
}
