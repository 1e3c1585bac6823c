"""Profiles, role extensions, identity resolution and browsing.

Every domain operation acts on behalf of a profile. ``resolve_caller`` turns
the authenticated identity supplied by the request boundary into that
profile; the resulting id is then passed explicitly to the other services.

Example:
    >>> service = ProfileService(session)
    >>> me = service.create_profile("user_abc", ProfileCreate(role="investor"))
    >>> service.create_investor_profile(me.id, me.id, InvestorProfileCreate(
    ...     industry_focus="Fintech", location="NYC"))
    >>> service.browse(role="entrepreneur", industry="Fintech")
"""

from typing import Any, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from pitchmatch.database import atomic
from pitchmatch.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    ProfileNotFoundError,
    UnauthenticatedError,
)
from pitchmatch.logging import logger, set_request_context
from pitchmatch.metrics import instrument
from pitchmatch.models import (
    EXTENSION_TABLES,
    EntrepreneurProfileCreate,
    EntrepreneurProfileRow,
    EntrepreneurProfileUpdate,
    ExtensionRow,
    InvestorProfileCreate,
    InvestorProfileRow,
    InvestorProfileUpdate,
    ProfileCreate,
    ProfileRow,
    ProfileUpdate,
    Role,
)
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import BrowseEntry, ProfileSummary
from pitchmatch.utils import clamp_limit, clamp_offset, clean_text, like_pattern, paginate, parse_id, utc_now_iso

# =============================================================================
# Shared Lookups
# =============================================================================


def require_profile(
    session: Session,
    profile_id: Any,
    code: str = "PROFILE_NOT_FOUND",
    field: str = "profile_id",
) -> ProfileRow:
    """Load a profile or raise NotFoundError with ``code``."""
    pid = parse_id(profile_id, field)
    profile = session.get(ProfileRow, pid)
    if profile is None:
        raise NotFoundError(f"Profile {pid} not found", code=code)
    return profile


def extension_for(session: Session, profile: ProfileRow) -> Optional[ExtensionRow]:
    """Role extension matching the profile's current role, if any."""
    table = EXTENSION_TABLES.get(Role(profile.role))
    if table is None:
        return None
    stmt = select(table).where(table.profile_id == profile.id)  # type: ignore[attr-defined]
    return session.exec(stmt).first()  # type: ignore[return-value]


def matching_attributes(
    session: Session, profile: ProfileRow
) -> tuple[Optional[str], Optional[str]]:
    """(industry, location) for a profile, dispatched on role.

    Entrepreneurs contribute ``industry``; investors contribute
    ``industry_focus``. A profile without an extension yields (None, None).
    """
    extension = extension_for(session, profile)
    if extension is None:
        return None, None
    return extension.matching_attributes()


def profile_summaries(session: Session, profile_ids: Sequence[Optional[int]]) -> dict[int, ProfileSummary]:
    """Load summaries for several profiles in one query."""
    ids = {pid for pid in profile_ids if pid is not None}
    if not ids:
        return {}
    rows = RepositoryFactory(session).for_entity(ProfileRow).get_many(ids)
    return {pid: row.summary() for pid, row in rows.items()}


# =============================================================================
# Profile Service
# =============================================================================


class ProfileService:
    """Profile store, role extension store and browse queries.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        repos = RepositoryFactory(session)
        self.profiles = repos.for_entity(ProfileRow)
        self.entrepreneurs = repos.for_entity(EntrepreneurProfileRow)
        self.investors = repos.for_entity(InvestorProfileRow)

    # =========================================================================
    # Identity Resolution
    # =========================================================================

    def find_caller(self, user_id: Optional[str]) -> Optional[ProfileRow]:
        """Profile for an identity, or None when anonymous or unknown."""
        user_id = clean_text(user_id)
        if user_id is None:
            return None
        return self.profiles.find_one_by(user_id=user_id)

    @instrument("resolve_caller", component="profiles")
    def resolve_caller(self, user_id: Optional[str]) -> ProfileRow:
        """Resolve the authenticated identity to its profile.

        Args:
            user_id: External identity from the authentication provider

        Returns:
            The caller's profile

        Raises:
            UnauthenticatedError: If no identity was supplied
            ProfileNotFoundError: If the identity has no profile yet
        """
        if clean_text(user_id) is None:
            raise UnauthenticatedError("Authentication required")
        profile = self.find_caller(user_id)
        if profile is None:
            raise ProfileNotFoundError("No profile exists for the authenticated user")
        set_request_context(profile_id=profile.id)
        return profile

    # =========================================================================
    # Profile Store
    # =========================================================================

    @instrument("create_profile", component="profiles")
    def create_profile(
        self, user_id: Optional[str], data: ProfileCreate | dict[str, Any]
    ) -> ProfileRow:
        """Create the caller's base profile.

        A plain mapping is validated into :class:`ProfileCreate` first.

        Raises:
            UnauthenticatedError: If no identity was supplied
            ConflictError: If the identity already has a profile
        """
        user_id = clean_text(user_id)
        if user_id is None:
            raise UnauthenticatedError("Authentication required")
        data = ProfileCreate.model_validate(data)
        if self.profiles.find_one_by(user_id=user_id) is not None:
            raise ConflictError("Profile already exists for this user", code="DUPLICATE_PROFILE")

        profile = ProfileRow(
            user_id=user_id,
            role=data.role.value,
            profile_picture=data.profile_picture,
            bio=data.bio,
        )
        try:
            with atomic(self.session):
                self.profiles.stage(profile)
        except IntegrityError as exc:
            raise ConflictError(
                "Profile already exists for this user", code="DUPLICATE_PROFILE"
            ) from exc

        self.session.refresh(profile)
        logger.info(f"✅ Profile {profile.id} created ({profile.role})")
        return profile

    @instrument("get_profile", component="profiles")
    def get_profile(self, profile_id: Any) -> ProfileRow:
        """Get a profile by id.

        Raises:
            InvalidIdError: If the id does not parse
            NotFoundError: If the profile does not exist
        """
        return require_profile(self.session, profile_id)

    @instrument("list_profiles", component="profiles")
    def list_profiles(
        self,
        role: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[ProfileRow]:
        """List profiles, newest first, optionally filtered by role and bio text."""
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)

        stmt = select(ProfileRow)
        if role is not None:
            stmt = stmt.where(ProfileRow.role == _parse_role(role).value)
        if term := clean_text(search):
            stmt = stmt.where(col(ProfileRow.bio).ilike(like_pattern(term), escape="\\"))
        stmt = (
            stmt.order_by(col(ProfileRow.created_at).desc(), col(ProfileRow.id).desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.exec(stmt).all())

    @instrument("update_profile", component="profiles")
    def update_profile(
        self, acting_profile_id: int, profile_id: Any, data: ProfileUpdate | dict[str, Any]
    ) -> ProfileRow:
        """Update the caller's own profile.

        Only fields explicitly set on ``data`` change. Changing the role is
        refused once a role extension exists.

        Raises:
            NotFoundError: If the profile does not exist
            ForbiddenError: If the caller does not own the profile
            ConflictError: ROLE_LOCKED when the role cannot change
        """
        data = ProfileUpdate.model_validate(data)
        profile = require_profile(self.session, profile_id)
        if profile.id != acting_profile_id:
            raise ForbiddenError("You can only update your own profile")

        changes = data.model_dump(exclude_unset=True)
        new_role = changes.pop("role", None)
        if new_role is not None and new_role != profile.role:
            if extension_for(self.session, profile) is not None:
                raise ConflictError(
                    "Role cannot change while a role extension exists", code="ROLE_LOCKED"
                )
            profile.role = Role(new_role).value

        for key, value in changes.items():
            setattr(profile, key, value)
        profile.updated_at = utc_now_iso()

        with atomic(self.session):
            self.profiles.stage(profile)
        self.session.refresh(profile)
        logger.info(f"✅ Profile {profile.id} updated")
        return profile

    # =========================================================================
    # Role Extension Store
    # =========================================================================

    def _owned_profile_for_extension(
        self, acting_profile_id: int, profile_id: Any, role: Role
    ) -> ProfileRow:
        profile = require_profile(self.session, profile_id)
        if profile.id != acting_profile_id:
            raise ForbiddenError("You can only manage your own profile")
        if profile.role != role.value:
            raise ForbiddenError(
                f"Profile role must be '{role.value}'", code="INVALID_PROFILE_ROLE"
            )
        return profile

    def _create_extension(self, profile: ProfileRow, extension: ExtensionRow, code: str) -> ExtensionRow:
        try:
            with atomic(self.session):
                self.session.add(extension)
                self.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Role extension already exists", code=code) from exc
        self.session.refresh(extension)
        logger.info(f"✅ {profile.role.title()} extension created for profile {profile.id}")
        return extension

    @instrument("create_entrepreneur_profile", component="profiles")
    def create_entrepreneur_profile(
        self, acting_profile_id: int, profile_id: Any, data: EntrepreneurProfileCreate | dict[str, Any]
    ) -> EntrepreneurProfileRow:
        """Attach the entrepreneur extension to the caller's profile.

        Raises:
            NotFoundError: If the profile does not exist
            ForbiddenError: If not owned, or the profile is not an entrepreneur
            ConflictError: If the extension already exists
        """
        data = EntrepreneurProfileCreate.model_validate(data)
        profile = self._owned_profile_for_extension(acting_profile_id, profile_id, Role.ENTREPRENEUR)
        if self.entrepreneurs.find_one_by(profile_id=profile.id) is not None:
            raise ConflictError(
                "Entrepreneur profile already exists", code="ENTREPRENEUR_PROFILE_EXISTS"
            )
        extension = EntrepreneurProfileRow(profile_id=profile.id, **data.model_dump())
        return self._create_extension(profile, extension, "ENTREPRENEUR_PROFILE_EXISTS")  # type: ignore[return-value]

    @instrument("create_investor_profile", component="profiles")
    def create_investor_profile(
        self, acting_profile_id: int, profile_id: Any, data: InvestorProfileCreate | dict[str, Any]
    ) -> InvestorProfileRow:
        """Attach the investor extension to the caller's profile.

        Raises:
            NotFoundError: If the profile does not exist
            ForbiddenError: If not owned, or the profile is not an investor
            ConflictError: If the extension already exists
        """
        data = InvestorProfileCreate.model_validate(data)
        profile = self._owned_profile_for_extension(acting_profile_id, profile_id, Role.INVESTOR)
        if self.investors.find_one_by(profile_id=profile.id) is not None:
            raise ConflictError("Investor profile already exists", code="INVESTOR_PROFILE_EXISTS")
        extension = InvestorProfileRow(profile_id=profile.id, **data.model_dump())
        return self._create_extension(profile, extension, "INVESTOR_PROFILE_EXISTS")  # type: ignore[return-value]

    def _require_entrepreneur(self, extension_id: Any) -> EntrepreneurProfileRow:
        extension = self.entrepreneurs.get(parse_id(extension_id))
        if extension is None:
            raise NotFoundError("Entrepreneur profile not found")
        return extension

    def _require_investor(self, extension_id: Any) -> InvestorProfileRow:
        extension = self.investors.get(parse_id(extension_id))
        if extension is None:
            raise NotFoundError("Investor profile not found")
        return extension

    @instrument("get_entrepreneur_profile", component="profiles")
    def get_entrepreneur_profile(self, extension_id: Any) -> EntrepreneurProfileRow:
        return self._require_entrepreneur(extension_id)

    @instrument("get_investor_profile", component="profiles")
    def get_investor_profile(self, extension_id: Any) -> InvestorProfileRow:
        return self._require_investor(extension_id)

    @instrument("get_extension", component="profiles")
    def get_extension(self, profile_id: Any) -> Optional[ExtensionRow]:
        """Role extension of a profile, or None if it has not been created."""
        return extension_for(self.session, require_profile(self.session, profile_id))

    def _update_extension(self, acting_profile_id: int, extension: Any, changes: dict[str, Any]) -> Any:
        if extension.profile_id != acting_profile_id:
            raise ForbiddenError("You can only update your own profile")
        for key, value in changes.items():
            setattr(extension, key, value)
        extension.updated_at = utc_now_iso()
        with atomic(self.session):
            self.session.add(extension)
        self.session.refresh(extension)
        logger.info(f"✅ Extension {extension.id} of profile {extension.profile_id} updated")
        return extension

    @instrument("update_entrepreneur_profile", component="profiles")
    def update_entrepreneur_profile(
        self, acting_profile_id: int, extension_id: Any, data: EntrepreneurProfileUpdate | dict[str, Any]
    ) -> EntrepreneurProfileRow:
        """Update the caller's entrepreneur extension (set fields only)."""
        extension = self._require_entrepreneur(extension_id)
        changes = EntrepreneurProfileUpdate.model_validate(data).model_dump(exclude_unset=True)
        return self._update_extension(acting_profile_id, extension, changes)

    @instrument("update_investor_profile", component="profiles")
    def update_investor_profile(
        self, acting_profile_id: int, extension_id: Any, data: InvestorProfileUpdate | dict[str, Any]
    ) -> InvestorProfileRow:
        """Update the caller's investor extension (set fields only)."""
        extension = self._require_investor(extension_id)
        changes = InvestorProfileUpdate.model_validate(data).model_dump(exclude_unset=True)
        return self._update_extension(acting_profile_id, extension, changes)

    @instrument("list_entrepreneur_profiles", component="profiles")
    def list_entrepreneur_profiles(
        self,
        industry: Optional[str] = None,
        funding_stage: Optional[str] = None,
        location: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[EntrepreneurProfileRow]:
        """List entrepreneur extensions with exact-match filters and text search."""
        stmt = select(EntrepreneurProfileRow)
        if industry := clean_text(industry):
            stmt = stmt.where(EntrepreneurProfileRow.industry == industry)
        if funding_stage := clean_text(funding_stage):
            stmt = stmt.where(EntrepreneurProfileRow.funding_stage == funding_stage)
        if location := clean_text(location):
            stmt = stmt.where(EntrepreneurProfileRow.location == location)
        if term := clean_text(search):
            pattern = like_pattern(term)
            stmt = stmt.where(
                or_(
                    col(EntrepreneurProfileRow.startup_name).ilike(pattern, escape="\\"),
                    col(EntrepreneurProfileRow.business_description).ilike(pattern, escape="\\"),
                )
            )
        stmt = (
            stmt.order_by(col(EntrepreneurProfileRow.created_at).desc(), col(EntrepreneurProfileRow.id).desc())
            .limit(clamp_limit(limit))
            .offset(clamp_offset(offset))
        )
        return list(self.session.exec(stmt).all())

    @instrument("list_investor_profiles", component="profiles")
    def list_investor_profiles(
        self,
        industry_focus: Optional[str] = None,
        funding_capacity: Optional[str] = None,
        location: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[InvestorProfileRow]:
        """List investor extensions; focus and capacity match as substrings."""
        stmt = select(InvestorProfileRow)
        if industry_focus := clean_text(industry_focus):
            stmt = stmt.where(
                col(InvestorProfileRow.industry_focus).ilike(like_pattern(industry_focus), escape="\\")
            )
        if funding_capacity := clean_text(funding_capacity):
            stmt = stmt.where(
                col(InvestorProfileRow.funding_capacity).ilike(like_pattern(funding_capacity), escape="\\")
            )
        if location := clean_text(location):
            stmt = stmt.where(InvestorProfileRow.location == location)
        if term := clean_text(search):
            stmt = stmt.where(
                col(InvestorProfileRow.investment_preferences).ilike(like_pattern(term), escape="\\")
            )
        stmt = (
            stmt.order_by(col(InvestorProfileRow.created_at).desc(), col(InvestorProfileRow.id).desc())
            .limit(clamp_limit(limit))
            .offset(clamp_offset(offset))
        )
        return list(self.session.exec(stmt).all())

    # =========================================================================
    # Browse
    # =========================================================================

    @instrument("browse", component="profiles")
    def browse(
        self,
        role: Optional[str] = None,
        industry: Optional[str] = None,
        funding_stage: Optional[str] = None,
        industry_focus: Optional[str] = None,
        funding_capacity: Optional[str] = None,
        location: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[BrowseEntry]:
        """Browse profiles joined with their role extension, newest first.

        Entrepreneur-only filters (industry, funding_stage) and investor-only
        filters (industry_focus, funding_capacity) require the matching role.
        Without a role both lists are merged by creation time and paginated
        after merging.

        Raises:
            InvalidInputError: For an unknown role or a filter that does not
                apply to the requested role
        """
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        parsed_role = _parse_role(role) if role is not None else None

        entrepreneur_filters = any(clean_text(v) for v in (industry, funding_stage))
        investor_filters = any(clean_text(v) for v in (industry_focus, funding_capacity))
        if parsed_role is None and (entrepreneur_filters or investor_filters):
            raise InvalidInputError(
                "Role-specific filters require a role", code="INVALID_FILTER_COMBINATION"
            )
        if parsed_role == Role.ENTREPRENEUR and investor_filters:
            raise InvalidInputError(
                "industry_focus and funding_capacity apply only to investors",
                code="INVALID_FILTER_FOR_ROLE",
            )
        if parsed_role == Role.INVESTOR and entrepreneur_filters:
            raise InvalidInputError(
                "industry and funding_stage apply only to entrepreneurs",
                code="INVALID_FILTER_FOR_ROLE",
            )

        # Each branch fetches enough rows to cover the merged page
        window = offset + limit if parsed_role is None else limit
        branch_offset = 0 if parsed_role is None else offset

        results: list[BrowseEntry] = []
        if parsed_role in (None, Role.ENTREPRENEUR):
            results.extend(
                self._browse_role(
                    EntrepreneurProfileRow,
                    Role.ENTREPRENEUR,
                    {"industry": industry, "funding_stage": funding_stage, "location": location},
                    search,
                    (EntrepreneurProfileRow.startup_name, EntrepreneurProfileRow.business_description),
                    window,
                    branch_offset,
                )
            )
        if parsed_role in (None, Role.INVESTOR):
            results.extend(
                self._browse_role(
                    InvestorProfileRow,
                    Role.INVESTOR,
                    {
                        "industry_focus": industry_focus,
                        "funding_capacity": funding_capacity,
                        "location": location,
                    },
                    search,
                    (InvestorProfileRow.investment_preferences,),
                    window,
                    branch_offset,
                )
            )

        if parsed_role is None:
            results.sort(key=lambda e: (e["created_at"], e["profile"]["id"]), reverse=True)
            results = paginate(results, limit, offset)
        return results

    def _browse_role(
        self,
        table: Any,
        role: Role,
        filters: dict[str, Optional[str]],
        search: Optional[str],
        search_columns: tuple[Any, ...],
        limit: int,
        offset: int,
    ) -> list[BrowseEntry]:
        stmt = (
            select(ProfileRow, table)
            .join(table, table.profile_id == ProfileRow.id, isouter=True)
            .where(ProfileRow.role == role.value)
        )
        for name, value in filters.items():
            if value := clean_text(value):
                stmt = stmt.where(getattr(table, name) == value)
        if term := clean_text(search):
            pattern = like_pattern(term)
            stmt = stmt.where(
                or_(
                    col(ProfileRow.bio).ilike(pattern, escape="\\"),
                    *(col(c).ilike(pattern, escape="\\") for c in search_columns),
                )
            )
        stmt = (
            stmt.order_by(col(ProfileRow.created_at).desc(), col(ProfileRow.id).desc())
            .limit(limit)
            .offset(offset)
        )

        entries: list[BrowseEntry] = []
        for profile, extension in self.session.exec(stmt).all():
            entry: BrowseEntry = {"profile": profile.summary(), "created_at": profile.created_at}
            if extension is not None:
                entry["extension"] = extension.extension_data()
            entries.append(entry)
        return entries


def _parse_role(role: str) -> Role:
    try:
        return Role(role.strip().lower()) if isinstance(role, str) else Role(role)
    except ValueError as exc:
        raise InvalidInputError(
            "Invalid role. Must be 'entrepreneur' or 'investor'", code="INVALID_ROLE"
        ) from exc


__all__ = [
    "ProfileService",
    "require_profile",
    "extension_for",
    "matching_attributes",
    "profile_summaries",
]
