"""Tests for identity resolution, profiles, role extensions and browse."""

import pytest

from pitchmatch.errors import (
    ConflictError,
    ForbiddenError,
    InvalidIdError,
    InvalidInputError,
    NotFoundError,
    ProfileNotFoundError,
    UnauthenticatedError,
)
from pitchmatch.logging import clear_request_context, get_request_context
from pitchmatch.models import (
    EntrepreneurProfileCreate,
    EntrepreneurProfileUpdate,
    InvestorProfileCreate,
    InvestorProfileUpdate,
    ProfileCreate,
    ProfileUpdate,
    Role,
)


class TestIdentityResolution:
    """Tests for resolving the caller's profile."""

    @pytest.mark.parametrize("user_id", [None, "", "   "])
    def test_missing_identity(self, services, user_id):
        with pytest.raises(UnauthenticatedError):
            services.profiles.resolve_caller(user_id)

    def test_identity_without_profile(self, services):
        with pytest.raises(ProfileNotFoundError) as exc_info:
            services.profiles.resolve_caller("nobody")
        assert exc_info.value.code == "PROFILE_NOT_FOUND"

    def test_resolves_and_binds_context(self, services, investor):
        clear_request_context()
        caller = services.profiles.resolve_caller("backer")
        assert caller.id == investor.id
        assert get_request_context()["profile_id"] == investor.id
        assert get_request_context()["operation"] == "resolve_caller"
        clear_request_context()

    def test_find_caller_is_soft(self, services, investor):
        assert services.profiles.find_caller(None) is None
        assert services.profiles.find_caller("nobody") is None
        assert services.profiles.find_caller("backer").id == investor.id


class TestProfileStore:
    """Tests for base profile CRUD."""

    def test_create_profile(self, services):
        profile = services.profiles.create_profile(
            "user_new", ProfileCreate(role="entrepreneur", bio=" Building ")
        )
        assert profile.id is not None
        assert profile.role == "entrepreneur"
        assert profile.bio == "Building"
        assert profile.user_id == "user_new"

    def test_create_requires_identity(self, services):
        with pytest.raises(UnauthenticatedError):
            services.profiles.create_profile(None, ProfileCreate(role="investor"))

    def test_one_profile_per_identity(self, services):
        services.profiles.create_profile("dup", ProfileCreate(role="investor"))
        with pytest.raises(ConflictError) as exc_info:
            services.profiles.create_profile("dup", ProfileCreate(role="entrepreneur"))
        assert exc_info.value.code == "DUPLICATE_PROFILE"

    def test_create_from_mapping(self, services):
        profile = services.profiles.create_profile("user_map", {"role": "investor", "bio": " Angel "})
        assert profile.role == "investor"
        assert profile.bio == "Angel"

    @pytest.mark.parametrize(
        "payload,field",
        [({"role": "admin"}, "role"), ({"role": "investor", "user_id": "someone_else"}, "user_id")],
    )
    def test_invalid_mapping_is_invalid_input(self, services, payload, field):
        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.create_profile("user_map", payload)
        assert exc_info.value.code == "INVALID_INPUT"
        assert exc_info.value.details["fields"] == [field]
        assert services.profiles.find_caller("user_map") is None

    def test_get_profile(self, services, investor):
        assert services.profiles.get_profile(str(investor.id)).id == investor.id
        with pytest.raises(NotFoundError):
            services.profiles.get_profile(999)
        with pytest.raises(InvalidIdError):
            services.profiles.get_profile("abc")

    def test_list_profiles_filters(self, services, make_profile, timestamp):
        make_profile(Role.INVESTOR, bio="Seed fund", created_at=timestamp(1))
        newest = make_profile(Role.INVESTOR, bio="Growth fund", created_at=timestamp(3))
        make_profile(Role.ENTREPRENEUR, bio="Seed stage founder", created_at=timestamp(2))

        investors = services.profiles.list_profiles(role="investor")
        assert [p.id for p in investors][0] == newest.id
        assert all(p.role == "investor" for p in investors)

        seed = services.profiles.list_profiles(search="seed")
        assert len(seed) == 2

        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.list_profiles(role="admin")
        assert exc_info.value.code == "INVALID_ROLE"

    def test_update_own_profile_only(self, services, investor, entrepreneur):
        updated = services.profiles.update_profile(
            investor.id, investor.id, ProfileUpdate(bio="Series A lead")
        )
        assert updated.bio == "Series A lead"

        with pytest.raises(ForbiddenError):
            services.profiles.update_profile(entrepreneur.id, investor.id, ProfileUpdate(bio="x"))

    def test_partial_update_leaves_unset_fields(self, services, make_profile):
        profile = make_profile(Role.INVESTOR, bio="Original", extension=False)
        services.profiles.update_profile(
            profile.id, profile.id, ProfileUpdate(profile_picture="https://img")
        )
        assert services.profiles.get_profile(profile.id).bio == "Original"

    def test_role_locked_once_extension_exists(self, services, investor):
        with pytest.raises(ConflictError) as exc_info:
            services.profiles.update_profile(
                investor.id, investor.id, ProfileUpdate(role="entrepreneur")
            )
        assert exc_info.value.code == "ROLE_LOCKED"

    def test_role_change_without_extension(self, services, make_profile):
        profile = make_profile(Role.INVESTOR, extension=False)
        updated = services.profiles.update_profile(
            profile.id, profile.id, ProfileUpdate(role="entrepreneur")
        )
        assert updated.role == "entrepreneur"


class TestRoleExtensions:
    """Tests for entrepreneur and investor extensions."""

    def test_create_entrepreneur_extension(self, services, make_profile):
        profile = make_profile(Role.ENTREPRENEUR, extension=False)
        ext = services.profiles.create_entrepreneur_profile(
            profile.id, profile.id, EntrepreneurProfileCreate(startup_name="Acme", industry="Fintech")
        )
        assert ext.profile_id == profile.id
        assert services.profiles.get_extension(profile.id).id == ext.id

    def test_extension_must_match_role(self, services, make_profile):
        profile = make_profile(Role.INVESTOR, extension=False)
        with pytest.raises(ForbiddenError) as exc_info:
            services.profiles.create_entrepreneur_profile(
                profile.id, profile.id, EntrepreneurProfileCreate(startup_name="Acme")
            )
        assert exc_info.value.code == "INVALID_PROFILE_ROLE"

    def test_extension_owner_only(self, services, make_profile, investor):
        profile = make_profile(Role.ENTREPRENEUR, extension=False)
        with pytest.raises(ForbiddenError):
            services.profiles.create_entrepreneur_profile(
                investor.id, profile.id, EntrepreneurProfileCreate(startup_name="Acme")
            )

    def test_one_extension_per_profile(self, services, investor):
        with pytest.raises(ConflictError) as exc_info:
            services.profiles.create_investor_profile(
                investor.id, investor.id, InvestorProfileCreate(industry_focus="AI")
            )
        assert exc_info.value.code == "INVESTOR_PROFILE_EXISTS"

    def test_get_extension_missing(self, services, make_profile):
        profile = make_profile(Role.INVESTOR, extension=False)
        assert services.profiles.get_extension(profile.id) is None

    def test_update_extensions(self, services, entrepreneur, investor):
        e_ext = services.profiles.get_extension(entrepreneur.id)
        updated = services.profiles.update_entrepreneur_profile(
            entrepreneur.id, e_ext.id, EntrepreneurProfileUpdate(location="Boston")
        )
        assert updated.location == "Boston"
        assert updated.industry == "Fintech"

        i_ext = services.profiles.get_extension(investor.id)
        with pytest.raises(ForbiddenError):
            services.profiles.update_investor_profile(
                entrepreneur.id, i_ext.id, InvestorProfileUpdate(location="Boston")
            )

    def test_update_extension_rejects_unknown_fields(self, services, entrepreneur):
        e_ext = services.profiles.get_extension(entrepreneur.id)
        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.update_entrepreneur_profile(
                entrepreneur.id, e_ext.id, {"profile_id": 999}
            )
        assert exc_info.value.details["fields"] == ["profile_id"]
        assert services.profiles.get_extension(entrepreneur.id).profile_id == entrepreneur.id

    def test_get_extension_by_id(self, services, entrepreneur):
        ext = services.profiles.get_extension(entrepreneur.id)
        assert services.profiles.get_entrepreneur_profile(ext.id).startup_name == ext.startup_name
        with pytest.raises(NotFoundError):
            services.profiles.get_investor_profile(999)

    def test_list_extensions(self, services, make_profile):
        make_profile(Role.ENTREPRENEUR, industry="Fintech", location="NYC", startup_name="PayCo")
        make_profile(Role.ENTREPRENEUR, industry="Health", location="NYC", startup_name="MedCo")
        make_profile(Role.INVESTOR, industry_focus="Fintech and AI", funding_capacity="$1M-$5M")

        fintech = services.profiles.list_entrepreneur_profiles(industry="Fintech")
        assert [e.startup_name for e in fintech] == ["PayCo"]
        assert len(services.profiles.list_entrepreneur_profiles(search="med")) == 1

        focus = services.profiles.list_investor_profiles(industry_focus="ai")
        assert len(focus) == 1
        assert services.profiles.list_investor_profiles(funding_capacity="$10M") == []


class TestBrowse:
    """Tests for browsing profiles with their extensions."""

    @pytest.fixture
    def population(self, make_profile, timestamp):
        return [
            make_profile(Role.ENTREPRENEUR, created_at=timestamp(1), industry="Fintech"),
            make_profile(Role.INVESTOR, created_at=timestamp(2), industry_focus="Fintech"),
            make_profile(Role.ENTREPRENEUR, created_at=timestamp(3), industry="Health"),
            make_profile(Role.INVESTOR, created_at=timestamp(4), industry_focus="Health"),
            make_profile(Role.ENTREPRENEUR, created_at=timestamp(5), extension=False),
        ]

    def test_merged_newest_first(self, services, population):
        entries = services.profiles.browse()
        assert [e["profile"]["id"] for e in entries] == [p.id for p in reversed(population)]
        assert "extension" not in entries[0]
        assert entries[1]["extension"]["industry_focus"] == "Health"

    def test_merged_pagination_applies_offset_once(self, services, population):
        page = services.profiles.browse(limit=2, offset=2)
        assert [e["profile"]["id"] for e in page] == [population[2].id, population[1].id]

    def test_role_filters(self, services, population):
        fintech = services.profiles.browse(role="entrepreneur", industry="Fintech")
        assert [e["profile"]["id"] for e in fintech] == [population[0].id]

        investors = services.profiles.browse(role="investor", offset=1)
        assert [e["profile"]["id"] for e in investors] == [population[1].id]

    def test_role_specific_filter_requires_role(self, services):
        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.browse(industry="Fintech")
        assert exc_info.value.code == "INVALID_FILTER_COMBINATION"

    def test_filter_must_match_role(self, services):
        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.browse(role="entrepreneur", industry_focus="Fintech")
        assert exc_info.value.code == "INVALID_FILTER_FOR_ROLE"
        with pytest.raises(InvalidInputError) as exc_info:
            services.profiles.browse(role="investor", funding_stage="Seed")
        assert exc_info.value.code == "INVALID_FILTER_FOR_ROLE"
