"""Tests for favorites."""

import pytest

from pitchmatch.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from pitchmatch.models import FAVORITE_CONTENT, Role


class TestFavorites:
    """Tests for adding, removing and listing favorites."""

    def test_add_favorite_notifies_target(self, services, entrepreneur, investor):
        favorite = services.favorites.add_favorite(investor.id, entrepreneur.id)

        assert favorite.profile_id == investor.id
        assert favorite.favorited_profile_id == entrepreneur.id
        notes = services.notifications.list_notifications(entrepreneur.id)
        assert [(n.type, n.reference_id, n.content) for n in notes] == [
            ("favorite", favorite.id, FAVORITE_CONTENT)
        ]

    def test_self_favorite(self, services, investor):
        with pytest.raises(InvalidInputError) as exc_info:
            services.favorites.add_favorite(investor.id, investor.id)
        assert exc_info.value.code == "SELF_FAVORITE_NOT_ALLOWED"

    def test_missing_target(self, services, investor):
        with pytest.raises(NotFoundError):
            services.favorites.add_favorite(investor.id, 999)

    def test_duplicate_favorite(self, services, entrepreneur, investor):
        services.favorites.add_favorite(investor.id, entrepreneur.id)
        with pytest.raises(ConflictError) as exc_info:
            services.favorites.add_favorite(investor.id, entrepreneur.id)
        assert exc_info.value.code == "FAVORITE_ALREADY_EXISTS"
        assert services.notifications.unread_count(entrepreneur.id) == 1

    def test_favorites_are_one_directional(self, services, entrepreneur, investor):
        services.favorites.add_favorite(investor.id, entrepreneur.id)
        assert services.favorites.is_favorited(investor.id, entrepreneur.id) is True
        assert services.favorites.is_favorited(entrepreneur.id, investor.id) is False

        back = services.favorites.add_favorite(entrepreneur.id, investor.id)
        assert back.id is not None

    def test_remove_own_favorite(self, services, entrepreneur, investor):
        favorite = services.favorites.add_favorite(investor.id, entrepreneur.id)

        removed = services.favorites.remove_favorite(favorite.id, investor.id)
        assert removed.id == favorite.id
        assert removed.favorited_profile_id == entrepreneur.id
        assert services.favorites.is_favorited(investor.id, entrepreneur.id) is False

        with pytest.raises(NotFoundError):
            services.favorites.remove_favorite(favorite.id, investor.id)

    def test_remove_requires_owner(self, services, entrepreneur, investor):
        favorite = services.favorites.add_favorite(investor.id, entrepreneur.id)
        with pytest.raises(ForbiddenError):
            services.favorites.remove_favorite(favorite.id, entrepreneur.id)

    def test_list_favorites(self, services, make_profile, investor):
        targets = [make_profile(Role.ENTREPRENEUR) for _ in range(3)]
        for target in targets:
            services.favorites.add_favorite(investor.id, target.id)

        entries = services.favorites.list_favorites(investor.id)
        assert [e["favorited_profile_id"] for e in entries] == [t.id for t in targets]
        assert entries[0]["favorited_profile"]["user_id"] == targets[0].user_id

        page = services.favorites.list_favorites(investor.id, limit=1, offset=2)
        assert [e["favorited_profile_id"] for e in page] == [targets[2].id]
