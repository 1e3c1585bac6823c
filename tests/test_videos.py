"""Tests for pitch videos, uploads and view counting."""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from pitchmatch.config import settings
from pitchmatch.errors import ForbiddenError, InvalidInputError, NotFoundError
from pitchmatch.models import (
    ProfileRow,
    Role,
    VideoCreate,
    VideoRow,
    VideoUpdate,
    VideoUpload,
    VideoViewRow,
)
from pitchmatch.videos import VideoService, is_lock_contention, validate_upload


def _upload(profile_id: int, **overrides) -> VideoUpload:
    fields = {
        "profile_id": profile_id,
        "title": "Seed round pitch",
        "content_type": "video/mp4",
        "size_bytes": 1024,
    }
    fields.update(overrides)
    return VideoUpload(**fields)


class TestValidateUpload:
    """Tests for upload metadata checks."""

    def test_accepts_video(self):
        validate_upload("video/mp4", 1024, "Seed round pitch")
        validate_upload("VIDEO/QUICKTIME", settings.max_video_size_bytes, "Demo day")

    @pytest.mark.parametrize("content_type", ["image/png", "application/octet-stream", "", None])
    def test_rejects_non_video(self, content_type):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_upload(content_type, 1024, "Seed round pitch")
        assert exc_info.value.code == "INVALID_FILE_TYPE"

    def test_rejects_oversized(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_upload("video/mp4", settings.max_video_size_bytes + 1, "Seed round pitch")
        assert exc_info.value.code == "FILE_TOO_LARGE"

    @pytest.mark.parametrize("title", ["", "   ", None, "Untitled", "My TEST video", "Lorem ipsum"])
    def test_rejects_placeholder_titles(self, title):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_upload("video/mp4", 1024, title)
        assert exc_info.value.code == "INVALID_TITLE"

    def test_type_checked_before_size(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_upload("image/png", settings.max_video_size_bytes + 1, "")
        assert exc_info.value.code == "INVALID_FILE_TYPE"


class TestVideoCatalogue:
    """Tests for creating, reading and editing videos."""

    def test_create_video(self, services, entrepreneur):
        video = services.videos.create_video(
            entrepreneur.id,
            VideoCreate(
                profile_id=entrepreneur.id,
                title="Seed round pitch",
                video_url="https://cdn.example.com/a.mp4",
                duration=90,
            ),
        )
        assert video.id is not None
        assert video.views_count == 0
        assert services.videos.get_video(video.id).duration == 90

    def test_create_for_other_profile(self, services, entrepreneur, investor):
        with pytest.raises(ForbiddenError):
            services.videos.create_video(
                investor.id,
                VideoCreate(profile_id=entrepreneur.id, title="Pitch", video_url="https://x"),
            )

    def test_create_for_missing_profile(self, services, entrepreneur):
        with pytest.raises(NotFoundError):
            services.videos.create_video(
                entrepreneur.id, VideoCreate(profile_id=999, title="Pitch", video_url="https://x")
            )

    def test_create_from_mapping(self, services, entrepreneur):
        video = services.videos.create_video(
            entrepreneur.id,
            {"profile_id": entrepreneur.id, "title": "Pitch", "video_url": "https://cdn.example.com/b.mp4"},
        )
        assert video.title == "Pitch"

        with pytest.raises(InvalidInputError) as exc_info:
            services.videos.create_video(
                entrepreneur.id,
                {"profile_id": entrepreneur.id, "title": "Pitch", "video_url": "https://x", "duration": -1},
            )
        assert exc_info.value.details["fields"] == ["duration"]
        assert len(services.videos.list_videos()) == 1

    def test_get_missing_video(self, services):
        with pytest.raises(NotFoundError) as exc_info:
            services.videos.get_video(999)
        assert exc_info.value.code == "VIDEO_NOT_FOUND"

    def test_update_owner_only(self, services, make_video, entrepreneur, investor):
        video = make_video(entrepreneur)
        original_updated_at = video.updated_at

        updated = services.videos.update_video(
            entrepreneur.id, video.id, VideoUpdate(description="Now with traction")
        )
        assert updated.description == "Now with traction"
        assert updated.title == "Seed round pitch"
        assert updated.updated_at >= original_updated_at

        with pytest.raises(ForbiddenError):
            services.videos.update_video(investor.id, video.id, VideoUpdate(title="Hijacked"))

    def test_delete_removes_views(self, services, session, make_video, entrepreneur, investor):
        video = make_video(entrepreneur)
        services.videos.record_view(video.id, "backer")

        with pytest.raises(ForbiddenError):
            services.videos.delete_video(investor.id, video.id)

        removed = services.videos.delete_video(entrepreneur.id, video.id)
        assert removed.id == video.id
        assert session.query(VideoViewRow).count() == 0
        with pytest.raises(NotFoundError):
            services.videos.get_video(video.id)


class TestUpload:
    """Tests for uploads through a storage collaborator."""

    def test_upload_stores_and_persists(self, services, mocker, entrepreneur):
        storage = mocker.Mock()
        storage.store.return_value = "https://cdn.example.com/videos/1/abc"

        video = services.videos.upload(entrepreneur.id, _upload(entrepreneur.id), b"data", storage)

        assert video.video_url == "https://cdn.example.com/videos/1/abc"
        key, content, content_type = storage.store.call_args.args
        assert key.startswith(f"videos/{entrepreneur.id}/")
        assert content == b"data"
        assert content_type == "video/mp4"

    def test_invalid_upload_never_reaches_storage(self, services, mocker, entrepreneur):
        storage = mocker.Mock()
        with pytest.raises(InvalidInputError):
            services.videos.upload(
                entrepreneur.id, _upload(entrepreneur.id, content_type="image/png"), b"x", storage
            )
        storage.store.assert_not_called()
        assert services.videos.list_videos() == []

    def test_accept_upload_requires_url(self, services, entrepreneur):
        with pytest.raises(InvalidInputError) as exc_info:
            services.videos.accept_upload(entrepreneur.id, _upload(entrepreneur.id))
        assert exc_info.value.code == "MISSING_VIDEO_URL"

        video = services.videos.accept_upload(
            entrepreneur.id, _upload(entrepreneur.id, video_url="https://cdn.example.com/v.mp4")
        )
        assert video.video_url == "https://cdn.example.com/v.mp4"


class TestListing:
    """Tests for listing and searching videos."""

    @pytest.fixture
    def catalogue(self, make_video, entrepreneur, make_profile, timestamp):
        other = make_profile(Role.ENTREPRENEUR)
        return [
            make_video(entrepreneur, "Fintech pitch", created_at=timestamp(1), views_count=5),
            make_video(entrepreneur, "Demo day", created_at=timestamp(2), views_count=9,
                       description="Our fintech demo"),
            make_video(other, "Health pitch", created_at=timestamp(3), views_count=1),
        ]

    def test_newest_first_by_default(self, services, catalogue):
        assert [v.id for v in services.videos.list_videos()] == [v.id for v in reversed(catalogue)]

    def test_sort_by_views(self, services, catalogue):
        videos = services.videos.list_videos(sort="views_count", order="asc")
        assert [v.views_count for v in videos] == [1, 5, 9]

    def test_search_title_and_description(self, services, catalogue):
        found = services.videos.list_videos(search="FINTECH")
        assert {v.id for v in found} == {catalogue[0].id, catalogue[1].id}

    def test_filter_by_profile(self, services, catalogue, entrepreneur):
        videos = services.videos.list_videos(profile_id=entrepreneur.id)
        assert {v.profile_id for v in videos} == {entrepreneur.id}

    @pytest.mark.parametrize(
        "kwargs,code",
        [({"sort": "title"}, "INVALID_SORT_FIELD"), ({"order": "up"}, "INVALID_SORT_ORDER")],
    )
    def test_invalid_sort(self, services, kwargs, code):
        with pytest.raises(InvalidInputError) as exc_info:
            services.videos.list_videos(**kwargs)
        assert exc_info.value.code == code

    def test_profile_videos(self, services, catalogue, entrepreneur):
        by_title = services.videos.list_profile_videos(entrepreneur.id, sort="title", order="asc")
        assert [v.title for v in by_title] == ["Demo day", "Fintech pitch"]

        fallback = services.videos.list_profile_videos(entrepreneur.id, sort="bogus")
        assert [v.id for v in fallback] == [catalogue[1].id, catalogue[0].id]

        with pytest.raises(NotFoundError):
            services.videos.list_profile_videos(999)


class TestRecordView:
    """Tests for view accounting."""

    def test_anonymous_view(self, services, session, make_video, entrepreneur):
        video = make_video(entrepreneur)
        result = services.videos.record_view(video.id)

        assert result == {"video_id": video.id, "viewer_id": None, "views_count": 1}
        assert session.query(VideoViewRow).one().viewer_id is None

    def test_identified_view(self, services, make_video, entrepreneur, investor):
        video = make_video(entrepreneur)
        services.videos.record_view(video.id, "backer")
        result = services.videos.record_view(video.id, "backer")

        assert result["viewer_id"] == investor.id
        assert result["views_count"] == 2
        assert services.videos.get_video(video.id).views_count == 2

    def test_unknown_identity_counts_as_anonymous(self, services, make_video, entrepreneur):
        video = make_video(entrepreneur)
        assert services.videos.record_view(video.id, "ghost")["viewer_id"] is None

    def test_missing_video(self, services):
        with pytest.raises(NotFoundError):
            services.videos.record_view(999)

    def test_lock_contention_detection(self):
        locked = OperationalError("UPDATE", {}, Exception("database is locked"))
        other = OperationalError("UPDATE", {}, Exception("no such table"))
        assert is_lock_contention(locked) is True
        assert is_lock_contention(other) is False
        assert is_lock_contention(ValueError("database is locked")) is False

    @pytest.mark.integration
    def test_concurrent_views_are_not_lost(self, file_db):
        """Parallel viewers each get their own increment."""
        with file_db.session_scope() as session:
            owner = ProfileRow(user_id="owner", role=Role.ENTREPRENEUR.value)
            session.add(owner)
            session.commit()
            video = VideoRow(profile_id=owner.id, title="Pitch", video_url="https://x")
            session.add(video)
            session.commit()
            video_id = video.id

        threads_count, views_per_thread = 4, 5
        errors: list[BaseException] = []

        def viewer() -> None:
            try:
                for _ in range(views_per_thread):
                    with file_db.session_scope() as session:
                        VideoService(session).record_view(video_id)
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=viewer) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        expected = threads_count * views_per_thread
        with file_db.session_scope() as session:
            assert session.get(VideoRow, video_id).views_count == expected
            assert session.query(VideoViewRow).count() == expected
