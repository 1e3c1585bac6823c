"""Pitch videos and their view counters.

Videos are owned by one profile; only that profile may edit or delete them.
``views_count`` only ever grows: every recorded view inserts a
:class:`~pitchmatch.models.VideoViewRow` and increments the counter with a
single ``UPDATE ... SET views_count = views_count + 1`` inside the same
transaction, so concurrent viewers never lose an increment.

Binary upload is handled by an :class:`~pitchmatch.interfaces.IVideoStorage`
collaborator. This module only validates the upload metadata and persists
the URL the collaborator returns.
"""

import logging
from typing import Any, BinaryIO, Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, col, select
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from pitchmatch.config import ProfileVideoSortField, SortOrder, VideoSortField, settings
from pitchmatch.database import atomic
from pitchmatch.errors import ForbiddenError, InvalidInputError, NotFoundError
from pitchmatch.interfaces import IVideoStorage
from pitchmatch.logging import logger
from pitchmatch.metrics import count_video_view, instrument
from pitchmatch.models import VideoCreate, VideoRow, VideoUpdate, VideoUpload, VideoViewRow
from pitchmatch.profiles import ProfileService, require_profile
from pitchmatch.repository import RepositoryFactory
from pitchmatch.types import VideoViewResult
from pitchmatch.utils import clamp_limit, clamp_offset, clean_text, like_pattern, parse_id, utc_now_iso

logging_logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE_FRAGMENTS = ("test", "lorem")
PLACEHOLDER_TITLES = ("untitled",)


def is_lock_contention(exc: BaseException) -> bool:
    """True for SQLite's transient ``database is locked`` failures."""
    return isinstance(exc, OperationalError) and "database is locked" in str(exc).lower()


def validate_upload(content_type: Optional[str], size_bytes: int, title: Optional[str]) -> None:
    """Check upload metadata before anything is stored.

    Args:
        content_type: MIME type reported for the file
        size_bytes: File size in bytes
        title: Requested video title

    Raises:
        InvalidInputError: INVALID_FILE_TYPE, FILE_TOO_LARGE or INVALID_TITLE

    Example:
        >>> validate_upload("video/mp4", 1024, "Seed round pitch")
        >>> validate_upload("image/png", 1024, "Seed round pitch")
        Traceback (most recent call last):
        ...
        pitchmatch.errors.InvalidInputError: Only video files are allowed
    """
    if not content_type or not content_type.lower().startswith(settings.video_mime_prefix):
        raise InvalidInputError("Only video files are allowed", code="INVALID_FILE_TYPE")
    if size_bytes > settings.max_video_size_bytes:
        limit_mb = settings.max_video_size_bytes // (1024 * 1024)
        raise InvalidInputError(
            f"File size must be less than {limit_mb}MB", code="FILE_TOO_LARGE"
        )
    normalized = (clean_text(title) or "").lower()
    if (
        not normalized
        or normalized in PLACEHOLDER_TITLES
        or any(fragment in normalized for fragment in PLACEHOLDER_TITLE_FRAGMENTS)
    ):
        raise InvalidInputError(
            "Please provide a meaningful title for your pitch video", code="INVALID_TITLE"
        )


class VideoService:
    """Video catalogue, uploads and view accounting.

    Args:
        session: SQLModel Session bound to the current unit of work
    """

    def __init__(self, session: Session):
        self.session = session
        repos = RepositoryFactory(session)
        self.videos = repos.for_entity(VideoRow)
        self.views = repos.for_entity(VideoViewRow)

    def _require_video(self, video_id: Any) -> VideoRow:
        video = self.videos.get(parse_id(video_id, "video_id"))
        if video is None:
            raise NotFoundError("Video not found", code="VIDEO_NOT_FOUND")
        return video

    def _require_owner(self, video: VideoRow, acting_profile_id: int, action: str) -> None:
        if video.profile_id != acting_profile_id:
            raise ForbiddenError(f"You can only {action} your own videos")

    def _check_owner_profile(self, acting_profile_id: int, profile_id: int) -> None:
        require_profile(self.session, profile_id)
        if profile_id != acting_profile_id:
            raise ForbiddenError("You can only add videos to your own profile")

    def _persist(self, profile_id: int, fields: dict[str, Any]) -> VideoRow:
        video = self.videos.create(VideoRow(profile_id=profile_id, **fields))
        logger.info(f"✅ Video {video.id} created for profile {profile_id}")
        return video

    # =========================================================================
    # Creation and Upload
    # =========================================================================

    @instrument("create_video", component="videos")
    def create_video(self, acting_profile_id: int, data: VideoCreate | dict[str, Any]) -> VideoRow:
        """Register a video that is already hosted at ``data.video_url``.

        Raises:
            NotFoundError: If the owning profile does not exist
            ForbiddenError: If the profile is not the caller's
        """
        data = VideoCreate.model_validate(data)
        self._check_owner_profile(acting_profile_id, data.profile_id)
        return self._persist(data.profile_id, data.model_dump(exclude={"profile_id"}))

    @instrument("validate_upload", component="videos")
    def validate_upload(self, content_type: Optional[str], size_bytes: int, title: Optional[str]) -> None:
        """Instrumented wrapper around :func:`validate_upload`."""
        validate_upload(content_type, size_bytes, title)

    @instrument("accept_upload", component="videos")
    def accept_upload(self, acting_profile_id: int, data: VideoUpload) -> VideoRow:
        """Persist an upload that the storage collaborator already holds.

        Args:
            acting_profile_id: Acting profile
            data: Upload metadata including the storage URL

        Raises:
            NotFoundError: If the owning profile does not exist
            ForbiddenError: If the profile is not the caller's
            InvalidInputError: MISSING_VIDEO_URL, or any upload validation failure
        """
        self._check_owner_profile(acting_profile_id, data.profile_id)
        validate_upload(data.content_type, data.size_bytes, data.title)
        if data.video_url is None:
            raise InvalidInputError("Video URL is required", code="MISSING_VIDEO_URL")
        return self._persist(data.profile_id, _video_fields(data, data.video_url))

    @instrument("upload_video", component="videos")
    def upload(
        self,
        acting_profile_id: int,
        data: VideoUpload,
        content: bytes | BinaryIO,
        storage: IVideoStorage,
    ) -> VideoRow:
        """Validate, store through ``storage`` and persist a new video.

        Nothing is written to storage when validation fails.

        Args:
            acting_profile_id: Acting profile
            data: Upload metadata (``video_url`` is ignored)
            content: File contents or a readable binary stream
            storage: Object storage collaborator

        Returns:
            The stored video referencing the URL returned by ``storage``
        """
        self._check_owner_profile(acting_profile_id, data.profile_id)
        validate_upload(data.content_type, data.size_bytes, data.title)

        key = f"videos/{data.profile_id}/{uuid4().hex}"
        url = storage.store(key, content, data.content_type)
        logger.debug(f"📦 Stored upload {key} ({data.size_bytes} bytes)")
        return self._persist(data.profile_id, _video_fields(data, url))

    # =========================================================================
    # Queries
    # =========================================================================

    @instrument("get_video", component="videos")
    def get_video(self, video_id: Any) -> VideoRow:
        """Load one video.

        Raises:
            NotFoundError: If the video does not exist
        """
        return self._require_video(video_id)

    @instrument("list_videos", component="videos")
    def list_videos(
        self,
        profile_id: Any = None,
        search: Optional[str] = None,
        sort: str = VideoSortField.CREATED_AT,
        order: str = SortOrder.DESC,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[VideoRow]:
        """Browse the video catalogue.

        Args:
            profile_id: Optional owner filter
            search: Case-insensitive substring of title or description
            sort: "created_at" (default) or "views_count"
            order: "desc" (default) or "asc"
            limit: Page size (default 10, capped)
            offset: Rows to skip

        Raises:
            InvalidInputError: INVALID_SORT_FIELD, INVALID_SORT_ORDER or INVALID_ID
        """
        try:
            sort_field = VideoSortField(sort)
        except ValueError as exc:
            raise InvalidInputError(
                "Sort must be 'created_at' or 'views_count'", code="INVALID_SORT_FIELD"
            ) from exc
        try:
            direction = SortOrder(order)
        except ValueError as exc:
            raise InvalidInputError(
                "Order must be 'asc' or 'desc'", code="INVALID_SORT_ORDER"
            ) from exc

        stmt = select(VideoRow)
        if profile_id is not None:
            stmt = stmt.where(VideoRow.profile_id == parse_id(profile_id, "profile_id"))
        if term := clean_text(search):
            pattern = like_pattern(term)
            stmt = stmt.where(
                col(VideoRow.title).ilike(pattern, escape="\\")
                | col(VideoRow.description).ilike(pattern, escape="\\")
            )
        stmt = (
            stmt.order_by(*_ordering(sort_field.value, direction))
            .limit(clamp_limit(limit))
            .offset(clamp_offset(offset))
        )
        return list(self.session.exec(stmt).all())

    @instrument("list_profile_videos", component="videos")
    def list_profile_videos(
        self,
        profile_id: Any,
        sort: str = ProfileVideoSortField.CREATED_AT,
        order: str = SortOrder.DESC,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[VideoRow]:
        """Videos of one profile. Unknown sort keys fall back to ``created_at``.

        Raises:
            NotFoundError: If the profile does not exist
            InvalidInputError: INVALID_SORT_ORDER for an unknown order
        """
        profile = require_profile(self.session, profile_id)
        try:
            sort_field = ProfileVideoSortField(sort)
        except ValueError:
            sort_field = ProfileVideoSortField.CREATED_AT
        try:
            direction = SortOrder(order)
        except ValueError as exc:
            raise InvalidInputError(
                "Order must be 'asc' or 'desc'", code="INVALID_SORT_ORDER"
            ) from exc

        stmt = (
            select(VideoRow)
            .where(VideoRow.profile_id == profile.id)
            .order_by(*_ordering(sort_field.value, direction))
            .limit(clamp_limit(limit))
            .offset(clamp_offset(offset))
        )
        return list(self.session.exec(stmt).all())

    # =========================================================================
    # Owner Mutations
    # =========================================================================

    @instrument("update_video", component="videos")
    def update_video(
        self, acting_profile_id: int, video_id: Any, data: VideoUpdate | dict[str, Any]
    ) -> VideoRow:
        """Apply the set fields of ``data`` to one of the caller's videos.

        Raises:
            NotFoundError: If the video does not exist
            ForbiddenError: If the caller does not own it
        """
        video = self._require_video(video_id)
        self._require_owner(video, acting_profile_id, "update")
        changes = VideoUpdate.model_validate(data).model_dump(exclude_unset=True)
        if not changes:
            return video
        for key, value in changes.items():
            setattr(video, key, value)
        video.updated_at = utc_now_iso()
        video = self.videos.update(video)
        logger.info(f"✅ Video {video.id} updated ({', '.join(sorted(changes))})")
        return video

    @instrument("delete_video", component="videos")
    def delete_video(self, acting_profile_id: int, video_id: Any) -> VideoRow:
        """Delete one of the caller's videos together with its view log.

        Returns:
            A transient copy of the deleted video
        """
        video = self._require_video(video_id)
        self._require_owner(video, acting_profile_id, "delete")

        removed = VideoRow(**video.model_dump())
        with atomic(self.session):
            for view in self.views.find_by(video_id=video.id):
                self.views.remove(view)
            self.videos.remove(video)
        logger.info(f"🗑️  Video {removed.id} deleted")
        return removed

    # =========================================================================
    # View Accounting
    # =========================================================================

    @instrument("record_video_view", component="videos")
    def record_view(self, video_id: Any, viewer_user_id: Optional[str] = None) -> VideoViewResult:
        """Record one view and increment the video's counter.

        The viewer is resolved softly: an anonymous caller, or an identity
        without a profile, records a view with no viewer. The view row and
        the counter increment commit together. SQLite lock contention is
        retried with exponential backoff.

        Args:
            video_id: Viewed video
            viewer_user_id: External identity of the viewer, if any

        Returns:
            The video id, resolved viewer id and the counter after this view

        Raises:
            NotFoundError: If the video does not exist
        """
        video = self._require_video(video_id)
        viewer = ProfileService(self.session).find_caller(viewer_user_id)
        viewer_id = viewer.id if viewer is not None else None
        target_id: int = video.id  # type: ignore[assignment]

        @retry(
            reraise=True,
            stop=stop_after_attempt(settings.lock_retry_attempts),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1) + wait_random(0, 0.05),
            retry=retry_if_exception(is_lock_contention),
            before_sleep=before_sleep_log(logging_logger, logging.WARNING),
        )
        def _increment() -> int:
            stmt = (
                update(VideoRow)
                .where(col(VideoRow.id) == target_id)
                .values(views_count=col(VideoRow.views_count) + 1, updated_at=utc_now_iso())
                .returning(col(VideoRow.views_count))
            )
            with atomic(self.session):
                self.views.stage(VideoViewRow(video_id=target_id, viewer_id=viewer_id))
                return self.session.connection().execute(stmt).scalar_one()

        views_count = _increment()
        count_video_view()
        logger.debug(f"👁️  Video {target_id} viewed by {viewer_id or 'anonymous'} ({views_count})")
        return {"video_id": target_id, "viewer_id": viewer_id, "views_count": views_count}


def _video_fields(data: VideoUpload, url: str) -> dict[str, Any]:
    return {
        "title": data.title,
        "description": data.description,
        "video_url": url,
        "thumbnail_url": data.thumbnail_url,
        "duration": data.duration,
    }


def _ordering(field: str, direction: SortOrder) -> tuple[Any, Any]:
    sort_column = col(getattr(VideoRow, field))
    id_column = col(VideoRow.id)
    if direction == SortOrder.DESC:
        return sort_column.desc(), id_column.desc()
    return sort_column.asc(), id_column.asc()


__all__ = ["VideoService", "validate_upload", "is_lock_contention"]
