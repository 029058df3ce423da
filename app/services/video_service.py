"""
Video catalog service.

Publishing, editing, deleting and listing videos. Uploads go through the
media host before any record is written; replaced or deleted remote assets
are removed best-effort after the record change is committed, and a failed
remote delete is only logged.

Known gap: multi-asset uploads are not transactional. If the thumbnail
upload fails after the video upload succeeded, the uploaded video stays on
the media host.
"""
import asyncio
import logging
import uuid
from typing import Dict, Optional, Union

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, ValidationException, VideoNotFoundException
from app.models.domain import DeleteResult, Page, VideoFilter, VideoUpdate, VideoWithOwner
from app.repositories import video_db_repository
from app.services.media_host import MediaHost
from app.services.temp_file_manager import TempFileManager
from app.utils.ids import parse_id

logger = logging.getLogger(__name__)


def parse_duration(value: Union[str, int, float, None]) -> int:
    """
    Parse a duration in seconds.

    Raises:
        ValidationException: not a number, or not > 0 once truncated to whole seconds
    """
    try:
        duration = int(float(value))
    except (TypeError, ValueError):
        raise ValidationException(f"Duration must be a number of seconds, got {value!r}")
    if duration <= 0:
        raise ValidationException("Duration must be greater than 0")
    return duration


def _required_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ValidationException(f"{label} is missing")
    return value.strip()


class VideoService:
    """Video catalog operations."""

    def __init__(self, session: AsyncSession, media_host: MediaHost, temp_files: TempFileManager):
        self.session = session
        self.media_host = media_host
        self.temp_files = temp_files

    async def _load_owned(self, video_id: str, requester_id: uuid.UUID, action: str):
        video = await video_db_repository.get_by_id(self.session, parse_id(video_id, "video id"))
        if video is None:
            raise VideoNotFoundException(video_id)
        if video.owner_id != requester_id:
            raise ForbiddenException(action, "video")
        return video

    async def _get_with_owner(self, video_id: uuid.UUID) -> VideoWithOwner:
        row = await video_db_repository.get_with_owner(self.session, video_id)
        if row is None:
            raise VideoNotFoundException(str(video_id))
        return VideoWithOwner.from_row(row)

    async def _remove_assets(self, urls: Dict[str, str]) -> DeleteResult:
        """Remove remote assets concurrently. Failures are logged and collected, never raised."""
        result = DeleteResult(video_id="")
        labels = list(urls)
        outcomes = await asyncio.gather(
            *(self.media_host.remove_url(urls[label]) for label in labels),
            return_exceptions=True,
        )
        for label, outcome in zip(labels, outcomes):
            if outcome is True:
                result.deleted_assets.append(label)
            else:
                reason = f"{type(outcome).__name__}: {outcome}" if isinstance(outcome, BaseException) else "not deleted"
                logger.warning(f"Failed to delete {label} {urls[label]}: {reason}")
                result.asset_errors.append(f"Failed to delete {label}")
        return result

    async def publish(
        self,
        owner_id: uuid.UUID,
        title: Optional[str],
        description: Optional[str],
        duration: Union[str, int, None],
        video_file: Optional[UploadFile],
        thumbnail: Optional[UploadFile],
    ) -> VideoWithOwner:
        """
        Upload both assets and create a published video with zero views.

        Raises:
            ValidationException: missing/blank field, bad duration, missing file
            UploadFailedException: either upload failed
        """
        title = _required_text(title, "Title")
        description = _required_text(description, "Description")
        if duration is None or (isinstance(duration, str) and not duration.strip()):
            raise ValidationException("Duration is missing")
        duration = parse_duration(duration)
        if video_file is None:
            raise ValidationException("Video file is missing")
        if thumbnail is None:
            raise ValidationException("Thumbnail is missing")

        async with self.temp_files.staged(video_file, "videos", "Video file") as video_path:
            stored_video = await self.media_host.store(video_path, asset="Video file")
        async with self.temp_files.staged(thumbnail, "thumbnails", "Thumbnail") as thumbnail_path:
            stored_thumbnail = await self.media_host.store(thumbnail_path, asset="Thumbnail")

        video = await video_db_repository.create(
            self.session,
            owner_id=owner_id,
            title=title,
            description=description,
            duration=duration,
            video_file=stored_video.url,
            thumbnail=stored_thumbnail.url,
        )
        logger.info(f"Published video {video.id} for user {owner_id}")
        return await self._get_with_owner(video.id)

    async def get_by_id(self, video_id: str) -> VideoWithOwner:
        """
        Raises:
            ValidationException: malformed id
            VideoNotFoundException: no such video
        """
        return await self._get_with_owner(parse_id(video_id, "video id"))

    async def update(
        self,
        video_id: str,
        requester_id: uuid.UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        duration: Union[str, int, None] = None,
        video_file: Optional[UploadFile] = None,
        thumbnail: Optional[UploadFile] = None,
    ) -> VideoWithOwner:
        """
        Apply a partial update, optionally replacing either asset.

        Ownership is checked before anything is uploaded. Previous remote
        assets of replaced files are removed after the record is committed.

        Raises:
            ValidationException: malformed id, blank field, bad duration, nothing to update
            VideoNotFoundException: no such video
            ForbiddenException: requester is not the owner
            UploadFailedException: a new asset could not be uploaded
        """
        video = await self._load_owned(video_id, requester_id, "update")

        changes = VideoUpdate(
            title=_required_text(title, "Title") if title is not None else None,
            description=_required_text(description, "Description") if description is not None else None,
            duration=parse_duration(duration) if duration not in (None, "") else None,
        )
        if changes.is_empty() and video_file is None and thumbnail is None:
            raise ValidationException("Nothing to update")

        replaced: Dict[str, str] = {}
        if video_file is not None:
            async with self.temp_files.staged(video_file, "videos", "Video file") as video_path:
                changes.video_file = (await self.media_host.store(video_path, asset="Video file")).url
            replaced["video file"] = video.video_file
        if thumbnail is not None:
            async with self.temp_files.staged(thumbnail, "thumbnails", "Thumbnail") as thumbnail_path:
                changes.thumbnail = (await self.media_host.store(thumbnail_path, asset="Thumbnail")).url
            replaced["thumbnail"] = video.thumbnail

        await video_db_repository.apply_update(self.session, video, changes)
        await self.session.commit()
        logger.info(f"Updated video {video.id}: {sorted(changes.changes())}")

        if replaced:
            await self._remove_assets(replaced)
        return await self._get_with_owner(video.id)

    async def delete(self, video_id: str, requester_id: uuid.UUID) -> DeleteResult:
        """
        Delete the record, then remove both remote assets best-effort.

        Raises:
            ValidationException: malformed id
            VideoNotFoundException: no such video
            ForbiddenException: requester is not the owner
        """
        video = await self._load_owned(video_id, requester_id, "delete")
        assets = {"video file": video.video_file, "thumbnail": video.thumbnail}

        await video_db_repository.delete_by_id(self.session, video.id)
        await self.session.commit()
        logger.info(f"Deleted video record {video.id}")

        result = await self._remove_assets(assets)
        result.video_id = str(video.id)
        return result

    async def toggle_publish(self, video_id: str, requester_id: uuid.UUID) -> VideoWithOwner:
        """
        Flip the publish flag.

        Raises:
            ValidationException: malformed id
            VideoNotFoundException: no video with that id owned by requester
        """
        video_uuid = parse_id(video_id, "video id")
        video = await video_db_repository.toggle_publish(self.session, video_uuid, requester_id)
        if video is None:
            raise VideoNotFoundException(video_id)
        logger.info(f"Video {video_uuid} is_published={video.is_published}")
        return await self._get_with_owner(video_uuid)

    async def increment_views(self, video_id: str) -> VideoWithOwner:
        """
        Add one view. Repeated calls from the same viewer all count.

        Raises:
            ValidationException: malformed id
            VideoNotFoundException: no such video
        """
        video_uuid = parse_id(video_id, "video id")
        video = await video_db_repository.increment_views(self.session, video_uuid)
        if video is None:
            raise VideoNotFoundException(video_id)
        return await self._get_with_owner(video_uuid)

    async def list_feed(self, page: int, limit: int, filters: VideoFilter) -> Page:
        """
        Page of videos matching the filters, joined with owner summaries.

        Raises:
            ValidationException: unknown sort field
        """
        if filters.sort_by not in video_db_repository.SORTABLE_FIELDS:
            raise ValidationException(
                f"Invalid sortBy '{filters.sort_by}'. Must be one of: "
                f"{', '.join(video_db_repository.SORTABLE_FIELDS)}"
            )

        total = await video_db_repository.count(self.session, filters)
        rows = await video_db_repository.list_with_owner(self.session, filters, page, limit)
        return Page(items=[VideoWithOwner.from_row(row) for row in rows], total=total, page=page, limit=limit)
