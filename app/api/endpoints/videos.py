"""
Video catalog endpoints.
Handles publishing, the feed, editing, deletion, publish toggling and views.
"""
import time
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.api.deps import get_current_user, get_page_params, get_video_service
from app.api.endpoints.users import optional_upload
from app.core.logging import (
    get_request_id,
    log_event,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
)
from app.database.models.user import User
from app.models.domain import SortDirection, VideoFilter
from app.models.schemas import (
    PaginationResponse,
    VideoDeleteResponse,
    VideoListResponse,
    VideoPublishToggleResponse,
    VideoResponse,
)
from app.services.video_service import VideoService
from app.utils.ids import parse_id

router = APIRouter(prefix="/videos")

LOGGER_NAME = "app.api.endpoints.videos"


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    video_service: VideoService = Depends(get_video_service),
):
    """Upload a video file and thumbnail and publish them as a new video."""
    start_time = time.time()
    operation = "publish_video"

    log_operation_start(
        logger=LOGGER_NAME,
        function="publish_video",
        operation=operation,
        message="Publishing video",
        context={"owner_id": str(current_user.id), "title": title},
    )

    try:
        result = await video_service.publish(
            owner_id=current_user.id,
            title=title,
            description=description,
            duration=duration,
            video_file=optional_upload(video_file),
            thumbnail=optional_upload(thumbnail),
        )
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="publish_video",
            operation=operation,
            error=e,
            message="Publishing failed",
            context={"owner_id": str(current_user.id)},
        )
        raise

    log_operation_complete(
        logger=LOGGER_NAME,
        function="publish_video",
        operation=operation,
        message="Video published",
        context={"video_id": str(result.video.id)},
        duration=time.time() - start_time,
    )
    return VideoResponse.from_domain(result)


@router.get("", response_model=VideoListResponse)
async def list_videos(
    paging: Tuple[int, int] = Depends(get_page_params),
    query: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_type: Optional[str] = Query(None, alias="sortType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    video_service: VideoService = Depends(get_video_service),
):
    """
    Paged video feed.

    query matches title or description case-insensitively, userId limits
    the feed to one owner. sortType=asc sorts ascending, anything else
    descending.
    """
    filters = VideoFilter(
        query=query.strip() if query and query.strip() else None,
        user_id=parse_id(user_id, "user id") if user_id else None,
        sort_by=sort_by,
        sort_direction=SortDirection.parse(sort_type),
    )
    page, limit = paging
    result = await video_service.list_feed(page, limit, filters)

    log_event(
        level="DEBUG",
        logger=LOGGER_NAME,
        function="list_videos",
        operation="list_videos",
        event="feed_listed",
        message="Listed video feed",
        context={"request_id": get_request_id(), "total": result.total, "page": page},
    )
    return VideoListResponse(
        videos=[VideoResponse.from_domain(item) for item in result.items],
        pagination=PaginationResponse.from_page(result),
    )


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    video_service: VideoService = Depends(get_video_service),
):
    """Get a single video with its owner summary."""
    return VideoResponse.from_domain(await video_service.get_by_id(video_id))


@router.patch("/{video_id}", response_model=VideoResponse)
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    video_service: VideoService = Depends(get_video_service),
):
    """Update any of title, description, duration, video file and thumbnail. Owner only."""
    start_time = time.time()
    operation = "update_video"

    log_operation_start(
        logger=LOGGER_NAME,
        function="update_video",
        operation=operation,
        message="Updating video",
        context={"video_id": video_id, "user_id": str(current_user.id)},
    )

    try:
        result = await video_service.update(
            video_id,
            current_user.id,
            title=title,
            description=description,
            duration=duration,
            video_file=optional_upload(video_file),
            thumbnail=optional_upload(thumbnail),
        )
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="update_video",
            operation=operation,
            error=e,
            message="Update failed",
            context={"video_id": video_id},
        )
        raise

    log_operation_complete(
        logger=LOGGER_NAME,
        function="update_video",
        operation=operation,
        message="Video updated",
        context={"video_id": video_id},
        duration=time.time() - start_time,
    )
    return VideoResponse.from_domain(result)


@router.delete("/{video_id}", response_model=VideoDeleteResponse)
async def delete_video(
    video_id: str,
    current_user: User = Depends(get_current_user),
    video_service: VideoService = Depends(get_video_service),
):
    """
    Delete a video. Owner only.

    The record is always removed; remote assets that could not be deleted
    are reported in assetErrors.
    """
    start_time = time.time()
    operation = "delete_video"

    log_operation_start(
        logger=LOGGER_NAME,
        function="delete_video",
        operation=operation,
        message="Deleting video",
        context={"video_id": video_id, "user_id": str(current_user.id)},
    )

    try:
        result = await video_service.delete(video_id, current_user.id)
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="delete_video",
            operation=operation,
            error=e,
            message="Deletion failed",
            context={"video_id": video_id},
        )
        raise

    message = "Video deleted successfully"
    if result.asset_errors:
        message = "Video deleted, some files could not be removed"
    log_operation_complete(
        logger=LOGGER_NAME,
        function="delete_video",
        operation=operation,
        message=message,
        context={"video_id": video_id, "asset_errors": len(result.asset_errors)},
        duration=time.time() - start_time,
    )
    return VideoDeleteResponse(
        message=message,
        video_id=result.video_id,
        deleted_assets=result.deleted_assets,
        asset_errors=result.asset_errors,
    )


@router.patch("/{video_id}/publish-toggle", response_model=VideoPublishToggleResponse)
async def toggle_publish_status(
    video_id: str,
    current_user: User = Depends(get_current_user),
    video_service: VideoService = Depends(get_video_service),
):
    """Flip the publish flag of one of the caller's videos."""
    start_time = time.time()
    operation = "toggle_publish_status"

    log_operation_start(
        logger=LOGGER_NAME,
        function="toggle_publish_status",
        operation=operation,
        message="Toggling publish status",
        context={"video_id": video_id, "user_id": str(current_user.id)},
    )

    try:
        result = await video_service.toggle_publish(video_id, current_user.id)
    except Exception as e:
        log_operation_error(
            logger=LOGGER_NAME,
            function="toggle_publish_status",
            operation=operation,
            error=e,
            message="Publish toggle failed",
            context={"video_id": video_id},
        )
        raise

    state = "published" if result.video.is_published else "unpublished"
    log_operation_complete(
        logger=LOGGER_NAME,
        function="toggle_publish_status",
        operation=operation,
        message=f"Video {state}",
        context={"video_id": video_id},
        duration=time.time() - start_time,
    )
    return VideoPublishToggleResponse(
        message=f"Video {state} successfully",
        video=VideoResponse.from_domain(result),
    )


@router.post("/{video_id}/views", response_model=VideoResponse)
async def add_view(
    video_id: str,
    video_service: VideoService = Depends(get_video_service),
):
    """Count one view of a video."""
    return VideoResponse.from_domain(await video_service.increment_views(video_id))
