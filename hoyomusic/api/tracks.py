"""Track catalog API endpoints."""
from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from ..shared.auth import require_auth
from ..shared.config.settings import Settings
from ..shared.db.pool import get_db
from ..shared.exceptions import NotFoundError, ValidationError
from ..shared.logging import get_logger
from ..shared.storage import StorageClient

from ..services.track_service import UNSET, TrackService
from .dependencies import get_app_settings, get_storage
from .schemas import ApiResponse, TrackResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/tracks", tags=["tracks"], dependencies=[Depends(require_auth)])

COVER_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class TrackListResponse(BaseModel):
    tracks: List[TrackResponse]
    pagination: Pagination


class TrackUpdateRequest(BaseModel):
    """Fields left out of the body are not changed."""
    title: Optional[str] = Field(None, max_length=255, description="New title")
    album: Optional[str] = Field(None, description="Album title; null detaches the album")
    artists: Optional[List[str]] = Field(None, description="Replacement artist list")


def _not_found(track_id: int) -> NotFoundError:
    return NotFoundError(
        message=f"Track {track_id} not found",
        code="TRACK_NOT_FOUND",
        details={"track_id": track_id},
    )


async def _discard(storage: StorageClient, locators: List[str]) -> None:
    """Best-effort blob removal after the catalog row is gone."""
    for locator in locators:
        try:
            await storage.delete(locator)
        except Exception as e:
            logger.warning("storage_cleanup_failed", locator=locator, error=str(e))


@router.get("", response_model=ApiResponse[TrackListResponse])
async def list_tracks(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Substring of title, album or artist"),
    sample_rate_min: Optional[int] = Query(None, ge=0),
    bit_depth: Optional[int] = Query(None, ge=0),
    year_from: Optional[int] = Query(None, ge=1, le=9999),
    year_to: Optional[int] = Query(None, ge=1, le=9999),
    duration_min: Optional[int] = Query(None, ge=0),
    duration_max: Optional[int] = Query(None, ge=0),
    sort_by: Literal["created_at", "title", "duration", "sample_rate", "release_date"] = "created_at",
    sort_dir: Literal["asc", "desc"] = "desc",
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TrackListResponse]:
    """List tracks with filters, sorting and pagination."""
    service = TrackService(db)
    tracks, total = await service.list_tracks(
        page=page,
        limit=limit,
        search=search,
        sample_rate_min=sample_rate_min,
        bit_depth=bit_depth,
        year_from=year_from,
        year_to=year_to,
        duration_min=duration_min,
        duration_max=duration_max,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )

    return ApiResponse(data=TrackListResponse(
        tracks=[TrackResponse.from_track(track) for track in tracks],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=(total + limit - 1) // limit,
        ),
    ))


@router.get("/{track_id}", response_model=ApiResponse[TrackResponse])
async def get_track(
    track_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TrackResponse]:
    """Get a track by ID."""
    track = await TrackService(db).get_track_by_id(track_id)
    if not track:
        raise _not_found(track_id)
    return ApiResponse(data=TrackResponse.from_track(track))


@router.put("/{track_id}", response_model=ApiResponse[TrackResponse])
async def update_track(
    track_id: int,
    payload: TrackUpdateRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[TrackResponse]:
    """Update title, album and artists of a track."""
    logger.info("updating_track", track_id=track_id, fields=sorted(payload.model_fields_set))

    title = payload.title.strip() if payload.title is not None else None
    if title == "":
        raise ValidationError("title must not be blank", details={"track_id": track_id})

    track = await TrackService(db).update_track(
        track_id,
        title=title,
        album=payload.album if "album" in payload.model_fields_set else UNSET,
        artists=payload.artists,
    )
    if not track:
        raise _not_found(track_id)
    return ApiResponse(data=TrackResponse.from_track(track))


@router.delete("/{track_id}", response_model=ApiResponse[dict])
async def delete_track(
    track_id: int,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> ApiResponse[dict]:
    """Delete a track; its credits and artist links go with it."""
    locators = await TrackService(db).delete_track(track_id)
    if locators is None:
        raise _not_found(track_id)

    await _discard(storage, locators)
    return ApiResponse(data={"id": track_id, "deleted": True})


@router.post("/{track_id}/cover", response_model=ApiResponse[TrackResponse])
async def upload_track_cover(
    track_id: int,
    cover: UploadFile = File(..., description="JPEG, PNG or WebP image"),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_app_settings),
) -> ApiResponse[TrackResponse]:
    """Replace the cover image of a track."""
    content_type = (cover.content_type or "").lower()
    if content_type not in COVER_MIME_TYPES:
        raise ValidationError(
            "Only JPEG, PNG and WebP images are allowed",
            code="INVALID_FILE_TYPE",
            details={"content_type": cover.content_type},
        )
    data = await cover.read()
    if len(data) > settings.max_cover_size:
        raise ValidationError(
            "Cover image too large",
            code="FILE_TOO_LARGE",
            details={"max_size": settings.max_cover_size},
        )

    locator = await storage.upload(data, cover.filename or "cover.jpg", "covers", content_type)
    try:
        track = await TrackService(db).set_cover(track_id, locator)
    except Exception:
        await _discard(storage, [locator])
        raise
    if not track:
        await _discard(storage, [locator])
        raise _not_found(track_id)
    return ApiResponse(data=TrackResponse.from_track(track))
