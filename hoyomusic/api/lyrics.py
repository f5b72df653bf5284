"""Track lyrics API endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from pydantic import BaseModel, Field

from ..shared.auth import require_auth
from ..shared.db.pool import get_db
from ..shared.exceptions import NotFoundError, ValidationError
from ..shared.logging import get_logger
from ..shared.storage import StorageClient

from ..services.lyrics_service import LyricsService
from .dependencies import get_storage
from .schemas import ApiResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/lyrics", tags=["lyrics"])


class LyricsRequest(BaseModel):
    lyrics: Optional[str] = Field(None, description="Lyrics text, plain or LRC")


class LyricsResponse(BaseModel):
    lyrics: Optional[str] = None
    lyrics_path: Optional[str] = None


def _track_not_found(track_id: int) -> NotFoundError:
    return NotFoundError(
        message=f"Track {track_id} not found",
        code="TRACK_NOT_FOUND",
        details={"track_id": track_id},
    )


def _require_text(payload: LyricsRequest) -> str:
    if not payload.lyrics or not payload.lyrics.strip():
        raise ValidationError("No lyrics content provided", code="NO_LYRICS")
    return payload.lyrics


@router.get("/{track_id}/lyrics", response_model=ApiResponse[LyricsResponse])
async def get_lyrics(
    track_id: int,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> ApiResponse[LyricsResponse]:
    """Get the lyrics text of a track."""
    service = LyricsService(db, storage)
    track = await service.get_track(track_id)
    if track is None:
        raise _track_not_found(track_id)

    text = await service.read_lyrics(track)
    if text is None:
        raise NotFoundError(
            message="No lyrics available for this track",
            code="NO_LYRICS",
            details={"track_id": track_id},
        )
    return ApiResponse(data=LyricsResponse(lyrics=text, lyrics_path=track.lyrics_path))


@router.post(
    "/{track_id}/lyrics",
    response_model=ApiResponse[LyricsResponse],
    dependencies=[Depends(require_auth)],
)
@router.put(
    "/{track_id}/lyrics",
    response_model=ApiResponse[LyricsResponse],
    dependencies=[Depends(require_auth)],
)
async def set_lyrics(
    track_id: int,
    payload: LyricsRequest,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> ApiResponse[LyricsResponse]:
    """Upload or replace the lyrics of a track."""
    text = _require_text(payload)

    track = await LyricsService(db, storage).set_lyrics(track_id, text)
    if track is None:
        raise _track_not_found(track_id)
    return ApiResponse(data=LyricsResponse(lyrics=text, lyrics_path=track.lyrics_path))


@router.delete(
    "/{track_id}/lyrics",
    response_model=ApiResponse[dict],
    dependencies=[Depends(require_auth)],
)
async def delete_lyrics(
    track_id: int,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> ApiResponse[dict]:
    """Remove a track's lyrics."""
    track = await LyricsService(db, storage).delete_lyrics(track_id)
    if track is None:
        raise _track_not_found(track_id)
    return ApiResponse(data={"id": track_id, "deleted": True})
