"""Track upload API endpoints."""
import datetime
from fastapi import APIRouter, Depends, File, UploadFile
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..shared.auth import require_auth
from ..shared.config.settings import Settings
from ..shared.exceptions import ValidationError
from ..shared.logging import get_logger

from ..services.ingestion_service import CreditPreview, IngestionService, UploadedFile
from .dependencies import get_app_settings, get_ingestion_service
from .schemas import ApiResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/tracks", tags=["tracks"], dependencies=[Depends(require_auth)])

FLAC_MIME_TYPES = {"audio/flac", "audio/x-flac"}


class IngestedTrackResponse(BaseModel):
    """One successfully ingested file."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    artists: List[str]
    album: Optional[str] = None


class CompensationFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    locator: str
    error: str


class FailedFileResponse(BaseModel):
    """One file that was rejected and rolled back."""
    model_config = ConfigDict(from_attributes=True)

    filename: str
    error: str
    compensation_errors: List[CompensationFailureResponse] = Field(default_factory=list)


class UploadResult(BaseModel):
    tracks: List[IngestedTrackResponse]
    total: int
    failed: List[FailedFileResponse]
    failed_total: int


class NormalizedTrackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    artists: List[str]
    album: Optional[str] = None
    track_number: Optional[int] = None
    release_date: Optional[datetime.date] = None
    duration: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    has_cover: bool = False


class ExtractedCreditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    display_order: int


class CreditPreviewResponse(BaseModel):
    """Parsed fields and credits for one file; nothing is stored."""
    filename: str
    track: Optional[NormalizedTrackResponse] = None
    credits: List[ExtractedCreditResponse] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_preview(cls, preview: CreditPreview) -> "CreditPreviewResponse":
        track = None
        if preview.track is not None:
            track = NormalizedTrackResponse.model_validate(preview.track)
            track.has_cover = preview.track.cover is not None
        return cls(
            filename=preview.filename,
            track=track,
            credits=[ExtractedCreditResponse.model_validate(c) for c in preview.credits],
            error=preview.error,
        )


def _is_flac(upload: UploadFile) -> bool:
    if (upload.content_type or "").lower() in FLAC_MIME_TYPES:
        return True
    return (upload.filename or "").lower().endswith(".flac")


async def read_flac_batch(files: Optional[List[UploadFile]], settings: Settings) -> List[UploadedFile]:
    """Validate the whole batch before any file is processed.

    Raises:
        ValidationError: No files, too many files, a non-FLAC file or an
            oversized file. The batch is rejected as a whole.
    """
    if not files:
        raise ValidationError("No files uploaded", code="NO_FILES")
    if len(files) > settings.max_upload_files:
        raise ValidationError(
            f"Too many files; at most {settings.max_upload_files} per upload",
            code="TOO_MANY_FILES",
            details={"max_files": settings.max_upload_files, "received": len(files)},
        )

    batch: List[UploadedFile] = []
    for upload in files:
        filename = upload.filename or "upload.flac"
        if not _is_flac(upload):
            raise ValidationError(
                f"Only FLAC files are allowed: {filename}",
                code="INVALID_FILE_TYPE",
                details={"filename": filename, "content_type": upload.content_type},
            )
        content = await upload.read()
        if len(content) > settings.max_file_size:
            raise ValidationError(
                f"File too large: {filename}",
                code="FILE_TOO_LARGE",
                details={"filename": filename, "max_size": settings.max_file_size},
            )
        batch.append(UploadedFile(
            filename=filename,
            content=content,
            mime_type="audio/flac",
        ))
    return batch


@router.post("/upload", response_model=ApiResponse[UploadResult])
async def upload_tracks(
    tracks: Optional[List[UploadFile]] = File(None, description="FLAC files"),
    settings: Settings = Depends(get_app_settings),
    service: IngestionService = Depends(get_ingestion_service),
) -> ApiResponse[UploadResult]:
    """Upload FLAC files; each becomes a catalogued track or a reported failure."""
    batch = await read_flac_batch(tracks, settings)
    logger.info("upload_batch_received", files=len(batch))

    result = await service.ingest_batch(batch)

    return ApiResponse(data=UploadResult(
        tracks=[IngestedTrackResponse.model_validate(t) for t in result.tracks],
        total=result.total,
        failed=[FailedFileResponse.model_validate(f) for f in result.failed],
        failed_total=result.failed_total,
    ))


@router.post("/preview-credits", response_model=ApiResponse[List[CreditPreviewResponse]])
async def preview_credits(
    tracks: Optional[List[UploadFile]] = File(None, description="FLAC files"),
    settings: Settings = Depends(get_app_settings),
    service: IngestionService = Depends(get_ingestion_service),
) -> ApiResponse[List[CreditPreviewResponse]]:
    """Show the fields and credits an upload would produce, without storing anything."""
    batch = await read_flac_batch(tracks, settings)
    previews = await service.preview(batch)

    logger.info("credits_previewed", files=len(batch))
    return ApiResponse(data=[CreditPreviewResponse.from_preview(p) for p in previews])
