"""Services for the music library."""
from .catalog_service import CatalogService
from .credit_service import CreditService
from .ingestion_service import (
    BatchResult,
    CompensationFailure,
    CreditPreview,
    FailedFile,
    IngestedTrack,
    IngestionService,
    UploadedFile,
)
from .lyrics_service import LyricsService
from .track_service import TrackService

__all__ = [
    "BatchResult",
    "CatalogService",
    "CompensationFailure",
    "CreditPreview",
    "CreditService",
    "FailedFile",
    "IngestedTrack",
    "IngestionService",
    "LyricsService",
    "TrackService",
    "UploadedFile",
]
