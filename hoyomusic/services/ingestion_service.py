"""Batch ingestion of uploaded audio files.

Each file is parsed, normalized, stored and catalogued on its own: a file
either lands completely (track, artist links and credits in one transaction)
or leaves nothing behind, with its uploaded blobs deleted again.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..metadata import (
    ExtractedCredit, NormalizedTrack, ParsedTags, extract_credits, normalize, parse_audio,
)
from ..metrics import (
    credits_extracted_total,
    ingestion_file_duration_seconds,
    ingestion_files_total,
    storage_compensation_failures_total,
)
from ..shared.logging import get_logger
from ..shared.storage import StorageClient
from .catalog_service import CatalogService

logger = get_logger(__name__)

TagParser = Callable[[bytes, Optional[str]], ParsedTags]
T = TypeVar("T")


@dataclass
class UploadedFile:
    filename: str
    content: bytes = field(repr=False)
    mime_type: Optional[str] = None


@dataclass
class IngestedTrack:
    id: int
    title: str
    artists: List[str]
    album: Optional[str] = None


@dataclass
class CompensationFailure:
    """A blob that could not be removed after its file failed."""
    locator: str
    error: str


@dataclass
class FailedFile:
    filename: str
    error: str
    compensation_errors: List[CompensationFailure] = field(default_factory=list)


@dataclass
class BatchResult:
    tracks: List[IngestedTrack] = field(default_factory=list)
    failed: List[FailedFile] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.tracks)

    @property
    def failed_total(self) -> int:
        return len(self.failed)


@dataclass
class CreditPreview:
    """What ingestion would write for one file, without writing it."""
    filename: str
    track: Optional[NormalizedTrack] = None
    credits: List[ExtractedCredit] = field(default_factory=list)
    error: Optional[str] = None


class IngestionService:
    """Runs uploaded files through parse, store and catalog steps."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        storage: StorageClient,
        tag_parser: TagParser = parse_audio,
        file_timeout: Optional[float] = None,
    ):
        """Initialize service.

        Args:
            session_factory: Factory for one session (transaction) per file
            storage: Blob storage for audio files and covers
            tag_parser: Callable turning raw bytes into ParsedTags
            file_timeout: Seconds allowed per file; None disables the limit
        """
        self.session_factory = session_factory
        self.storage = storage
        self.tag_parser = tag_parser
        self.file_timeout = file_timeout

    async def ingest_batch(self, files: List[UploadedFile]) -> BatchResult:
        """Ingest files sequentially, in input order.

        A failing file is compensated and reported; later files still run.
        """
        result = BatchResult()

        for upload in files:
            uploaded: List[str] = []
            started = time.perf_counter()
            try:
                track = await self._ingest_file(upload, uploaded)
            except Exception as e:
                error = self._describe(e)
                logger.warning(
                    "track_ingestion_failed",
                    filename=upload.filename,
                    error=error,
                    uploaded=len(uploaded),
                )
                compensation_errors = await self._compensate(uploaded)
                result.failed.append(FailedFile(
                    filename=upload.filename,
                    error=error,
                    compensation_errors=compensation_errors,
                ))
                ingestion_files_total.labels(outcome="failed").inc()
            else:
                result.tracks.append(track)
                ingestion_files_total.labels(outcome="succeeded").inc()
            finally:
                ingestion_file_duration_seconds.observe(time.perf_counter() - started)

        logger.info(
            "upload_batch_processed",
            files=len(files),
            succeeded=result.total,
            failed=result.failed_total,
        )
        return result

    async def _ingest_file(self, upload: UploadedFile, uploaded: List[str]) -> IngestedTrack:
        """Ingest one file, appending every stored locator to ``uploaded``.

        Parsing, uploads and catalog writes share one deadline. The commit
        itself is not subject to it, so a file never ends up committed while
        being reported (and cleaned up) as failed.
        """
        deadline = None
        if self.file_timeout is not None:
            deadline = asyncio.get_running_loop().time() + self.file_timeout

        parsed = await self._within(
            asyncio.to_thread(self.tag_parser, upload.content, upload.mime_type), deadline
        )
        normalized = normalize(parsed, upload.filename)
        credits = extract_credits(parsed)

        file_path = await self._store(
            uploaded, deadline, upload.content, upload.filename, "tracks", upload.mime_type
        )

        cover_path = None
        if normalized.cover is not None:
            cover_path = await self._store(
                uploaded,
                deadline,
                normalized.cover.data,
                normalized.cover.filename,
                "covers",
                normalized.cover.mime_type,
            )

        async with self.session_factory() as session:
            try:
                catalog = CatalogService(session)
                track = await self._within(
                    catalog.upsert_track(
                        normalized,
                        credits,
                        file_path=file_path,
                        cover_path=cover_path,
                        file_size=len(upload.content),
                    ),
                    deadline,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        credits_extracted_total.inc(len(credits))
        logger.info(
            "track_ingested",
            track_id=track.id,
            filename=upload.filename,
            title=normalized.title,
            credits=len(credits),
        )
        return IngestedTrack(
            id=track.id,
            title=normalized.title,
            artists=list(normalized.artists),
            album=normalized.album,
        )

    @staticmethod
    async def _within(awaitable: Awaitable[T], deadline: Optional[float]) -> T:
        """Await ``awaitable``, raising ``asyncio.TimeoutError`` past ``deadline``."""
        if deadline is None:
            return await awaitable
        remaining = max(deadline - asyncio.get_running_loop().time(), 0)
        return await asyncio.wait_for(awaitable, remaining)

    async def _store(
        self,
        uploaded: List[str],
        deadline: Optional[float],
        data: bytes,
        filename: str,
        category: str,
        mime_type: Optional[str],
    ) -> str:
        """Upload one blob and record its locator in ``uploaded``.

        A write that outlives the deadline is not abandoned: it is awaited
        to completion so its locator is recorded and can be deleted.
        """
        task = asyncio.ensure_future(self.storage.upload(data, filename, category, mime_type))
        try:
            await self._within(asyncio.shield(task), deadline)
        finally:
            if not task.done():
                await asyncio.wait([task])
            if not task.cancelled() and task.exception() is None:
                uploaded.append(task.result())
        return task.result()

    async def _compensate(self, locators: List[str]) -> List[CompensationFailure]:
        """Delete blobs of a failed file; failures are reported, never raised."""
        failures: List[CompensationFailure] = []
        for locator in locators:
            try:
                await self.storage.delete(locator)
            except Exception as e:
                storage_compensation_failures_total.inc()
                logger.error("storage_compensation_failed", locator=locator, error=str(e))
                failures.append(CompensationFailure(locator=locator, error=str(e)))
        return failures

    def _describe(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Processing timed out after {self.file_timeout} seconds"
        return str(error) or type(error).__name__

    async def preview(self, files: List[UploadedFile]) -> List[CreditPreview]:
        """Parse files and report normalized fields and credits; writes nothing."""
        previews: List[CreditPreview] = []
        for upload in files:
            try:
                parsed = await asyncio.to_thread(self.tag_parser, upload.content, upload.mime_type)
            except Exception as e:
                logger.warning("credit_preview_failed", filename=upload.filename, error=str(e))
                previews.append(CreditPreview(filename=upload.filename, error=self._describe(e)))
                continue
            previews.append(CreditPreview(
                filename=upload.filename,
                track=normalize(parsed, upload.filename),
                credits=extract_credits(parsed),
            ))
        return previews
