"""Audio streaming API endpoints."""
import re
import time
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import AsyncIterator, Optional, Tuple

from ..models import Track
from ..shared.db.pool import get_db
from ..shared.exceptions import NotFoundError
from ..shared.logging import get_logger
from ..shared.metrics import http_requests_total, http_request_duration_seconds
from ..shared.storage import StorageClient
from ..metrics import streaming_bytes_sent_total
from ..services.track_service import TrackService
from .dependencies import get_storage

logger = get_logger(__name__)

router = APIRouter(prefix="/tracks", tags=["streaming"])

AUDIO_MEDIA_TYPE = "audio/flac"
CHUNK_SIZE = 1024 * 1024

_RANGE = re.compile(r"^bytes=(\d*)-(\d*)$")


class RangeNotSatisfiable(Exception):
    pass


def parse_range(header: str, size: int) -> Optional[Tuple[int, int]]:
    """Parse a single ``bytes=`` range into inclusive offsets.

    Returns None for headers that are not a single byte range, which are
    ignored and answered with the full body.

    Raises:
        RangeNotSatisfiable: The range starts past the end of the file.
    """
    match = _RANGE.match(header.strip())
    if not match or match.groups() == ("", ""):
        return None

    first, last = match.groups()
    if first == "":
        # Suffix range: the last N bytes
        length = int(last)
        if length == 0 or size == 0:
            raise RangeNotSatisfiable()
        return max(size - length, 0), size - 1

    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or end < start:
        raise RangeNotSatisfiable()
    return start, min(end, size - 1)


async def _iter_object(storage: StorageClient, locator: str, size: int, mode: str) -> AsyncIterator[bytes]:
    offset = 0
    while offset < size:
        end = min(offset + CHUNK_SIZE, size) - 1
        chunk = await storage.read_range(locator, offset, end)
        if not chunk:
            break
        offset += len(chunk)
        streaming_bytes_sent_total.labels(mode=mode).inc(len(chunk))
        yield chunk


def _attachment_header(title: str) -> str:
    fallback = title.encode("ascii", "ignore").decode().replace('"', "").strip() or "track"
    return f"attachment; filename=\"{fallback}.flac\"; filename*=UTF-8''{quote(title)}.flac"


async def _load_track(db: AsyncSession, track_id: int, endpoint: str) -> Track:
    track = await TrackService(db).get_track_by_id(track_id)
    if not track:
        http_requests_total.labels(method="GET", endpoint=endpoint, status=404).inc()
        raise NotFoundError(
            message=f"Track {track_id} not found",
            code="TRACK_NOT_FOUND",
            details={"track_id": track_id},
        )
    return track


@router.get("/{track_id}/stream")
async def stream_track(
    track_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> Response:
    """
    Stream a track's audio.

    Remote storage answers with a redirect to the public URL. Local storage
    serves the bytes and honours HTTP range requests for seeking.
    """
    endpoint = "/tracks/stream"
    start_time = time.time()

    track = await _load_track(db, track_id, endpoint)

    if storage.is_remote():
        http_requests_total.labels(method="GET", endpoint=endpoint, status=302).inc()
        return RedirectResponse(track.file_path, status_code=status.HTTP_302_FOUND)

    size = await storage.size(track.file_path)
    range_header = request.headers.get("range")

    try:
        byte_range = parse_range(range_header, size) if range_header else None
    except RangeNotSatisfiable:
        http_requests_total.labels(method="GET", endpoint=endpoint, status=416).inc()
        return Response(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            headers={"Content-Range": f"bytes */{size}"},
        )

    if byte_range:
        start, end = byte_range
        file_data = await storage.read_range(track.file_path, start, end)
        content_length = len(file_data)
        headers = {
            "Content-Range": f"bytes {start}-{start + content_length - 1}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(content_length),
        }

        streaming_bytes_sent_total.labels(mode="stream").inc(content_length)
        http_requests_total.labels(method="GET", endpoint=endpoint, status=206).inc()
        http_request_duration_seconds.labels(method="GET", endpoint=endpoint).observe(time.time() - start_time)

        return Response(
            content=file_data,
            status_code=status.HTTP_206_PARTIAL_CONTENT,
            headers=headers,
            media_type=AUDIO_MEDIA_TYPE,
        )

    http_requests_total.labels(method="GET", endpoint=endpoint, status=200).inc()
    http_request_duration_seconds.labels(method="GET", endpoint=endpoint).observe(time.time() - start_time)

    return StreamingResponse(
        _iter_object(storage, track.file_path, size, "stream"),
        media_type=AUDIO_MEDIA_TYPE,
        headers={"Content-Length": str(size), "Accept-Ranges": "bytes"},
    )


@router.get("/{track_id}/download")
async def download_track(
    track_id: int,
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
) -> Response:
    """Download the whole audio file as an attachment."""
    endpoint = "/tracks/download"
    start_time = time.time()

    track = await _load_track(db, track_id, endpoint)

    if storage.is_remote():
        http_requests_total.labels(method="GET", endpoint=endpoint, status=302).inc()
        return RedirectResponse(track.file_path, status_code=status.HTTP_302_FOUND)

    size = await storage.size(track.file_path)
    logger.info("track_download_started", track_id=track_id, size=size)

    http_requests_total.labels(method="GET", endpoint=endpoint, status=200).inc()
    http_request_duration_seconds.labels(method="GET", endpoint=endpoint).observe(time.time() - start_time)

    return StreamingResponse(
        _iter_object(storage, track.file_path, size, "download"),
        media_type=AUDIO_MEDIA_TYPE,
        headers={
            "Content-Length": str(size),
            "Content-Disposition": _attachment_header(track.title),
        },
    )
