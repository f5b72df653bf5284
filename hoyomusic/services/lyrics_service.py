"""Lyrics service: one lyrics file per track, kept in blob storage."""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from ..models import Track
from ..shared.logging import get_logger
from ..shared.storage import StorageClient

logger = get_logger(__name__)

LYRICS_MIME_TYPE = "text/plain"


class LyricsService:
    """Service for reading and replacing a track's lyrics."""

    def __init__(self, db: AsyncSession, storage: StorageClient):
        """Initialize service with database session and blob storage."""
        self.db = db
        self.storage = storage

    async def get_track(self, track_id: int) -> Optional[Track]:
        return await self.db.get(Track, track_id)

    async def read_lyrics(self, track: Track) -> Optional[str]:
        """Lyrics text of a track, or None when it has none."""
        if not track.lyrics_path:
            return None
        data = await self.storage.read(track.lyrics_path)
        return data.decode("utf-8")

    async def set_lyrics(self, track_id: int, text: str) -> Optional[Track]:
        """
        Store ``text`` as the track's lyrics, replacing any previous file.

        The new file is written before the row points at it; the old file is
        removed only after the commit.

        Returns:
            The updated track, or None when the track does not exist
        """
        track = await self.db.get(Track, track_id)
        if track is None:
            logger.warning("track_not_found", track_id=track_id)
            return None

        previous = track.lyrics_path
        locator = await self.storage.upload(
            text.encode("utf-8"), f"track_{track_id}.lrc", "lyrics", LYRICS_MIME_TYPE
        )
        try:
            track.lyrics_path = locator
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            await self._discard(locator)
            raise

        if previous:
            await self._discard(previous)

        logger.info("lyrics_stored", track_id=track_id, lyrics_path=locator, replaced=bool(previous))
        return track

    async def delete_lyrics(self, track_id: int) -> Optional[Track]:
        """Detach and delete the track's lyrics; None when the track does not exist."""
        track = await self.db.get(Track, track_id)
        if track is None:
            logger.warning("track_not_found", track_id=track_id)
            return None

        previous = track.lyrics_path
        track.lyrics_path = None
        await self.db.commit()

        if previous:
            await self._discard(previous)
        logger.info("lyrics_deleted", track_id=track_id, had_lyrics=bool(previous))
        return track

    async def _discard(self, locator: str) -> None:
        try:
            await self.storage.delete(locator)
        except Exception as e:
            logger.warning("storage_cleanup_failed", locator=locator, error=str(e))
