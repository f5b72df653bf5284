"""Catalog upserts: albums, artists, tracks, artist links and credits.

Every method runs inside the caller's transaction; nothing here commits.
"""
import datetime
from typing import Any, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..metadata import ExtractedCredit, NormalizedTrack
from ..models import Album, Artist, Track, TrackArtist, TrackCredit
from ..shared.logging import get_logger

logger = get_logger(__name__)

_INSERT_BUILDERS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CatalogService:
    """Resolves names to catalog rows and writes tracks with their relations."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _insert_ignore(self, model, conflict_columns: Sequence[str], **values: Any) -> bool:
        """``INSERT ... ON CONFLICT DO NOTHING``; True when a row was written."""
        builder = _INSERT_BUILDERS.get(self.db.bind.dialect.name)
        if builder is None:
            raise RuntimeError(f"Unsupported database dialect: {self.db.bind.dialect.name}")
        stmt = builder(model).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1

    async def resolve_album(
        self,
        title: Optional[str],
        cover_path: Optional[str] = None,
        release_date: Optional[datetime.date] = None,
    ) -> Optional[int]:
        """Get or create the album by exact title.

        A new album takes the given cover and release date. An existing
        album only receives the cover when it has none yet.
        """
        if not title:
            return None

        created = await self._insert_ignore(
            Album,
            ["title"],
            title=title,
            cover_path=cover_path,
            release_date=release_date,
        )
        result = await self.db.execute(select(Album.id).where(Album.title == title))
        album_id = result.scalar_one()

        if created:
            logger.info("album_created", album_id=album_id, title=title)
        elif cover_path:
            backfill = await self.db.execute(
                update(Album)
                .where(Album.id == album_id, Album.cover_path.is_(None))
                .values(cover_path=cover_path)
            )
            if backfill.rowcount:
                logger.info("album_cover_backfilled", album_id=album_id)

        return album_id

    async def resolve_artist(self, name: str) -> int:
        """Get or create the artist by exact name."""
        created = await self._insert_ignore(Artist, ["name"], name=name)
        result = await self.db.execute(select(Artist.id).where(Artist.name == name))
        artist_id = result.scalar_one()

        if created:
            logger.info("artist_created", artist_id=artist_id, name=name)
        return artist_id

    async def resolve_artists(self, names: List[str]) -> List[int]:
        """Resolve names in order, dropping repeated ids."""
        artist_ids: List[int] = []
        for name in names:
            artist_id = await self.resolve_artist(name)
            if artist_id not in artist_ids:
                artist_ids.append(artist_id)
        return artist_ids

    async def link_track_artist(self, track_id: int, artist_id: int, position: int = 0) -> None:
        """Link a track to an artist; linking twice is a no-op."""
        await self._insert_ignore(
            TrackArtist,
            ["track_id", "artist_id"],
            track_id=track_id,
            artist_id=artist_id,
            position=position,
        )

    async def insert_track(
        self,
        normalized: NormalizedTrack,
        album_id: Optional[int],
        file_path: str,
        cover_path: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> Track:
        """Insert the track row and flush to obtain its id."""
        track = Track(
            title=normalized.title,
            album_id=album_id,
            file_path=file_path,
            cover_path=cover_path,
            duration=normalized.duration,
            track_number=normalized.track_number,
            sample_rate=normalized.sample_rate,
            bit_depth=normalized.bit_depth,
            file_size=file_size,
            release_date=normalized.release_date,
        )
        self.db.add(track)
        await self.db.flush()
        return track

    async def insert_credits(self, track_id: int, credits: List[ExtractedCredit]) -> int:
        """Insert credits in extraction order."""
        if not credits:
            return 0
        self.db.add_all([
            TrackCredit(
                track_id=track_id,
                credit_key=credit.key,
                credit_value=credit.value,
                display_order=credit.display_order,
            )
            for credit in credits
        ])
        await self.db.flush()
        return len(credits)

    async def upsert_track(
        self,
        normalized: NormalizedTrack,
        credits: List[ExtractedCredit],
        file_path: str,
        cover_path: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> Track:
        """Write one ingested file: album, artists, track, links, then credits."""
        album_id = await self.resolve_album(normalized.album, cover_path, normalized.release_date)
        artist_ids = await self.resolve_artists(normalized.artists)

        track = await self.insert_track(normalized, album_id, file_path, cover_path, file_size)
        for position, artist_id in enumerate(artist_ids):
            await self.link_track_artist(track.id, artist_id, position)

        await self.insert_credits(track.id, credits)

        logger.info(
            "track_catalogued",
            track_id=track.id,
            album_id=album_id,
            artists=len(artist_ids),
            credits=len(credits),
        )
        return track

    async def replace_track_artists(self, track_id: int, names: List[str]) -> List[int]:
        """Replace a track's artist list, resolving names like ingestion does."""
        await self.db.execute(delete(TrackArtist).where(TrackArtist.track_id == track_id))
        artist_ids = await self.resolve_artists(names)
        for position, artist_id in enumerate(artist_ids):
            await self.link_track_artist(track_id, artist_id, position)
        return artist_ids
