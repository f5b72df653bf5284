"""Track service for browsing and editing catalogued tracks."""
import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import selectinload
from typing import Any, List, Optional, Tuple
from ..models import Album, Artist, Track, TrackArtist
from ..shared.logging import get_logger
from .catalog_service import CatalogService

logger = get_logger(__name__)

SORT_COLUMNS = {
    "created_at": Track.created_at,
    "title": Track.title,
    "duration": Track.duration,
    "sample_rate": Track.sample_rate,
    "release_date": Track.release_date,
}

UNSET: Any = object()


def _with_relations(query):
    return query.options(
        selectinload(Track.album),
        selectinload(Track.artist_links).selectinload(TrackArtist.artist),
    )


class TrackService:
    """Service for browsing and editing tracks."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_tracks(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        sample_rate_min: Optional[int] = None,
        bit_depth: Optional[int] = None,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        duration_min: Optional[int] = None,
        duration_max: Optional[int] = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Tuple[List[Track], int]:
        """Filter, sort and paginate tracks; returns the page and the total match count."""
        query = select(Track)

        if search:
            pattern = f"%{search}%"
            artist_match = (
                select(TrackArtist.track_id)
                .join(Artist, Artist.id == TrackArtist.artist_id)
                .where(Artist.name.ilike(pattern))
            )
            query = query.outerjoin(Album, Album.id == Track.album_id).where(
                or_(
                    Track.title.ilike(pattern),
                    Album.title.ilike(pattern),
                    Track.id.in_(artist_match),
                )
            )
        if sample_rate_min is not None:
            query = query.where(Track.sample_rate >= sample_rate_min)
        if bit_depth is not None:
            query = query.where(Track.bit_depth == bit_depth)
        if year_from is not None:
            query = query.where(Track.release_date >= datetime.date(year_from, 1, 1))
        if year_to is not None:
            query = query.where(Track.release_date <= datetime.date(year_to, 12, 31))
        if duration_min is not None:
            query = query.where(Track.duration >= duration_min)
        if duration_max is not None:
            query = query.where(Track.duration <= duration_max)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar_one()

        column = SORT_COLUMNS.get(sort_by, Track.created_at)
        if sort_dir == "asc":
            query = query.order_by(column.asc(), Track.id.asc())
        else:
            query = query.order_by(column.desc(), Track.id.desc())
        query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(_with_relations(query))
        tracks = list(result.scalars().all())

        logger.info("retrieved_tracks", count=len(tracks), total=total, page=page)
        return tracks, total

    async def get_track_by_id(self, track_id: int) -> Optional[Track]:
        """Get a track by ID with album and ordered artists."""
        query = _with_relations(select(Track).where(Track.id == track_id))
        query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        track = result.scalar_one_or_none()

        if track:
            logger.info("retrieved_track", track_id=track_id, track_title=track.title)
        else:
            logger.warning("track_not_found", track_id=track_id)

        return track

    async def update_track(
        self,
        track_id: int,
        title: Optional[str] = None,
        album: Optional[str] = UNSET,
        artists: Optional[List[str]] = None,
    ) -> Optional[Track]:
        """Update title, album and artists in one transaction.

        ``album`` left unset keeps the current album; ``None`` or an empty
        title detaches it. ``artists`` replaces the whole list.
        """
        track = await self.db.get(Track, track_id)
        if track is None:
            logger.warning("track_not_found", track_id=track_id)
            return None

        catalog = CatalogService(self.db)
        try:
            if title is not None:
                track.title = title
            if album is not UNSET:
                track.album_id = await catalog.resolve_album(album.strip() if album else None)
            if artists is not None:
                names = [name.strip() for name in artists if name and name.strip()]
                await catalog.replace_track_artists(track_id, names)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("track_updated", track_id=track_id)
        return await self.get_track_by_id(track_id)

    async def set_cover(self, track_id: int, cover_path: str) -> Optional[Track]:
        """Point the track at a new cover locator."""
        track = await self.db.get(Track, track_id)
        if track is None:
            return None

        track.cover_path = cover_path
        await self.db.commit()

        logger.info("track_cover_updated", track_id=track_id, cover_path=cover_path)
        return await self.get_track_by_id(track_id)

    async def delete_track(self, track_id: int) -> Optional[List[str]]:
        """Delete the track row; returns the locators it referenced, or None if absent."""
        track = await self.db.get(Track, track_id)
        if track is None:
            logger.warning("track_not_found", track_id=track_id)
            return None

        locators = [track.file_path]
        if track.cover_path:
            shared = await self.db.execute(
                select(Album.id).where(Album.cover_path == track.cover_path).limit(1)
            )
            # Album covers are seeded from the first track's cover
            if shared.scalar_one_or_none() is None:
                locators.append(track.cover_path)
        if track.lyrics_path:
            locators.append(track.lyrics_path)
        await self.db.execute(delete(Track).where(Track.id == track_id))
        await self.db.commit()

        logger.info("track_deleted", track_id=track_id)
        return locators
