"""Canonical track record derived from parsed tags."""
import datetime
import math
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import List, Optional

from .types import ParsedTags

UNKNOWN_ARTIST = "Unknown Artist"

COVER_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/bmp": "bmp",
}


@dataclass
class CoverImage:
    """Embedded cover selected for upload."""
    data: bytes = field(repr=False)
    mime_type: str
    extension: str
    filename: str


@dataclass
class NormalizedTrack:
    title: str
    artists: List[str]
    album: Optional[str] = None
    track_number: Optional[int] = None
    release_date: Optional[datetime.date] = None
    duration: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    cover: Optional[CoverImage] = None


def cover_extension(mime_type: Optional[str]) -> str:
    """Map an image MIME type to a file extension, defaulting to ``jpg``."""
    mime = (mime_type or "").strip().lower()
    if mime in COVER_EXTENSIONS:
        return COVER_EXTENSIONS[mime]
    _, _, subtype = mime.partition("/")
    return subtype or "jpg"


def strip_extension(filename: str) -> str:
    """``"01 Track.flac"`` -> ``"01 Track"``."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    stem, dot, _ = name.rpartition(".")
    return stem if dot and stem else name


def normalize(parsed: ParsedTags, filename: str) -> NormalizedTrack:
    """Build the catalog-facing record for one uploaded file.

    Never fails: every missing field has a fallback or stays unset.
    """
    common = parsed.common
    fmt = parsed.format

    title = (common.title or "").strip() or strip_extension(filename)

    artists: List[str] = []
    for name in common.artists:
        name = (name or "").strip()
        if name and name not in artists:
            artists.append(name)
    if not artists and common.artist and common.artist.strip():
        artists = [common.artist.strip()]
    if not artists:
        artists = [UNKNOWN_ARTIST]

    album = (common.album or "").strip() or None

    # Year-only tags become January 1 of that year.
    release_date = datetime.date(common.year, 1, 1) if common.year else None

    cover = None
    if common.picture:
        picture = common.picture[0]
        extension = cover_extension(picture.mime_type)
        cover = CoverImage(
            data=picture.data,
            mime_type=picture.mime_type or "image/jpeg",
            extension=extension,
            filename=f"{strip_extension(filename)}_cover.{extension}",
        )

    return NormalizedTrack(
        title=title,
        artists=artists,
        album=album,
        track_number=common.track.no,
        release_date=release_date,
        duration=math.floor(fmt.duration) if fmt.duration is not None else None,
        sample_rate=fmt.sample_rate,
        bit_depth=fmt.bits_per_sample,
        cover=cover,
    )
