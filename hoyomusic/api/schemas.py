"""Response models shared by the API routers."""
import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..models import Track

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: ``{"success": true, "data": ...}``."""
    success: bool = True
    data: T


class TrackResponse(BaseModel):
    """Track response model."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str = Field(..., description="Track title")
    album_id: Optional[int] = Field(None, description="Album ID")
    album_title: Optional[str] = Field(None, description="Album title")
    album_cover_path: Optional[str] = Field(None, description="Album cover locator")
    artists: List[str] = Field(default_factory=list, description="Artist names in order")
    file_path: str = Field(..., description="Storage locator of the audio file")
    cover_path: Optional[str] = Field(None, description="Storage locator of the cover")
    lyrics_path: Optional[str] = Field(None, description="Storage locator of the lyrics file")
    duration: Optional[int] = Field(None, ge=0, description="Duration in seconds")
    track_number: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    file_size: Optional[int] = Field(None, ge=0, description="File size in bytes")
    release_date: Optional[datetime.date] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @classmethod
    def from_track(cls, track: Track) -> "TrackResponse":
        """Build from a track loaded with its album and artist links."""
        return cls(
            id=track.id,
            title=track.title,
            album_id=track.album_id,
            album_title=track.album.title if track.album else None,
            album_cover_path=track.album.cover_path if track.album else None,
            artists=track.artist_names,
            file_path=track.file_path,
            cover_path=track.cover_path,
            lyrics_path=track.lyrics_path,
            duration=track.duration,
            track_number=track.track_number,
            sample_rate=track.sample_rate,
            bit_depth=track.bit_depth,
            file_size=track.file_size,
            release_date=track.release_date,
            created_at=track.created_at,
            updated_at=track.updated_at,
        )


class CreditResponse(BaseModel):
    """Track credit response model."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    track_id: int
    credit_key: str
    credit_value: str
    display_order: int
