"""Track model."""
from typing import List

from sqlalchemy import BigInteger, Column, Date, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from ..shared.models.base import Base, IdMixin, TimestampMixin


class Track(Base, IdMixin, TimestampMixin):
    """Track model; one row per successfully ingested audio file."""
    
    __tablename__ = "tracks"
    
    title = Column(String(255), nullable=False, index=True)
    album_id = Column(Integer, ForeignKey("albums.id", ondelete="SET NULL"), nullable=True, index=True)
    file_path = Column(String(1024), nullable=False)  # Storage locator of the audio file
    cover_path = Column(String(1024), nullable=True)  # Storage locator of the cover image
    lyrics_path = Column(String(1024), nullable=True)  # Storage locator of the lyrics file
    duration = Column(Integer, nullable=True)  # Seconds
    track_number = Column(Integer, nullable=True)
    sample_rate = Column(Integer, nullable=True)
    bit_depth = Column(Integer, nullable=True)
    file_size = Column(BigInteger, nullable=True)  # Bytes
    release_date = Column(Date, nullable=True)
    
    # Relationships
    album = relationship("Album", back_populates="tracks")
    artist_links = relationship(
        "TrackArtist",
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TrackArtist.position",
    )
    credits = relationship(
        "TrackCredit",
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[TrackCredit.display_order, TrackCredit.id]",
    )
    
    @property
    def artist_names(self) -> List[str]:
        """Artist names in link order; requires ``artist_links.artist`` loaded."""
        return [link.artist.name for link in self.artist_links]
    
    def __repr__(self) -> str:
        return f"<Track(id={self.id}, title='{self.title}', album_id={self.album_id})>"
