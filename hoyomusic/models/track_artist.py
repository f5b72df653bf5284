"""TrackArtist junction model."""
from sqlalchemy import Column, ForeignKey, Integer
from sqlalchemy.orm import relationship
from ..shared.models.base import Base, TimestampMixin


class TrackArtist(Base, TimestampMixin):
    """Junction model linking tracks to artists, keyed by the pair."""
    
    __tablename__ = "track_artists"
    
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="CASCADE"), primary_key=True)
    artist_id = Column(Integer, ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)  # Index in the track's artist list
    
    # Relationships
    track = relationship("Track", back_populates="artist_links")
    artist = relationship("Artist", back_populates="track_links")
    
    def __repr__(self) -> str:
        return f"<TrackArtist(track_id={self.track_id}, artist_id={self.artist_id}, position={self.position})>"
