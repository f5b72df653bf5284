"""Artist model."""
from sqlalchemy import Column, String, UniqueConstraint
from sqlalchemy.orm import relationship
from ..shared.models.base import Base, IdMixin, TimestampMixin


class Artist(Base, IdMixin, TimestampMixin):
    """Artist model; names are unique and resolved by exact match."""
    
    __tablename__ = "artists"
    
    name = Column(String(255), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('name', name='uq_artists_name'),
    )
    
    # Relationships
    track_links = relationship("TrackArtist", back_populates="artist", cascade="all, delete-orphan")
    
    def __repr__(self) -> str:
        return f"<Artist(id={self.id}, name='{self.name}')>"
