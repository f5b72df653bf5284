"""Album model."""
from sqlalchemy import Column, Date, String, UniqueConstraint
from sqlalchemy.orm import relationship
from ..shared.models.base import Base, IdMixin, TimestampMixin


class Album(Base, IdMixin, TimestampMixin):
    """Album model, created lazily by the first track that names it."""
    
    __tablename__ = "albums"
    
    title = Column(String(255), nullable=False)
    cover_path = Column(String(1024), nullable=True)  # Storage locator
    release_date = Column(Date, nullable=True)
    
    __table_args__ = (
        UniqueConstraint('title', name='uq_albums_title'),
    )
    
    # Relationships
    tracks = relationship("Track", back_populates="album", passive_deletes=True)
    
    def __repr__(self) -> str:
        return f"<Album(id={self.id}, title='{self.title}')>"
