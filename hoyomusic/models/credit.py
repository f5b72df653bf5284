"""TrackCredit model."""
from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from ..shared.models.base import Base, IdMixin, TimestampMixin


class TrackCredit(Base, IdMixin, TimestampMixin):
    """Free-form key/value attribution owned by a track."""
    
    __tablename__ = "track_credits"
    
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False, index=True)
    credit_key = Column(String(255), nullable=False)
    credit_value = Column(Text, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    
    # Relationships
    track = relationship("Track", back_populates="credits")
    
    def __repr__(self) -> str:
        return f"<TrackCredit(id={self.id}, track_id={self.track_id}, key='{self.credit_key}')>"
