"""Models for the HoYoMusic catalog."""
from .album import Album
from .artist import Artist
from .credit import TrackCredit
from .track import Track
from .track_artist import TrackArtist

__all__ = ["Album", "Artist", "Track", "TrackArtist", "TrackCredit"]
