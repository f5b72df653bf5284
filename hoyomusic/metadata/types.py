"""Parsed-tag structures produced by the tag parser.

Tag values form a closed set: plain scalars (``str``, ``int``, ``float``,
``bool``), binary blobs (``bytes``), lists of values, and the structured
variants below. Consumers dispatch on the type instead of probing shapes.
"""
from dataclasses import dataclass, field, fields
from typing import Dict, Iterator, List, Optional, Tuple, Union


@dataclass(frozen=True)
class TextValue:
    """Comment or lyrics frame body."""
    text: str
    descriptor: str = ""


@dataclass(frozen=True)
class RatioValue:
    """Gain/ratio frame, in decibels."""
    db: float


@dataclass(frozen=True)
class PairValue:
    """``no/of`` pair such as track 3 of 12."""
    no: Optional[int] = None
    of: Optional[int] = None


@dataclass(frozen=True)
class Unrecognized:
    """A frame whose structure carries no displayable text."""
    kind: str = ""


@dataclass(frozen=True)
class Picture:
    """Embedded image."""
    mime_type: str
    data: bytes = field(repr=False)


TagValue = Union[
    str, int, float, bool, bytes,
    TextValue, RatioValue, PairValue, Unrecognized, Picture,
    List["TagValue"],
]


@dataclass(frozen=True)
class NativeTag:
    """One frame as stored in the container's own tag format."""
    id: str
    value: TagValue


@dataclass
class CommonTags:
    """Format-independent view over the native tags."""
    title: Optional[str] = None
    artist: Optional[str] = None
    artists: List[str] = field(default_factory=list)
    albumartist: Optional[str] = None
    album: Optional[str] = None
    track: PairValue = field(default_factory=PairValue)
    disk: PairValue = field(default_factory=PairValue)
    year: Optional[int] = None
    date: Optional[str] = None
    genre: List[str] = field(default_factory=list)
    composer: List[str] = field(default_factory=list)
    lyricist: List[str] = field(default_factory=list)
    conductor: List[str] = field(default_factory=list)
    comment: List[TagValue] = field(default_factory=list)
    label: List[str] = field(default_factory=list)
    isrc: List[str] = field(default_factory=list)
    copyright: Optional[str] = None
    bpm: Optional[float] = None
    picture: List[Picture] = field(default_factory=list)

    def items(self) -> Iterator[Tuple[str, TagValue]]:
        """Yield ``(field name, value)`` for populated fields in declaration order."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or value == []:
                continue
            yield f.name, value


@dataclass
class AudioFormat:
    """Stream properties reported by the container."""
    container: Optional[str] = None
    duration: Optional[float] = None
    sample_rate: Optional[int] = None
    bits_per_sample: Optional[int] = None


@dataclass
class ParsedTags:
    """Everything the tag parser extracted from one file."""
    common: CommonTags = field(default_factory=CommonTags)
    native: Dict[str, List[NativeTag]] = field(default_factory=dict)
    format: AudioFormat = field(default_factory=AudioFormat)
