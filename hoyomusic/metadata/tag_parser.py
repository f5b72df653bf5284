"""mutagen adapter producing :class:`ParsedTags` from raw audio bytes."""
import base64
import binascii
import io
import re
import struct
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import mutagen
from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.flac import Picture as FLACPicture
from mutagen.id3 import (
    APIC, COMM, ID3, POPM, RVA2, TXXX, USLT,
    NumericPartTextFrame, TextFrame, TimeStampTextFrame, UrlFrame,
)
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4, MP4Cover, MP4FreeForm, MP4Tags
from mutagen.oggflac import OggFLAC
from mutagen.oggopus import OggOpus
from mutagen.oggvorbis import OggVorbis

from ..shared.logging import get_logger
from .types import (
    AudioFormat, CommonTags, NativeTag, PairValue, ParsedTags, Picture,
    RatioValue, TagValue, TextValue, Unrecognized,
)

logger = get_logger(__name__)


class TagParseError(Exception):
    """Raised when the bytes are not a readable audio container."""


_CONTAINERS = {
    "audio/flac": FLAC,
    "audio/x-flac": FLAC,
    "audio/mpeg": MP3,
    "audio/mp3": MP3,
    "audio/mp4": MP4,
    "audio/x-m4a": MP4,
    "audio/vorbis": OggVorbis,
    "audio/opus": OggOpus,
}

_VORBIS_CONTAINERS = (FLAC, OggVorbis, OggOpus, OggFLAC)

# Native id (lowercased) -> common field, per tag family.
_VORBIS_ALIASES = {
    "title": "title",
    "artist": "artist",
    "artists": "artists",
    "albumartist": "albumartist",
    "album artist": "albumartist",
    "album": "album",
    "tracknumber": "track",
    "tracktotal": "tracktotal",
    "totaltracks": "tracktotal",
    "discnumber": "disk",
    "disctotal": "disktotal",
    "totaldiscs": "disktotal",
    "date": "date",
    "year": "year",
    "genre": "genre",
    "composer": "composer",
    "lyricist": "lyricist",
    "conductor": "conductor",
    "comment": "comment",
    "description": "comment",
    "label": "label",
    "organization": "label",
    "publisher": "label",
    "isrc": "isrc",
    "copyright": "copyright",
    "bpm": "bpm",
}

_ID3_ALIASES = {
    "tit2": "title",
    "tpe1": "artist",
    "artists": "artists",
    "tpe2": "albumartist",
    "talb": "album",
    "trck": "track",
    "tpos": "disk",
    "tdrc": "date",
    "tyer": "year",
    "tcon": "genre",
    "tcom": "composer",
    "text": "lyricist",
    "tpe3": "conductor",
    "comm": "comment",
    "tpub": "label",
    "tsrc": "isrc",
    "tcop": "copyright",
    "tbpm": "bpm",
}

_MP4_ALIASES = {
    "©nam": "title",
    "©art": "artist",
    "artists": "artists",
    "aart": "albumartist",
    "©alb": "album",
    "trkn": "track",
    "disk": "disk",
    "©day": "date",
    "©gen": "genre",
    "©wrt": "composer",
    "©cmt": "comment",
    "cprt": "copyright",
    "tmpo": "bpm",
    "label": "label",
    "isrc": "isrc",
}

_MP4_COVER_MIME = {
    MP4Cover.FORMAT_JPEG: "image/jpeg",
    MP4Cover.FORMAT_PNG: "image/png",
}

_YEAR = re.compile(r"(\d{4})")

NativeFrames = Tuple[str, List[NativeTag], List[Picture]]


def parse_audio(data: bytes, mime_type: Optional[str] = None) -> ParsedTags:
    """Parse embedded tags and stream properties.

    Args:
        data: Complete file contents.
        mime_type: Declared MIME type, used to pick the container parser.
            Unknown or missing types fall back to content sniffing.

    Returns:
        ParsedTags with the native frames grouped by namespace, the common
        view and the format block.

    Raises:
        TagParseError: The bytes are not a supported audio container.
    """
    audio = _open(data, mime_type)

    if isinstance(audio, _VORBIS_CONTAINERS):
        namespace, frames, pictures = _read_vorbis(audio)
        aliases = _VORBIS_ALIASES
    elif isinstance(audio.tags, ID3):
        namespace, frames, pictures = _read_id3(audio.tags)
        aliases = _ID3_ALIASES
    elif isinstance(audio.tags, MP4Tags):
        namespace, frames, pictures = _read_mp4(audio.tags)
        aliases = _MP4_ALIASES
    else:
        namespace, frames, pictures = _read_generic(audio)
        aliases = {}

    native: Dict[str, List[NativeTag]] = {}
    if frames:
        native[namespace] = frames

    parsed = ParsedTags(
        common=_build_common(frames, aliases, pictures),
        native=native,
        format=_read_format(audio),
    )
    logger.debug(
        "audio_tags_parsed",
        container=parsed.format.container,
        namespace=namespace,
        frames=len(frames),
    )
    return parsed


def _open(data: bytes, mime_type: Optional[str]):
    kind = _CONTAINERS.get((mime_type or "").lower())
    try:
        if kind is not None:
            audio = kind(io.BytesIO(data))
        else:
            audio = mutagen.File(io.BytesIO(data))
    except (MutagenError, ValueError, EOFError, OSError, struct.error) as e:
        raise TagParseError(f"Unable to parse audio metadata: {e}") from e
    if audio is None:
        raise TagParseError("Unrecognized audio container")
    return audio


def _read_vorbis(audio) -> NativeFrames:
    frames: List[NativeTag] = []
    pictures: List[Picture] = []

    for key, value in audio.tags or []:
        frames.append(NativeTag(id=key, value=value))
        if key.lower() == "metadata_block_picture":
            picture = _decode_block_picture(value)
            if picture is not None:
                pictures.append(picture)

    for picture in getattr(audio, "pictures", []):
        frames.append(NativeTag(id="METADATA_BLOCK_PICTURE", value=picture.data))
        pictures.append(Picture(mime_type=picture.mime, data=picture.data))

    return "vorbis", frames, pictures


def _decode_block_picture(value: str) -> Optional[Picture]:
    try:
        block = FLACPicture(base64.b64decode(value))
    except (binascii.Error, MutagenError, struct.error) as e:
        logger.debug("picture_block_undecodable", error=str(e))
        return None
    return Picture(mime_type=block.mime, data=block.data)


def _read_id3(tags: ID3) -> NativeFrames:
    frames: List[NativeTag] = []
    pictures: List[Picture] = []

    for frame in tags.values():
        frame_id = frame.desc if isinstance(frame, TXXX) and frame.desc else frame.FrameID
        frames.append(NativeTag(id=frame_id, value=_id3_value(frame)))
        if isinstance(frame, APIC):
            pictures.append(Picture(mime_type=frame.mime, data=frame.data))

    return f"ID3v2.{tags.version[1]}", frames, pictures


def _id3_value(frame) -> TagValue:
    """Map one ID3 frame onto the tag value variants."""
    if isinstance(frame, NumericPartTextFrame):
        return [_parse_pair(text) for text in frame.text]
    if isinstance(frame, TimeStampTextFrame):
        return [stamp.text for stamp in frame.text]
    if isinstance(frame, COMM):
        return [TextValue(text=text, descriptor=frame.desc) for text in frame.text]
    if isinstance(frame, USLT):
        return TextValue(text=frame.text, descriptor=frame.desc)
    if isinstance(frame, RVA2):
        return RatioValue(db=frame.gain)
    if isinstance(frame, TextFrame):
        return [str(text) for text in frame.text]
    if isinstance(frame, UrlFrame):
        return frame.url
    if isinstance(frame, POPM):
        return Unrecognized(kind="POPM")
    data = getattr(frame, "data", None)
    if isinstance(data, bytes):
        return data
    return Unrecognized(kind=frame.FrameID)


def _read_mp4(tags: MP4Tags) -> NativeFrames:
    frames: List[NativeTag] = []
    pictures: List[Picture] = []

    for key, values in tags.items():
        # Freeform atoms are keyed "----:<mean>:<name>"
        atom_id = key.rsplit(":", 1)[-1] if key.startswith("----:") else key
        converted: List[TagValue] = []
        for value in values:
            if isinstance(value, MP4Cover):
                mime = _MP4_COVER_MIME.get(value.imageformat, "image/jpeg")
                pictures.append(Picture(mime_type=mime, data=bytes(value)))
                converted.append(bytes(value))
            elif isinstance(value, MP4FreeForm):
                converted.append(bytes(value).decode("utf-8", "replace"))
            elif isinstance(value, tuple):
                converted.append(PairValue(*(v or None for v in value[:2])))
            else:
                converted.append(value)
        frames.append(NativeTag(id=atom_id, value=converted))

    return "iTunes", frames, pictures


def _read_generic(audio) -> NativeFrames:
    frames: List[NativeTag] = []
    if audio.tags is not None and hasattr(audio.tags, "items"):
        for key, value in audio.tags.items():
            frames.append(NativeTag(id=str(key), value=str(value)))
    namespace = type(audio.tags).__name__ if audio.tags is not None else "unknown"
    return namespace, frames, []


def _parse_pair(text: str) -> PairValue:
    """``"3/12"`` -> ``PairValue(3, 12)``; unparseable parts become None."""
    no, _, of = str(text).partition("/")
    return PairValue(no=_to_int(no), of=_to_int(of))


def _to_int(text) -> Optional[int]:
    try:
        return int(str(text).strip())
    except ValueError:
        return None


def _flatten(values: List[TagValue]) -> List[TagValue]:
    flat: List[TagValue] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            flat.extend(_flatten(list(value)))
        else:
            flat.append(value)
    return flat


def _strings(values: List[TagValue]) -> List[str]:
    seen = []
    for value in _flatten(values):
        if isinstance(value, bytes) or not isinstance(value, (str, int, float)):
            continue
        text = str(value).strip()
        if text and text not in seen:
            seen.append(text)
    return seen


def _first(values: List[TagValue]) -> Optional[str]:
    strings = _strings(values)
    return strings[0] if strings else None


def _pair(values: List[TagValue], totals: List[TagValue]) -> PairValue:
    pair = PairValue()
    for value in _flatten(values):
        if isinstance(value, PairValue):
            pair = value
            break
        if isinstance(value, (str, int)):
            pair = _parse_pair(value)
            break
    if pair.of is None:
        total = _first(totals)
        if total is not None:
            pair = PairValue(no=pair.no, of=_to_int(total))
    return pair


def _build_common(
    frames: List[NativeTag],
    aliases: Dict[str, str],
    pictures: List[Picture],
) -> CommonTags:
    collected: Dict[str, List[TagValue]] = defaultdict(list)
    for frame in frames:
        name = aliases.get(frame.id.lower())
        if name:
            collected[name].append(frame.value)

    common = CommonTags()
    common.title = _first(collected["title"])
    common.artist = _first(collected["artist"])
    common.artists = _strings(collected["artists"]) or _strings(collected["artist"])
    common.albumartist = _first(collected["albumartist"])
    common.album = _first(collected["album"])
    common.track = _pair(collected["track"], collected["tracktotal"])
    common.disk = _pair(collected["disk"], collected["disktotal"])

    common.date = _first(collected["date"])
    match = _YEAR.search(common.date or _first(collected["year"]) or "")
    common.year = int(match.group(1)) if match else None

    common.genre = _strings(collected["genre"])
    common.composer = _strings(collected["composer"])
    common.lyricist = _strings(collected["lyricist"])
    common.conductor = _strings(collected["conductor"])
    common.label = _strings(collected["label"])
    common.isrc = _strings(collected["isrc"])
    common.copyright = _first(collected["copyright"])
    common.comment = [
        value for value in _flatten(collected["comment"])
        if (isinstance(value, TextValue) and value.text.strip())
        or (isinstance(value, str) and value.strip())
    ]

    bpm = _first(collected["bpm"])
    if bpm is not None:
        try:
            common.bpm = float(bpm)
        except ValueError:
            common.bpm = None

    common.picture = list(pictures)
    return common


def _read_format(audio) -> AudioFormat:
    info = audio.info
    return AudioFormat(
        container=type(audio).__name__,
        duration=getattr(info, "length", None) or None,
        sample_rate=getattr(info, "sample_rate", None) or None,
        bits_per_sample=getattr(info, "bits_per_sample", None) or None,
    )
