"""Free-form credit extraction from parsed tags."""
from dataclasses import dataclass
from typing import Iterable, List, Set, Tuple

from .types import ParsedTags, RatioValue, TagValue, TextValue

# Identifiers already stored as structured columns, or technical noise.
CREDIT_SKIP_KEYS = frozenset({
    "title", "titlesort", "titlesortorder",
    "artist", "artists", "artistsort", "artistsortorder",
    "albumartist", "albumartistsort", "albumartistsortorder",
    "album", "albumsort", "albumsortorder",
    "track", "tracknumber", "trackno", "trck",
    "disk", "discnumber", "tpos",
    "date", "year", "originaldate", "originalyear", "tdrc", "tyer", "tdor",
    "picture", "apic", "covr", "metadata_block_picture",
    "replaygain_track_gain", "replaygain_track_peak",
    "replaygain_album_gain", "replaygain_album_peak",
    "replaygain_reference_loudness",
    "replaygain_track_gain_ratio", "replaygain_track_peak_ratio",
    "replaygain_album_gain_ratio", "replaygain_album_peak_ratio",
    "replaygain_track_minmax", "replaygain_album_minmax", "replaygain_undo",
    "waveformatextensible_channel_mask",
    "encoder", "encoding", "encodingsettings", "encodedby", "encodersettings",
    "musicbrainz_trackid", "musicbrainz_albumid", "musicbrainz_artistid",
    "musicbrainz_albumartistid", "musicbrainz_releasegroupid",
    "musicbrainz_workid", "musicbrainz_trmid", "musicbrainz_discid",
    "musicbrainz_recordingid",
    "musicip_puid", "musicip_fingerprint",
    "acoustid_id", "acoustid_fingerprint",
    "averagelevel", "peaklevel", "gapless", "compilation",
    "stik", "hdvideo", "playcounter",
    "discogs_artist_id", "discogs_release_id", "discogs_label_id",
    "discogs_master_release_id", "discogs_votes", "discogs_rating",
})


@dataclass(frozen=True)
class ExtractedCredit:
    key: str
    value: str
    display_order: int


def to_strings(value: TagValue) -> List[str]:
    """Flatten a tag value into display strings.

    Binary data, number pairs and unrecognized frames carry nothing worth
    displaying and yield an empty list.
    """
    if isinstance(value, str):
        return [value]
    if isinstance(value, bool):
        return ["true" if value else "false"]
    if isinstance(value, (int, float)):
        return [str(value)]
    if isinstance(value, (bytes, bytearray)):
        return []
    if isinstance(value, (list, tuple)):
        strings: List[str] = []
        for item in value:
            strings.extend(to_strings(item))
        return strings
    if isinstance(value, TextValue):
        return [value.text] if value.text else []
    if isinstance(value, RatioValue):
        return [f"{value.db:.2f} dB"]
    return []


def _tag_pairs(parsed: ParsedTags) -> Iterable[Tuple[str, TagValue]]:
    for frames in parsed.native.values():
        for frame in frames:
            yield frame.id, frame.value
    yield from parsed.common.items()


def extract_credits(parsed: ParsedTags) -> List[ExtractedCredit]:
    """Collect credits from every native namespace, then the common view.

    Keys keep their original case; a ``(key, value)`` pair is emitted once,
    comparing keys case-insensitively. Order is first-seen.
    """
    credits: List[ExtractedCredit] = []
    seen: Set[Tuple[str, str]] = set()

    for key, value in _tag_pairs(parsed):
        if key.lower() in CREDIT_SKIP_KEYS:
            continue
        for text in to_strings(value):
            text = text.strip()
            if not text:
                continue
            marker = (key.lower(), text)
            if marker in seen:
                continue
            seen.add(marker)
            credits.append(ExtractedCredit(key=key, value=text, display_order=len(credits)))

    return credits
