"""Audio tag parsing, normalization and credit extraction."""
from .credits import CREDIT_SKIP_KEYS, ExtractedCredit, extract_credits, to_strings
from .normalizer import CoverImage, NormalizedTrack, normalize
from .tag_parser import TagParseError, parse_audio
from .types import (
    AudioFormat, CommonTags, NativeTag, PairValue, ParsedTags, Picture,
    RatioValue, TextValue, Unrecognized,
)

__all__ = [
    "AudioFormat",
    "CREDIT_SKIP_KEYS",
    "CommonTags",
    "CoverImage",
    "ExtractedCredit",
    "NativeTag",
    "NormalizedTrack",
    "PairValue",
    "ParsedTags",
    "Picture",
    "RatioValue",
    "TagParseError",
    "TextValue",
    "Unrecognized",
    "extract_credits",
    "normalize",
    "parse_audio",
    "to_strings",
]
