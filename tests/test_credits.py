"""Tests for credit extraction."""
import pytest

from hoyomusic.metadata import (
    CREDIT_SKIP_KEYS,
    CommonTags,
    NativeTag,
    PairValue,
    ParsedTags,
    Picture,
    RatioValue,
    TextValue,
    Unrecognized,
    extract_credits,
    to_strings,
)


def _native(**namespaces) -> ParsedTags:
    return ParsedTags(native={
        namespace: [NativeTag(id=key, value=value) for key, value in frames]
        for namespace, frames in namespaces.items()
    })


class TestToStrings:
    @pytest.mark.parametrize("value, expected", [
        ("Composer", ["Composer"]),
        (120, ["120"]),
        (1.5, ["1.5"]),
        (True, ["true"]),
        (False, ["false"]),
        (b"\x00\x01", []),
        (["a", ["b", 3]], ["a", "b", "3"]),
        (TextValue("liner notes"), ["liner notes"]),
        (TextValue(""), []),
        (RatioValue(-6.5), ["-6.50 dB"]),
        (RatioValue(1.234), ["1.23 dB"]),
        (PairValue(3, 12), []),
        (Unrecognized("POPM"), []),
        (Picture("image/png", b"png"), []),
        (None, []),
    ])
    def test_conversion(self, value, expected):
        assert to_strings(value) == expected


class TestExtractCredits:
    def test_order_is_first_seen_across_namespaces(self):
        parsed = _native(**{
            "vorbis": [("Arranger", "Kito"), ("Lyricist", "Mio")],
            "ID3v2.4": [("TIPL", ["Mixer", "Sam"])],
        })
        credits = extract_credits(parsed)

        assert [(c.key, c.value, c.display_order) for c in credits] == [
            ("Arranger", "Kito", 0),
            ("Lyricist", "Mio", 1),
            ("TIPL", "Mixer", 2),
            ("TIPL", "Sam", 3),
        ]

    def test_dedup_is_case_insensitive_on_key(self):
        parsed = _native(**{
            "vorbis": [("COMPOSER", "Yu-Peng Chen")],
            "ID3v2.3": [("composer", "Yu-Peng Chen"), ("Composer", " Yu-Peng Chen ")],
        })
        credits = extract_credits(parsed)

        assert len(credits) == 1
        assert credits[0].key == "COMPOSER"

    def test_same_value_under_different_keys_is_kept(self):
        parsed = _native(vorbis=[("Composer", "Jane"), ("Arranger", "Jane")])

        assert [c.key for c in extract_credits(parsed)] == ["Composer", "Arranger"]

    def test_common_view_after_native(self):
        parsed = _native(vorbis=[("LABEL", "miHoYo")])
        parsed.common = CommonTags(
            title="skipped",
            label=["miHoYo"],
            genre=["Soundtrack"],
            comment=[TextValue("Recorded live")],
            bpm=92.0,
        )
        credits = extract_credits(parsed)

        assert [(c.key, c.value) for c in credits] == [
            ("LABEL", "miHoYo"),
            ("genre", "Soundtrack"),
            ("comment", "Recorded live"),
            ("bpm", "92.0"),
        ]

    @pytest.mark.parametrize("namespace", ["vorbis", "ID3v2.4", "iTunes"])
    def test_skip_list_enforced_in_every_namespace(self, namespace):
        frames = [(key.upper(), "value") for key in sorted(CREDIT_SKIP_KEYS)]
        frames += [(key, "value") for key in sorted(CREDIT_SKIP_KEYS)]
        parsed = _native(**{namespace: frames})
        parsed.common = CommonTags(
            title="t", artist="a", artists=["a"], album="b",
            track=PairValue(1, 2), year=2020, date="2020",
            picture=[Picture("image/jpeg", b"x")],
        )

        assert extract_credits(parsed) == []

    def test_binary_and_blank_values_skipped(self):
        parsed = _native(vorbis=[
            ("PRIV", b"\x00\x01"),
            ("Blank", "   "),
            ("Gain", RatioValue(-3.0)),
            ("Rating", Unrecognized("POPM")),
        ])

        assert [(c.key, c.value) for c in extract_credits(parsed)] == [("Gain", "-3.00 dB")]

    def test_values_are_trimmed(self):
        parsed = _native(vorbis=[("Mastering", "  Studio X  ")])

        assert extract_credits(parsed)[0].value == "Studio X"

    def test_empty_input(self):
        assert extract_credits(ParsedTags()) == []
