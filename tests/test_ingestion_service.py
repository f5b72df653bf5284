"""Tests for batch ingestion: atomicity, compensation and batch independence."""
import asyncio
import time
from pathlib import Path
from unittest.mock import patch

from hoyomusic.metadata import (
    AudioFormat, CommonTags, NativeTag, PairValue, ParsedTags, Picture, TagParseError,
)
from hoyomusic.models import Album, Artist, Track, TrackArtist, TrackCredit
from hoyomusic.services import CatalogService, IngestionService, UploadedFile
from hoyomusic.shared.exceptions import StorageError
from hoyomusic.shared.storage import LocalStorageClient


def _tags(title=None, artists=(), album=None, credits=(), picture=False) -> ParsedTags:
    return ParsedTags(
        common=CommonTags(
            title=title,
            artists=list(artists),
            album=album,
            track=PairValue(1, 10),
            picture=[Picture("image/png", b"png-bytes")] if picture else [],
        ),
        native={"vorbis": [NativeTag(id=key, value=value) for key, value in credits]},
        format=AudioFormat(duration=200.4, sample_rate=44100, bits_per_sample=16),
    )


class FakeTagParser:
    """Maps file contents to canned tags; unknown contents are corrupt."""

    def __init__(self, **by_content):
        self.by_content = {key.encode(): value for key, value in by_content.items()}

    def __call__(self, data, mime_type=None):
        if data not in self.by_content:
            raise TagParseError("Unable to parse audio metadata: corrupt stream")
        return self.by_content[data]


def _stored_files(storage, category):
    return sorted(p.name for p in Path(storage.root, category).iterdir())


def _service(database, storage, parser, timeout=None):
    return IngestionService(database.session_factory, storage, tag_parser=parser, file_timeout=timeout)


class TestSuccessfulIngestion:
    async def test_single_file(self, database, storage, count_rows):
        parser = FakeTagParser(one=_tags(
            title="Moon Halo",
            artists=["HOYO-MiX", "Chevy"],
            album="OST",
            credits=[("Composer", "Yu-Peng Chen")],
            picture=True,
        ))
        result = await _service(database, storage, parser).ingest_batch([
            UploadedFile("moon.flac", b"one", "audio/flac"),
        ])

        assert result.total == 1
        assert result.failed == []
        track = result.tracks[0]
        assert (track.title, track.artists, track.album) == ("Moon Halo", ["HOYO-MiX", "Chevy"], "OST")

        assert len(_stored_files(storage, "tracks")) == 1
        assert len(_stored_files(storage, "covers")) == 1
        assert await count_rows(Track) == 1
        assert await count_rows(TrackArtist) == 2
        assert await count_rows(TrackCredit) == 1

        async with database.session() as session:
            stored = await session.get(Track, track.id)
        assert stored.duration == 200
        assert stored.file_size == 3
        assert stored.cover_path.endswith(".png")

    async def test_fallback_title_and_unknown_artist(self, database, storage):
        parser = FakeTagParser(bare=_tags())
        result = await _service(database, storage, parser).ingest_batch([
            UploadedFile("01 Track.flac", b"bare", "audio/flac"),
        ])

        assert result.tracks[0].title == "01 Track"
        assert result.tracks[0].artists == ["Unknown Artist"]
        assert result.tracks[0].album is None

    async def test_repeated_artist_reported_once(self, database, storage, count_rows):
        parser = FakeTagParser(dup=_tags(title="Echo", artists=["A", "A", "B"]))
        result = await _service(database, storage, parser).ingest_batch([
            UploadedFile("echo.flac", b"dup"),
        ])

        assert result.tracks[0].artists == ["A", "B"]
        assert await count_rows(TrackArtist) == 2

    async def test_album_shared_between_files(self, database, storage, count_rows):
        parser = FakeTagParser(
            a=_tags(title="A", artists=["X"], album="Shared"),
            b=_tags(title="B", artists=["X", "Y"], album="Shared"),
        )
        result = await _service(database, storage, parser).ingest_batch([
            UploadedFile("a.flac", b"a"),
            UploadedFile("b.flac", b"b"),
        ])

        assert result.total == 2
        assert await count_rows(Album) == 1
        assert await count_rows(Artist) == 2

    async def test_album_cover_backfilled_once(self, database, storage):
        parser = FakeTagParser(
            first=_tags(title="1", album="Islands"),
            second=_tags(title="2", album="Islands", picture=True),
            third=_tags(title="3", album="Islands", picture=True),
        )
        await _service(database, storage, parser).ingest_batch([
            UploadedFile("1.flac", b"first"),
            UploadedFile("2.flac", b"second"),
            UploadedFile("3.flac", b"third"),
        ])

        async with database.session() as session:
            tracks = {t.title: t for t in (await session.execute(Track.__table__.select())).all()}
            album = (await session.execute(Album.__table__.select())).one()

        assert tracks["1"].cover_path is None
        assert album.cover_path == tracks["2"].cover_path
        assert album.cover_path != tracks["3"].cover_path


class TestFailures:
    async def test_batch_independence(self, database, storage, count_rows):
        parser = FakeTagParser(
            good1=_tags(title="First"),
            good3=_tags(title="Third"),
        )
        result = await _service(database, storage, parser).ingest_batch([
            UploadedFile("1.flac", b"good1"),
            UploadedFile("2.flac", b"corrupt"),
            UploadedFile("3.flac", b"good3"),
        ])

        assert [t.title for t in result.tracks] == ["First", "Third"]
        assert result.failed_total == 1
        assert result.failed[0].filename == "2.flac"
        assert "corrupt" in result.failed[0].error
        assert await count_rows(Track) == 2
        assert len(_stored_files(storage, "tracks")) == 2

    async def test_fault_before_credits_rolls_back_everything(self, database, storage, count_rows):
        parser = FakeTagParser(one=_tags(
            title="Doomed",
            artists=["Nobody"],
            album="Never",
            credits=[("Composer", "Ghost")],
            picture=True,
        ))
        with patch.object(CatalogService, "insert_credits", side_effect=RuntimeError("disk full")):
            result = await _service(database, storage, parser).ingest_batch([
                UploadedFile("doomed.flac", b"one"),
            ])

        assert result.total == 0
        assert result.failed[0].error == "disk full"
        assert result.failed[0].compensation_errors == []
        for model in (Track, TrackArtist, TrackCredit, Album, Artist):
            assert await count_rows(model) == 0
        assert _stored_files(storage, "tracks") == []
        assert _stored_files(storage, "covers") == []

    async def test_compensation_failure_is_reported(self, database, storage):
        parser = FakeTagParser(one=_tags(title="Doomed"))
        with patch.object(CatalogService, "upsert_track", side_effect=RuntimeError("db down")), \
                patch.object(storage, "delete", side_effect=StorageError("storage offline")):
            result = await _service(database, storage, parser).ingest_batch([
                UploadedFile("doomed.flac", b"one"),
            ])

        failure = result.failed[0]
        assert failure.error == "db down"
        assert len(failure.compensation_errors) == 1
        assert failure.compensation_errors[0].locator.startswith("/uploads/tracks/")
        assert "storage offline" in failure.compensation_errors[0].error

    async def test_upload_failure_leaves_nothing(self, database, storage, count_rows):
        parser = FakeTagParser(one=_tags(title="Song", picture=True))
        original_upload = storage.upload

        async def fail_covers(data, filename, category, mime_type=None):
            if category == "covers":
                raise StorageError("cover rejected")
            return await original_upload(data, filename, category, mime_type)

        with patch.object(storage, "upload", side_effect=fail_covers):
            result = await _service(database, storage, parser).ingest_batch([
                UploadedFile("song.flac", b"one"),
            ])

        assert result.failed[0].error == "cover rejected"
        assert _stored_files(storage, "tracks") == []
        assert await count_rows(Track) == 0

    async def test_timeout_is_a_compensated_failure(self, database, storage, count_rows):
        parser = FakeTagParser(slow=_tags(title="Slow"), fast=_tags(title="Fast"))
        original_upsert = CatalogService.upsert_track

        async def slow_upsert(self, normalized, *args, **kwargs):
            if normalized.title == "Slow":
                await asyncio.sleep(5)
            return await original_upsert(self, normalized, *args, **kwargs)

        with patch.object(CatalogService, "upsert_track", slow_upsert):
            result = await _service(database, storage, parser, timeout=0.2).ingest_batch([
                UploadedFile("slow.flac", b"slow"),
                UploadedFile("fast.flac", b"fast"),
            ])

        assert [t.title for t in result.tracks] == ["Fast"]
        assert "timed out" in result.failed[0].error
        assert await count_rows(Track) == 1
        assert len(_stored_files(storage, "tracks")) == 1


    async def test_write_outliving_timeout_is_removed(self, database, tmp_path, count_rows):
        slow = SlowLocalStorage(str(tmp_path / "slow"))
        await slow.initialize()
        parser = FakeTagParser(one=_tags(title="Laggy", picture=True))

        result = await _service(database, slow, parser, timeout=0.2).ingest_batch([
            UploadedFile("laggy.flac", b"one"),
        ])

        assert result.total == 0
        assert "timed out" in result.failed[0].error
        assert result.failed[0].compensation_errors == []
        assert _stored_files(slow, "tracks") == []
        assert _stored_files(slow, "covers") == []
        assert await count_rows(Track) == 0


class SlowLocalStorage(LocalStorageClient):
    """Local storage whose writes take longer than the ingestion timeout."""

    @staticmethod
    def _write(path, data):
        time.sleep(0.5)
        LocalStorageClient._write(path, data)


class TestPreview:
    async def test_preview_writes_nothing(self, database, storage, count_rows):
        parser = FakeTagParser(one=_tags(title="Peek", credits=[("Mixer", "Sam")]))
        previews = await _service(database, storage, parser).preview([
            UploadedFile("peek.flac", b"one"),
            UploadedFile("bad.flac", b"nope"),
        ])

        assert previews[0].track.title == "Peek"
        assert [(c.key, c.value) for c in previews[0].credits] == [("Mixer", "Sam")]
        assert previews[1].track is None
        assert "corrupt" in previews[1].error
        assert await count_rows(Track) == 0
        assert _stored_files(storage, "tracks") == []
