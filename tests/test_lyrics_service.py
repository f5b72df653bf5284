"""Tests for storing, replacing and removing track lyrics."""
from pathlib import Path
from unittest.mock import patch

import pytest

from hoyomusic.metadata import NormalizedTrack
from hoyomusic.services import CatalogService, LyricsService


def _lyrics_files(storage):
    return sorted(p.name for p in Path(storage.root, "lyrics").iterdir())


@pytest.fixture
async def track_id(database):
    async with database.session() as session:
        track = await CatalogService(session).upsert_track(
            NormalizedTrack(title="Moon Halo", artists=["HOYO-MiX"]), [], "/uploads/tracks/a.flac"
        )
        await session.commit()
        return track.id


class TestLyricsService:
    async def test_set_and_read(self, database, storage, track_id):
        async with database.session() as session:
            service = LyricsService(session, storage)
            track = await service.set_lyrics(track_id, "[00:01.00]月色\n")

            assert track.lyrics_path.startswith("/uploads/lyrics/")
            assert track.lyrics_path.endswith(".lrc")
            assert await service.read_lyrics(track) == "[00:01.00]月色\n"

    async def test_replace_removes_previous_file(self, database, storage, track_id):
        async with database.session() as session:
            service = LyricsService(session, storage)
            first = (await service.set_lyrics(track_id, "one")).lyrics_path
            second = (await service.set_lyrics(track_id, "two")).lyrics_path

        assert first != second
        assert _lyrics_files(storage) == [second.rsplit("/", 1)[-1]]
        assert not await storage.exists(first)

    async def test_delete(self, database, storage, track_id):
        async with database.session() as session:
            service = LyricsService(session, storage)
            await service.set_lyrics(track_id, "words")
            track = await service.delete_lyrics(track_id)

            assert track.lyrics_path is None
            assert await service.read_lyrics(track) is None
        assert _lyrics_files(storage) == []

    async def test_missing_track(self, database, storage):
        async with database.session() as session:
            service = LyricsService(session, storage)
            assert await service.set_lyrics(999, "words") is None
            assert await service.delete_lyrics(999) is None
        assert _lyrics_files(storage) == []

    async def test_failed_commit_removes_new_file(self, database, storage, track_id):
        async with database.session() as session:
            service = LyricsService(session, storage)
            with patch.object(session, "commit", side_effect=RuntimeError("db down")):
                with pytest.raises(RuntimeError):
                    await service.set_lyrics(track_id, "words")

        assert _lyrics_files(storage) == []
