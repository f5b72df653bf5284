"""Shared fixtures: temp SQLite database, local storage, FLAC builder and app client."""
import struct
from typing import Iterable, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from hoyomusic import models  # noqa: F401
from hoyomusic.shared.config.settings import Settings
from hoyomusic.shared.db.pool import Database
from hoyomusic.shared.storage import LocalStorageClient


def _metadata_block(block_type: int, data: bytes, last: bool) -> bytes:
    header = (0x80 if last else 0) | block_type
    return bytes([header]) + len(data).to_bytes(3, "big") + data


def _streaminfo(sample_rate: int, channels: int, bits_per_sample: int, total_samples: int) -> bytes:
    packed = (
        (sample_rate << 44)
        | ((channels - 1) << 41)
        | ((bits_per_sample - 1) << 36)
        | total_samples
    )
    return (
        struct.pack(">HH", 4096, 4096)
        + b"\x00" * 6  # min/max frame size unknown
        + struct.pack(">Q", packed)
        + b"\x00" * 16  # MD5 of unencoded audio
    )


def _vorbis_comment(tags: Iterable[Tuple[str, str]]) -> bytes:
    tags = list(tags)
    vendor = b"hoyomusic test suite"
    data = struct.pack("<I", len(vendor)) + vendor + struct.pack("<I", len(tags))
    for key, value in tags:
        entry = f"{key}={value}".encode("utf-8")
        data += struct.pack("<I", len(entry)) + entry
    return data


def _picture(image: bytes, mime_type: str) -> bytes:
    mime = mime_type.encode("ascii")
    return (
        struct.pack(">II", 3, len(mime)) + mime  # 3 = front cover
        + struct.pack(">I", 0)  # empty description
        + struct.pack(">IIII", 1, 1, 24, 0)
        + struct.pack(">I", len(image)) + image
    )


def build_flac(
    tags: Iterable[Tuple[str, str]] = (),
    picture: Optional[bytes] = None,
    picture_mime: str = "image/jpeg",
    sample_rate: int = 44100,
    bits_per_sample: int = 16,
    seconds: float = 3.0,
) -> bytes:
    """Metadata-only FLAC file: STREAMINFO, VORBIS_COMMENT and an optional PICTURE."""
    blocks = [
        (0, _streaminfo(sample_rate, 2, bits_per_sample, int(sample_rate * seconds))),
        (4, _vorbis_comment(tags)),
    ]
    if picture is not None:
        blocks.append((6, _picture(picture, picture_mime)))

    data = b"fLaC"
    for index, (block_type, block) in enumerate(blocks):
        data += _metadata_block(block_type, block, last=index == len(blocks) - 1)
    return data


@pytest.fixture
def make_flac():
    return build_flac


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
async def storage(tmp_path):
    client = LocalStorageClient(str(tmp_path / "uploads"))
    await client.initialize()
    return client


@pytest.fixture
def count_rows(database):
    """Return an async callable counting the rows of a model."""

    async def _count(model) -> int:
        async with database.session() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    return _count


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = {
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
            "upload_dir": str(tmp_path / "api-uploads"),
            "log_format": "console",
            "log_level": "WARNING",
            "api_keys": [],
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def client(make_settings):
    from hoyomusic.main import create_app

    app = create_app(make_settings())
    with TestClient(app) as test_client:
        yield test_client
