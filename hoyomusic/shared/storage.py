"""Binary storage for audio files, covers and lyrics.

Two backends share one contract: ``upload`` returns an opaque locator string
that is persisted on the catalog rows, and every other operation takes that
locator back. Local locators look like ``/uploads/tracks/<uuid>.flac``;
WebDAV locators are public URLs under ``webdav_public_url``.
"""
import asyncio
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional, Set

import httpx

from .config.settings import Settings, StorageMode
from .exceptions import NotFoundError, StorageError
from .logging import get_logger

logger = get_logger(__name__)

CATEGORIES = ("tracks", "covers", "lyrics")


def _check_category(category: str) -> None:
    if category not in CATEGORIES:
        raise ValueError(f"Unknown storage category: {category!r}")


class StorageClient(ABC):
    """Storage contract consumed by the ingestion pipeline and the API."""

    async def initialize(self) -> None:
        """Prepare the backend (create directories, etc.)."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        original_filename: str,
        category: str,
        mime_type: Optional[str] = None,
    ) -> str:
        """Store ``data`` and return its locator."""

    @abstractmethod
    async def delete(self, locator: str) -> None:
        """Delete the object; a missing object is not an error."""

    @abstractmethod
    async def read(self, locator: str) -> bytes:
        """Return the full object."""

    @abstractmethod
    async def read_range(self, locator: str, start: int, end: int) -> bytes:
        """Return bytes ``start..end`` inclusive."""

    @abstractmethod
    async def exists(self, locator: str) -> bool:
        """Whether the object exists."""

    @abstractmethod
    async def size(self, locator: str) -> int:
        """Object size in bytes."""

    @abstractmethod
    def is_local(self) -> bool:
        """True when objects are served from this process's disk."""

    def is_remote(self) -> bool:
        return not self.is_local()


class LocalStorageClient(StorageClient):
    """Stores objects under ``root/<category>/<uuid><ext>``."""

    def __init__(self, root: str, public_prefix: str = "/uploads"):
        self.root = Path(root).resolve()
        self.public_prefix = "/" + public_prefix.strip("/")

    async def initialize(self) -> None:
        for category in CATEGORIES:
            await asyncio.to_thread((self.root / category).mkdir, parents=True, exist_ok=True)
        logger.info("local_storage_initialized", root=str(self.root))

    def is_local(self) -> bool:
        return True

    def path_for(self, locator: str) -> Path:
        """Map a locator back to a path on disk, refusing paths outside the root."""
        relative = locator
        if relative.startswith(self.public_prefix + "/"):
            relative = relative[len(self.public_prefix) + 1:]
        path = (self.root / relative.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            raise NotFoundError(
                message="File not found",
                code="FILE_NOT_FOUND",
                details={"locator": locator},
            )
        return path

    async def upload(
        self,
        data: bytes,
        original_filename: str,
        category: str,
        mime_type: Optional[str] = None,
    ) -> str:
        _check_category(category)
        name = f"{uuid.uuid4()}{PurePosixPath(original_filename).suffix}"
        path = self.root / category / name
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise StorageError(f"Failed to store {original_filename}: {e}") from e

        locator = f"{self.public_prefix}/{category}/{name}"
        logger.info("storage_object_written", locator=locator, size=len(data))
        return locator

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def delete(self, locator: str) -> None:
        path = self.path_for(locator)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {locator}: {e}") from e
        logger.info("storage_object_deleted", locator=locator)

    async def read(self, locator: str) -> bytes:
        path = self.path_for(locator)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND") from e

    async def read_range(self, locator: str, start: int, end: int) -> bytes:
        path = self.path_for(locator)

        def _read() -> bytes:
            with path.open("rb") as f:
                f.seek(start)
                return f.read(end - start + 1)

        try:
            return await asyncio.to_thread(_read)
        except FileNotFoundError as e:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND") from e

    async def exists(self, locator: str) -> bool:
        try:
            path = self.path_for(locator)
        except NotFoundError:
            return False
        return await asyncio.to_thread(path.is_file)

    async def size(self, locator: str) -> int:
        path = self.path_for(locator)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError as e:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND") from e
        return stat.st_size


class WebDAVStorageClient(StorageClient):
    """Stores objects on a WebDAV server and hands out public URLs."""

    _SAFE_NAME = re.compile(r"[^a-zA-Z0-9_-]")

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        base_path: str,
        public_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_path = "/" + base_path.strip("/")
        self.public_url = public_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=url.rstrip("/"),
            auth=(username, password),
            timeout=timeout,
        )
        self._known_directories: Set[str] = set()

    def is_local(self) -> bool:
        return False

    async def initialize(self) -> None:
        for category in CATEGORIES:
            await self._ensure_directory(f"{self.base_path}/{category}")
        logger.info("webdav_storage_initialized", base_path=self.base_path)

    async def close(self) -> None:
        await self._client.aclose()

    def remote_path(self, original_filename: str, category: str) -> str:
        """``<category>/<sanitized stem>_<ms timestamp><ext>``."""
        name = PurePosixPath(original_filename)
        stem = self._SAFE_NAME.sub("_", name.stem)
        timestamp = int(time.time() * 1000)
        return f"{category}/{stem}_{timestamp}{name.suffix}"

    def relative_path(self, locator: str) -> str:
        if locator.startswith(self.public_url + "/"):
            return locator[len(self.public_url) + 1:]
        return locator.lstrip("/")

    def _full_path(self, locator: str) -> str:
        return f"{self.base_path}/{self.relative_path(locator)}"

    async def _ensure_directory(self, directory: str) -> None:
        current = ""
        for segment in directory.strip("/").split("/"):
            current = f"{current}/{segment}"
            if current in self._known_directories:
                continue
            response = await self._client.request("MKCOL", current)
            # 405: collection already exists
            if response.status_code not in (200, 201, 405):
                raise StorageError(
                    f"Failed to create WebDAV directory {current}",
                    details={"status": response.status_code},
                )
            self._known_directories.add(current)

    async def upload(
        self,
        data: bytes,
        original_filename: str,
        category: str,
        mime_type: Optional[str] = None,
    ) -> str:
        _check_category(category)
        relative = self.remote_path(original_filename, category)
        full_path = f"{self.base_path}/{relative}"
        await self._ensure_directory(str(PurePosixPath(full_path).parent))

        headers = {"Content-Length": str(len(data))}
        if mime_type:
            headers["Content-Type"] = mime_type
        try:
            response = await self._client.put(full_path, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to upload {original_filename}: {e}") from e
        if response.status_code not in (200, 201, 204):
            raise StorageError(
                f"Failed to upload {original_filename}",
                details={"status": response.status_code},
            )

        locator = f"{self.public_url}/{relative}"
        logger.info("storage_object_written", locator=locator, size=len(data))
        return locator

    async def delete(self, locator: str) -> None:
        try:
            response = await self._client.delete(self._full_path(locator))
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to delete {locator}: {e}") from e
        if response.status_code not in (200, 204, 404):
            raise StorageError(
                f"Failed to delete {locator}",
                details={"status": response.status_code},
            )
        logger.info("storage_object_deleted", locator=locator)

    async def _get(self, locator: str, headers: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._client.get(self._full_path(locator), headers=headers)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to read {locator}: {e}") from e
        if response.status_code == 404:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND")
        if response.status_code not in (200, 206):
            raise StorageError(
                f"Failed to read {locator}",
                details={"status": response.status_code},
            )
        return response

    async def read(self, locator: str) -> bytes:
        return (await self._get(locator)).content

    async def read_range(self, locator: str, start: int, end: int) -> bytes:
        response = await self._get(locator, headers={"Range": f"bytes={start}-{end}"})
        if response.status_code == 200:
            # Server ignored the Range header.
            return response.content[start:end + 1]
        return response.content

    async def exists(self, locator: str) -> bool:
        try:
            response = await self._client.head(self._full_path(locator))
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to stat {locator}: {e}") from e
        return response.status_code == 200

    async def size(self, locator: str) -> int:
        try:
            response = await self._client.head(self._full_path(locator))
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to stat {locator}: {e}") from e
        if response.status_code == 404:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND")
        return int(response.headers.get("Content-Length", "0"))


def build_storage_client(settings: Settings) -> StorageClient:
    """Create the storage backend selected by ``settings.storage_mode``."""
    if settings.storage_mode == StorageMode.WEBDAV:
        return WebDAVStorageClient(
            url=settings.webdav_url,
            username=settings.webdav_username,
            password=settings.webdav_password,
            base_path=settings.webdav_base_path,
            public_url=settings.webdav_public_url,
            timeout=settings.webdav_timeout_seconds,
        )
    return LocalStorageClient(settings.upload_dir, settings.public_upload_prefix)
