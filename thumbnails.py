"""Serving originals and resized thumbnails with cache-aside semantics."""
import asyncio
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from cache import ThumbnailCache
from config import (
    CACHE_TTL_1_DAY,
    CACHE_TTL_1_WEEK,
    DEFAULT_THUMBNAIL_HEIGHT,
    DEFAULT_THUMBNAIL_WIDTH,
    TRANSCODE_WORKERS,
)
from errors import NotFoundError
from log_utils import get_logger
from models import ImageRecord
from repository import ImageRepository
from transcoder import ImageFormat, read_original, sniff_media_type, transcode
from utils import resolve_under_root, validate_folder_name, validate_hash

logger = get_logger(__name__)

Transcoder = Callable[[Path, int, int, ImageFormat], bytes]


@dataclass
class ImagePayload:
    data: bytes
    media_type: str
    max_age: int


def needs_resize(record: ImageRecord, width: int, height: int) -> bool:
    """Only ever shrink: a request at or above the source size gets the original."""
    return width < record.width or height < record.height


def folder_cache_key(folder: str, number: int, width: int, height: int) -> str:
    return f"thumb_{folder}_{number}_{width}x{height}"


def photo_cache_key(hash: str, width: int, height: int) -> str:
    return f"thumb_{hash}_{width}x{height}"


class ImageService:
    """Resolves images through the repository and resizes them off the event loop.

    Decoding and encoding run on a dedicated thread pool; repository calls go
    through asyncio.to_thread. Thumbnails are cached by folder/ordinal or hash
    plus the effective size, and concurrent misses on one key share a single
    transcode.
    """

    def __init__(
        self,
        repository: ImageRepository,
        cache: ThumbnailCache,
        transcoder: Transcoder = transcode,
        executor: Optional[Executor] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.transcoder = transcoder
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=TRANSCODE_WORKERS, thread_name_prefix="transcode"
        )
        # key -> [lock, number of requests holding or waiting on it]
        self._key_locks: dict[str, list] = {}

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _render(self, record: ImageRecord, size: Optional[tuple[int, int]]) -> bytes:
        path = resolve_under_root(Path(record.root), Path(record.path))
        if not path.is_file():
            logger.warning("File not found on disk: %s (hash %s)", record.path, record.hash)
            raise NotFoundError.resource("File on disk")
        if size is None:
            return read_original(path)
        fmt = ImageFormat.from_extension(record.extension)
        return self.transcoder(path, size[0], size[1], fmt)

    async def _by_hash(self, hash: str) -> ImageRecord:
        record = await asyncio.to_thread(self.repository.get_by_hash, hash)
        if record is None:
            raise NotFoundError.resource("File")
        return record

    async def download(
        self, hash: str, width: Optional[int] = None, height: Optional[int] = None
    ) -> ImagePayload:
        """Original bytes, or a downsized copy when both width and height ask for less."""
        validate_hash(hash)
        record = await self._by_hash(hash)
        logger.info(
            "Serving %s (%s, %dx%d)", record.filename, record.path, record.width, record.height
        )
        size = None
        if width is not None and height is not None and needs_resize(record, width, height):
            size = (width, height)
        data = await self._run(self._render, record, size)
        return ImagePayload(data, sniff_media_type(data), CACHE_TTL_1_DAY)

    async def folder_thumbnail(
        self,
        folder: str,
        number: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> ImagePayload:
        """Thumbnail of a random image of the folder; number picks a separate cache slot."""
        validate_folder_name(folder)
        width = width or DEFAULT_THUMBNAIL_WIDTH
        height = height or DEFAULT_THUMBNAIL_HEIGHT
        key = folder_cache_key(folder, number or 1, width, height)

        async def pick() -> ImageRecord:
            records = await asyncio.to_thread(self.repository.random, folder, 1)
            if not records:
                raise NotFoundError.resource("Files in folder")
            return records[0]

        return await self._thumbnail(key, "thumbnail_folder", pick, width, height)

    async def photo_thumbnail(
        self, hash: str, width: Optional[int] = None, height: Optional[int] = None
    ) -> ImagePayload:
        validate_hash(hash)
        width = width or DEFAULT_THUMBNAIL_WIDTH
        height = height or DEFAULT_THUMBNAIL_HEIGHT
        key = photo_cache_key(hash, width, height)
        return await self._thumbnail(
            key, "thumbnail_photo", lambda: self._by_hash(hash), width, height
        )

    async def _thumbnail(
        self,
        key: str,
        kind: str,
        load: Callable[[], Awaitable[ImageRecord]],
        width: int,
        height: int,
    ) -> ImagePayload:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit %s (%s)", key, kind)
            return ImagePayload(cached, sniff_media_type(cached), CACHE_TTL_1_WEEK)
        logger.debug("Cache miss %s (%s)", key, kind)

        entry = self._key_locks.setdefault(key, [asyncio.Lock(), 0])
        entry[1] += 1
        lock = entry[0]
        try:
            async with lock:
                cached = self.cache.get(key)
                if cached is not None:
                    return ImagePayload(cached, sniff_media_type(cached), CACHE_TTL_1_WEEK)

                record = await load()
                if not needs_resize(record, width, height):
                    data = await self._run(self._render, record, None)
                    return ImagePayload(data, sniff_media_type(data), CACHE_TTL_1_WEEK)

                data = await self._run(self._render, record, (width, height))
                self.cache.put(key, data, ttl=CACHE_TTL_1_WEEK)
                logger.debug("Cache set %s (%s, ttl=%ds)", key, kind, CACHE_TTL_1_WEEK)
                return ImagePayload(data, sniff_media_type(data), CACHE_TTL_1_WEEK)
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._key_locks[key]
