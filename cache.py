"""In-memory thumbnail cache with LRU eviction and per-entry TTL."""
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from config import CACHE_TTL_4_DAYS, MAX_CACHE_CAPACITY
from log_utils import get_logger

logger = get_logger(__name__)


class ThumbnailCache:
    """Thread-safe key -> encoded image bytes store.

    get() never computes anything; callers fill the cache with put() after a
    miss. Entries expire after their TTL; past max_entries the least recently
    used entry is dropped.
    """

    def __init__(
        self,
        max_entries: int = MAX_CACHE_CAPACITY,
        default_ttl: float = CACHE_TTL_4_DAYS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[float, bytes]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            expires_at, data = item
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return data

    def put(self, key: str, data: bytes, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = (expires_at, data)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %s", evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
