"""
Translation cache.

Entries are keyed by ``(source_lang, target_lang, sha256(text)[:16])``. The
in-process tier is an insertion-ordered dict bounded by ``capacity``; an
optional durable store is consulted on a miss and repopulates memory.
"""
import hashlib
import json
import logging
import os
import tempfile
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str]


@dataclass
class CacheEntry:
    translation: str
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()[:16]


def make_cache_key(source_lang: str, target_lang: str, text: str) -> CacheKey:
    return source_lang, target_lang, content_hash(text)


class JsonFileCacheStore:
    """
    Durable cache tier kept in a single JSON file.

    The file is read once on construction and written back by ``flush()``.
    A corrupt file is logged and replaced on the next flush.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._entries: Dict[str, CacheEntry] = {}
        self._dirty = False
        self._load()

    @staticmethod
    def _serialize_key(key: CacheKey) -> str:
        return "|".join(key)

    def _load(self) -> None:
        if not os.path.exists(self.file_path):
            return
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            self._entries = {key: CacheEntry(**value) for key, value in raw.items()}
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable translation cache file %s: %s", self.file_path, e)
            self._entries = {}
        logger.debug("Loaded %d cached translations from %s", len(self._entries), self.file_path)

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        return self._entries.get(self._serialize_key(key))

    def set(self, key: CacheKey, entry: CacheEntry) -> None:
        self._entries[self._serialize_key(key)] = entry
        self._dirty = True

    def delete(self, key: CacheKey) -> None:
        if self._entries.pop(self._serialize_key(key), None) is not None:
            self._dirty = True

    def prune_expired(self, now: float) -> int:
        """Remove every entry expired at ``now``. Returns how many were removed."""
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._dirty = True
            logger.debug("Pruned %d expired cached translations", len(expired))
        return len(expired)

    def flush(self) -> None:
        """Write the store to disk if it changed since the last flush."""
        if not self._dirty:
            return
        directory = os.path.dirname(os.path.abspath(self.file_path))
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".cache-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({key: asdict(entry) for key, entry in self._entries.items()}, f,
                          ensure_ascii=False)
            os.replace(temp_path, self.file_path)
        except OSError:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)


class TranslationCache:
    """
    Bounded TTL cache for translations.

    Args:
        capacity: Maximum number of in-memory entries. On overflow the oldest
            inserted entry is evicted.
        ttl_seconds: Lifetime of a new entry. Expired entries are misses.
        store: Optional durable tier (e.g. ``JsonFileCacheStore``).
        clock: Time source, ``time.time`` by default.
    """

    def __init__(
            self,
            capacity: int = 10000,
            ttl_seconds: float = 60 * 60 * 24 * 30,
            store: Optional[JsonFileCacheStore] = None,
            clock: Callable[[], float] = time.time
    ):
        if capacity <= 0:
            raise ValueError("Cache capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.store = store
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def _remember(self, key: CacheKey, entry: CacheEntry) -> None:
        self._entries.pop(key, None)
        self._entries[key] = entry
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %s", evicted)

    def get(self, source_lang: str, target_lang: str, text: str) -> Optional[str]:
        """Return the cached translation, or None on a miss."""
        key = make_cache_key(source_lang, target_lang, text)
        now = self._clock()

        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(now):
            del self._entries[key]
            entry = None

        if entry is None and self.store is not None:
            stored = self.store.get(key)
            if stored is not None and stored.is_expired(now):
                self.store.delete(key)
            elif stored is not None:
                self._remember(key, stored)
                entry = stored

        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry.translation

    def set(self, source_lang: str, target_lang: str, text: str, translation: str) -> None:
        key = make_cache_key(source_lang, target_lang, text)
        entry = CacheEntry(translation=translation, created_at=self._clock(), ttl=self.ttl_seconds)
        self._remember(key, entry)
        if self.store is not None:
            self.store.set(key, entry)

    def flush(self) -> None:
        """Drop expired durable entries and write the store."""
        if self.store is not None:
            self.store.prune_expired(self._clock())
            self.store.flush()

    def clear(self) -> None:
        """Clear the in-memory tier and the counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def __len__(self) -> int:
        return len(self._entries)
