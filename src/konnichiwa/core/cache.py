from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field

from konnichiwa.core.clock import Clock
from konnichiwa.domain.models import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 3600.0
DEFAULT_CLEANUP_INTERVAL_S = 300.0


@dataclass(slots=True)
class TranslationCache:
    """Exact-match (source text -> translation) store with a fixed TTL.

    Lookups never evict; expired entries are simply not returned and are purged by
    `evict_expired`, typically from `run_cleanup_loop`. Every method takes the same
    lock so one cache can be shared by the OCR and voice dispatchers.
    """

    ttl_s: float = DEFAULT_TTL_S
    _entries: dict[str, CacheEntry] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, source_text: object) -> bool:
        with self._lock:
            return source_text in self._entries

    def lookup(self, source_text: str, now: float) -> str | None:
        with self._lock:
            entry = self._entries.get(source_text)
            if entry is None or self._is_expired(entry, now):
                return None
            return entry.translated_text

    def store(self, source_text: str, translated_text: str, now: float) -> None:
        with self._lock:
            self._entries[source_text] = CacheEntry(
                source_text=source_text,
                translated_text=translated_text,
                created_at=now,
            )

    def evict_expired(self, now: float) -> int:
        with self._lock:
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"[Cache] Evicted {len(expired)} expired entries")
        return len(expired)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return {k: e.translated_text for k, e in self._entries.items()}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return entry.age(now) >= self.ttl_s

    async def run_cleanup_loop(
        self, clock: Clock, *, interval_s: float = DEFAULT_CLEANUP_INTERVAL_S
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        while True:
            await asyncio.sleep(interval_s)
            self.evict_expired(clock.now())
