"""
Short-lived cache of direct upstream media URLs.

Upstream URLs expire after a few hours, so entries are replaced once they
are older than the TTL. Resolution happens outside the lock; two threads
missing at the same moment may both resolve and the later insert wins.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from shared.constants import DEFAULT_STREAM_URL_TTL_SEC
from shared.errors import ExtractionFailure

logger = logging.getLogger(__name__)


@dataclass
class StreamUrlEntry:
    content_id: str
    url: str
    fetched_at: float


class StreamUrlCache:
    def __init__(self, resolve_fn: Callable[[str], str],
                 ttl: float = DEFAULT_STREAM_URL_TTL_SEC,
                 clock: Callable[[], float] = time.monotonic):
        self._resolve_fn = resolve_fn
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, StreamUrlEntry] = {}
        self._lock = threading.Lock()

    def _fresh(self, content_id: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(content_id)
            if entry is not None and self._clock() - entry.fetched_at <= self.ttl:
                return entry.url
        return None

    def get(self, content_id: str) -> Optional[str]:
        """Cached URL if still fresh, else resolve once. None when resolution fails."""
        url = self._fresh(content_id)
        if url is not None:
            return url

        try:
            url = self._resolve_fn(content_id)
        except ExtractionFailure as e:
            logger.warning(f"[Stream] Could not resolve upstream URL for {content_id}: {e}")
            return None
        if not url:
            return None

        with self._lock:
            self._entries[content_id] = StreamUrlEntry(content_id, url, self._clock())
        return url

    def invalidate(self, content_id: str) -> None:
        with self._lock:
            self._entries.pop(content_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
