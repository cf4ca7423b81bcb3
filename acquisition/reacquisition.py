"""
Re-acquisition of tracks whose bytes never reached the durable tier.

Each content id is re-extracted at most once at a time; the tracker is the
only mutual exclusion point in the pipeline and lives in this process.
"""

import logging
import threading
from typing import Callable, Dict, Any, List, Optional, Set

from shared.database import TrackRegistry
from shared.errors import ConfigurationError, ExtractionFailure
from shared.models import Track
from shared.threads import spawn_background
from storage_tiers.resolver import TieredStorageResolver
from .extractor import ExtractionCapability

logger = logging.getLogger(__name__)

DEFAULT_REACQUIRE_LIMIT = 10


class ReacquisitionTracker:
    """Set of content ids currently being re-acquired."""

    def __init__(self):
        self._active: Set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, content_id: str) -> bool:
        with self._lock:
            if content_id in self._active:
                return False
            self._active.add(content_id)
            return True

    def release(self, content_id: str) -> None:
        with self._lock:
            self._active.discard(content_id)

    def is_active(self, content_id: str) -> bool:
        with self._lock:
            return content_id in self._active

    def snapshot(self) -> List[str]:
        with self._lock:
            return sorted(self._active)

    def __len__(self) -> int:
        with self._lock:
            return len(self._active)


class ReacquisitionService:
    def __init__(self, registry: TrackRegistry, extractor: ExtractionCapability,
                 resolver: TieredStorageResolver, tracker: Optional[ReacquisitionTracker] = None,
                 run_in_background: Callable = spawn_background):
        self.registry = registry
        self.extractor = extractor
        self.resolver = resolver
        self.tracker = tracker or ReacquisitionTracker()
        self.run_in_background = run_in_background

    def _require_durable(self) -> None:
        if not self.resolver.durable_configured:
            raise ConfigurationError("Durable storage is not configured")

    def _unique_ready(self) -> List[Track]:
        seen, tracks = set(), []
        for track in self.registry.list_ready():
            if track.content_id not in seen:
                seen.add(track.content_id)
                tracks.append(track)
        return tracks

    def reacquire(self, limit: Optional[int] = DEFAULT_REACQUIRE_LIMIT) -> Dict[str, Any]:
        """
        Start re-extraction for up to `limit` ready tracks missing from the durable tier.

        Raises:
            ConfigurationError: If no durable tier is configured
        """
        self._require_durable()
        ready = self.registry.list_ready()
        missing = [
            t for t in self._unique_ready()
            if not self.tracker.is_active(t.content_id) and not self.resolver.durable_exists(t.content_id)
        ]

        if not missing:
            return {
                "message": "All tracks are already in storage",
                "started": [],
                "total": len(ready),
                "pending": 0,
                "in_progress": len(self.tracker),
            }

        started = []
        for track in missing:
            if limit is not None and len(started) >= limit:
                break
            if not self.tracker.try_acquire(track.content_id):
                continue
            logger.info(f"[Reacquire] Re-downloading {track.content_id}: {track.title}")
            started.append({"content_id": track.content_id, "title": track.title, "status": "started"})
            self.run_in_background(self._reacquire_one, track, name=f"reacquire-{track.content_id}")

        return {
            "message": f"Started re-downloading {len(started)} tracks",
            "started": started,
            "total": len(ready),
            "pending": len(missing) - len(started),
            "in_progress": len(self.tracker),
        }

    def _reacquire_one(self, track: Track) -> None:
        content_id = track.content_id
        try:
            output_path = self.resolver.local.locator_for(content_id)
            try:
                result = self.extractor.extract(content_id, output_path)
            except ExtractionFailure as e:
                logger.error(f"[Reacquire] Re-download failed for {content_id}: {e}")
                return
            if not result.has_output:
                logger.error(f"[Reacquire] yt-dlp produced no file for {content_id}")
                return
            if self.resolver.durable.upload(output_path, content_id, metadata={'content_id': content_id}):
                self.registry.mark_durable(content_id, True)
                logger.info(f"[Reacquire] Re-downloaded and uploaded: {track.title}")
            else:
                logger.error(f"[Reacquire] Failed to upload after re-download: {track.title}")
        finally:
            self.tracker.release(content_id)

    def status(self) -> Dict[str, Any]:
        """Counts over ready rows; everything reads as missing when no durable tier is configured."""
        ready = self.registry.list_ready()
        in_storage = 0
        for track in ready:
            if self.resolver.durable_exists(track.content_id):
                in_storage += 1
        return {
            "total": len(ready),
            "in_storage": in_storage,
            "missing": len(ready) - in_storage,
            "in_progress": len(self.tracker),
            "active_content_ids": self.tracker.snapshot(),
        }
