"""
Storage tiering resolver.

Read path: local disk, then the durable store, then a live passthrough
redirect. Write path: confirm the local file and upload it to the durable
store when one is configured.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from shared.errors import StorageTierFailure
from shared.models import Track
from .local_provider import LocalDiskTier
from .storage_provider import StorageTier, DurableTier, AudioHandle

logger = logging.getLogger(__name__)


@dataclass
class ResolvedAsset:
    """Where a track's bytes can be read from right now."""
    tier: str
    handle: Optional[AudioHandle] = None
    redirect_url: Optional[str] = None

    @property
    def is_redirect(self) -> bool:
        return self.handle is None and self.redirect_url is not None


@dataclass
class WriteOutcome:
    local: bool
    durable: bool

    @property
    def stored(self) -> bool:
        return self.local or self.durable


class LivePassthroughTier(StorageTier):
    """Holds no bytes; hands out ephemeral upstream media URLs from the stream URL cache."""

    name = "passthrough"

    def __init__(self, stream_cache):
        self.stream_cache = stream_cache

    def exists(self, track: Track) -> bool:
        return False

    def open(self, track: Track) -> Optional[AudioHandle]:
        return None

    def redirect_url(self, content_id: str) -> Optional[str]:
        return self.stream_cache.get(content_id)


class TieredStorageResolver:
    def __init__(self, local: LocalDiskTier, durable: Optional[DurableTier] = None,
                 passthrough: Optional[LivePassthroughTier] = None):
        self.local = local
        self.durable = durable
        self.passthrough = passthrough

    @property
    def durable_configured(self) -> bool:
        return self.durable is not None

    @staticmethod
    def _open(tier: StorageTier, track: Track) -> Optional[ResolvedAsset]:
        try:
            handle = tier.open(track)
        except StorageTierFailure as e:
            logger.warning(f"[Stream] {e}; trying next tier for {track.content_id}")
            return None
        return ResolvedAsset(tier=tier.name, handle=handle) if handle is not None else None

    def open_stored(self, tracks: Sequence[Track]) -> Optional[ResolvedAsset]:
        """
        First stored copy of the rows' content. Tier failures degrade to the next tier.

        Rows for one content id may each point at their own local file, so
        every distinct locator is tried before falling back to the durable tier.
        """
        seen = set()
        for track in tracks:
            if track.locator in seen:
                continue
            seen.add(track.locator)
            asset = self._open(self.local, track)
            if asset is not None:
                return asset
        if tracks and self.durable is not None:
            return self._open(self.durable, tracks[0])
        return None

    def resolve(self, tracks: Sequence[Track]) -> Optional[ResolvedAsset]:
        """Stored bytes for any of the rows, else a passthrough redirect, else None."""
        asset = self.open_stored(tracks)
        if asset is not None or not tracks:
            return asset
        if self.passthrough is None:
            return None
        content_id = tracks[0].content_id
        url = self.passthrough.redirect_url(content_id)
        if url:
            logger.info(f"[Stream] {content_id} not stored anywhere, redirecting to upstream")
            return ResolvedAsset(tier=self.passthrough.name, redirect_url=url)
        return None

    def local_exists(self, track: Track) -> bool:
        return self.local.exists(track)

    def durable_exists(self, content_id: str) -> bool:
        """False when not configured or when the store cannot be reached."""
        if self.durable is None:
            return False
        try:
            return self.durable.object_exists(content_id)
        except StorageTierFailure as e:
            logger.warning(f"[ObjectStorage] {e}")
            return False

    def upload(self, track: Track) -> bool:
        if self.durable is None or not self.local.exists(track):
            return False
        return self.durable.upload(
            Path(track.locator),
            track.content_id,
            metadata={'content_id': track.content_id},
        )

    def persist(self, track: Track) -> WriteOutcome:
        """Write path after extraction. Durable upload failures are logged, not raised."""
        local = self.local.exists(track)
        durable = False
        if local and self.durable is not None:
            durable = self.upload(track)
            if not durable:
                logger.warning(f"[ObjectStorage] {track.content_id} stays local-only; upload failed")
        return WriteOutcome(local=local, durable=durable)

    def remove(self, track: Track, local: bool = True, durable: bool = True) -> None:
        if local:
            self.local.delete(track.locator)
        if durable and self.durable is not None:
            self.durable.delete_object(track.content_id)
