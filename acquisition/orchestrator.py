"""
Download orchestration.

submit() answers right away; the extraction runs on a background worker
and reports back through registry status and progress notifications.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from shared.constants import (
    FALLBACK_TITLE_TEMPLATE,
    PENDING_TITLE_TEMPLATE,
    PLACEHOLDER_ARTIST,
    PROGRESS_DONE,
    PROGRESS_PROCESSING,
    PROGRESS_STARTED,
)
from shared.database import TrackRegistry
from shared.errors import (
    DuplicateError,
    ExtractionFailure,
    ForbiddenError,
    MetadataParseFailure,
    NotFoundError,
    NotReadyError,
    ValidationError,
)
from shared.models import Track, TrackStatus, SubmitResult, ProgressEvent
from shared.notifications import ProgressNotifier
from shared.threads import spawn_background
from storage_tiers.resolver import TieredStorageResolver
from .artist import extract_artist
from .content_id import extract_content_id, default_thumbnail_url
from .extractor import ExtractionCapability, parse_metadata

logger = logging.getLogger(__name__)


def _stderr_tail(stderr: str, lines: int = 5) -> str:
    return " | ".join((stderr or "").strip().splitlines()[-lines:])


class DownloadOrchestrator:
    def __init__(self, registry: TrackRegistry, extractor: ExtractionCapability,
                 resolver: TieredStorageResolver, notifier: Optional[ProgressNotifier] = None,
                 run_in_background: Callable = spawn_background):
        self.registry = registry
        self.extractor = extractor
        self.resolver = resolver
        self.notifier = notifier or ProgressNotifier()
        self.run_in_background = run_in_background

    # --- Submission ---

    def submit(self, url: str, owner_id: Optional[str]) -> SubmitResult:
        """
        Register a download for owner_id and start it.

        Raises:
            ValidationError: No content id in url
            DuplicateError: The owner already has this content id
        """
        content_id = extract_content_id(url)
        if not content_id:
            raise ValidationError("Invalid YouTube URL")

        existing = self.registry.get_by_content_id_for_owner(content_id, owner_id)
        if existing is not None:
            raise DuplicateError("You already have this track", track=existing)

        source = self.registry.get_ready_by_content_id(content_id)
        if source is not None:
            logger.info(f"[Download] Reusing ready copy of {content_id} (track {source.id}) for {owner_id}")
            return self._reuse(source, owner_id)

        locator = self.resolver.local.locator_for(content_id, owner_id)
        track = self.registry.create(
            content_id=content_id,
            title=PENDING_TITLE_TEMPLATE.format(content_id=content_id),
            artist=PLACEHOLDER_ARTIST,
            locator=str(locator),
            owner_id=owner_id,
            status=TrackStatus.DOWNLOADING,
            progress=PROGRESS_STARTED,
        )
        self._notify(track, TrackStatus.DOWNLOADING, PROGRESS_STARTED)
        logger.info(f"[Download] Queued {content_id} as track {track.id}")
        self.run_in_background(self._download_worker, track, name=f"download-{content_id}")
        return SubmitResult(track=track, reused=False)

    def _reuse(self, source: Track, owner_id: Optional[str]) -> SubmitResult:
        track = self.registry.create(
            content_id=source.content_id,
            title=source.title,
            artist=source.artist,
            locator=source.locator,
            owner_id=owner_id,
            status=TrackStatus.READY,
            progress=PROGRESS_DONE,
            thumbnail_url=source.thumbnail_url,
            in_durable_tier=source.in_durable_tier,
        )
        self._notify(track, TrackStatus.READY, PROGRESS_DONE)
        return SubmitResult(track=track, reused=True)

    # --- Background work ---

    def _download_worker(self, track: Track) -> None:
        try:
            self._download(track)
        except Exception:
            logger.exception(f"[Download] Unexpected failure for {track.content_id}")
            self._transition(track, TrackStatus.ERROR, PROGRESS_STARTED)

    def _download(self, track: Track) -> None:
        content_id = track.content_id
        try:
            result = self.extractor.extract(content_id, Path(track.locator))
        except ExtractionFailure as e:
            logger.error(f"[Download] {e}. stderr: {_stderr_tail(e.stderr)}")
            self._transition(track, TrackStatus.ERROR, PROGRESS_STARTED)
            return

        self._transition(track, TrackStatus.PROCESSING, PROGRESS_PROCESSING)

        try:
            info = parse_metadata(result.stdout)
            title = info.get("title") or FALLBACK_TITLE_TEMPLATE.format(content_id=content_id)
            thumbnail_url = info.get("thumbnail") or default_thumbnail_url(content_id)
            artist = extract_artist(info)
        except MetadataParseFailure as e:
            logger.warning(f"[Download] {content_id}: {e}; using placeholders")
            title = FALLBACK_TITLE_TEMPLATE.format(content_id=content_id)
            artist = PLACEHOLDER_ARTIST
            thumbnail_url = default_thumbnail_url(content_id)

        self.registry.update_metadata(track.id, title, artist, thumbnail_url)
        current = self.registry.get(track.id)
        if current is None:
            logger.info(f"[Download] Track {track.id} was deleted during download")
            if self.registry.count_references(content_id, track.locator)["locator"] == 0:
                self.resolver.local.delete(track.locator)
            return

        outcome = self.resolver.persist(current)
        if outcome.durable:
            self.registry.mark_durable(content_id, True)
        if not outcome.stored:
            logger.error(f"[Download] yt-dlp finished but no audio for {content_id} is stored anywhere")
            self._transition(track, TrackStatus.ERROR, PROGRESS_STARTED)
            return

        self._transition(track, TrackStatus.READY, PROGRESS_DONE)
        logger.info(f"[Download] Complete: {title} by {artist}")

    def _transition(self, track: Track, status: TrackStatus, progress: int) -> bool:
        moved = self.registry.update_status(track.id, status, progress)
        if moved:
            self._notify(track, status, progress)
        else:
            logger.debug(f"[Download] Track {track.id} not moved to {status.value}")
        return moved

    def _notify(self, track: Track, status: TrackStatus, progress: int) -> None:
        self.notifier.notify(ProgressEvent(
            owner_id=track.owner_id,
            track_id=track.id,
            progress=progress,
            status=status,
        ))

    # --- Library operations ---

    def _get_or_404(self, track_id: int) -> Track:
        track = self.registry.get(track_id)
        if track is None:
            raise NotFoundError("Track not found")
        return track

    def adopt(self, track_id: int, owner_id: str) -> SubmitResult:
        """Add someone else's ready track to owner_id's library without re-downloading."""
        source = self._get_or_404(track_id)
        if source.owner_id == owner_id:
            raise ValidationError("Track is already in your library")
        if not source.is_ready:
            raise NotReadyError("Track is not ready yet")
        existing = self.registry.get_by_content_id_for_owner(source.content_id, owner_id)
        if existing is not None:
            raise DuplicateError("You already have this track", track=existing)
        return self._reuse(source, owner_id)

    def remove(self, track_id: int, owner_id: str) -> Track:
        """
        Delete one of owner_id's rows. Audio bytes go only when no other row
        still points at them.
        """
        track = self._get_or_404(track_id)
        if track.owner_id is not None and track.owner_id != owner_id:
            raise ForbiddenError("Not authorized to delete this track")

        self.registry.delete(track.id)
        refs = self.registry.count_references(track.content_id, track.locator)
        self.resolver.remove(
            track,
            local=refs["locator"] == 0,
            durable=refs["content_id"] == 0,
        )
        if refs["content_id"] == 0:
            logger.info(f"[Download] Removed last copy of {track.content_id}")
        return track

    def toggle_shared(self, track_id: int, owner_id: str) -> Track:
        track = self._get_or_404(track_id)
        if track.owner_id != owner_id:
            raise ForbiddenError("Not authorized to share this track")

        shared = not track.shared
        if shared and self.registry.is_content_shared(track.content_id, exclude_track_id=track.id):
            raise DuplicateError("This track has already been shared by another user")
        self.registry.mark_shared(track.id, shared)
        return self.registry.get(track.id)
