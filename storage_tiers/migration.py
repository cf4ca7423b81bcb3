"""
Backfill the durable tier from local files.

Safe to run repeatedly: objects already in the store are skipped, and
tracks with no bytes anywhere are reported for re-acquisition.
"""

import logging
from typing import Dict, List, Optional

from shared.database import TrackRegistry
from shared.errors import ConfigurationError
from shared.models import MigrationItem, MigrationReport, Track
from .resolver import TieredStorageResolver

logger = logging.getLogger(__name__)


def _group_by_content_id(tracks: List[Track]) -> Dict[str, List[Track]]:
    groups: Dict[str, List[Track]] = {}
    for track in tracks:
        groups.setdefault(track.content_id, []).append(track)
    return groups


def _migrate_group(registry: TrackRegistry, resolver: TieredStorageResolver,
                   content_id: str, group: List[Track], report: MigrationReport) -> None:
    """
    One durable object serves every row of a content id, so the rows are
    judged together: any local copy among them is enough to upload.
    """
    if resolver.durable_exists(content_id):
        if not all(t.in_durable_tier for t in group):
            registry.mark_durable(content_id, True)
        for track in group:
            report.add(MigrationItem(content_id, track.title, "skipped", reason="already in storage"))
        return

    source = next((t for t in group if resolver.local_exists(t)), None)
    if source is None:
        if any(t.in_durable_tier for t in group):
            registry.mark_durable(content_id, False)
        for track in group:
            report.add(MigrationItem(
                content_id, track.title, "failed",
                reason="missing from all tiers", needs_reacquisition=True,
            ))
        return

    if not resolver.upload(source):
        for track in group:
            report.add(MigrationItem(content_id, track.title, "failed", reason="upload failed"))
        return

    registry.mark_durable(content_id, True)
    for track in group:
        if track is source:
            report.add(MigrationItem(
                content_id, track.title, "migrated", path=resolver.durable.object_key(content_id),
            ))
        else:
            report.add(MigrationItem(content_id, track.title, "skipped", reason="already in storage"))


def migrate_to_durable_tier(registry: TrackRegistry, resolver: TieredStorageResolver,
                            limit: Optional[int] = None) -> MigrationReport:
    """
    Upload every ready track that only exists locally.

    Args:
        registry: Track registry to scan
        resolver: Resolver with a durable tier configured
        limit: Maximum number of ready rows to examine

    Raises:
        ConfigurationError: If no durable tier is configured
    """
    if not resolver.durable_configured:
        raise ConfigurationError("Durable storage is not configured")

    tracks = registry.list_ready(limit=limit)
    report = MigrationReport(total=len(tracks))
    logger.info(f"[Migration] Checking {len(tracks)} ready tracks")

    for content_id, group in _group_by_content_id(tracks).items():
        _migrate_group(registry, resolver, content_id, group, report)

    logger.info(
        f"[Migration] Done: {report.migrated} migrated, {report.skipped} skipped, {report.failed} failed"
    )
    return report
