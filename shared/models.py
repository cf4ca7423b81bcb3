"""
Data models for acquired tracks, storage tiers and maintenance reports.

This module defines the core data structures shared by the acquisition
pipeline, the storage tiers and the Station API.
"""

from dataclasses import dataclass, asdict, field
from typing import List, Dict, Optional, Any
from enum import Enum
from datetime import datetime, timezone


class StorageProvider(Enum):
    """Supported durable storage backends."""
    CLOUDFLARE_R2 = "r2"
    BACKBLAZE_B2 = "b2"
    AWS_S3 = "s3"
    GENERIC_S3 = "generic"
    LOCAL = "local"


class TrackStatus(Enum):
    """Lifecycle of a registry row. Only moves forward."""
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


# target status -> statuses a row may currently be in
ALLOWED_TRANSITIONS: Dict[TrackStatus, tuple] = {
    TrackStatus.PROCESSING: (TrackStatus.DOWNLOADING,),
    TrackStatus.READY: (TrackStatus.DOWNLOADING, TrackStatus.PROCESSING),
    TrackStatus.ERROR: (TrackStatus.DOWNLOADING, TrackStatus.PROCESSING),
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Track:
    """
    Represents one owner's copy of an acquired asset.

    Attributes:
        id: Registry-assigned row id
        content_id: Stable external identifier (YouTube video id)
        title: Track title
        artist: Canonical artist (or channel) name
        locator: Local file path of the audio bytes
        status: Current TrackStatus
        progress: 0..100
        thumbnail_url: Cover image URL (optional)
        owner_id: Owning user (None for legacy/anonymous rows)
        shared: Whether the owner shared it with the community
        added_at: ISO-8601 creation timestamp
        in_durable_tier: Set once a durable upload succeeded
    """
    id: int
    content_id: str
    title: str
    artist: str
    locator: str
    status: TrackStatus = TrackStatus.DOWNLOADING
    progress: int = 0
    thumbnail_url: Optional[str] = None
    owner_id: Optional[str] = None
    shared: bool = False
    added_at: str = field(default_factory=utc_now_iso)
    in_durable_tier: bool = False

    @property
    def is_ready(self) -> bool:
        return self.status == TrackStatus.READY

    def to_dict(self) -> Dict[str, Any]:
        """Convert track to a JSON-friendly dictionary."""
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Track':
        """Create Track from dictionary, filtering unknown keys."""
        import dataclasses
        field_names = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        filtered_data['status'] = TrackStatus(filtered_data.get('status', TrackStatus.DOWNLOADING.value))
        filtered_data['shared'] = bool(filtered_data.get('shared', False))
        filtered_data['in_durable_tier'] = bool(filtered_data.get('in_durable_tier', False))
        return cls(**filtered_data)


@dataclass
class SubmitResult:
    """Outcome of a successful submission."""
    track: Track
    reused: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"track": self.track.to_dict(), "reused": self.reused}


@dataclass
class ProgressEvent:
    """Push notification payload, emitted on every status transition."""
    owner_id: Optional[str]
    track_id: int
    progress: int
    status: TrackStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "track_id": self.track_id,
            "progress": self.progress,
            "status": self.status.value,
        }


@dataclass
class MigrationItem:
    """Per-track outcome of a migration run."""
    content_id: str
    title: str
    status: str  # migrated | skipped | failed
    reason: Optional[str] = None
    path: Optional[str] = None
    needs_reacquisition: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class MigrationReport:
    """Aggregate result of a migration run."""
    total: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[MigrationItem] = field(default_factory=list)

    def add(self, item: MigrationItem) -> None:
        self.results.append(item)
        if item.status == "migrated":
            self.migrated += 1
        elif item.status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def needs_reacquisition(self) -> List[str]:
        return list(dict.fromkeys(r.content_id for r in self.results if r.needs_reacquisition))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "migrated": self.migrated,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }
