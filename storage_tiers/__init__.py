"""Tiered audio storage: local disk, durable object store, live passthrough."""

from .storage_provider import StorageTier, DurableTier, AudioHandle, LocalFileHandle, BufferedHandle
from .local_provider import LocalDiskTier
from .object_store import S3ObjectStoreTier, DirectoryObjectStoreTier
from .resolver import TieredStorageResolver, LivePassthroughTier, ResolvedAsset, WriteOutcome
from .provider_factory import StorageTierFactory

__all__ = [
    "StorageTier",
    "DurableTier",
    "AudioHandle",
    "LocalFileHandle",
    "BufferedHandle",
    "LocalDiskTier",
    "S3ObjectStoreTier",
    "DirectoryObjectStoreTier",
    "TieredStorageResolver",
    "LivePassthroughTier",
    "ResolvedAsset",
    "WriteOutcome",
    "StorageTierFactory",
]
