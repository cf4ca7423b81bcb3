from pathlib import Path
from unittest.mock import MagicMock

import pytest

from acquisition.stream_cache import StreamUrlCache
from shared.errors import StorageTierFailure
from shared.models import Track, TrackStatus
from storage_tiers.local_provider import LocalDiskTier
from storage_tiers.object_store import DirectoryObjectStoreTier
from storage_tiers.resolver import LivePassthroughTier, TieredStorageResolver
from storage_tiers.storage_provider import BufferedHandle, LocalFileHandle

VIDEO_ID = "dQw4w9WgXcQ"
DATA = bytes(range(200))


@pytest.fixture
def local(tmp_path):
    return LocalDiskTier(tmp_path / "music")


@pytest.fixture
def store(tmp_path):
    return DirectoryObjectStoreTier(tmp_path / "nas", "audio")


@pytest.fixture
def passthrough():
    return LivePassthroughTier(StreamUrlCache(lambda cid: f"https://upstream/{cid}"))


def _track(local, owner="alice", track_id=1):
    return Track(
        id=track_id, content_id=VIDEO_ID, title="t", artist="a",
        locator=str(local.locator_for(VIDEO_ID, owner)), status=TrackStatus.READY, progress=100,
    )


def _read(handle):
    source = handle.source()
    return source.read_bytes() if isinstance(source, Path) else source.read()


def test_local_tier_first(local, store, passthrough):
    track = _track(local)
    with open(track.locator, "wb") as f:
        f.write(DATA)
    resolver = TieredStorageResolver(local, store, passthrough)

    asset = resolver.resolve([track])
    assert asset.tier == "local"
    assert isinstance(asset.handle, LocalFileHandle)
    assert _read(asset.handle) == DATA


def test_durable_tier_when_local_missing(local, store, passthrough, tmp_path):
    src = tmp_path / "src.mp3"
    src.write_bytes(DATA)
    assert store.upload(src, VIDEO_ID)
    resolver = TieredStorageResolver(local, store, passthrough)

    asset = resolver.resolve([_track(local)])
    assert asset.tier == "directory"
    assert _read(asset.handle) == DATA


def test_passthrough_when_nothing_stored(local, store, passthrough):
    resolver = TieredStorageResolver(local, store, passthrough)
    asset = resolver.resolve([_track(local)])
    assert asset.is_redirect
    assert asset.redirect_url == f"https://upstream/{VIDEO_ID}"


def test_no_passthrough_means_unresolved(local, store):
    resolver = TieredStorageResolver(local, store)
    assert resolver.resolve([_track(local)]) is None


def test_tier_failure_degrades_to_next_tier(local, passthrough):
    broken = MagicMock()
    broken.name = "s3"
    broken.open.side_effect = StorageTierFailure("s3", "connection reset")
    resolver = TieredStorageResolver(local, broken, passthrough)

    asset = resolver.resolve([_track(local)])
    assert asset.tier == "passthrough"
    broken.open.assert_called_once()


def test_persist_reports_both_tiers(local, store):
    track = _track(local)
    with open(track.locator, "wb") as f:
        f.write(DATA)
    outcome = TieredStorageResolver(local, store).persist(track)
    assert outcome.local and outcome.durable and outcome.stored
    assert store.object_exists(VIDEO_ID)


def test_persist_without_durable(local):
    track = _track(local)
    with open(track.locator, "wb") as f:
        f.write(DATA)
    outcome = TieredStorageResolver(local).persist(track)
    assert outcome.local is True
    assert outcome.durable is False


def test_persist_with_nothing_written(local, store):
    outcome = TieredStorageResolver(local, store).persist(_track(local))
    assert not outcome.stored


def test_any_rows_local_copy_beats_durable_and_passthrough(local, store, passthrough):
    alice = _track(local, "alice", track_id=1)
    bob = _track(local, "bob", track_id=2)
    Path(bob.locator).write_bytes(DATA)
    resolver = TieredStorageResolver(local, store, passthrough)

    asset = resolver.resolve([alice, bob])
    assert asset.tier == "local"
    assert asset.handle.source() == Path(bob.locator)


def test_shared_locator_opened_once(local):
    tier = MagicMock(wraps=local)
    tier.name = "local"
    rows = [_track(local, "alice", track_id=1), _track(local, "alice", track_id=2)]
    assert TieredStorageResolver(tier).resolve(rows) is None
    tier.open.assert_called_once()


def test_empty_candidates_resolve_to_nothing(local, store, passthrough):
    assert TieredStorageResolver(local, store, passthrough).resolve([]) is None


def test_handle_sources(tmp_path):
    path = tmp_path / "a.mp3"
    path.write_bytes(DATA)
    local_handle = LocalFileHandle(path)
    assert local_handle.size == 200
    assert local_handle.source() == path

    buffered = BufferedHandle(DATA)
    assert buffered.size == 200
    assert buffered.source().read() == DATA
    # each call hands out a fresh stream
    assert buffered.source().read() == DATA


@pytest.mark.parametrize("owner,expected", [
    ("alice", f"{VIDEO_ID}_alice.mp3"),
    ("0123456789abcdef", f"{VIDEO_ID}_01234567.mp3"),
    ("../etc/x", f"{VIDEO_ID}____etc_x.mp3"),
    ("a[b]*c?d", f"{VIDEO_ID}_a_b__c_d.mp3"),
])
def test_locator_owner_prefix_is_filename_safe(local, owner, expected):
    locator = local.locator_for(VIDEO_ID, owner)
    assert locator.name == expected
    assert locator.parent == local.music_dir


def test_locator_without_owner(local):
    assert local.locator_for(VIDEO_ID).name == f"{VIDEO_ID}.mp3"
