import os

from shared.models import ProgressEvent, TrackStatus
from shared.notifications import SocketIONotifier
from station.api import socketio
from station.rate_limit import FixedWindowRateLimiter

VIDEO_ID = "dQw4w9WgXcQ"
URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"
ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


def _submit(client, headers=ALICE, url=URL):
    return client.post("/api/download", json={"url": url}, headers=headers)


def test_download_requires_identity(client):
    response = client.post("/api/download", json={"url": URL})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Authentication required"


def test_download_validation(client):
    assert client.post("/api/download", json={}, headers=ALICE).status_code == 400
    response = _submit(client, url="https://example.com/nope")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid YouTube URL"


def test_download_then_duplicate_then_reuse(client, extractor):
    first = _submit(client)
    assert first.status_code == 200
    body = first.get_json()
    assert body["message"] == "Download started"
    assert body["reused"] is False
    assert body["track"]["content_id"] == VIDEO_ID
    assert "X-RateLimit-Remaining" in first.headers

    duplicate = _submit(client)
    assert duplicate.status_code == 409
    assert duplicate.get_json()["track"]["id"] == body["track"]["id"]

    reused = _submit(client, headers=BOB)
    assert reused.status_code == 200
    assert reused.get_json()["reused"] is True
    assert extractor.calls == [VIDEO_ID]


def test_download_rate_limited(client, context):
    context.download_limiter = FixedWindowRateLimiter(1, 900)
    assert _submit(client).status_code == 200
    limited = _submit(client, url="https://youtu.be/kJQP7kiw5Fk")
    assert limited.status_code == 429
    assert limited.headers["Retry-After"]
    assert limited.headers["X-RateLimit-Remaining"] == "0"


def test_rate_limit_headers_on_error_responses(client):
    invalid = _submit(client, url="https://example.com/nope")
    assert invalid.status_code == 400
    assert invalid.headers["X-RateLimit-Remaining"] == "49"

    _submit(client)
    duplicate = _submit(client)
    assert duplicate.status_code == 409
    assert duplicate.headers["X-RateLimit-Remaining"] == "47"
    assert "Retry-After" not in duplicate.headers

    bad_id = client.get("/api/stream-url/bad")
    assert bad_id.status_code == 400
    assert bad_id.headers["X-RateLimit-Limit"] == "30"


def test_audio_full_and_range(client, extractor):
    _submit(client)
    size = len(extractor.payload)

    full = client.get(f"/api/audio/{VIDEO_ID}")
    assert full.status_code == 200
    assert full.headers["Content-Length"] == str(size)
    assert full.headers["Accept-Ranges"] == "bytes"
    assert full.mimetype == "audio/mpeg"
    assert full.data == extractor.payload

    part = client.get(f"/api/audio/{VIDEO_ID}", headers={"Range": "bytes=10-19"})
    assert part.status_code == 206
    assert part.headers["Content-Range"] == f"bytes 10-19/{size}"
    assert part.data == extractor.payload[10:20]


def test_audio_range_not_satisfiable(client, extractor):
    _submit(client)
    size = len(extractor.payload)
    response = client.get(f"/api/audio/{VIDEO_ID}", headers={"Range": f"bytes={size}-"})
    assert response.status_code == 416
    assert response.headers["Content-Range"] == f"bytes */{size}"


def test_audio_errors(client, registry):
    assert client.get("/api/audio/bad").status_code == 400
    assert client.get(f"/api/audio/{VIDEO_ID}").status_code == 404
    registry.create(content_id=VIDEO_ID, title="t", artist="a", locator="/x.mp3", owner_id="alice")
    assert client.get(f"/api/audio/{VIDEO_ID}").status_code == 425


def test_audio_passthrough_redirect(client, context):
    response = _submit(client)
    track_id = response.get_json()["track"]["id"]
    os.remove(context.registry.get(track_id).locator)
    context.resolver.durable.delete_object(VIDEO_ID)

    redirect = client.get(f"/api/audio/{VIDEO_ID}")
    assert redirect.status_code == 302
    assert redirect.headers["Location"] == f"https://rr1.googlevideo.com/videoplayback?id={VIDEO_ID}"


def test_stream_url(client, extractor, context):
    ok = client.get("/api/stream-url/kJQP7kiw5Fk")
    assert ok.status_code == 200
    assert ok.get_json() == {"stream_url": "https://rr1.googlevideo.com/videoplayback?id=kJQP7kiw5Fk"}
    assert client.get("/api/stream-url/bad").status_code == 400

    extractor.resolve_fails = True
    assert client.get("/api/stream-url/9bZkp7q19f0").status_code == 404

    context.resolve_limiter = FixedWindowRateLimiter(1, 60)
    client.get("/api/stream-url/kJQP7kiw5Fk")
    assert client.get("/api/stream-url/kJQP7kiw5Fk").status_code == 429


def test_migrate_and_redownload_endpoints(client, context):
    _submit(client)
    context.resolver.durable.delete_object(VIDEO_ID)
    context.registry.mark_durable(VIDEO_ID, False)

    migrated = client.post("/api/migrate-to-storage", json={})
    assert migrated.status_code == 200
    assert migrated.get_json()["migrated"] == 1

    assert client.post("/api/migrate-to-storage", json={"limit": 0}).status_code == 400

    status = client.get("/api/redownload-status").get_json()
    assert status == {"total": 1, "in_storage": 1, "missing": 0, "in_progress": 0, "active_content_ids": []}

    redownload = client.post("/api/redownload-tracks", json={"limit": 5})
    assert redownload.status_code == 200
    assert redownload.get_json()["message"] == "All tracks are already in storage"


def test_maintenance_without_durable_tier(local_only_context):
    from station.api import create_app

    client = create_app(local_only_context, async_mode="threading").test_client()
    response = client.post("/api/migrate-to-storage")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Durable storage is not configured"
    assert client.post("/api/redownload-tracks").status_code == 400


def test_library_endpoints(client):
    track_id = _submit(client).get_json()["track"]["id"]

    assert client.get("/api/tracks/mine").status_code == 401
    mine = client.get("/api/tracks/mine", headers=ALICE).get_json()
    assert [t["id"] for t in mine] == [track_id]
    assert client.get(f"/api/tracks/{track_id}").get_json()["status"] == "ready"
    assert client.get("/api/tracks/9999").status_code == 404

    shared = client.put(f"/api/tracks/{track_id}/share", headers=ALICE)
    assert shared.status_code == 200
    assert shared.get_json()["shared"] is True
    assert [t["id"] for t in client.get("/api/tracks/shared").get_json()] == [track_id]
    assert client.put(f"/api/tracks/{track_id}/share", headers=BOB).status_code == 403

    adopted = client.post(f"/api/tracks/{track_id}/add-to-library", headers=BOB)
    assert adopted.status_code == 200
    assert adopted.get_json()["reused"] is True
    assert client.post(f"/api/tracks/{track_id}/add-to-library", headers=BOB).status_code == 409

    assert client.delete(f"/api/tracks/{track_id}", headers=BOB).status_code == 403
    assert client.delete(f"/api/tracks/{track_id}", headers=ALICE).status_code == 200
    assert client.get(f"/api/tracks/{track_id}").status_code == 404


def test_health_and_diagnostic(client):
    assert client.get("/api/health").get_json()["status"] == "ok"
    diag = client.get("/api/diagnostic").get_json()
    assert diag["yt_dlp_version"] == "2025.01.15"
    assert diag["durable_storage"]["configured"] is True
    assert diag["durable_storage"]["reachable"] is True
    assert diag["tracks"]["total"] == 0


def test_unexpected_errors_become_500(client, context, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("registry exploded")

    monkeypatch.setattr(context.registry, "list_shared", boom)
    response = client.get("/api/tracks/shared")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_progress_pushed_to_owner_room(app):
    alice = socketio.test_client(app)
    bob = socketio.test_client(app)
    alice.emit("subscribe", {"owner_id": "alice"})
    bob.emit("subscribe", {"owner_id": "bob"})
    alice.get_received()
    bob.get_received()

    SocketIONotifier(socketio).notify(ProgressEvent("alice", 7, 100, TrackStatus.READY))

    received = alice.get_received()
    assert [r["name"] for r in received] == ["download_progress"]
    assert received[0]["args"][0] == {"owner_id": "alice", "track_id": 7, "progress": 100, "status": "ready"}
    assert bob.get_received() == []
    alice.disconnect()
    bob.disconnect()
