import json
from pathlib import Path

import pytest

from acquisition.extractor import ExtractionCapability, ExtractionResult
from shared.config import StationConfig
from shared.errors import ExtractionFailure
from shared.notifications import RecordingNotifier
from shared.threads import run_inline
from station.context import build_context
from storage_tiers.object_store import DirectoryObjectStoreTier

VIDEO_ID = "dQw4w9WgXcQ"
OTHER_VIDEO_ID = "kJQP7kiw5Fk"
AUDIO_BYTES = b"ID3" + bytes(range(256)) * 8


class FakeExtractor(ExtractionCapability):
    """Writes canned audio instead of running yt-dlp, and counts invocations."""

    def __init__(self):
        self.calls = []
        self.resolve_calls = []
        self.payload = AUDIO_BYTES
        self.info = {
            "title": "Drake - God's Plan",
            "channel": "DrakeVEVO",
            "thumbnail": "https://i.ytimg.com/vi/custom/maxresdefault.jpg",
        }
        self.stdout = None
        self.fail = False
        self.write_file = True
        self.resolve_fails = False

    def extract(self, content_id, output_path):
        self.calls.append(content_id)
        if self.fail:
            raise ExtractionFailure("yt-dlp exited 1", returncode=1, stderr="ERROR: Video unavailable")
        output_path = Path(output_path)
        if self.write_file:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(self.payload)
        stdout = self.stdout if self.stdout is not None else json.dumps({"id": content_id, **self.info})
        return ExtractionResult(output_path if self.write_file else None, stdout=stdout)

    def resolve_stream_url(self, content_id):
        self.resolve_calls.append(content_id)
        if self.resolve_fails:
            raise ExtractionFailure(f"yt-dlp could not resolve {content_id}", returncode=1)
        return f"https://rr1.googlevideo.com/videoplayback?id={content_id}"

    def version(self):
        return "2025.01.15"


@pytest.fixture
def config(tmp_path):
    return StationConfig(
        music_dir=tmp_path / "music",
        database_path=tmp_path / "data" / "tracks.db",
        cookies_file=None,
    )


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def durable(tmp_path):
    return DirectoryObjectStoreTier(tmp_path / "durable", "audio")


@pytest.fixture
def context(config, extractor, notifier, durable):
    return build_context(config, notifier=notifier, extractor=extractor, durable=durable,
                         run_in_background=run_inline)


@pytest.fixture
def local_only_context(config, extractor, notifier):
    return build_context(config, notifier=notifier, extractor=extractor, run_in_background=run_inline)


@pytest.fixture
def registry(context):
    return context.registry


@pytest.fixture
def app(context):
    from station.api import create_app
    app = create_app(context, async_mode="threading")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
