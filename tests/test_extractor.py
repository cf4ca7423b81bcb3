import subprocess
import sys
from types import SimpleNamespace

import pytest

from acquisition.extractor import YtDlpExtractor, parse_metadata
from shared.errors import ExtractionFailure, MetadataParseFailure

VIDEO_ID = "dQw4w9WgXcQ"


def _completed(returncode=0, stdout="", stderr=""):
    return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)


def test_download_args_follow_cli_defaults(tmp_path):
    cookies = tmp_path / "cookies.txt"
    cookies.write_text("# Netscape HTTP Cookie File")
    args = YtDlpExtractor(cookie_file=cookies).build_download_args(VIDEO_ID, tmp_path / f"{VIDEO_ID}.mp3")

    assert args[:3] == [sys.executable, "-m", "yt_dlp"]
    assert args[args.index("--cookies") + 1] == str(cookies)
    assert args[args.index("--audio-format") + 1] == "mp3"
    assert args[args.index("-o") + 1] == str(tmp_path / VIDEO_ID) + ".%(ext)s"
    assert "--print-json" in args
    assert args[-1] == f"https://www.youtube.com/watch?v={VIDEO_ID}"


def test_missing_cookie_file_is_ignored(tmp_path):
    args = YtDlpExtractor(cookie_file=tmp_path / "nope.txt").build_download_args(VIDEO_ID, tmp_path / "a.mp3")
    assert "--cookies" not in args


def test_extract_writes_and_locates_output(tmp_path, monkeypatch):
    target = tmp_path / f"{VIDEO_ID}.mp3"

    def fake_run(args, **kwargs):
        target.write_bytes(b"audio")
        return _completed(stdout='{"title": "Song"}\n')

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = YtDlpExtractor(timeout=5).extract(VIDEO_ID, target)
    assert result.output_path == target
    assert result.has_output
    assert parse_metadata(result.stdout) == {"title": "Song"}


def test_extract_renames_other_extension(tmp_path, monkeypatch):
    target = tmp_path / f"{VIDEO_ID}.mp3"

    def fake_run(args, **kwargs):
        (tmp_path / f"{VIDEO_ID}.webm").write_bytes(b"audio")
        return _completed()

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = YtDlpExtractor().extract(VIDEO_ID, target)
    assert result.output_path == target
    assert target.read_bytes() == b"audio"


def test_nonzero_exit_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda args, **kwargs: _completed(1, stderr="ERROR: Private video"))
    with pytest.raises(ExtractionFailure) as exc:
        YtDlpExtractor().extract(VIDEO_ID, tmp_path / "a.mp3")
    assert exc.value.returncode == 1
    assert "Private video" in exc.value.stderr


def test_timeout_and_spawn_errors_raise(tmp_path, monkeypatch):
    def timeout(args, **kwargs):
        raise subprocess.TimeoutExpired(args, kwargs.get("timeout"))

    monkeypatch.setattr(subprocess, "run", timeout)
    with pytest.raises(ExtractionFailure):
        YtDlpExtractor(timeout=1).extract(VIDEO_ID, tmp_path / "a.mp3")

    def missing(args, **kwargs):
        raise FileNotFoundError("python")

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(ExtractionFailure):
        YtDlpExtractor().extract(VIDEO_ID, tmp_path / "a.mp3")


def test_format_error_retries_without_cookies(tmp_path, monkeypatch):
    cookies = tmp_path / "cookies.txt"
    cookies.write_text("x")
    calls = []

    def fake_run(args, **kwargs):
        calls.append(list(args))
        if "--cookies" in args:
            return _completed(1, stderr="ERROR: Requested format is not available")
        return _completed(0, stdout="{}")

    monkeypatch.setattr(subprocess, "run", fake_run)
    YtDlpExtractor(cookie_file=cookies).extract(VIDEO_ID, tmp_path / "a.mp3")
    assert len(calls) == 2
    assert "--cookies" not in calls[1]


def test_resolve_stream_url_takes_first_line(monkeypatch):
    seen = {}

    def fake_run(args, **kwargs):
        seen["args"], seen["timeout"] = args, kwargs["timeout"]
        return _completed(stdout="https://rr3.googlevideo.com/a\nhttps://rr3.googlevideo.com/b\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    assert YtDlpExtractor().resolve_stream_url(VIDEO_ID) == "https://rr3.googlevideo.com/a"
    assert "-g" in seen["args"]
    assert seen["timeout"] == 30


def test_resolve_stream_url_failure(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda args, **kwargs: _completed(0, stdout=""))
    with pytest.raises(ExtractionFailure):
        YtDlpExtractor().resolve_stream_url(VIDEO_ID)


def test_parse_metadata_rejects_garbage():
    with pytest.raises(MetadataParseFailure):
        parse_metadata("[download] Destination: x.webm\n")
    with pytest.raises(MetadataParseFailure):
        parse_metadata("")
