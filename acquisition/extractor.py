"""
Extraction capability.

The orchestrator only sees ExtractionCapability. The production
implementation runs yt-dlp as a child process of this interpreter, one
process per download, the same way a terminal download would.
"""

import json
import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, List

from shared.constants import (
    AUDIO_FORMAT,
    DEFAULT_EXTRACTION_TIMEOUT_SEC,
    DEFAULT_RESOLVE_TIMEOUT_SEC,
    EXTRACTION_USER_AGENT,
)
from shared.errors import ExtractionFailure, MetadataParseFailure
from .content_id import canonical_url

logger = logging.getLogger(__name__)

_FORMAT_UNAVAILABLE = "Requested format is not available"


@dataclass
class ExtractionResult:
    """A finished extraction: where the audio landed and what yt-dlp printed."""
    output_path: Optional[Path]
    stdout: str = ""
    stderr: str = ""

    @property
    def has_output(self) -> bool:
        return self.output_path is not None and self.output_path.exists()


def parse_metadata(stdout: str) -> Dict[str, Any]:
    """
    Parse --print-json output. yt-dlp prints one JSON object per line;
    the last one describes the final download.

    Raises:
        MetadataParseFailure: If no line holds a JSON object
    """
    for line in reversed((stdout or "").strip().splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise MetadataParseFailure("No JSON metadata in extractor output")


class ExtractionCapability(ABC):
    """Turns a content id into a local audio file, or into a direct media URL."""

    @abstractmethod
    def extract(self, content_id: str, output_path: Path) -> ExtractionResult:
        """
        Download audio for content_id to output_path.

        Raises:
            ExtractionFailure: Nonzero exit, timeout or spawn error
        """
        pass

    @abstractmethod
    def resolve_stream_url(self, content_id: str) -> str:
        """
        Resolve an ephemeral direct media URL without downloading.

        Raises:
            ExtractionFailure: Resolution failed
        """
        pass

    def version(self) -> Optional[str]:
        return None


class YtDlpExtractor(ExtractionCapability):
    """Runs `python -m yt_dlp` in a subprocess."""

    def __init__(self, cookie_file: Optional[Path] = None,
                 timeout: int = DEFAULT_EXTRACTION_TIMEOUT_SEC,
                 resolve_timeout: int = DEFAULT_RESOLVE_TIMEOUT_SEC):
        self.cookie_file = Path(cookie_file) if cookie_file else None
        self.timeout = timeout
        self.resolve_timeout = resolve_timeout

    def _base_command(self) -> List[str]:
        return [sys.executable, "-m", "yt_dlp"]

    def _cookie_args(self) -> List[str]:
        if self.cookie_file and self.cookie_file.exists():
            return ["--cookies", str(self.cookie_file)]
        return []

    def build_download_args(self, content_id: str, output_path: Path) -> List[str]:
        output_template = str(output_path.with_suffix("")) + ".%(ext)s"
        args = self._base_command() + self._cookie_args() + [
            "-x",
            "--audio-format", AUDIO_FORMAT,
            "--audio-quality", "0",
            "--concurrent-fragments", "4",
            "--extractor-args", "youtube:player_client=android,web,default",
            "--user-agent", EXTRACTION_USER_AGENT,
            "--force-ipv4",
            "--geo-bypass",
            "--retries", "5",
            "--fragment-retries", "5",
            "-o", output_template,
            "--print-json",
            "--no-warnings",
        ]
        args.append(canonical_url(content_id))
        return args

    @staticmethod
    def _strip_cookies(args: List[str]) -> List[str]:
        i, no_cookies = 0, []
        while i < len(args):
            if args[i] == "--cookies" and i + 1 < len(args):
                i += 2
                continue
            no_cookies.append(args[i])
            i += 1
        return no_cookies

    def _run(self, args: List[str], timeout: int, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                timeout=timeout,
                capture_output=True,
                text=True,
            )
        except subprocess.TimeoutExpired:
            raise ExtractionFailure(f"yt-dlp timed out after {timeout}s")
        except OSError as e:
            raise ExtractionFailure(f"Could not start yt-dlp: {e}")

    @staticmethod
    def _locate_output(output_path: Path) -> Optional[Path]:
        if output_path.exists():
            return output_path
        # Postprocessing can leave a different extension behind
        stem = output_path.with_suffix("")
        for candidate in sorted(stem.parent.glob(f"{stem.name}.*")):
            if candidate.suffix in (".part", ".ytdl"):
                continue
            os.replace(candidate, output_path)
            return output_path
        return None

    def extract(self, content_id: str, output_path: Path) -> ExtractionResult:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        args = self.build_download_args(content_id, output_path)

        logger.info(f"[Download] Starting yt-dlp for {content_id} -> {output_path}")
        result = self._run(args, self.timeout, cwd=output_path.parent)

        # With cookies, YouTube can return a format list that doesn't match; retry without cookies
        if result.returncode != 0 and _FORMAT_UNAVAILABLE in (result.stderr or result.stdout or ""):
            if "--cookies" in args:
                logger.info(f"[Download] Retrying {content_id} without cookies")
                result = self._run(self._strip_cookies(args), self.timeout, cwd=output_path.parent)

        if result.returncode != 0:
            raise ExtractionFailure(
                f"yt-dlp exited {result.returncode} for {content_id}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )

        return ExtractionResult(
            output_path=self._locate_output(output_path),
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )

    def resolve_stream_url(self, content_id: str) -> str:
        args = self._base_command() + self._cookie_args() + [
            "-f", "bestaudio/best",
            "-g",
            "--no-warnings",
            "--quiet",
            canonical_url(content_id),
        ]
        result = self._run(args, self.resolve_timeout)
        if result.returncode != 0:
            raise ExtractionFailure(
                f"yt-dlp could not resolve {content_id}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )
        lines = (result.stdout or "").strip().splitlines()
        if not lines or not lines[0].startswith("http"):
            raise ExtractionFailure(f"yt-dlp returned no URL for {content_id}")
        return lines[0].strip()

    def version(self) -> Optional[str]:
        try:
            result = self._run(self._base_command() + ["--version"], self.resolve_timeout)
        except ExtractionFailure:
            return None
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip() or None
