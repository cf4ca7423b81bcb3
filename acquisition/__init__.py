"""Acquisition: content id parsing, extraction, orchestration and re-acquisition."""

from .content_id import extract_content_id, is_valid_content_id
from .artist import extract_artist
from .extractor import ExtractionCapability, ExtractionResult, YtDlpExtractor
from .orchestrator import DownloadOrchestrator
from .reacquisition import ReacquisitionService, ReacquisitionTracker
from .stream_cache import StreamUrlCache
