"""
Wiring for the Station: one object owning every service the API needs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from acquisition.extractor import ExtractionCapability, YtDlpExtractor
from acquisition.orchestrator import DownloadOrchestrator
from acquisition.reacquisition import ReacquisitionService
from acquisition.stream_cache import StreamUrlCache
from shared.config import StationConfig
from shared.constants import DOWNLOAD_RATE_LIMIT, RESOLVE_RATE_LIMIT
from shared.database import TrackRegistry
from shared.notifications import ProgressNotifier
from shared.threads import spawn_background
from storage_tiers.local_provider import LocalDiskTier
from storage_tiers.provider_factory import StorageTierFactory
from storage_tiers.resolver import TieredStorageResolver, LivePassthroughTier
from storage_tiers.storage_provider import DurableTier
from .delivery import AudioDeliveryService
from .rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class StationContext:
    config: StationConfig
    registry: TrackRegistry
    extractor: ExtractionCapability
    resolver: TieredStorageResolver
    stream_cache: StreamUrlCache
    orchestrator: DownloadOrchestrator
    reacquisition: ReacquisitionService
    delivery: AudioDeliveryService
    download_limiter: FixedWindowRateLimiter
    resolve_limiter: FixedWindowRateLimiter
    notifier: ProgressNotifier


def build_context(config: StationConfig,
                  notifier: Optional[ProgressNotifier] = None,
                  extractor: Optional[ExtractionCapability] = None,
                  durable: Optional[DurableTier] = None,
                  run_in_background: Callable = spawn_background) -> StationContext:
    """
    Assemble the services from config. Tests pass their own extractor,
    durable tier and background runner.
    """
    config.ensure_dirs()
    notifier = notifier or ProgressNotifier()
    registry = TrackRegistry(str(config.database_path))
    extractor = extractor or YtDlpExtractor(
        cookie_file=config.cookies_file,
        timeout=config.extraction_timeout_sec,
    )
    if durable is None:
        durable = StorageTierFactory.create(config.durable)

    stream_cache = StreamUrlCache(extractor.resolve_stream_url, ttl=config.stream_url_ttl_sec)
    resolver = TieredStorageResolver(
        local=LocalDiskTier(config.music_dir),
        durable=durable,
        passthrough=LivePassthroughTier(stream_cache),
    )
    orchestrator = DownloadOrchestrator(
        registry, extractor, resolver, notifier=notifier, run_in_background=run_in_background,
    )
    reacquisition = ReacquisitionService(
        registry, extractor, resolver, run_in_background=run_in_background,
    )

    logger.info(
        f"Station storage: local={config.music_dir}, durable={durable.describe() if durable else 'disabled'}"
    )
    return StationContext(
        config=config,
        registry=registry,
        extractor=extractor,
        resolver=resolver,
        stream_cache=stream_cache,
        orchestrator=orchestrator,
        reacquisition=reacquisition,
        delivery=AudioDeliveryService(registry, resolver, stream_cache),
        download_limiter=FixedWindowRateLimiter(*DOWNLOAD_RATE_LIMIT),
        resolve_limiter=FixedWindowRateLimiter(*RESOLVE_RATE_LIMIT),
        notifier=notifier,
    )
