"""
Audio delivery: range-aware serving over whichever tier holds the bytes,
with a redirect to the upstream media URL as the last resort.

Range parsing, 206/416 and Content-Range come from werkzeug through
send_file(conditional=True), the same way for local files and for objects
buffered from the durable tier.
"""

import logging

from flask import Response, redirect, send_file

from acquisition.content_id import is_valid_content_id
from acquisition.stream_cache import StreamUrlCache
from shared.constants import AUDIO_FORMAT
from shared.database import TrackRegistry
from shared.errors import NotFoundError, NotReadyError, ValidationError
from storage_tiers.resolver import ResolvedAsset, TieredStorageResolver

logger = logging.getLogger(__name__)

EXPOSED_HEADERS = 'Content-Range, Content-Length, Accept-Ranges'


def send_audio(asset: ResolvedAsset, content_id: str) -> Response:
    """Serve a stored asset to the current request, honoring its Range header."""
    handle = asset.handle
    response = send_file(
        handle.source(),
        mimetype=handle.content_type,
        conditional=True,
        download_name=f"{content_id}.{AUDIO_FORMAT}",
    )
    response.headers['Access-Control-Expose-Headers'] = EXPOSED_HEADERS
    response.headers['X-Storage-Tier'] = asset.tier
    return response


class AudioDeliveryService:
    def __init__(self, registry: TrackRegistry, resolver: TieredStorageResolver,
                 stream_cache: StreamUrlCache):
        self.registry = registry
        self.resolver = resolver
        self.stream_cache = stream_cache

    @staticmethod
    def _validate(content_id: str) -> None:
        if not is_valid_content_id(content_id):
            raise ValidationError("Invalid video id")

    def locate(self, content_id: str) -> ResolvedAsset:
        """
        Pick the tier that serves content_id right now.

        Raises:
            ValidationError: Malformed content id
            NotFoundError: Never submitted, or no tier can produce it
            NotReadyError: Submitted but not finished
        """
        self._validate(content_id)
        tracks = self.registry.list_ready_by_content_id(content_id)
        if not tracks:
            if self.registry.get_by_content_id(content_id) is not None:
                raise NotReadyError("Track is not ready yet")
            raise NotFoundError("Track not found")

        asset = self.resolver.resolve(tracks)
        if asset is None:
            logger.warning(f"[Stream] {content_id} unavailable from every tier")
            raise NotFoundError("Audio file not found")
        return asset

    def get_asset(self, content_id: str) -> Response:
        """
        Response for GET /api/audio/<content_id>. Needs a request context.

        Stored bytes come back as 200 or 206 (416 for a range past the end);
        a passthrough hit is a 302 to the upstream URL.
        """
        asset = self.locate(content_id)
        if asset.is_redirect:
            return redirect(asset.redirect_url, code=302)
        logger.debug(f"[Stream] Serving {content_id} from {asset.tier} tier")
        return send_audio(asset, content_id)

    def resolve_stream_url(self, content_id: str) -> str:
        """Direct upstream URL for any valid content id, registered or not."""
        self._validate(content_id)
        url = self.stream_cache.get(content_id)
        if not url:
            raise NotFoundError("Could not get stream URL")
        return url
