"""Error taxonomy for the acquisition and delivery pipeline.

Synchronous handlers surface the HTTP-mapped errors directly. Failures of an
in-flight download never reach a request; they end up as registry status
plus a push notification.
"""

from typing import Any, Dict, Optional


class StationError(Exception):
    """Base exception. Carries the HTTP status the API answers with."""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None,
                 payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.payload}


class ValidationError(StationError):
    """Malformed input. Never retried automatically."""
    status_code = 400


class ConfigurationError(StationError):
    """Operation needs a backend that is not configured."""
    status_code = 400


class UnauthorizedError(StationError):
    """No caller identity was supplied by the auth layer."""
    status_code = 401


class ForbiddenError(StationError):
    status_code = 403


class NotFoundError(StationError):
    status_code = 404


class DuplicateError(StationError):
    """The caller already holds this content id. Carries the existing row."""
    status_code = 409

    def __init__(self, message: str, track=None):
        payload = {"track": track.to_dict()} if track is not None else {}
        super().__init__(message, payload=payload)
        self.track = track


class NotReadyError(StationError):
    """Requested before the download completed (425 Too Early)."""
    status_code = 425


class ExtractionFailure(StationError):
    """Extraction subprocess exited nonzero, timed out or failed to spawn."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class MetadataParseFailure(StationError):
    """Extraction succeeded but its structured output was unusable."""


class StorageTierFailure(StationError):
    """A storage backend read or write failed."""

    def __init__(self, tier: str, message: str):
        super().__init__(f"{tier}: {message}")
        self.tier = tier
