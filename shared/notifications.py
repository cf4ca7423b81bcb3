"""
Push notifications for download progress.

The orchestrator only knows the ProgressNotifier interface; the Station
wires in a SocketIO-backed notifier that emits into per-owner rooms.
"""

import logging
from typing import List

from shared.constants import PROGRESS_EVENT, OWNER_ROOM_TEMPLATE
from shared.models import ProgressEvent

logger = logging.getLogger(__name__)


def owner_room(owner_id: str) -> str:
    return OWNER_ROOM_TEMPLATE.format(owner_id=owner_id)


class ProgressNotifier:
    """Base notifier. Fire-and-forget; implementations must not raise."""

    def notify(self, event: ProgressEvent) -> None:
        logger.debug(f"[Progress] track {event.track_id}: {event.status.value} {event.progress}%")


class SocketIONotifier(ProgressNotifier):
    def __init__(self, socketio):
        self.socketio = socketio

    def notify(self, event: ProgressEvent) -> None:
        super().notify(event)
        try:
            if event.owner_id:
                self.socketio.emit(PROGRESS_EVENT, event.to_dict(), room=owner_room(event.owner_id))
            else:
                self.socketio.emit(PROGRESS_EVENT, event.to_dict())
        except Exception as e:
            # A dropped push must never fail the download itself
            logger.warning(f"[Progress] Failed to emit event for track {event.track_id}: {e}")


class RecordingNotifier(ProgressNotifier):
    """Keeps every event in memory. Used by the CLI and tests."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def notify(self, event: ProgressEvent) -> None:
        super().notify(event)
        self.events.append(event)
