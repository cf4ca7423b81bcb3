"""
Local disk tier.
The fast path: files written by the extractor under MUSIC_DIR.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from shared.constants import AUDIO_FORMAT, OWNER_PREFIX_LENGTH
from shared.errors import StorageTierFailure
from shared.models import Track
from .storage_provider import StorageTier, LocalFileHandle

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class LocalDiskTier(StorageTier):
    name = "local"

    def __init__(self, music_dir: Path):
        self.music_dir = Path(music_dir).expanduser().absolute()
        self.music_dir.mkdir(parents=True, exist_ok=True)

    def locator_for(self, content_id: str, owner_id: Optional[str] = None) -> Path:
        """<music_dir>/<content_id>_<owner prefix>.mp3, or <content_id>.mp3 without an owner."""
        if owner_id:
            prefix = _UNSAFE_FILENAME_CHARS.sub("_", owner_id[:OWNER_PREFIX_LENGTH])
            return self.music_dir / f"{content_id}_{prefix}.{AUDIO_FORMAT}"
        return self.music_dir / f"{content_id}.{AUDIO_FORMAT}"

    def exists(self, track: Track) -> bool:
        return bool(track.locator) and os.path.isfile(track.locator)

    def open(self, track: Track) -> Optional[LocalFileHandle]:
        if not self.exists(track):
            return None
        try:
            return LocalFileHandle(Path(track.locator))
        except OSError as e:
            raise StorageTierFailure(self.name, f"cannot open {track.locator}: {e}")

    def delete(self, locator: str) -> bool:
        try:
            if locator and os.path.exists(locator):
                os.remove(locator)
            return True
        except OSError as e:
            logger.warning(f"[Storage] Failed to delete local file {locator}: {e}")
            return False
