"""
Abstract storage tier interface and the byte handles tiers hand out.

Every tier answers the same two questions for a track: do you hold its
bytes, and if so give me a handle to read them. Durable tiers can also
accept uploads and delete objects.
"""

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional, Dict, Any, Union

from shared.constants import AUDIO_FORMAT, AUDIO_MIMETYPE
from shared.models import Track


class AudioHandle(ABC):
    """Read access to one stored audio asset."""

    content_type: str = AUDIO_MIMETYPE

    @property
    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def source(self) -> Union[Path, BinaryIO]:
        """A path or a fresh binary stream, as accepted by flask.send_file."""
        pass


class LocalFileHandle(AudioHandle):
    """A file on disk. Served straight from the path, never read into memory."""

    def __init__(self, path: Path):
        self.path = Path(path).absolute()
        self._size = self.path.stat().st_size

    @property
    def size(self) -> int:
        return self._size

    def source(self) -> Path:
        return self.path


class BufferedHandle(AudioHandle):
    """A whole object held in memory (durable tier reads)."""

    def __init__(self, data: bytes):
        self.data = data

    @property
    def size(self) -> int:
        return len(self.data)

    def source(self) -> BinaryIO:
        return io.BytesIO(self.data)


class StorageTier(ABC):
    """
    A place audio bytes may live.

    Implementations return None from open() when they simply do not hold
    the asset, and raise StorageTierFailure when the backend itself failed.
    """

    name: str = "tier"

    @abstractmethod
    def exists(self, track: Track) -> bool:
        pass

    @abstractmethod
    def open(self, track: Track) -> Optional[AudioHandle]:
        pass


class DurableTier(StorageTier):
    """
    Content-addressed object store. Objects live at <prefix>/<content_id>.mp3
    so every owner's row for the same content id shares one object.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix.strip("/")

    def object_key(self, content_id: str) -> str:
        name = f"{content_id}.{AUDIO_FORMAT}"
        return f"{self.prefix}/{name}" if self.prefix else name

    def exists(self, track: Track) -> bool:
        return self.object_exists(track.content_id)

    @abstractmethod
    def object_exists(self, content_id: str) -> bool:
        pass

    @abstractmethod
    def upload(self, local_path: Path, content_id: str, metadata: Optional[Dict[str, str]] = None) -> bool:
        """
        Copy a local file into the store.

        Returns:
            True if upload successful, False otherwise
        """
        pass

    @abstractmethod
    def delete_object(self, content_id: str) -> bool:
        pass

    @abstractmethod
    def probe(self) -> bool:
        """Cheap reachability check for diagnostics."""
        pass

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "prefix": self.prefix}
