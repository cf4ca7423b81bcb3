"""
Durable object store tiers.

S3ObjectStoreTier talks to any S3-compatible service through boto3
(Cloudflare R2, Backblaze B2's S3 endpoint, AWS S3, MinIO...).
DirectoryObjectStoreTier keeps the same key layout on a mounted directory,
which is how self-hosters on a NAS run it.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Dict, Any

from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from shared.constants import AUDIO_MIMETYPE
from shared.errors import StorageTierFailure
from shared.models import Track
from .storage_provider import DurableTier, BufferedHandle, LocalFileHandle

logger = logging.getLogger(__name__)

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


def _is_missing(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in _MISSING_CODES


class S3ObjectStoreTier(DurableTier):
    """
    Durable tier backed by an S3 bucket.

    The boto3 client is injected so the factory decides endpoints and
    credentials; reads buffer the whole object in memory.
    """

    def __init__(self, s3_client, bucket_name: str, prefix: str, name: str = "s3"):
        super().__init__(prefix)
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.name = name

    def object_exists(self, content_id: str) -> bool:
        key = self.object_key(content_id)
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageTierFailure(self.name, f"head {key} failed: {e}")
        except BotoCoreError as e:
            raise StorageTierFailure(self.name, f"head {key} failed: {e}")

    def open(self, track: Track) -> Optional[BufferedHandle]:
        key = self.object_key(track.content_id)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            return BufferedHandle(response['Body'].read())
        except ClientError as e:
            if _is_missing(e):
                return None
            raise StorageTierFailure(self.name, f"get {key} failed: {e}")
        except BotoCoreError as e:
            raise StorageTierFailure(self.name, f"get {key} failed: {e}")

    def upload(self, local_path: Path, content_id: str, metadata: Optional[Dict[str, str]] = None) -> bool:
        key = self.object_key(content_id)
        extra_args = {'ContentType': AUDIO_MIMETYPE}
        if metadata:
            extra_args['Metadata'] = metadata
        try:
            self.s3_client.upload_file(str(local_path), self.bucket_name, key, ExtraArgs=extra_args)
            logger.info(f"[ObjectStorage] Uploaded {key} to {self.bucket_name}")
            return True
        except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as e:
            logger.warning(f"[ObjectStorage] Upload failed for {key}: {e}")
            return False

    def delete_object(self, content_id: str) -> bool:
        key = self.object_key(content_id)
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"[ObjectStorage] Delete failed for {key}: {e}")
            return False

    def probe(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"[ObjectStorage] Bucket {self.bucket_name} not reachable: {e}")
            return False

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info['bucket'] = self.bucket_name
        info['endpoint'] = getattr(getattr(self.s3_client, 'meta', None), 'endpoint_url', None)
        return info


class DirectoryObjectStoreTier(DurableTier):
    """Durable tier on a mounted directory (NAS, external drive)."""

    name = "directory"

    def __init__(self, base_path: Path, prefix: str):
        super().__init__(prefix)
        self.base_path = Path(base_path).expanduser().absolute()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_path(self, content_id: str) -> Path:
        return self.base_path / self.object_key(content_id)

    def object_exists(self, content_id: str) -> bool:
        return self._get_path(content_id).is_file()

    def open(self, track: Track) -> Optional[LocalFileHandle]:
        path = self._get_path(track.content_id)
        if not path.is_file():
            return None
        try:
            return LocalFileHandle(path)
        except OSError as e:
            raise StorageTierFailure(self.name, f"cannot open {path}: {e}")

    def upload(self, local_path: Path, content_id: str, metadata: Optional[Dict[str, str]] = None) -> bool:
        dest_path = self._get_path(content_id)
        try:
            # Skip if same file
            if Path(local_path).resolve() == dest_path.resolve():
                return True
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(local_path, dest_path)
            logger.info(f"[ObjectStorage] Copied {local_path} -> {dest_path}")
            return True
        except OSError as e:
            logger.warning(f"[ObjectStorage] Copy failed for {content_id}: {e}")
            return False

    def delete_object(self, content_id: str) -> bool:
        path = self._get_path(content_id)
        try:
            if path.exists():
                os.remove(path)
            return True
        except OSError as e:
            logger.warning(f"[ObjectStorage] Delete failed for {path}: {e}")
            return False

    def probe(self) -> bool:
        return self.base_path.is_dir() and os.access(self.base_path, os.W_OK)

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info['base_path'] = str(self.base_path)
        return info
