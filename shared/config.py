"""
Station configuration.

Values come from the environment; a .env file in the working directory is
loaded first when present.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from shared.constants import (
    DEFAULT_COOKIES_FILENAME,
    DEFAULT_DATA_DIR,
    DEFAULT_DATABASE_FILENAME,
    DEFAULT_DURABLE_PREFIX,
    DEFAULT_EXTRACTION_TIMEOUT_SEC,
    DEFAULT_MUSIC_DIR,
    DEFAULT_STATION_PORT,
    DEFAULT_STREAM_URL_TTL_SEC,
)
from shared.models import StorageProvider


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class DurableStorageConfig:
    """Credentials and location of the durable object store."""
    provider: StorageProvider
    bucket: Optional[str] = None
    prefix: str = DEFAULT_DURABLE_PREFIX
    endpoint: Optional[str] = None
    region: Optional[str] = None
    account_id: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


@dataclass
class StationConfig:
    music_dir: Path
    database_path: Path
    durable: Optional[DurableStorageConfig] = None
    cookies_file: Optional[Path] = None
    extraction_timeout_sec: int = DEFAULT_EXTRACTION_TIMEOUT_SEC
    stream_url_ttl_sec: int = DEFAULT_STREAM_URL_TTL_SEC
    port: int = DEFAULT_STATION_PORT
    log_level: str = "INFO"

    def ensure_dirs(self) -> None:
        self.music_dir.mkdir(parents=True, exist_ok=True)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'StationConfig':
        load_dotenv(env_file)

        music_dir = Path(os.getenv("MUSIC_DIR", str(Path.cwd() / DEFAULT_MUSIC_DIR))).expanduser()
        database_path = Path(
            os.getenv("DATABASE_PATH", str(Path(DEFAULT_DATA_DIR) / DEFAULT_DATABASE_FILENAME))
        ).expanduser()
        cookies = Path(os.getenv("YTDLP_COOKIES_FILE", str(Path.cwd() / DEFAULT_COOKIES_FILENAME))).expanduser()

        return cls(
            music_dir=music_dir,
            database_path=database_path,
            durable=cls._durable_from_env(),
            cookies_file=cookies,
            extraction_timeout_sec=_env_int("YTDLP_TIMEOUT_SEC", DEFAULT_EXTRACTION_TIMEOUT_SEC),
            stream_url_ttl_sec=_env_int("STREAM_URL_TTL_SEC", DEFAULT_STREAM_URL_TTL_SEC),
            port=_env_int("STATION_PORT", DEFAULT_STATION_PORT),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @staticmethod
    def _durable_from_env() -> Optional[DurableStorageConfig]:
        raw_provider = (os.getenv("DURABLE_STORAGE_PROVIDER") or "").strip().lower()
        if not raw_provider:
            return None
        try:
            provider = StorageProvider(raw_provider)
        except ValueError:
            raise ValueError(f"Unknown DURABLE_STORAGE_PROVIDER: {raw_provider}")

        # Fall back to the R2 variable names used by older deployments
        return DurableStorageConfig(
            provider=provider,
            bucket=os.getenv("DURABLE_STORAGE_BUCKET") or os.getenv("R2_BUCKET_NAME"),
            prefix=(os.getenv("DURABLE_STORAGE_PREFIX") or DEFAULT_DURABLE_PREFIX).strip("/"),
            endpoint=os.getenv("DURABLE_STORAGE_ENDPOINT"),
            region=os.getenv("DURABLE_STORAGE_REGION"),
            account_id=os.getenv("R2_ACCOUNT_ID"),
            access_key_id=os.getenv("DURABLE_STORAGE_ACCESS_KEY_ID") or os.getenv("R2_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("DURABLE_STORAGE_SECRET_ACCESS_KEY") or os.getenv("R2_SECRET_ACCESS_KEY"),
        )
