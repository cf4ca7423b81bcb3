"""
Shared constants used across the platform.
"""

# Audio formats
AUDIO_FORMAT = "mp3"
AUDIO_MIMETYPE = "audio/mpeg"

# Content ids (YouTube video ids)
CONTENT_ID_LENGTH = 11
CONTENT_ID_PATTERN = r"[0-9A-Za-z_-]{11}"
CANONICAL_WATCH_URL = "https://www.youtube.com/watch?v={content_id}"
THUMBNAIL_URL_TEMPLATE = "https://i.ytimg.com/vi/{content_id}/hqdefault.jpg"

# Placeholder metadata
PLACEHOLDER_ARTIST = "YouTube"
PENDING_TITLE_TEMPLATE = "Downloading {content_id}..."
FALLBACK_TITLE_TEMPLATE = "Track {content_id}"

# Locators
OWNER_PREFIX_LENGTH = 8

# Progress markers
PROGRESS_STARTED = 0
PROGRESS_PROCESSING = 90
PROGRESS_DONE = 100

# Stream URL cache
DEFAULT_STREAM_URL_TTL_SEC = 2 * 3600  # direct media URLs expire after ~6h

# Extraction settings
DEFAULT_EXTRACTION_TIMEOUT_SEC = 600
DEFAULT_RESOLVE_TIMEOUT_SEC = 30
DEFAULT_COOKIES_FILENAME = "youtube_cookies.txt"
EXTRACTION_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Durable tier
DEFAULT_DURABLE_PREFIX = "audio"

# S3 Provider endpoints
CLOUDFLARE_R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
BACKBLAZE_B2_ENDPOINT_TEMPLATE = "https://s3.{region}.backblazeb2.com"
AWS_S3_ENDPOINT_TEMPLATE = "https://s3.{region}.amazonaws.com"

# Configuration paths
DEFAULT_DATA_DIR = "~/.local/share/soundrelay"
DEFAULT_DATABASE_FILENAME = "tracks.db"
DEFAULT_MUSIC_DIR = "music"

# Network Settings
DEFAULT_STATION_PORT = 5005

# Identity header set by the upstream auth layer
OWNER_HEADER = "X-User-Id"

# Admission control (requests, window seconds)
DOWNLOAD_RATE_LIMIT = (50, 15 * 60)
RESOLVE_RATE_LIMIT = (30, 60)

# Push notifications
PROGRESS_EVENT = "download_progress"
OWNER_ROOM_TEMPLATE = "owner:{owner_id}"
