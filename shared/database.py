"""
SQLite track registry for the Station.
Persistent record of every acquired asset, its owner and its status.
"""

import sqlite3
import threading
from pathlib import Path
from typing import List, Dict, Optional

from shared.models import Track, TrackStatus, ALLOWED_TRANSITIONS, utc_now_iso
from shared.constants import DEFAULT_DATA_DIR, DEFAULT_DATABASE_FILENAME
from shared.errors import DuplicateError


class TrackRegistry:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_dir = Path(DEFAULT_DATA_DIR).expanduser()
            db_dir.mkdir(parents=True, exist_ok=True)
            self.db_path = db_dir / DEFAULT_DATABASE_FILENAME
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Serializes writers; readers use their own connections
        self._write_lock = threading.Lock()
        self._init_db()

    def _get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=20)
        # Enable WAL mode for high concurrency
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tracks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    content_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    artist TEXT NOT NULL,
                    thumbnail_url TEXT,
                    locator TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'downloading',
                    progress INTEGER NOT NULL DEFAULT 0,
                    owner_id TEXT,
                    shared BOOLEAN NOT NULL DEFAULT 0,
                    added_at TEXT NOT NULL,
                    in_durable_tier BOOLEAN NOT NULL DEFAULT 0,
                    UNIQUE (content_id, owner_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tracks_content_status ON tracks (content_id, status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tracks_owner ON tracks (owner_id)")

            # Schema migrations (ensure columns exist)
            columns = [row[1] for row in conn.execute("PRAGMA table_info(tracks)").fetchall()]
            if 'in_durable_tier' not in columns:
                conn.execute("ALTER TABLE tracks ADD COLUMN in_durable_tier BOOLEAN NOT NULL DEFAULT 0")

    def _row_to_track(self, row: sqlite3.Row) -> Track:
        return Track.from_dict(dict(row))

    def _fetch_one(self, query: str, params: tuple = ()) -> Optional[Track]:
        with self._get_connection() as conn:
            row = conn.execute(query, params).fetchone()
            return self._row_to_track(row) if row else None

    def _fetch_all(self, query: str, params: tuple = ()) -> List[Track]:
        with self._get_connection() as conn:
            return [self._row_to_track(row) for row in conn.execute(query, params).fetchall()]

    # --- Lookups ---

    def get(self, track_id: int) -> Optional[Track]:
        return self._fetch_one("SELECT * FROM tracks WHERE id = ?", (track_id,))

    def get_by_content_id(self, content_id: str) -> Optional[Track]:
        """Any row for this content id, regardless of owner or status."""
        return self._fetch_one("SELECT * FROM tracks WHERE content_id = ? ORDER BY id LIMIT 1", (content_id,))

    def get_by_content_id_for_owner(self, content_id: str, owner_id: Optional[str]) -> Optional[Track]:
        if owner_id is None:
            return self._fetch_one(
                "SELECT * FROM tracks WHERE content_id = ? AND owner_id IS NULL ORDER BY id LIMIT 1",
                (content_id,),
            )
        return self._fetch_one(
            "SELECT * FROM tracks WHERE content_id = ? AND owner_id = ?",
            (content_id, owner_id),
        )

    def get_ready_by_content_id(self, content_id: str) -> Optional[Track]:
        """Oldest ready row for this content id, from any owner."""
        return self._fetch_one(
            "SELECT * FROM tracks WHERE content_id = ? AND status = ? ORDER BY id LIMIT 1",
            (content_id, TrackStatus.READY.value),
        )

    def list_ready_by_content_id(self, content_id: str) -> List[Track]:
        return self._fetch_all(
            "SELECT * FROM tracks WHERE content_id = ? AND status = ? ORDER BY id",
            (content_id, TrackStatus.READY.value),
        )

    def list_for_owner(self, owner_id: str) -> List[Track]:
        return self._fetch_all("SELECT * FROM tracks WHERE owner_id = ? ORDER BY added_at DESC, id DESC", (owner_id,))

    def list_shared(self) -> List[Track]:
        return self._fetch_all(
            "SELECT * FROM tracks WHERE shared = 1 AND status = ? ORDER BY added_at DESC, id DESC",
            (TrackStatus.READY.value,),
        )

    def list_ready(self, limit: Optional[int] = None) -> List[Track]:
        query = "SELECT * FROM tracks WHERE status = ? ORDER BY id"
        params: tuple = (TrackStatus.READY.value,)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)
        return self._fetch_all(query, params)

    def list_ready_missing_from_durable_tier(self, limit: Optional[int] = None) -> List[Track]:
        """Ready rows whose bytes were never confirmed in the durable tier, one per content id."""
        query = """
            SELECT * FROM tracks WHERE id IN (
                SELECT MIN(id) FROM tracks
                WHERE status = ? AND in_durable_tier = 0
                GROUP BY content_id
            ) ORDER BY id
        """
        params: tuple = (TrackStatus.READY.value,)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)
        return self._fetch_all(query, params)

    def is_content_shared(self, content_id: str, exclude_track_id: Optional[int] = None) -> bool:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM tracks WHERE content_id = ? AND shared = 1 AND id != ? LIMIT 1",
                (content_id, exclude_track_id if exclude_track_id is not None else -1),
            ).fetchone()
            return row is not None

    def count_references(self, content_id: str, locator: str) -> Dict[str, int]:
        """How many rows still point at this content id / local file."""
        with self._get_connection() as conn:
            by_content = conn.execute("SELECT COUNT(*) FROM tracks WHERE content_id = ?", (content_id,)).fetchone()[0]
            by_locator = conn.execute("SELECT COUNT(*) FROM tracks WHERE locator = ?", (locator,)).fetchone()[0]
            return {"content_id": by_content, "locator": by_locator}

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TrackStatus}
        with self._get_connection() as conn:
            for row in conn.execute("SELECT status, COUNT(*) AS n FROM tracks GROUP BY status").fetchall():
                counts[row["status"]] = row["n"]
        counts["total"] = sum(counts.values())
        return counts

    # --- Writes ---

    def create(self, content_id: str, title: str, artist: str, locator: str,
               owner_id: Optional[str], status: TrackStatus = TrackStatus.DOWNLOADING,
               progress: int = 0, thumbnail_url: Optional[str] = None,
               shared: bool = False, in_durable_tier: bool = False) -> Track:
        """
        Insert a new row.

        Raises:
            DuplicateError: (content_id, owner_id) already exists
        """
        with self._write_lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute("""
                        INSERT INTO tracks (
                            content_id, title, artist, thumbnail_url, locator,
                            status, progress, owner_id, shared, added_at, in_durable_tier
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        content_id, title, artist, thumbnail_url, locator,
                        status.value, progress, owner_id, shared, utc_now_iso(), in_durable_tier,
                    ))
                    track_id = cursor.lastrowid
            except sqlite3.IntegrityError:
                existing = self.get_by_content_id_for_owner(content_id, owner_id)
                raise DuplicateError("You already have this track", track=existing)
        return self.get(track_id)

    def update_status(self, track_id: int, status: TrackStatus, progress: int) -> bool:
        """
        Move a row forward in its lifecycle.

        Returns:
            True if the row moved, False if the transition is not allowed
            (terminal rows never change status).
        """
        sources = ALLOWED_TRANSITIONS.get(status, ())
        if not sources:
            return False
        placeholders = ",".join("?" * len(sources))
        with self._write_lock, self._get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE tracks SET status = ?, progress = ? WHERE id = ? AND status IN ({placeholders})",
                (status.value, progress, track_id, *[s.value for s in sources]),
            )
            return cursor.rowcount == 1

    def update_metadata(self, track_id: int, title: str, artist: str,
                        thumbnail_url: Optional[str] = None) -> None:
        with self._write_lock, self._get_connection() as conn:
            conn.execute(
                "UPDATE tracks SET title = ?, artist = ?, thumbnail_url = COALESCE(?, thumbnail_url) WHERE id = ?",
                (title, artist, thumbnail_url, track_id),
            )

    def mark_shared(self, track_id: int, shared: bool) -> None:
        with self._write_lock, self._get_connection() as conn:
            conn.execute("UPDATE tracks SET shared = ? WHERE id = ?", (shared, track_id))

    def mark_durable(self, content_id: str, in_durable_tier: bool = True) -> None:
        """Record durable-tier presence for every row sharing the content id."""
        with self._write_lock, self._get_connection() as conn:
            conn.execute("UPDATE tracks SET in_durable_tier = ? WHERE content_id = ?", (in_durable_tier, content_id))

    def delete(self, track_id: int) -> bool:
        with self._write_lock, self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM tracks WHERE id = ?", (track_id,))
            return cursor.rowcount == 1
