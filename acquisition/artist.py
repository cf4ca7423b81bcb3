"""
Artist extraction from video metadata.

YouTube rarely carries a clean artist field, so the name is recovered from
the title and channel. Pure functions only; no network lookups.
"""

import re
import logging
from typing import Dict, Any, Optional

from shared.constants import PLACEHOLDER_ARTIST

logger = logging.getLogger(__name__)


class ArtistExtractor:
    # Channels that post other people's music; their name is never the artist
    NON_ARTIST_CHANNELS = [
        "WORLDSTARHIPHOP", "Thizzler On The Roof", "On The Radar Radio",
        "Club Shay Shay", "Proxclusiv", "TIARRAMARIEFILMS", "LN1800",
        "ShotBy O.A", "Gangstaslotheditz", "ImYungVlone", "UpcomingPhilly",
        "Audio Exhibit", "archived.mp3", "Counterpoint 2.0", "cHefbox",
        "Elevator", "No Jumper", "Lyrical Lemonade", "Cole Bennett", "COLORS",
        "Genius", "Mass Appeal", "Complex", "XXL", "Pitchfork", "HotNewHipHop",
        "Rap City", "BET Hip Hop", "MTV", "VH1",
    ]
    CHANNEL_SUFFIXES = [r"\s*-\s*Topic$", r"\s*VEVO$", r"\s+Official$"]

    LEADING_TAG = re.compile(r"^\[.*?\]\s*")
    TRAILING_PAREN = re.compile(r"\s*\(.*?\)\s*$")
    FEATURING = re.compile(r"^([\w\s]+?)\s+(?:ft\.|feat\.|featuring)\s+", re.IGNORECASE)
    LOOSE_SEPARATOR = re.compile(r"^([\w\s]+?)(?:\s*[-–—|:×]\s*|\s+(?:ft\.|feat\.|x\s|×\s))", re.IGNORECASE)

    @staticmethod
    def _normalize_dashes(text: str) -> str:
        return (text or "").replace("—", "-").replace("–", "-")

    @classmethod
    def from_title(cls, title: str) -> Optional[str]:
        """'Artist - Song' -> 'Artist', with leading [TAG] and trailing (annotation) dropped."""
        normalized = cls._normalize_dashes(title)
        if " - " in normalized:
            left = normalized.split(" - ", 1)[0]
            left = cls.LEADING_TAG.sub("", left)
            left = cls.TRAILING_PAREN.sub("", left).strip()
            if left:
                return left
        match = cls.FEATURING.match(normalized)
        if match:
            return match.group(1).strip() or None
        return None

    @classmethod
    def is_non_artist_channel(cls, channel: str) -> bool:
        lowered = (channel or "").lower()
        return any(name.lower() in lowered for name in cls.NON_ARTIST_CHANNELS)

    @classmethod
    def clean_channel(cls, channel: str) -> str:
        cleaned = channel
        for pattern in cls.CHANNEL_SUFFIXES:
            cleaned = re.sub(pattern, "", cleaned, flags=re.IGNORECASE)
        cleaned = cleaned.strip()
        return cleaned or channel

    @classmethod
    def extract(cls, info: Dict[str, Any]) -> str:
        info = info or {}

        explicit = (info.get("artist") or "").strip()
        if explicit:
            return explicit

        title = (info.get("title") or "").strip()
        from_title = cls.from_title(title)
        if from_title:
            return from_title

        channel = (info.get("channel") or info.get("uploader") or PLACEHOLDER_ARTIST).strip()
        if cls.is_non_artist_channel(channel):
            match = cls.LOOSE_SEPARATOR.match(title)
            candidate = match.group(1).strip() if match else ""
            if candidate:
                logger.debug(f"Artist from title behind non-artist channel '{channel}': {candidate}")
                return candidate
            return channel or PLACEHOLDER_ARTIST

        return cls.clean_channel(channel) or PLACEHOLDER_ARTIST


def extract_artist(info: Dict[str, Any]) -> str:
    """Best-effort artist name; falls back to the 'YouTube' placeholder."""
    return ArtistExtractor.extract(info)
