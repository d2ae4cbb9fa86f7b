"""Formatting utilities for display values."""

from __future__ import annotations

import re

# Shared regex for validating YouTube video IDs.
VALID_VIDEO_ID = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")


def format_duration(seconds: int) -> str:
    if seconds < 0:
        seconds = 0

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_timestamp(seconds: float) -> str:
    """Format seconds as an LRC timestamp body, e.g. ``01:05.30``."""
    if seconds < 0:
        seconds = 0.0
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes):02d}:{secs:05.2f}"


def truncate(text: str, max_len: int) -> str:
    if max_len < 1:
        return ""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def get_video_id(track: dict) -> str:
    """Extract video ID from a track dict, checking both key conventions."""
    return track.get("videoId", "") or track.get("video_id", "")


def extract_artists(track: dict) -> list[str]:
    """Extract artist names from a raw ytmusicapi dict."""
    artists = track.get("artists")
    if isinstance(artists, list) and artists:
        names = [a.get("name", "") if isinstance(a, dict) else str(a) for a in artists]
        return [n for n in names if n]
    artist = track.get("artist")
    if isinstance(artist, str) and artist:
        return [artist]
    return []


def extract_duration(track: dict) -> int:
    """Extract duration in seconds from various track dict formats."""
    dur = track.get("duration_seconds")
    if dur is not None:
        return int(dur)
    dur = track.get("duration")
    if isinstance(dur, int):
        return dur
    if isinstance(dur, str) and ":" in dur:
        parts = dur.split(":")
        try:
            if len(parts) == 2:
                return int(parts[0]) * 60 + int(parts[1])
            if len(parts) == 3:
                return int(parts[0]) * 3600 + int(parts[1]) * 60 + int(parts[2])
        except ValueError:
            pass
    return 0
