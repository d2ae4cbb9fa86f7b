"""Utility modules."""

from __future__ import annotations

from musicfox.utils.formatting import (
    extract_artists,
    extract_duration,
    format_duration,
    format_timestamp,
    truncate,
)

__all__ = [
    "format_duration",
    "format_timestamp",
    "truncate",
    "extract_artists",
    "extract_duration",
]
