"""Utility functions for the MP3 shuffle player."""

import re


def strip_audio_extension(name: str) -> str:
    """Remove a trailing '.mp3' (any case) from a file name ('Song.MP3' -> 'Song')."""
    if not name:
        return ''
    return re.sub(r'\.mp3$', '', name, flags=re.IGNORECASE)


def format_duration(sec: int) -> str:
    """Format duration in seconds as M:SS string."""
    if not sec:
        return ''
    m, s = divmod(int(sec), 60)
    return f"{m}:{s:02d}"


def format_progress(pos_sec: float, total_sec: int) -> str:
    """Format elapsed/total as 'M:SS / M:SS'; total is omitted when unknown."""
    elapsed = format_duration(int(max(pos_sec, 0))) or '0:00'
    total = format_duration(total_sec)
    if not total:
        return elapsed
    return f"{elapsed} / {total}"
