"""Audio files on disk: track handles and directory enumeration."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import SUPPORTED_AUDIO_EXTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileReadResult:
    data: bytes = b''
    error: Optional[OSError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FileTrack:
    """One audio file. The tag reader only needs `size`, `name` and `read_range`."""

    def __init__(self, path):
        self.path = Path(path)

    def __repr__(self):
        return f"FileTrack({str(self.path)!r})"

    def __eq__(self, other):
        return isinstance(other, FileTrack) and other.path == self.path

    def __hash__(self):
        return hash(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def read_range(self, start: int, end: int) -> bytes:
        """Read bytes `[start, end)`; the range is clipped to the file."""
        start = max(start, 0)
        if end <= start:
            return b''
        with self.path.open('rb') as f:
            f.seek(start)
            return f.read(end - start)

    def try_read_all(self) -> FileReadResult:
        """Read the whole file, reporting I/O failure in the result instead of raising."""
        try:
            return FileReadResult(data=self.path.read_bytes())
        except OSError as e:
            return FileReadResult(error=e)


class MemoryTrack:
    """A track whose bytes are already in memory."""

    def __init__(self, name: str, data: bytes):
        self.name = name
        self.data = data

    def __repr__(self):
        return f"MemoryTrack({self.name!r}, {len(self.data)} bytes)"

    @property
    def size(self) -> int:
        return len(self.data)

    def read_range(self, start: int, end: int) -> bytes:
        return self.data[max(start, 0):max(end, 0)]


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_AUDIO_EXTS


def scan_directory(directory) -> list:
    """Return FileTracks for the supported audio files directly inside `directory`.

    Not recursive. Sorted by file name so the index mapping is stable.
    Raises OSError if the directory cannot be listed.
    """
    directory = Path(directory)
    tracks = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            p = Path(entry.path)
            if is_supported(p):
                tracks.append(FileTrack(p))
    tracks.sort(key=lambda t: t.name.lower())
    logger.info("Found %d audio files in %s", len(tracks), directory)
    return tracks
