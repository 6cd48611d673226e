"""Metadata extraction for MP3 files: title, artist and embedded artwork.

The header tag (ID3v2) is parsed directly from the first bytes of the file;
the 128-byte trailer tag (ID3v1) is only consulted when the header tag gave
neither a title nor an artist. Extraction never raises: whatever fails, the
caller gets at least a title derived from the file name.
"""

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from mutagen._file import File as MutagenFile

from .config import HEADER_SCAN_LIMIT, HEADER_TAG_MAGIC, TRAILER_TAG_MAGIC, TRAILER_TAG_SIZE
from .text import LATIN1, decode_text, find_terminator, is_wide
from .utils import strip_audio_extension

logger = logging.getLogger(__name__)

FRAME_HEADER_SIZE = 10
FRAME_ID_RE = re.compile(rb'[A-Z0-9]{4}\Z')
DEFAULT_ARTWORK_MIME = 'image/jpeg'


@dataclass(frozen=True)
class Artwork:
    data: bytes
    mime: str = DEFAULT_ARTWORK_MIME


@dataclass(frozen=True)
class TagMetadata:
    title: str
    artist: str = ''
    artwork: Optional[Artwork] = None


class TagSource(enum.Enum):
    HEADER = 'header'
    TRAILER = 'trailer'
    FILENAME = 'filename'


@dataclass(frozen=True)
class TagDecodeResult:
    """Outcome of a tag read.

    `source` names where the title came from. `error` holds the exception
    that aborted parsing, in which case metadata is the file-name fallback.
    """
    metadata: TagMetadata
    source: TagSource
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Fields:
    title: str = ''
    artist: str = ''
    artwork: Optional[Artwork] = None


def sync_safe_to_int(b0: int, b1: int, b2: int, b3: int) -> int:
    """Decode a 4-byte sync-safe integer (7 usable bits per byte, MSB first)."""
    return ((b0 & 0x7f) << 21) | ((b1 & 0x7f) << 14) | ((b2 & 0x7f) << 7) | (b3 & 0x7f)


def _read_picture(buf: bytes, start: int, end: int) -> Optional[Artwork]:
    encoding = buf[start]
    p = start + 1
    mime_end = buf.find(b'\x00', p, end)
    if mime_end < 0:
        return None
    mime = buf[p:mime_end].decode('ascii', errors='replace')
    p = mime_end + 1
    if p >= end:
        return None
    p += 1  # picture type
    p = find_terminator(buf, p, encoding)
    p += 2 if is_wide(encoding) else 1
    if p >= end:
        return None
    try:
        return Artwork(data=bytes(buf[p:end]), mime=mime or DEFAULT_ARTWORK_MIME)
    except Exception as e:
        logger.debug("Ignoring embedded picture: %s", e)
        return None


def _scan_header_tag(buf: bytes, fields: _Fields) -> None:
    if len(buf) < FRAME_HEADER_SIZE or buf[:3] != HEADER_TAG_MAGIC:
        return
    version = buf[3]
    tag_size = sync_safe_to_int(*buf[6:10])
    tag_end = min(tag_size + FRAME_HEADER_SIZE, len(buf))

    offset = FRAME_HEADER_SIZE
    while offset + FRAME_HEADER_SIZE <= tag_end:
        frame_id = buf[offset:offset + 4]
        # padding or garbage ends the frame list
        if not FRAME_ID_RE.match(frame_id):
            break
        size_bytes = buf[offset + 4:offset + 8]
        if version == 4:
            frame_size = sync_safe_to_int(*size_bytes)
        else:
            frame_size = int.from_bytes(size_bytes, 'big')
        data_start = offset + FRAME_HEADER_SIZE
        data_end = data_start + frame_size
        if data_end > tag_end:
            logger.debug("Frame %r runs past the tag end; stopping scan", frame_id)
            break

        if frame_id in (b'TIT2', b'TPE1'):
            if frame_size > 0:
                text = decode_text(buf[data_start + 1:data_end], buf[data_start]).strip()
                if frame_id == b'TIT2' and not fields.title:
                    fields.title = text
                elif frame_id == b'TPE1' and not fields.artist:
                    fields.artist = text
        elif frame_id == b'APIC':
            if frame_size > 0 and fields.artwork is None:
                fields.artwork = _read_picture(buf, data_start, data_end)

        offset = data_end


def _scan_trailer_tag(tail: bytes, fields: _Fields) -> bool:
    if tail[:3] != TRAILER_TAG_MAGIC:
        return False
    title = decode_text(tail[3:33], LATIN1).strip()
    artist = decode_text(tail[33:63], LATIN1).strip()
    if title and not fields.title:
        fields.title = title
    if artist and not fields.artist:
        fields.artist = artist
    return True


def read_tag(view) -> TagDecodeResult:
    """Read title, artist and artwork from `view`.

    `view` needs `size`, `name` and `read_range(start, end)`.
    """
    fallback_title = strip_audio_extension(view.name)
    try:
        fields = _Fields()
        size = view.size
        header = view.read_range(0, min(HEADER_SCAN_LIMIT, size))
        _scan_header_tag(header, fields)
        source = TagSource.HEADER if fields.title else TagSource.FILENAME

        if not fields.title and not fields.artist and size >= TRAILER_TAG_SIZE:
            tail = view.read_range(size - TRAILER_TAG_SIZE, size)
            if _scan_trailer_tag(tail, fields) and fields.title:
                source = TagSource.TRAILER

        if not fields.title:
            fields.title = fallback_title
            source = TagSource.FILENAME
        metadata = TagMetadata(title=fields.title, artist=fields.artist, artwork=fields.artwork)
        return TagDecodeResult(metadata=metadata, source=source)
    except Exception as e:
        logger.warning("Failed to read tags from %s: %s", view.name, e)
        return TagDecodeResult(
            metadata=TagMetadata(title=fallback_title),
            source=TagSource.FILENAME,
            error=e,
        )


def extract_metadata(view) -> TagMetadata:
    """Return display metadata for `view`; never raises."""
    return read_tag(view).metadata


def get_duration(source) -> int:
    """Return the track length in whole seconds using mutagen, or 0 if unknown.

    `source` is a path or a seekable binary file object.
    """
    if isinstance(source, Path):
        source = str(source)
    try:
        audio = MutagenFile(source)
        if audio is not None and hasattr(audio, 'info') and hasattr(audio.info, 'length'):
            return int(audio.info.length or 0)
    except Exception as e:
        logger.debug("No duration for %s: %s", source, e)
    return 0
