"""Text decoding for tag frames.

Tag frames prefix their text with a one-byte encoding selector:

    0  Latin-1
    1  UTF-16 with a byte-order mark
    2  UTF-16 big-endian, no mark
    3  UTF-8

Decoding is best-effort: invalid sequences become replacement characters and
unknown selectors are read as UTF-8.
"""

import codecs

LATIN1 = 0
UTF16_BOM = 1
UTF16_BE = 2
UTF8 = 3

_CODECS = {
    LATIN1: 'latin-1',
    UTF16_BE: 'utf-16-be',
    UTF8: 'utf-8',
}


def is_wide(encoding: int) -> bool:
    """Return True for the 16-bit encodings, whose terminator is two zero bytes."""
    return encoding in (UTF16_BOM, UTF16_BE)


def _decode_utf16_bom(data: bytes) -> str:
    # a missing mark means little-endian
    if data.startswith(codecs.BOM_UTF16_BE):
        return data[2:].decode('utf-16-be', errors='replace')
    if data.startswith(codecs.BOM_UTF16_LE):
        data = data[2:]
    return data.decode('utf-16-le', errors='replace')


def decode_text(data: bytes, encoding: int) -> str:
    """Decode `data` using the frame encoding selector and strip trailing NULs."""
    data = bytes(data)
    if encoding == UTF16_BOM:
        text = _decode_utf16_bom(data)
    else:
        text = data.decode(_CODECS.get(encoding, 'utf-8'), errors='replace')
    return text.rstrip('\x00')


def find_terminator(data: bytes, start: int, encoding: int) -> int:
    """Return the index of the string terminator at or after `start`.

    16-bit encodings are scanned two bytes at a time for a zero pair; all
    others for a single zero byte. When no terminator exists the buffer
    length is returned, meaning the string runs to the end of the buffer.
    """
    length = len(data)
    if is_wide(encoding):
        i = start
        while i + 1 < length:
            if data[i] == 0 and data[i + 1] == 0:
                return i
            i += 2
        return length
    for i in range(start, length):
        if data[i] == 0:
            return i
    return length
