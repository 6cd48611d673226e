"""Helpers that assemble raw ID3 tag bytes for tests."""


def sync_safe_bytes(n: int) -> bytes:
    return bytes([(n >> 21) & 0x7f, (n >> 14) & 0x7f, (n >> 7) & 0x7f, n & 0x7f])


def frame(frame_id: bytes, payload: bytes, version: int = 3) -> bytes:
    size = len(payload)
    size_bytes = sync_safe_bytes(size) if version == 4 else size.to_bytes(4, 'big')
    return frame_id + size_bytes + b'\x00\x00' + payload


def text_frame(frame_id: bytes, text: str, encoding: int = 0, version: int = 3) -> bytes:
    codec = {0: 'latin-1', 1: 'utf-16', 2: 'utf-16-be', 3: 'utf-8'}[encoding]
    return frame(frame_id, bytes([encoding]) + text.encode(codec), version)


def header_tag(frames, version: int = 3, padding: int = 0) -> bytes:
    body = b''.join(frames) + b'\x00' * padding
    return b'ID3' + bytes([version, 0, 0]) + sync_safe_bytes(len(body)) + body


def trailer_tag(title: bytes = b'', artist: bytes = b'') -> bytes:
    block = b'TAG' + title.ljust(30, b'\x00')[:30] + artist.ljust(30, b'\x00')[:30]
    return block.ljust(128, b'\x00')


def audio_filler(n: int = 512) -> bytes:
    # MPEG-ish frame sync followed by silence; never parsed as a tag
    return b'\xff\xfb\x90\x00' + b'\x00' * n
