"""Configuration and constants for the MP3 shuffle player."""

import os
from pathlib import Path

# Supported audio extensions
SUPPORTED_AUDIO_EXTS = ('.mp3',)

# Tags are never assumed larger than this many bytes at the start of a file
HEADER_SCAN_LIMIT = 1_572_864

# Fixed size of the legacy trailer tag at the end of a file
TRAILER_TAG_SIZE = 128

HEADER_TAG_MAGIC = b'ID3'
TRAILER_TAG_MAGIC = b'TAG'

# Settings store filename and keys
STORE_FILENAME = '.mp3_shuffle_player.json'
MUSIC_DIR_KEY = 'music-dir'
VOLUME_KEY = 'volume'

DEFAULT_VOLUME = 0.5

# How often the end-of-track watcher polls the mixer (seconds)
END_POLL_INTERVAL = 0.2

# Size of the now-playing artwork canvas (pixels)
ARTWORK_SIZE = (240, 240)

LOG_LEVEL = os.environ.get('SHUFFLE_PLAYER_LOG_LEVEL', 'INFO')


def get_store_path() -> Path:
    """Return the settings file path in the user's home directory."""
    try:
        base_dir = Path.home()
    except Exception:
        base_dir = Path('.')
    return base_dir / STORE_FILENAME


def get_default_music_dir() -> Path:
    """Return the directory the folder picker opens at first."""
    home = Path.home()
    default = home / "Music"
    return default if default.exists() else home
