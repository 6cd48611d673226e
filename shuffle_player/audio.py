"""Audio playback wrapper using pygame.mixer."""

import enum
import logging
import threading

import pygame.mixer

from .config import END_POLL_INTERVAL

logger = logging.getLogger(__name__)


class PlaybackState(enum.Enum):
    STOPPED = 'stopped'
    PLAYING = 'playing'
    PAUSED = 'paused'


class PygameAudioSink:
    """Plays file objects through pygame.mixer.music.

    Every method is a no-op returning False/0 while the mixer is not
    initialized, so the player keeps working (silently) without audio.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.state = PlaybackState.STOPPED
        # bumped on every play() so a stale end-of-track poll can be told apart
        self.play_count = 0

    def init(self) -> bool:
        """Initialize pygame mixer with exception handling."""
        try:
            pygame.mixer.init()
            return True
        except pygame.error as e:
            logger.error("Audio init failed: %s", e)
            return False

    def is_initialized(self) -> bool:
        try:
            return pygame.mixer.get_init() is not None
        except pygame.error:
            return False

    def play(self, stream, name_hint: str = '') -> bool:
        """Load and play an open binary file object."""
        if not self.is_initialized():
            return False
        with self._lock:
            try:
                pygame.mixer.music.stop()
                pygame.mixer.music.load(stream, name_hint)
                pygame.mixer.music.play()
            except pygame.error as e:
                logger.error("Playback error for %s: %s", name_hint or stream, e)
                self.state = PlaybackState.STOPPED
                return False
            self.play_count += 1
            self.state = PlaybackState.PLAYING
            return True

    def pause(self) -> bool:
        if not self.is_initialized():
            return False
        with self._lock:
            if self.state is not PlaybackState.PLAYING:
                return False
            try:
                pygame.mixer.music.pause()
            except pygame.error:
                return False
            self.state = PlaybackState.PAUSED
            return True

    def resume(self) -> bool:
        if not self.is_initialized():
            return False
        with self._lock:
            if self.state is not PlaybackState.PAUSED:
                return False
            try:
                pygame.mixer.music.unpause()
            except pygame.error:
                return False
            self.state = PlaybackState.PLAYING
            return True

    def stop(self) -> None:
        with self._lock:
            self.state = PlaybackState.STOPPED
            if not self.is_initialized():
                return
            try:
                pygame.mixer.music.stop()
                pygame.mixer.music.unload()
            except pygame.error as e:
                logger.debug("Stop failed: %s", e)

    def is_busy(self) -> bool:
        """Check if music is currently playing."""
        if not self.is_initialized():
            return False
        try:
            return pygame.mixer.music.get_busy()
        except pygame.error:
            return False

    def get_pos(self) -> int:
        """Get current playback position in milliseconds."""
        if not self.is_initialized():
            return 0
        try:
            return max(pygame.mixer.music.get_pos(), 0)
        except pygame.error:
            return 0

    def set_volume(self, vol: float) -> None:
        """Set playback volume (0.0 - 1.0)."""
        if not self.is_initialized():
            return
        try:
            pygame.mixer.music.set_volume(min(max(float(vol), 0.0), 1.0))
        except pygame.error:
            pass

    def mark_ended(self, play_count: int) -> bool:
        """Record a natural end of the play started as `play_count`.

        Returns False if another play (or a stop/pause) happened since.
        """
        with self._lock:
            if self.play_count != play_count or self.state is not PlaybackState.PLAYING:
                return False
            self.state = PlaybackState.STOPPED
            return True


class TrackEndWatcher:
    """Polls the sink and calls `on_end()` when a track finishes by itself."""

    def __init__(self, sink, on_end, interval: float = END_POLL_INTERVAL):
        self._sink = sink
        self._on_end = on_end
        self.interval = interval
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._run, name='track-end-watcher', daemon=True)

    def start(self) -> None:
        self._thread.start()

    def close(self) -> None:
        self._closed.set()

    def poll(self) -> bool:
        """Check once; return True if a natural end was detected and reported."""
        if self._sink.state is not PlaybackState.PLAYING:
            return False
        play_count = self._sink.play_count
        if self._sink.is_busy():
            return False
        if not self._sink.mark_ended(play_count):
            return False
        try:
            self._on_end()
        except Exception:
            logger.exception("Track end handler failed")
        return True

    def _run(self) -> None:
        while not self._closed.wait(self.interval):
            self.poll()
