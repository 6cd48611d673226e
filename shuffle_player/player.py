"""Playlist session and playback orchestration.

`PlaybackOrchestrator` ties the shuffle order to the audio sink and the tag
reader. Navigation requests (next, previous, natural end) may arrive from the
UI thread and the end-of-track watcher at the same time; they run one at a
time under a lock, and a request that was overtaken by a newer one while it
waited or while it was decoding drops its results instead of applying them.
"""

import enum
import io
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .audio import PlaybackState
from .config import MUSIC_DIR_KEY, VOLUME_KEY
from .library import MemoryTrack, scan_directory
from .metadata import TagMetadata, get_duration, read_tag
from .resources import ArtworkResource, AudioResource, ResourceSlot
from .sequencer import ShuffleSequencer

logger = logging.getLogger(__name__)


class NavigationResult(enum.Enum):
    PLAYED = 'played'
    NOTHING_TO_PLAY = 'nothing_to_play'
    EXHAUSTED = 'exhausted'
    NO_PREVIOUS = 'no_previous'
    FAILED = 'failed'
    SUPERSEDED = 'superseded'


@dataclass(frozen=True)
class Notify:
    message: str
    notify_type: str = "info"   # info/warn/error


@dataclass(frozen=True)
class NowPlaying:
    track_name: str
    metadata: TagMetadata
    artwork: Optional[ArtworkResource]
    duration: int = 0   # seconds, 0 if unknown


class PlaylistSession:
    """The tracks of one loaded collection and their shuffle state."""

    def __init__(self, tracks, rng=None):
        self.tracks = list(tracks)
        self.sequencer = ShuffleSequencer(rng)
        self.sequencer.initialize(len(self.tracks))

    def __len__(self):
        return len(self.tracks)

    @property
    def is_empty(self) -> bool:
        return not self.tracks

    def resolve(self, position: int):
        return self.tracks[self.sequencer.track_index(position)]


class PlaybackOrchestrator:
    def __init__(self, sink, store=None, on_now_playing=None, on_notify=None, rng=None, executor=None):
        self.sink = sink
        self.store = store
        self._on_now_playing = on_now_playing
        self._on_notify = on_notify
        self._rng = rng
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='tag-reader')

        self._nav_lock = threading.Lock()
        self._gen_lock = threading.Lock()
        self._generation = 0

        self.session: Optional[PlaylistSession] = None
        self.now_playing: Optional[NowPlaying] = None
        self.audio: ResourceSlot[AudioResource] = ResourceSlot('audio')
        self.artwork: ResourceSlot[ArtworkResource] = ResourceSlot('artwork')

    # --- request generations ---

    def _next_generation(self) -> int:
        with self._gen_lock:
            self._generation += 1
            return self._generation

    def _is_current(self, generation: int) -> bool:
        with self._gen_lock:
            return generation == self._generation

    # --- callbacks ---

    def _notify(self, message: str, notify_type: str = "info") -> None:
        if self._on_notify is None:
            return
        try:
            self._on_notify(Notify(message=message, notify_type=notify_type))
        except Exception:
            logger.exception("Notification handler failed")

    def _publish(self, now_playing: Optional[NowPlaying]) -> None:
        self.now_playing = now_playing
        if self._on_now_playing is None:
            return
        try:
            self._on_now_playing(now_playing)
        except Exception:
            logger.exception("Now-playing handler failed")

    # --- playlist lifecycle ---

    def _teardown(self) -> None:
        self.sink.stop()
        self.audio.clear()
        self.artwork.clear()
        self.session = None

    def load_tracks(self, tracks) -> bool:
        """Replace the playlist. Returns False when there is nothing to play."""
        self._next_generation()
        with self._nav_lock:
            self._teardown()
            self._publish(None)
            tracks = list(tracks)
            if not tracks:
                return False
            self.session = PlaylistSession(tracks, rng=self._rng)
            logger.info("Loaded playlist of %d tracks", len(tracks))
            return True

    def load_directory(self, path) -> bool:
        path = Path(path)
        try:
            tracks = scan_directory(path)
        except OSError as e:
            logger.error("Could not list %s: %s", path, e)
            self._notify(f"Could not open folder {path.name}: {e}", "error")
            tracks = []
        ok = self.load_tracks(tracks)
        if ok and self.store is not None:
            self.store.put(MUSIC_DIR_KEY, str(path))
        elif not ok:
            self._notify(f"No MP3 files in {path.name}", "warn")
        return ok

    def restore(self) -> bool:
        """Reload the last chosen directory, forgetting it if it is gone or empty."""
        if self.store is None:
            return False
        stored = self.store.get(MUSIC_DIR_KEY)
        if not stored:
            return False
        path = Path(stored)
        if not path.is_dir() or not os.access(path, os.R_OK):
            logger.info("Stored music directory %s is no longer readable", path)
            self.store.delete(MUSIC_DIR_KEY)
            return False
        if not self.load_directory(path):
            self.store.delete(MUSIC_DIR_KEY)
            return False
        return True

    # --- navigation ---

    def next(self) -> NavigationResult:
        return self._navigate(forward=True)

    def previous(self) -> NavigationResult:
        return self._navigate(forward=False)

    def on_track_end(self) -> NavigationResult:
        """A track finishing by itself is the same as pressing next."""
        return self.next()

    def _navigate(self, forward: bool) -> NavigationResult:
        generation = self._next_generation()
        with self._nav_lock:
            if not self._is_current(generation):
                return NavigationResult.SUPERSEDED
            session = self.session
            if session is None or session.is_empty:
                return NavigationResult.NOTHING_TO_PLAY
            sequencer = session.sequencer

            if forward:
                position = sequencer.peek_next()
                if position is None:
                    logger.info("Every track has been played; stopping")
                    self.sink.stop()
                    return NavigationResult.EXHAUSTED
            else:
                position = sequencer.peek_previous()
                if position is None:
                    return NavigationResult.NO_PREVIOUS

            outcome = self._activate(session.resolve(position), generation)
            if outcome is NavigationResult.SUPERSEDED:
                return outcome
            # a failed track still counts as visited so it is not retried
            if forward:
                sequencer.mark_visited(position)
            else:
                sequencer.retreat()
            return outcome

    def _decode(self, view: MemoryTrack):
        tag = read_tag(view)
        artwork = ArtworkResource.from_artwork(tag.metadata.artwork)
        duration = get_duration(io.BytesIO(view.data))
        return tag, artwork, duration

    def _activate(self, track, generation: int) -> NavigationResult:
        read = track.try_read_all()
        if not read.ok:
            logger.error("Could not read %s: %s", track.name, read.error)
            self._notify(f"Could not read {track.name}: {read.error}", "error")
            return NavigationResult.FAILED

        view = MemoryTrack(track.name, read.data)
        audio = AudioResource(io.BytesIO(read.data), track.name)
        artwork = None
        installed = False
        try:
            pending = self._executor.submit(self._decode, view)
            # once the sink has started, the request is committed even if a newer one arrives
            stale = not self._is_current(generation)
            played = False if stale else self.sink.play(audio.stream, track.name)
            tag, artwork, duration = pending.result()
            if tag.error is not None:
                logger.debug("Tags of %s unreadable, showing file name", track.name)

            if stale:
                return NavigationResult.SUPERSEDED
            if not played:
                self._notify(f"Failed to play {track.name}", "error")
                return NavigationResult.FAILED

            self.audio.replace(audio)
            self.artwork.replace(artwork)
            installed = True
            self._publish(NowPlaying(
                track_name=track.name,
                metadata=tag.metadata,
                artwork=artwork,
                duration=duration,
            ))
            return NavigationResult.PLAYED
        finally:
            if not installed:
                audio.release()
                if artwork is not None:
                    artwork.release()

    # --- transport ---

    def play(self) -> NavigationResult:
        """Resume if paused; start the shuffle if nothing has played yet."""
        if self.sink.state is PlaybackState.PAUSED:
            self.sink.resume()
            return NavigationResult.PLAYED
        if self.sink.state is PlaybackState.PLAYING:
            return NavigationResult.PLAYED
        return self.next()

    def pause(self) -> bool:
        return self.sink.pause()

    def toggle_pause(self) -> bool:
        """Pause or resume; returns True if playback is now paused."""
        if self.sink.state is PlaybackState.PLAYING:
            self.sink.pause()
        elif self.sink.state is PlaybackState.PAUSED:
            self.sink.resume()
        return self.sink.state is PlaybackState.PAUSED

    def set_volume(self, vol: float, persist: bool = True) -> None:
        """Apply `vol` to the sink; with `persist` also remember it for the next start."""
        self.sink.set_volume(vol)
        if persist and self.store is not None:
            self.store.put(VOLUME_KEY, float(vol))

    def close(self) -> None:
        self._next_generation()
        with self._nav_lock:
            self._teardown()
            self._publish(None)
        if self._owns_executor:
            self._executor.shutdown(wait=False)
