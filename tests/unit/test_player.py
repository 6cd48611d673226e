import random
import threading

import pytest

from shuffle_player.audio import PlaybackState
from shuffle_player.config import MUSIC_DIR_KEY, VOLUME_KEY
from shuffle_player.library import FileTrack
from shuffle_player.player import NavigationResult, PlaybackOrchestrator, PlaylistSession
from shuffle_player.store import SettingsStore

from tag_builders import audio_filler, header_tag, text_frame


class FakeSink:
    def __init__(self, fail=False):
        self.state = PlaybackState.STOPPED
        self.play_count = 0
        self.played = []
        self.streams = []
        self.stops = 0
        self.volume = None
        self.fail = fail
        self.on_play = None

    def play(self, stream, name_hint=''):
        if self.on_play is not None:
            self.on_play(name_hint)
        if self.fail:
            return False
        self.played.append(name_hint)
        self.streams.append(stream)
        self.play_count += 1
        self.state = PlaybackState.PLAYING
        return True

    def stop(self):
        self.stops += 1
        self.state = PlaybackState.STOPPED

    def pause(self):
        if self.state is not PlaybackState.PLAYING:
            return False
        self.state = PlaybackState.PAUSED
        return True

    def resume(self):
        if self.state is not PlaybackState.PAUSED:
            return False
        self.state = PlaybackState.PLAYING
        return True

    def set_volume(self, vol):
        self.volume = vol


def make_library(directory, count):
    directory.mkdir(exist_ok=True)
    for i in range(count):
        tag = header_tag([text_frame(b'TIT2', f'Title {i}'), text_frame(b'TPE1', f'Artist {i}')])
        (directory / f'song{i:02d}.mp3').write_bytes(tag + audio_filler())
    return directory


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def events():
    return {'now': [], 'notify': []}


@pytest.fixture
def make_player(sink, events, tmp_path):
    created = []

    def _make(store=None, sink_override=None):
        player = PlaybackOrchestrator(
            sink_override or sink,
            store=store,
            on_now_playing=events['now'].append,
            on_notify=events['notify'].append,
            rng=random.Random(1234),
        )
        created.append(player)
        return player

    yield _make
    for player in created:
        player.close()


def expected_names(player):
    session = player.session
    return [session.tracks[i].name for i in session.sequencer.order]


class TestPlaylistSession:
    def test_resolve_maps_position_through_order(self, tmp_path):
        tracks = [FileTrack(tmp_path / f'{i}.mp3') for i in range(5)]
        session = PlaylistSession(tracks, rng=random.Random(9))
        for position, index in enumerate(session.sequencer.order):
            assert session.resolve(position) is tracks[index]
        assert len(session) == 5
        assert not session.is_empty


class TestNavigation:
    def test_next_walks_the_whole_shuffle_then_stops(self, make_player, sink, events, tmp_path):
        player = make_player()
        assert player.load_directory(make_library(tmp_path / 'music', 4))
        names = expected_names(player)

        for _ in range(4):
            assert player.next() is NavigationResult.PLAYED
        assert sink.played == names
        # loading a folder clears the display before the first track
        assert events['now'][0] is None
        assert [now.track_name for now in events['now'][1:]] == names

        stops_before = sink.stops
        assert player.next() is NavigationResult.EXHAUSTED
        assert sink.stops == stops_before + 1
        assert len(sink.played) == 4

    def test_metadata_is_published(self, make_player, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 1))
        player.next()
        now = events['now'][-1]
        assert now.track_name == 'song00.mp3'
        assert now.metadata.title == 'Title 0'
        assert now.metadata.artist == 'Artist 0'
        assert now.artwork is None
        assert player.now_playing is now

    def test_natural_end_is_next(self, make_player, sink, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 2))
        names = expected_names(player)
        player.next()
        assert player.on_track_end() is NavigationResult.PLAYED
        assert sink.played == names
        assert player.on_track_end() is NavigationResult.EXHAUSTED

    def test_previous(self, make_player, sink, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 5))
        names = expected_names(player)
        assert player.previous() is NavigationResult.NO_PREVIOUS
        player.next()
        assert player.previous() is NavigationResult.NO_PREVIOUS
        player.next()
        player.next()
        assert player.previous() is NavigationResult.PLAYED
        assert sink.played[-1] == names[1]
        assert player.session.sequencer.history == (0, 1)
        # forward again resumes at the first unvisited position
        assert player.next() is NavigationResult.PLAYED
        assert sink.played[-1] == names[2]

    def test_nothing_loaded(self, make_player):
        player = make_player()
        assert player.next() is NavigationResult.NOTHING_TO_PLAY
        assert player.previous() is NavigationResult.NOTHING_TO_PLAY

    def test_empty_directory(self, make_player, events, tmp_path):
        player = make_player()
        empty = tmp_path / 'empty'
        empty.mkdir()
        assert not player.load_directory(empty)
        assert player.session is None
        assert player.next() is NavigationResult.NOTHING_TO_PLAY
        assert events['now'][-1] is None
        assert events['notify'][-1].notify_type == 'warn'

    def test_unreadable_file_is_skipped(self, make_player, sink, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        names = expected_names(player)
        player.session.resolve(0).path.unlink()

        assert player.next() is NavigationResult.FAILED
        assert player.session.sequencer.history == (0,)
        assert events['notify'][-1].notify_type == 'error'
        assert sink.played == []

        assert player.next() is NavigationResult.PLAYED
        assert sink.played == [names[1]]

    def test_sink_failure_is_reported(self, make_player, events, tmp_path):
        player = make_player(sink_override=FakeSink(fail=True))
        player.load_directory(make_library(tmp_path / 'music', 2))
        assert player.next() is NavigationResult.FAILED
        assert player.session.sequencer.history == (0,)
        assert player.audio.current is None
        assert events['notify'][-1].notify_type == 'error'
        assert player.next() is NavigationResult.FAILED
        assert player.next() is NavigationResult.EXHAUSTED


class TestResources:
    def test_previous_audio_is_released_on_replace(self, make_player, sink, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        player.next()
        first = player.audio.current
        player.next()
        assert first.released
        assert first.stream.closed
        assert not player.audio.current.released
        assert player.audio.current.stream is sink.streams[-1]

    def test_reload_releases_everything(self, make_player, sink, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 2))
        player.next()
        current = player.audio.current
        player.load_tracks([])
        assert current.released
        assert player.audio.current is None
        assert player.artwork.current is None
        assert sink.state is PlaybackState.STOPPED

    def test_reload_starts_a_fresh_shuffle(self, make_player, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        player.next()
        player.next()
        player.load_directory(tmp_path / 'music')
        assert player.session.sequencer.history == ()

    def test_switching_folders_clears_the_display(self, make_player, sink, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'first', 2))
        player.next()
        assert player.now_playing is not None

        assert player.load_directory(make_library(tmp_path / 'second', 2))
        assert player.now_playing is None
        assert events['now'][-1] is None
        assert player.artwork.current is None

        # if the first track of the new folder fails, nothing from the old folder is shown
        sink.fail = True
        assert player.next() is NavigationResult.FAILED
        assert player.now_playing is None
        assert events['now'][-1] is None


class TestSupersededRequests:
    @staticmethod
    def overtake_while_reading(player, monkeypatch, position):
        """Make the track at `position` see a newer request while its file is read."""
        track = player.session.resolve(position)
        original = track.try_read_all

        def read_then_overtake():
            result = original()
            player._next_generation()
            return result

        monkeypatch.setattr(track, 'try_read_all', read_then_overtake)

    def test_overtaken_request_is_discarded(self, make_player, sink, events, monkeypatch, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        player.next()
        installed = player.audio.current
        shown = player.now_playing

        self.overtake_while_reading(player, monkeypatch, 1)
        assert player.next() is NavigationResult.SUPERSEDED

        # the sink was never touched, so the first track keeps playing
        assert len(sink.played) == 1
        assert sink.state is PlaybackState.PLAYING
        assert player.session.sequencer.history == (0,)
        assert player.audio.current is installed
        assert not installed.released
        assert player.now_playing is shown
        assert events['now'][-1] is shown

    def test_overtaken_next_then_noop_previous_keeps_playing(self, make_player, sink, monkeypatch, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        player.next()
        self.overtake_while_reading(player, monkeypatch, 1)
        assert player.next() is NavigationResult.SUPERSEDED

        assert player.previous() is NavigationResult.NO_PREVIOUS
        assert sink.state is PlaybackState.PLAYING
        assert player.now_playing.track_name == sink.played[-1]

    def test_request_overtaken_after_playing_is_committed(self, make_player, sink, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        names = expected_names(player)
        player.next()
        first = player.audio.current

        # a newer request arrives once the sink has already started the track
        sink.on_play = lambda name: player._next_generation()
        assert player.next() is NavigationResult.PLAYED
        sink.on_play = None

        assert sink.played == names[:2]
        assert player.session.sequencer.history == (0, 1)
        assert player.audio.current.stream is sink.streams[-1]
        assert first.released
        assert player.now_playing.track_name == names[1]
        assert events['now'][-1] is player.now_playing

        # the newer request is a no-op; playback carries on with the committed track
        assert player.previous() is NavigationResult.PLAYED
        assert sink.state is PlaybackState.PLAYING
        assert player.now_playing.track_name == sink.played[-1] == names[0]

    def test_overtaken_previous_keeps_history(self, make_player, sink, monkeypatch, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 3))
        player.next()
        player.next()
        self.overtake_while_reading(player, monkeypatch, 0)
        assert player.previous() is NavigationResult.SUPERSEDED
        assert player.session.sequencer.history == (0, 1)
        assert sink.state is PlaybackState.PLAYING
        assert len(sink.played) == 2

    def test_concurrent_requests_never_duplicate_history(self, make_player, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 12))
        results = []
        lock = threading.Lock()

        def worker():
            for _ in range(6):
                outcome = player.next()
                with lock:
                    results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        history = player.session.sequencer.history
        assert len(history) == len(set(history))
        assert list(history) == list(range(len(history)))
        assert results.count(NavigationResult.PLAYED) == len(history)


class TestPersistence:
    def test_load_directory_remembers_folder(self, make_player, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        player = make_player(store=store)
        music = make_library(tmp_path / 'music', 2)
        player.load_directory(music)
        assert store.get(MUSIC_DIR_KEY) == str(music)

    def test_restore(self, make_player, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        store.put(MUSIC_DIR_KEY, str(make_library(tmp_path / 'music', 2)))
        player = make_player(store=store)
        assert player.restore()
        assert len(player.session) == 2
        assert player.next() is NavigationResult.PLAYED

    def test_restore_without_stored_folder(self, make_player, tmp_path):
        player = make_player(store=SettingsStore(tmp_path / 'settings.json'))
        assert not player.restore()
        assert make_player().restore() is False

    def test_restore_forgets_missing_folder(self, make_player, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        store.put(MUSIC_DIR_KEY, str(tmp_path / 'gone'))
        assert not make_player(store=store).restore()
        assert store.get(MUSIC_DIR_KEY) is None

    def test_restore_forgets_empty_folder(self, make_player, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        empty = tmp_path / 'empty'
        empty.mkdir()
        store.put(MUSIC_DIR_KEY, str(empty))
        assert not make_player(store=store).restore()
        assert store.get(MUSIC_DIR_KEY) is None

    def test_volume_is_saved(self, make_player, sink, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        player = make_player(store=store)
        player.set_volume(0.3)
        assert sink.volume == 0.3
        assert SettingsStore(tmp_path / 'settings.json').get(VOLUME_KEY) == 0.3

    def test_volume_drag_is_not_saved_until_release(self, make_player, sink, tmp_path):
        store = SettingsStore(tmp_path / 'settings.json')
        player = make_player(store=store)
        player.set_volume(0.7, persist=False)
        assert sink.volume == 0.7
        assert not (tmp_path / 'settings.json').exists()
        player.set_volume(0.7)
        assert SettingsStore(tmp_path / 'settings.json').get(VOLUME_KEY) == 0.7


class TestTransport:
    def test_play_starts_then_resumes(self, make_player, sink, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 2))
        assert player.play() is NavigationResult.PLAYED
        assert len(sink.played) == 1
        assert player.toggle_pause() is True
        assert sink.state is PlaybackState.PAUSED
        assert player.play() is NavigationResult.PLAYED
        assert sink.state is PlaybackState.PLAYING
        assert len(sink.played) == 1
        assert player.pause()
        assert player.toggle_pause() is False

    def test_close_releases_resources(self, make_player, events, tmp_path):
        player = make_player()
        player.load_directory(make_library(tmp_path / 'music', 1))
        player.next()
        current = player.audio.current
        player.close()
        assert current.released
        assert player.session is None
        assert events['now'][-1] is None
