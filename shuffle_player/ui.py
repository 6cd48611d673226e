"""Main window for the MP3 shuffle player."""

import logging
import threading
import tkinter as tk
from tkinter import ttk, filedialog, messagebox

from PIL import Image, ImageTk

from .audio import PygameAudioSink, TrackEndWatcher
from .config import ARTWORK_SIZE, DEFAULT_VOLUME, MUSIC_DIR_KEY, VOLUME_KEY, get_default_music_dir, get_store_path
from .player import NavigationResult, PlaybackOrchestrator
from .store import SettingsStore
from .utils import format_progress

logger = logging.getLogger(__name__)

RESULT_MESSAGES = {
    NavigationResult.NOTHING_TO_PLAY: "Choose a folder with MP3 files",
    NavigationResult.EXHAUSTED: "Played every track in this folder",
    NavigationResult.NO_PREVIOUS: "Already at the first track",
}


class ShufflePlayerApp(tk.Tk):
    def __init__(self):
        super().__init__()
        self.title("MP3 Shuffle Player")
        self.geometry("420x560")
        self.minsize(360, 480)

        self.sink = PygameAudioSink()
        if not self.sink.init():
            messagebox.showwarning("Audio init failed", "pygame.mixer.init() failed")

        self.store = SettingsStore(get_store_path())
        self.orchestrator = PlaybackOrchestrator(
            self.sink,
            store=self.store,
            on_now_playing=self._on_now_playing,
            on_notify=self._on_notify,
        )
        self.watcher = TrackEndWatcher(self.sink, on_end=self.orchestrator.on_track_end)

        try:
            volume = float(self.store.get(VOLUME_KEY, DEFAULT_VOLUME))
        except (TypeError, ValueError):
            volume = DEFAULT_VOLUME
        self.volume_var = tk.DoubleVar(value=volume)
        self.sink.set_volume(volume)

        self._duration = 0
        self._status_after_id = None
        self._progress_after_id = None

        self._build_widgets()
        self.protocol("WM_DELETE_WINDOW", self.on_close)
        self.bind('<space>', lambda e: self.orchestrator.toggle_pause())

        self.watcher.start()
        self.update_progress()
        # restore the last folder and start playing it
        self.after(100, lambda: self._run_async(self._restore_and_play))

    def _build_widgets(self):
        self.columnconfigure(0, weight=1)
        self.rowconfigure(1, weight=1)

        top = ttk.Frame(self)
        top.grid(row=0, column=0, sticky='ew', padx=8, pady=6)
        ttk.Button(top, text="Folder...", command=self.browse_folder).pack(side=tk.LEFT)
        self.dir_label = ttk.Label(top, text=self.store.get(MUSIC_DIR_KEY) or "No folder chosen")
        self.dir_label.pack(side=tk.LEFT, padx=(8, 0))

        middle = ttk.Frame(self)
        middle.grid(row=1, column=0, sticky='nsew', padx=8)
        middle.columnconfigure(0, weight=1)

        # fixed-size placeholder so the layout doesn't jump when artwork is missing
        self._placeholder = ImageTk.PhotoImage(Image.new('RGB', ARTWORK_SIZE, (40, 40, 40)), master=self)
        self.art_label = ttk.Label(middle, image=self._placeholder, anchor='center')
        self.art_label.grid(row=0, column=0, pady=(8, 8))
        setattr(self.art_label, '_photo_ref', self._placeholder)

        self.title_label = ttk.Label(middle, text="", font=("TkDefaultFont", 14, "bold"), anchor='center')
        self.title_label.grid(row=1, column=0, sticky='ew')
        self.artist_label = ttk.Label(middle, text="", anchor='center')
        self.artist_label.grid(row=2, column=0, sticky='ew')
        self.time_label = ttk.Label(middle, text="", anchor='center')
        self.time_label.grid(row=3, column=0, sticky='ew', pady=(4, 0))

        controls = ttk.Frame(self)
        controls.grid(row=2, column=0, pady=8)
        ttk.Button(controls, text="Prev", command=self.play_previous).pack(side=tk.LEFT, padx=2)
        ttk.Button(controls, text="Play", command=self.play).pack(side=tk.LEFT, padx=2)
        ttk.Button(controls, text="Pause", command=self.pause).pack(side=tk.LEFT, padx=2)
        ttk.Button(controls, text="Next", command=self.play_next).pack(side=tk.LEFT, padx=2)

        bottom = ttk.Frame(self)
        bottom.grid(row=3, column=0, sticky='ew', padx=8, pady=(0, 6))
        bottom.columnconfigure(1, weight=1)
        ttk.Label(bottom, text="Vol").grid(row=0, column=0)
        volume_scale = ttk.Scale(bottom, from_=0.0, to=1.0, variable=self.volume_var,
                                 command=self.on_volume_change)
        volume_scale.grid(row=0, column=1, sticky='ew', padx=(4, 0))
        # the setting is written once the drag ends, not on every tick
        volume_scale.bind('<ButtonRelease-1>', self.on_volume_release)
        self.status_label = ttk.Label(bottom, text="")
        self.status_label.grid(row=1, column=0, columnspan=2, sticky='w', pady=(4, 0))

    # --- background work ---

    def _run_async(self, fn):
        """Run orchestrator work off the Tk thread and report its outcome."""
        def _runner():
            try:
                result = fn()
            except Exception as e:
                logger.exception("Player action failed")
                self.after(0, lambda: self._set_status(f"Error: {e}"))
                return
            if isinstance(result, NavigationResult):
                self.after(0, lambda: self._handle_result(result))
        threading.Thread(target=_runner, daemon=True).start()

    def _restore_and_play(self):
        if not self.orchestrator.restore():
            return None
        folder = self.store.get(MUSIC_DIR_KEY) or ''
        self.after(0, lambda: self.dir_label.config(text=folder))
        return self.orchestrator.next()

    def _load_and_play(self, folder):
        if not self.orchestrator.load_directory(folder):
            return NavigationResult.NOTHING_TO_PLAY
        return self.orchestrator.next()

    def _handle_result(self, result: NavigationResult):
        message = RESULT_MESSAGES.get(result)
        if message:
            self._set_status(message)

    # --- orchestrator callbacks (called from worker threads) ---

    def _on_now_playing(self, now):
        # the artwork resource may be released by the next navigation, so copy it here
        thumb = None
        if now is not None and now.artwork is not None:
            try:
                thumb = now.artwork.thumbnail(ARTWORK_SIZE)
            except Exception as e:
                logger.debug("Thumbnail failed: %s", e)
        self.after(0, lambda: self._show_now_playing(now, thumb))

    def _on_notify(self, notify):
        self.after(0, lambda: self._set_status(notify.message))

    # --- display ---

    def _show_now_playing(self, now, thumb):
        if now is None:
            self.title_label.config(text="")
            self.artist_label.config(text="")
            self._duration = 0
            thumb = None
        else:
            self.title_label.config(text=now.metadata.title)
            self.artist_label.config(text=now.metadata.artist)
            self._duration = now.duration
        if thumb is not None:
            try:
                photo = ImageTk.PhotoImage(thumb, master=self)
            except Exception:
                photo = self._placeholder
        else:
            photo = self._placeholder
        self.art_label.config(image=photo)
        setattr(self.art_label, '_photo_ref', photo)

    def _set_status(self, text: str, duration_ms: int = 3000):
        """Show a transient status message under the controls."""
        self.status_label.config(text=text)
        if self._status_after_id:
            try:
                self.after_cancel(self._status_after_id)
            except tk.TclError:
                pass
        self._status_after_id = self.after(duration_ms, lambda: self.status_label.config(text=""))

    def update_progress(self):
        if self.orchestrator.now_playing is not None:
            self.time_label.config(text=format_progress(self.sink.get_pos() / 1000.0, self._duration))
        else:
            self.time_label.config(text="")
        self._progress_after_id = self.after(500, self.update_progress)

    # --- actions ---

    def browse_folder(self):
        initial = self.store.get(MUSIC_DIR_KEY) or str(get_default_music_dir())
        folder = filedialog.askdirectory(initialdir=initial)
        if not folder:
            return
        self.dir_label.config(text=folder)
        self._run_async(lambda: self._load_and_play(folder))

    def play(self):
        self._run_async(self.orchestrator.play)

    def pause(self):
        self.orchestrator.pause()

    def play_next(self):
        self._run_async(self.orchestrator.next)

    def play_previous(self):
        self._run_async(self.orchestrator.previous)

    def on_volume_change(self, val):
        try:
            self.orchestrator.set_volume(float(val), persist=False)
        except ValueError:
            pass

    def on_volume_release(self, event=None):
        self.orchestrator.set_volume(self.volume_var.get())

    def on_close(self):
        self.watcher.close()
        self.on_volume_release()
        if self._progress_after_id:
            try:
                self.after_cancel(self._progress_after_id)
            except tk.TclError:
                pass
        self.orchestrator.close()
        self.destroy()
