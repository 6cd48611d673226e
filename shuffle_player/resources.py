"""Single-owner holders for the decoded resources of the playing track."""

import io
import logging
import threading
from typing import Generic, Optional, TypeVar

from PIL import Image

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ResourceSlot(Generic[T]):
    """Holds at most one releasable value.

    Installing a new value always releases the previous one, including when
    that release fails. Values need a `release()` method.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._current: Optional[T] = None

    @property
    def current(self) -> Optional[T]:
        return self._current

    def replace(self, value: Optional[T]) -> None:
        with self._lock:
            old, self._current = self._current, value
        if old is not None and old is not value:
            try:
                old.release()
            except Exception:
                logger.exception("Failed to release %s resource", self.name)

    def clear(self) -> None:
        self.replace(None)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.clear()
        return False


class AudioResource:
    """An open audio file handed to the sink."""

    def __init__(self, stream, name: str):
        self.stream = stream
        self.name = name
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self.stream.close()


class ArtworkResource:
    """A decoded cover image."""

    def __init__(self, image, mime: str):
        self.image = image
        self.mime = mime
        self.released = False

    @classmethod
    def from_artwork(cls, artwork) -> Optional['ArtworkResource']:
        """Decode embedded picture bytes; None if absent or not an image."""
        if artwork is None or not artwork.data:
            return None
        try:
            img = Image.open(io.BytesIO(artwork.data))
            img.load()
        except Exception as e:
            logger.debug("Embedded picture (%s) could not be decoded: %s", artwork.mime, e)
            return None
        return cls(img, artwork.mime)

    @property
    def size(self):
        return self.image.size

    def thumbnail(self, size):
        """Return an RGB copy fitted into `size` and centered on a black canvas."""
        canvas_w, canvas_h = size
        img = self.image.convert('RGB')
        resampling = getattr(Image, 'Resampling', None)
        resample = getattr(resampling, 'LANCZOS', None) if resampling is not None else getattr(Image, 'LANCZOS', None)
        if resample is not None:
            img.thumbnail((canvas_w, canvas_h), resample)
        else:
            img.thumbnail((canvas_w, canvas_h))
        base = Image.new('RGB', (canvas_w, canvas_h))
        x = (canvas_w - img.width) // 2
        y = (canvas_h - img.height) // 2
        base.paste(img, (x, y))
        return base

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self.image.close()
