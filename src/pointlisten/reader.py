"""
Reader: opens and closes books and feeds taps into the playback session.
"""

import asyncio
import logging

from .audio import AudioBackend
from .generation import Generation
from .hittest import hit_test
from .loader import load_audio_assets
from .models import Book, Hotspot
from .repeat import DEFAULT_REPEAT_GAP
from .session import PlaybackSession

logger = logging.getLogger("pointlisten")


class Reader:
    """Holds at most one open book and its playback session.

    Opening a book captures a generation before the audio starts loading;
    if the reader has closed or switched books by the time loading
    finishes, the loaded assets are dropped and no session is created.
    """

    def __init__(
        self,
        backend: AudioBackend,
        repeat_gap: float = DEFAULT_REPEAT_GAP,
        max_concurrent: int = 4,
        progress: bool = False,
    ):
        self.backend = backend
        self.repeat_gap = repeat_gap
        self.max_concurrent = max_concurrent
        self.progress = progress
        self.generation = Generation()
        self.book: Book | None = None
        self.session: PlaybackSession | None = None

    async def open_book(self, book: Book, assets_base: str) -> PlaybackSession | None:
        self.close_book()
        gen = self.generation.value
        loop = asyncio.get_running_loop()

        result = await load_audio_assets(
            book, assets_base, self.backend, self.max_concurrent, self.progress
        )
        if not self.generation.is_current(gen):
            logger.info(f"Discarding audio for '{book.title}': the book was closed while loading")
            return None

        for failure in result.failures:
            logger.warning(f"Hotspots using {failure.filename} are unavailable: {failure.reason}")
        self.book = book
        self.session = PlaybackSession(
            book, result.handles, self.backend, loop, repeat_gap=self.repeat_gap
        )
        return self.session

    def close_book(self) -> None:
        self.generation.bump()
        if self.session is not None:
            self.session.close()
        self.session = None
        self.book = None

    def tap(self, page_number: int, x_pct: float, y_pct: float) -> Hotspot | None:
        """Resolve a tap on the displayed page and activate the hotspot under it."""
        if self.session is None:
            return None
        hotspot = hit_test(self.book.hotspots, page_number, x_pct, y_pct)
        if hotspot is not None:
            self.session.on_hotspot_activated(
                hotspot, {"page": page_number, "x": x_pct, "y": y_pct}
            )
        return hotspot

    def tap_hotspot(self, hotspot_id: str) -> Hotspot | None:
        if self.session is None:
            return None
        hotspot = self.book.hotspot(hotspot_id)
        if hotspot is None:
            logger.warning(f"No hotspot {hotspot_id!r} in '{self.book.title}'")
            return None
        self.session.on_hotspot_activated(hotspot)
        return hotspot
