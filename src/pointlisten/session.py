"""
Playback session: the single entry point the reader UI talks to.

A session is created once a book's audio assets are loaded and lives until
the reader leaves the book. It routes taps either to the playback
coordinator or to the repeat-range selector, depending on the mode, and
publishes a snapshot to listeners after every transition.
"""

import asyncio
import logging
from collections.abc import Callable

from .audio import AudioBackend, AudioHandle
from .coordinator import PlaybackCoordinator
from .errors import (
    AudioBackendError,
    IncompatibleRange,
    InvalidRepeatRange,
    MissingAudioAsset,
    PlaybackError,
)
from .generation import Generation
from .models import Book, Hotspot, SessionMode, SessionSnapshot
from .player import SpriteAudioPlayer
from .repeat import DEFAULT_REPEAT_GAP, LoopState, RepeatLoopController, RepeatRangeSelector
from .sprites import build_sprite_index, playable_hotspot_ids

logger = logging.getLogger("pointlisten")

SnapshotListener = Callable[[SessionSnapshot], None]


class PlaybackSession:
    def __init__(
        self,
        book: Book,
        assets: dict[str, AudioHandle],
        backend: AudioBackend,
        loop: asyncio.AbstractEventLoop,
        repeat_gap: float = DEFAULT_REPEAT_GAP,
    ):
        self.book = book
        self.assets = dict(assets)
        self.backend = backend
        self.generation = Generation()
        self.last_error: PlaybackError | None = None
        self.closed = False
        self._repeat_mode = False
        self._listeners: list[SnapshotListener] = []

        index = build_sprite_index(book, self.assets)
        playable = playable_hotspot_ids(index)
        self.unavailable_hotspots = frozenset(h.id for h in book.hotspots if h.id not in playable)
        if self.unavailable_hotspots:
            logger.warning(
                f"{len(self.unavailable_hotspots)} hotspot(s) have no playable audio: "
                + ", ".join(sorted(self.unavailable_hotspots))
            )

        self.players = {
            name: SpriteAudioPlayer(handle, index.get(name, {}), backend, loop)
            for name, handle in self.assets.items()
        }
        self.coordinator = PlaybackCoordinator(
            book,
            self.players,
            self.generation,
            on_change=self._publish,
            on_error=self._report,
        )
        self.selector = RepeatRangeSelector(book)
        self.repeat = RepeatLoopController(
            book,
            self.assets,
            backend,
            loop,
            self.generation,
            gap=repeat_gap,
            silence_others=self.coordinator.stop_all,
            on_change=self._publish,
            on_error=self._report,
        )

    @property
    def mode(self) -> SessionMode:
        if not self._repeat_mode:
            return self.coordinator.mode
        if self.repeat.state == LoopState.STOPPED:
            return SessionMode.REPEAT_SELECTING
        return SessionMode.REPEATING

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        current = self.coordinator.current_hotspot
        return SessionSnapshot(
            mode=self.mode,
            current_hotspot_id=current.id if current else None,
            queue_length=len(self.coordinator.queue),
            repeat_start_id=self.selector.start.id if self.selector.start else None,
            repeat_end_id=self.selector.end.id if self.selector.end else None,
            repeat_selection=self.selector.state.value,
            repeat_paused=self.repeat.state == LoopState.PAUSED,
            repeat_iteration=self.repeat.iteration,
            generation=self.generation.value,
            last_error=self.last_error,
            unavailable_hotspots=self.unavailable_hotspots,
            closed=self.closed,
        )

    def on_hotspot_activated(self, hotspot: Hotspot, meta: dict | None = None) -> None:
        """Handle one tap on a hotspot of the displayed page."""
        if self.closed:
            logger.debug(f"Ignoring tap on {hotspot.id}: session closed")
            return
        logger.debug(f"Tap on {hotspot.id} in {self.mode.value} mode {meta or ''}")
        self.last_error = None
        if self._repeat_mode:
            self._select_repeat_endpoint(hotspot)
        else:
            try:
                self.coordinator.activate(hotspot)
            except (MissingAudioAsset, AudioBackendError) as e:
                self._report(e)
        self._publish()

    def enter_repeat_mode(self) -> None:
        if self.closed:
            return
        self.generation.bump()
        self.repeat.stop()
        self.coordinator.suspend()
        self.selector.reset()
        self._repeat_mode = True
        self.last_error = None
        logger.info("Entered repeat mode")
        self._publish()

    def exit_repeat_mode(self) -> None:
        if self.closed or not self._repeat_mode:
            return
        self.generation.bump()
        self.selector.reset()
        self.repeat.stop()
        self.coordinator.stop_all()
        self._repeat_mode = False
        self.coordinator.resume()
        logger.info("Left repeat mode")
        self._publish()

    def pause_repeat(self) -> bool:
        return self.repeat.pause()

    def resume_repeat(self) -> bool:
        return self.repeat.resume()

    def enter_sequential_mode(self) -> None:
        self.coordinator.set_mode(SessionMode.SEQUENTIAL)

    def exit_sequential_mode(self) -> None:
        self.coordinator.set_mode(SessionMode.NORMAL)

    def close(self) -> None:
        """Stop everything; safe to call repeatedly and mid-loop."""
        if self.closed:
            return
        self.generation.bump()
        self.repeat.stop()
        self.coordinator.close()
        for player in self.players.values():
            player.close()
        self.closed = True
        logger.debug(f"Closed session for {self.book.title or self.book.pdf}")
        self._publish()
        self._listeners.clear()

    def _select_repeat_endpoint(self, hotspot: Hotspot) -> None:
        if self.repeat.state != LoopState.STOPPED:
            # Picking a new range while one is looping starts over.
            self.repeat.stop()
        try:
            rng = self.selector.tap(hotspot)
        except IncompatibleRange as e:
            self._report(e)
            return
        if rng is None:
            return
        try:
            self.repeat.start(rng)
        except (InvalidRepeatRange, MissingAudioAsset) as e:
            self.selector.reset()
            self._report(e)

    def _report(self, error: PlaybackError) -> None:
        self.last_error = error
        logger.warning(str(error))

    def _publish(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
