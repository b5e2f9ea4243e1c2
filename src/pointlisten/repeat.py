"""
Repeat mode: choosing a range with two taps and looping its audio.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from .audio import AudioBackend, AudioHandle, Voice
from .errors import (
    AudioBackendError,
    IncompatibleRange,
    InvalidRepeatRange,
    MissingAudioAsset,
    PlaybackError,
)
from .generation import Generation
from .models import Book, Hotspot, RepeatRange

logger = logging.getLogger("pointlisten")

DEFAULT_REPEAT_GAP = 0.5  # seconds of silence between iterations


class SelectionState(Enum):
    AWAITING_START = "awaiting_start"
    AWAITING_END = "awaiting_end"
    RANGE_READY = "range_ready"


class RepeatRangeSelector:
    """Turns two consecutive taps into a (start, end) range.

    Tap order decides which hotspot is the start; offsets are never used to
    reorder the pair. A third tap always begins a new selection.
    """

    def __init__(self, book: Book):
        self.book = book
        self.state = SelectionState.AWAITING_START
        self.start: Hotspot | None = None
        self.end: Hotspot | None = None

    def reset(self) -> None:
        self.state = SelectionState.AWAITING_START
        self.start = None
        self.end = None

    def tap(self, hotspot: Hotspot) -> RepeatRange | None:
        """Feed one tap. Returns the range once both ends are chosen.

        Raises IncompatibleRange when the end is on a different audio file;
        the start is kept so the user can pick another end.
        """
        if self.state == SelectionState.AWAITING_END:
            start_file = self.book.audio_file_for(self.start)
            end_file = self.book.audio_file_for(hotspot)
            if start_file != end_file:
                raise IncompatibleRange(self.start.id, start_file, hotspot.id, end_file)
            self.end = hotspot
            self.state = SelectionState.RANGE_READY
            return RepeatRange(start=self.start, end=hotspot)

        # AWAITING_START, or RANGE_READY where a tap restarts the selection
        self.start = hotspot
        self.end = None
        self.state = SelectionState.AWAITING_END
        return None


class LoopState(Enum):
    STOPPED = "stopped"
    LOOPING = "looping"
    PAUSED = "paused"


class RepeatLoopController:
    """Plays a range over and over, with a short gap between passes.

    Each pass opens its own voice on the asset (the shared sprite players
    are left alone), plays from the start offset and is cut off by a timer
    after the range's duration. Timers carry the generation they were
    scheduled under and do nothing if it has moved on.
    """

    def __init__(
        self,
        book: Book,
        assets: dict[str, AudioHandle],
        backend: AudioBackend,
        loop: asyncio.AbstractEventLoop,
        generation: Generation,
        gap: float = DEFAULT_REPEAT_GAP,
        silence_others: Callable[[], None] | None = None,
        on_change: Callable[[], None] | None = None,
        on_error: Callable[[PlaybackError], None] | None = None,
    ):
        self.book = book
        self.assets = assets
        self.backend = backend
        self.generation = generation
        self.gap = gap
        self.state = LoopState.STOPPED
        self.range: RepeatRange | None = None
        self.iteration = 0
        self._loop = loop
        self._silence_others = silence_others
        self._on_change = on_change
        self._on_error = on_error
        self._handle: AudioHandle | None = None
        self._voice: Voice | None = None
        self._timer: asyncio.TimerHandle | None = None

    def start(self, rng: RepeatRange) -> None:
        duration = rng.duration
        if duration <= 0:
            raise InvalidRepeatRange(rng.start.id, rng.end.id, duration)
        audio_file = self.book.audio_file_for(rng.start)
        handle = self.assets.get(audio_file)
        if handle is None:
            raise MissingAudioAsset(rng.start.id, audio_file)

        self._halt()
        if self._silence_others is not None:
            self._silence_others()
        self.range = rng
        self._handle = handle
        self.state = LoopState.LOOPING
        self.iteration = 0
        logger.info(
            f"Repeating {rng.start.id} -> {rng.end.id} "
            f"[{rng.start_offset:.2f}s, {rng.end.audio_end:.2f}s] in {audio_file}"
        )
        self._iterate(self.generation.bump())

    def pause(self) -> bool:
        if self.state != LoopState.LOOPING:
            return False
        self.generation.bump()
        self._cancel_timer()
        if self._voice is not None:
            self._voice.pause()
        self.state = LoopState.PAUSED
        logger.debug(f"Repeat paused during pass {self.iteration}")
        self._changed()
        return True

    def resume(self) -> bool:
        """Restart the paused loop from the beginning of the range."""
        if self.state != LoopState.PAUSED:
            return False
        self._release_voice()
        self.state = LoopState.LOOPING
        self.iteration = 0
        logger.debug("Repeat resumed from range start")
        self._iterate(self.generation.bump())
        return True

    def stop(self) -> None:
        if self.state == LoopState.STOPPED:
            return
        self._halt()
        self.generation.bump()
        self.range = None
        self._handle = None
        logger.debug("Repeat stopped")
        self._changed()

    def _halt(self) -> None:
        self._cancel_timer()
        self._release_voice()
        self.state = LoopState.STOPPED
        self.iteration = 0

    def _iterate(self, gen: int) -> None:
        if not self.generation.is_current(gen) or self.state != LoopState.LOOPING:
            return
        rng = self.range
        self._release_voice()
        voice = None
        try:
            voice = self.backend.open_voice(self._handle)
            voice.play(int(round(rng.start_offset * 1000)))
        except AudioBackendError as e:
            if voice is not None:
                voice.close()
            logger.error(f"Repeat playback failed: {e}")
            if self._on_error is not None:
                self._on_error(e)
            self.stop()
            return
        self._voice = voice
        self.iteration += 1
        self._timer = self._loop.call_later(rng.duration, self._end_pass, gen)
        logger.debug(f"Repeat pass {self.iteration} started")
        self._changed()

    def _end_pass(self, gen: int) -> None:
        if not self.generation.is_current(gen) or self.state != LoopState.LOOPING:
            return
        self._release_voice()
        self._timer = self._loop.call_later(self.gap, self._iterate, gen)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release_voice(self) -> None:
        if self._voice is not None:
            self._voice.close()
            self._voice = None

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
