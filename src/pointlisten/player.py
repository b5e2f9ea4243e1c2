"""
Sprite playback: one player per decoded audio asset.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .audio import AudioBackend, AudioHandle, Voice
from .errors import AudioBackendError, UnknownSegment
from .models import Sprite

logger = logging.getLogger("pointlisten")


class PlayerEventKind(Enum):
    STARTED = "started"
    ENDED = "ended"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass(frozen=True)
class PlayerEvent:
    kind: PlayerEventKind
    asset: str
    hotspot_id: str
    token: int  # identifies the play_segment call this event belongs to
    tag: object = None  # opaque value supplied by the caller of play_segment
    error: Exception | None = None


PlayerListener = Callable[[PlayerEvent], None]


class SpriteAudioPlayer:
    """Plays named segments of one asset, emitting lifecycle events.

    Every ``play_segment`` call gets a token and produces exactly one terminal
    event (ended, interrupted or failed). The end-of-segment timer carries
    the token it was scheduled for, so a timer belonging to a superseded play
    does nothing when it fires.
    """

    def __init__(
        self,
        handle: AudioHandle,
        sprites: dict[str, Sprite],
        backend: AudioBackend,
        loop: asyncio.AbstractEventLoop,
    ):
        self.handle = handle
        self.sprites = dict(sprites)
        self._backend = backend
        self._loop = loop
        self._listeners: list[PlayerListener] = []
        self._voice: Voice | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._active_token: int | None = None
        self._active_id: str | None = None
        self._active_tag: object = None
        self._next_token = 0

    @property
    def asset(self) -> str:
        return self.handle.name

    def has_segment(self, hotspot_id: str) -> bool:
        return hotspot_id in self.sprites

    def subscribe(self, listener: PlayerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_playing(self) -> bool:
        return self._active_token is not None

    def play_segment(self, hotspot_id: str, tag: object = None) -> int:
        """Start a segment; ``tag`` is echoed back on every event of this play."""
        sprite = self.sprites.get(hotspot_id)
        if sprite is None:
            raise UnknownSegment(self.asset, hotspot_id)

        self.stop()
        self._next_token += 1
        token = self._next_token

        voice = None
        try:
            voice = self._backend.open_voice(self.handle)
            voice.play(sprite.start_ms, sprite.duration_ms)
        except AudioBackendError as e:
            if voice is not None:
                voice.close()
            logger.error(f"Could not start {self.asset}#{hotspot_id}: {e}")
            self._emit(PlayerEventKind.FAILED, hotspot_id, token, tag, error=e)
            return token

        self._voice = voice
        self._active_token = token
        self._active_id = hotspot_id
        self._active_tag = tag
        self._timer = self._loop.call_later(sprite.duration_ms / 1000.0, self._finish, token)
        logger.debug(
            f"{self.asset}: playing {hotspot_id} at {sprite.start_ms}ms for {sprite.duration_ms}ms"
        )
        self._emit(PlayerEventKind.STARTED, hotspot_id, token, tag)
        return token

    def stop(self) -> None:
        """Stop the current segment, if any. Emits ``interrupted``; idempotent."""
        if self._active_token is None:
            return
        token, hotspot_id, tag = self._active_token, self._active_id, self._active_tag
        self._release()
        logger.debug(f"{self.asset}: interrupted {hotspot_id}")
        self._emit(PlayerEventKind.INTERRUPTED, hotspot_id, token, tag)

    def close(self) -> None:
        self.stop()
        self._listeners.clear()

    def _finish(self, token: int) -> None:
        if token != self._active_token:
            return
        hotspot_id, tag = self._active_id, self._active_tag
        self._release()
        logger.debug(f"{self.asset}: finished {hotspot_id}")
        self._emit(PlayerEventKind.ENDED, hotspot_id, token, tag)

    def _release(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._voice is not None:
            self._voice.close()
            self._voice = None
        self._active_token = None
        self._active_id = None
        self._active_tag = None

    def _emit(
        self,
        kind: PlayerEventKind,
        hotspot_id: str,
        token: int,
        tag: object,
        error: Exception | None = None,
    ) -> None:
        event = PlayerEvent(
            kind=kind, asset=self.asset, hotspot_id=hotspot_id, token=token, tag=tag, error=error
        )
        for listener in list(self._listeners):
            listener(event)
