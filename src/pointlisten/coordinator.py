"""
Routing hotspot activations to sprite players.

The coordinator owns the rule that at most one player is sounding at a
time, and the FIFO queue used in sequential ("connected reading") mode.
"""

import logging
from collections import deque
from collections.abc import Callable

from .errors import MissingAudioAsset, PlaybackError
from .generation import Generation
from .models import Book, Hotspot, SessionMode
from .player import PlayerEvent, PlayerEventKind, SpriteAudioPlayer

logger = logging.getLogger("pointlisten")

PLAYBACK_MODES = (SessionMode.NORMAL, SessionMode.SEQUENTIAL)


class PlaybackCoordinator:
    def __init__(
        self,
        book: Book,
        players: dict[str, SpriteAudioPlayer],
        generation: Generation,
        on_change: Callable[[], None] | None = None,
        on_error: Callable[[PlaybackError], None] | None = None,
    ):
        self.book = book
        self.players = players
        self.generation = generation
        self.mode = SessionMode.NORMAL
        self.current_hotspot: Hotspot | None = None
        self.queue: deque[Hotspot] = deque()
        self.suspended = False
        self._on_change = on_change
        self._on_error = on_error
        # (generation, activation number) of the play we are waiting on
        self._active_tag: tuple[int, int] | None = None
        self._activations = 0
        self._unsubscribers = [p.subscribe(self._on_player_event) for p in players.values()]

    def resolve(self, hotspot: Hotspot) -> SpriteAudioPlayer:
        """Find the player for a hotspot, or raise MissingAudioAsset."""
        audio_file = self.book.audio_file_for(hotspot)
        player = self.players.get(audio_file)
        if player is None:
            raise MissingAudioAsset(hotspot.id, audio_file)
        if not player.has_segment(hotspot.id):
            raise MissingAudioAsset(hotspot.id, audio_file, "no playable segment")
        return player

    def is_busy(self) -> bool:
        return any(p.is_playing() for p in self.players.values())

    def activate(self, hotspot: Hotspot, mode: SessionMode | None = None) -> bool:
        """Play or enqueue a hotspot. Returns False if ignored while suspended."""
        player = self.resolve(hotspot)
        if self.suspended:
            logger.debug(f"Ignoring {hotspot.id}: playback is held by repeat mode")
            return False

        mode = mode or self.mode
        if mode == SessionMode.SEQUENTIAL and self.is_busy():
            self.queue.append(hotspot)
            logger.debug(f"Queued {hotspot.id} ({len(self.queue)} waiting)")
            self._changed()
            return True

        self._play(player, hotspot)
        return True

    def set_mode(self, mode: SessionMode) -> None:
        if mode not in PLAYBACK_MODES:
            raise ValueError(f"Coordinator cannot run in {mode.value} mode")
        if mode == self.mode:
            return
        if self.mode == SessionMode.SEQUENTIAL and self.queue:
            logger.debug(f"Dropping {len(self.queue)} queued hotspots")
            self.queue.clear()
        self.mode = mode
        self._changed()

    def stop_all(self) -> None:
        """Silence every player and forget the current hotspot and queue."""
        self._active_tag = None
        self.current_hotspot = None
        self.queue.clear()
        for player in self.players.values():
            player.stop()
        self._changed()

    def suspend(self) -> None:
        self.stop_all()
        self.suspended = True

    def resume(self) -> None:
        self.suspended = False

    def close(self) -> None:
        self.stop_all()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _play(self, player: SpriteAudioPlayer, hotspot: Hotspot) -> None:
        # Clear the tag first so the interrupted events below are ignored.
        self._active_tag = None
        for other in self.players.values():
            other.stop()

        self._activations += 1
        tag = (self.generation.value, self._activations)
        self._active_tag = tag
        self.current_hotspot = hotspot
        player.play_segment(hotspot.id, tag=tag)

    def _on_player_event(self, event: PlayerEvent) -> None:
        if event.tag is None or event.tag != self._active_tag:
            return
        if not self.generation.is_current(event.tag[0]):
            logger.debug(f"Discarding stale {event.kind.value} for {event.hotspot_id}")
            return

        if event.kind == PlayerEventKind.STARTED:
            self._changed()
            return

        self._active_tag = None
        self.current_hotspot = None
        if event.kind == PlayerEventKind.FAILED:
            logger.warning(f"Playback of {event.hotspot_id} failed: {event.error}")
            if self._on_error is not None and isinstance(event.error, PlaybackError):
                self._on_error(event.error)

        if event.kind != PlayerEventKind.INTERRUPTED and self.mode == SessionMode.SEQUENTIAL:
            self._advance()
        self._changed()

    def _advance(self) -> None:
        while self.queue and not self.suspended:
            hotspot = self.queue.popleft()
            try:
                self.activate(hotspot, SessionMode.SEQUENTIAL)
                return
            except MissingAudioAsset as e:
                logger.warning(f"Skipping queued hotspot: {e}")

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
