"""
Audio backends: decoding assets and producing sound.

The engine only talks to ``AudioBackend`` and ``Voice``. Each platform gets an
adapter; ``PygameBackend`` plays through ``pygame.mixer`` and ``SilentBackend``
keeps the same bookkeeping without output (headless runs and tests).
"""

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath

from pydub import AudioSegment

from .errors import AudioBackendError

logger = logging.getLogger("pointlisten")


@dataclass
class AudioHandle:
    """A decoded audio asset, identified by its filename."""

    name: str
    audio: AudioSegment

    @property
    def duration_ms(self) -> int:
        return len(self.audio)


class Voice(ABC):
    """One sounding instance of an asset. Owned by whoever opened it."""

    def __init__(self, handle: AudioHandle):
        self.handle = handle
        self.position_ms = 0
        self.state = "idle"  # idle | playing | paused | stopped | closed

    @abstractmethod
    def _start(self, clip: AudioSegment) -> None: ...

    @abstractmethod
    def _pause(self) -> None: ...

    @abstractmethod
    def _halt(self) -> None: ...

    def play(self, start_ms: int, duration_ms: int | None = None) -> None:
        """Seek to start_ms and play, either duration_ms long or to the end."""
        if self.state == "closed":
            raise AudioBackendError(f"Voice for {self.handle.name} is closed")
        if start_ms >= self.handle.duration_ms:
            raise AudioBackendError(
                f"Offset {start_ms}ms is past the end of {self.handle.name} "
                f"({self.handle.duration_ms}ms)"
            )
        end_ms = None if duration_ms is None else start_ms + duration_ms
        clip = self.handle.audio[start_ms:end_ms]
        self._start(clip)
        self.position_ms = start_ms
        self.state = "playing"

    def pause(self) -> None:
        if self.state == "playing":
            self._pause()
            self.state = "paused"

    def stop(self) -> None:
        if self.state in ("playing", "paused"):
            self._halt()
            self.state = "stopped"

    def close(self) -> None:
        """Stop and release whatever the backend holds for this voice."""
        if self.state == "closed":
            return
        self.stop()
        self.state = "closed"

    def is_playing(self) -> bool:
        return self.state == "playing"


class AudioBackend(ABC):
    """Decodes assets and opens voices on them."""

    name = "abstract"

    def decode(self, name: str, data: bytes) -> AudioHandle:
        """Decode raw file bytes into a handle. Blocking; run it off the loop."""
        fmt = PurePosixPath(name).suffix.lstrip(".").lower() or None
        try:
            audio = AudioSegment.from_file(io.BytesIO(data), format=fmt)
        except Exception as e:
            raise AudioBackendError(f"Failed to decode {name}: {e}") from e
        logger.debug(f"Decoded {name}: {len(audio)}ms, {audio.frame_rate}Hz, {audio.channels}ch")
        return AudioHandle(name=name, audio=audio)

    @abstractmethod
    def open_voice(self, handle: AudioHandle) -> Voice: ...

    def shutdown(self) -> None:
        pass


class SilentVoice(Voice):
    def _start(self, clip: AudioSegment) -> None:
        logger.debug(f"[silent] {self.handle.name}: play {len(clip)}ms")

    def _pause(self) -> None:
        logger.debug(f"[silent] {self.handle.name}: pause")

    def _halt(self) -> None:
        logger.debug(f"[silent] {self.handle.name}: stop")


class SilentBackend(AudioBackend):
    """Backend that tracks voices without producing sound."""

    name = "silent"

    def open_voice(self, handle: AudioHandle) -> Voice:
        return SilentVoice(handle)


class PygameVoice(Voice):
    def __init__(self, handle: AudioHandle, mixer_format: tuple[int, int, int]):
        super().__init__(handle)
        self._mixer_format = mixer_format
        self._sound = None
        self._channel = None

    def _start(self, clip: AudioSegment) -> None:
        import pygame

        frequency, size, channels = self._mixer_format
        clip = (
            clip.set_frame_rate(frequency)
            .set_channels(channels)
            .set_sample_width(abs(size) // 8)
        )
        self._halt()
        try:
            self._sound = pygame.mixer.Sound(buffer=clip.raw_data)
            self._channel = self._sound.play()
        except pygame.error as e:
            raise AudioBackendError(f"pygame could not play {self.handle.name}: {e}") from e
        if self._channel is None:
            raise AudioBackendError(f"No free mixer channel for {self.handle.name}")

    def _pause(self) -> None:
        if self._channel is not None:
            self._channel.pause()

    def _halt(self) -> None:
        if self._channel is not None:
            self._channel.stop()
        self._channel = None
        self._sound = None


class PygameBackend(AudioBackend):
    """Plays voices through pygame's mixer, one mixer channel per voice."""

    name = "pygame"

    def __init__(self, frequency: int = 44100, channels: int = 2):
        self.frequency = frequency
        self.channels = channels

    def ensure_mixer(self) -> tuple[int, int, int]:
        import pygame

        init = pygame.mixer.get_init()
        if init:
            return init
        try:
            pygame.mixer.init(frequency=self.frequency, size=-16, channels=self.channels)
        except pygame.error as e:
            raise AudioBackendError(f"Audio device unavailable: {e}") from e
        return pygame.mixer.get_init()

    def open_voice(self, handle: AudioHandle) -> Voice:
        return PygameVoice(handle, self.ensure_mixer())

    def shutdown(self) -> None:
        import pygame

        if pygame.mixer.get_init():
            pygame.mixer.quit()


def make_backend(name: str) -> AudioBackend:
    if name == "pygame":
        return PygameBackend()
    if name == "silent":
        return SilentBackend()
    raise ValueError(f"Unknown audio backend: {name}")
