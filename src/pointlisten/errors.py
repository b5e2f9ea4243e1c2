"""
Error types raised by the playback engine and its collaborators.
"""


class PlaybackError(Exception):
    """Base class for recoverable playback errors."""


class MissingAudioAsset(PlaybackError):
    """A hotspot's audio file has no loaded asset (or no playable segment)."""

    def __init__(self, hotspot_id: str, audio_file: str, reason: str = "asset not loaded"):
        self.hotspot_id = hotspot_id
        self.audio_file = audio_file
        self.reason = reason
        super().__init__(f"Hotspot {hotspot_id!r} has no audio in {audio_file!r}: {reason}")


class UnknownSegment(PlaybackError):
    """A sprite player was asked for a hotspot id that is not in its index."""

    def __init__(self, asset: str, hotspot_id: str):
        self.asset = asset
        self.hotspot_id = hotspot_id
        super().__init__(f"No segment {hotspot_id!r} in {asset!r}")


class IncompatibleRange(PlaybackError):
    """Repeat-range endpoints reference different audio assets."""

    def __init__(self, start_id: str, start_file: str, end_id: str, end_file: str):
        self.start_id = start_id
        self.end_id = end_id
        super().__init__(
            f"Cannot repeat from {start_id!r} ({start_file}) to {end_id!r} ({end_file}): "
            "endpoints use different audio files"
        )


class InvalidRepeatRange(PlaybackError):
    """The span from the start hotspot to the end hotspot is empty or negative."""

    def __init__(self, start_id: str, end_id: str, duration: float):
        self.start_id = start_id
        self.end_id = end_id
        self.duration = duration
        super().__init__(
            f"Repeat range {start_id!r} -> {end_id!r} has non-positive duration {duration:.3f}s"
        )


class AudioBackendError(PlaybackError):
    """The audio backend failed to decode an asset or start a voice."""


class BookFormatError(ValueError):
    """Book data does not match the expected format."""
