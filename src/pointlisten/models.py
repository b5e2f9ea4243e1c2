"""
Data models for the point-and-listen reader.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .errors import BookFormatError

logger = logging.getLogger("pointlisten")


@dataclass(frozen=True)
class Hotspot:
    """A rectangular page region bound to a time range of an audio file."""

    id: str
    page_number: int  # 1-based
    x: float  # percent of page width
    y: float  # percent of page height
    width: float
    height: float
    audio_file: str
    audio_start: float  # seconds
    audio_end: float  # seconds
    text: str = ""

    @property
    def duration(self) -> float:
        return self.audio_end - self.audio_start

    def contains(self, x_pct: float, y_pct: float) -> bool:
        """True if a page-percent point falls inside this hotspot's box."""
        return (
            self.x <= x_pct <= self.x + self.width
            and self.y <= y_pct <= self.y + self.height
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Hotspot":
        """Build a hotspot from the authoring tool's JSON keys."""
        hid = str(data.get("id") or "")
        if not hid:
            raise BookFormatError("Hotspot has no id")
        try:
            page = int(data["pageNumber"])
            x, y = float(data["x"]), float(data["y"])
            width, height = float(data["width"]), float(data["height"])
            audio_start = float(data["audioStart"])
            audio_end = float(data["audioEnd"])
        except (KeyError, TypeError, ValueError) as e:
            raise BookFormatError(f"Hotspot {hid!r} is malformed: {e}") from e

        if page < 1:
            raise BookFormatError(f"Hotspot {hid!r} has page number {page} (must be >= 1)")
        for name, value in (("x", x), ("y", y), ("width", width), ("height", height)):
            if not 0.0 <= value <= 100.0:
                raise BookFormatError(f"Hotspot {hid!r} has {name}={value} outside [0, 100]")
        if audio_start < 0:
            raise BookFormatError(f"Hotspot {hid!r} starts at negative offset {audio_start}")

        return cls(
            id=hid,
            page_number=page,
            x=x,
            y=y,
            width=width,
            height=height,
            audio_file=str(data.get("audioFile") or ""),
            audio_start=audio_start,
            audio_end=audio_end,
            text=str(data.get("text") or ""),
        )


@dataclass(frozen=True)
class Book:
    """A book: one PDF plus the hotspots drawn on it."""

    title: str
    pdf: str
    hotspots: tuple[Hotspot, ...] = ()
    default_audio_file: str = ""
    status: str = ""

    def audio_file_for(self, hotspot: Hotspot) -> str:
        """Effective audio file of a hotspot (falls back to the book default)."""
        return hotspot.audio_file or self.default_audio_file

    def referenced_audio_files(self) -> list[str]:
        files = {self.audio_file_for(h) for h in self.hotspots}
        if self.default_audio_file:
            files.add(self.default_audio_file)
        files.discard("")
        return sorted(files)

    def hotspot(self, hotspot_id: str) -> Hotspot | None:
        for h in self.hotspots:
            if h.id == hotspot_id:
                return h
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "Book":
        """Parse the book JSON exported by the authoring tool."""
        if not isinstance(data, dict):
            raise BookFormatError("Book data must be a JSON object")
        pdf = data.get("pdf")
        if not pdf:
            raise BookFormatError("Book data has no 'pdf' entry")

        hotspots: list[Hotspot] = []
        seen: set[str] = set()
        entries = data.get("hotspots") or []
        if not isinstance(entries, list):
            raise BookFormatError("Book 'hotspots' must be a list")
        for raw in entries:
            if not isinstance(raw, dict):
                raise BookFormatError(f"Hotspot entry must be an object, got {raw!r}")
            if not raw.get("id"):
                logger.warning(f"Skipping hotspot without id: {raw}")
                continue
            hotspot = Hotspot.from_dict(raw)
            if hotspot.id in seen:
                raise BookFormatError(f"Duplicate hotspot id {hotspot.id!r}")
            seen.add(hotspot.id)
            hotspots.append(hotspot)

        return cls(
            title=str(data.get("title") or ""),
            pdf=str(pdf),
            hotspots=tuple(hotspots),
            default_audio_file=str(data.get("audioFile") or ""),
            status=str(data.get("status") or ""),
        )


@dataclass(frozen=True)
class Sprite:
    """A named sub-segment of one audio asset."""

    start_ms: int
    duration_ms: int

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms


@dataclass(frozen=True)
class RepeatRange:
    """Two hotspots picked in tap order; the loop spans start.audio_start..end.audio_end."""

    start: Hotspot
    end: Hotspot

    @property
    def start_offset(self) -> float:
        return self.start.audio_start

    @property
    def duration(self) -> float:
        return self.end.audio_end - self.start.audio_start


class SessionMode(Enum):
    NORMAL = "normal"
    SEQUENTIAL = "sequential"
    REPEAT_SELECTING = "repeat_selecting"
    REPEATING = "repeating"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a playback session for UI feedback."""

    mode: SessionMode
    current_hotspot_id: str | None = None
    queue_length: int = 0
    repeat_start_id: str | None = None
    repeat_end_id: str | None = None
    repeat_selection: str = "awaiting_start"
    repeat_paused: bool = False
    repeat_iteration: int = 0
    generation: int = 0
    last_error: Exception | None = None
    unavailable_hotspots: frozenset[str] = field(default_factory=frozenset)
    closed: bool = False

    @property
    def queue_pending(self) -> bool:
        return self.queue_length > 0

    @property
    def in_repeat_mode(self) -> bool:
        return self.mode in (SessionMode.REPEAT_SELECTING, SessionMode.REPEATING)
