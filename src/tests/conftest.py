"""
Shared fixtures: a manual clock standing in for the event loop, and a
silent backend that remembers every voice it opened.
"""

import heapq

import pytest
from pydub import AudioSegment

from pointlisten.audio import AudioHandle, SilentBackend
from pointlisten.errors import AudioBackendError
from pointlisten.models import Book, Hotspot
from pointlisten.session import PlaybackSession


class ManualTimer:
    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other):
        return (self.when, self.seq) < (other.when, other.seq)


class ManualLoop:
    """Implements the call_later part of asyncio's loop on a fake clock."""

    def __init__(self):
        self.now = 0.0
        self._timers = []
        self._seq = 0

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        self._seq += 1
        timer = ManualTimer(self.now + delay, self._seq, callback, args)
        heapq.heappush(self._timers, timer)
        return timer

    def advance(self, seconds):
        target = self.now + seconds
        while self._timers and self._timers[0].when <= target + 1e-9:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target

    def pending(self):
        return sum(1 for t in self._timers if not t.cancelled)


class RecordingBackend(SilentBackend):
    def __init__(self):
        self.voices = []
        self.device_lost = False

    def open_voice(self, handle):
        if self.device_lost:
            raise AudioBackendError("Audio device unavailable")
        voice = super().open_voice(handle)
        self.voices.append(voice)
        return voice

    def sounding(self):
        return [v for v in self.voices if v.is_playing()]


def hotspot(hid, start, end, audio_file="a.mp3", page=1, x=10.0, y=10.0, w=20.0, h=10.0):
    return Hotspot(
        id=hid,
        page_number=page,
        x=x,
        y=y,
        width=w,
        height=h,
        audio_file=audio_file,
        audio_start=start,
        audio_end=end,
    )


@pytest.fixture
def book():
    return Book(
        title="Sample",
        pdf="sample.pdf",
        hotspots=(
            hotspot("h1", 2.0, 4.5),
            hotspot("h2", 5.0, 7.0, y=30.0),
            hotspot("h3", 8.0, 9.0, page=2),
            hotspot("hb", 1.0, 3.0, audio_file="b.mp3", y=50.0),
            hotspot("hz", 3.0, 3.0, y=70.0),
            hotspot("hm", 0.0, 1.0, audio_file="missing.mp3", page=2, y=50.0),
        ),
    )


def silent_handle(name, seconds=60):
    return AudioHandle(name=name, audio=AudioSegment.silent(duration=seconds * 1000))


@pytest.fixture
def assets():
    return {name: silent_handle(name) for name in ("a.mp3", "b.mp3")}


@pytest.fixture
def loop():
    return ManualLoop()


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def session(book, assets, backend, loop):
    s = PlaybackSession(book, assets, backend, loop, repeat_gap=0.5)
    yield s
    s.close()
