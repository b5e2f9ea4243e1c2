"""
Tests for routing activations to sprite players.
"""

import pytest
from conftest import silent_handle

from pointlisten.coordinator import PlaybackCoordinator
from pointlisten.errors import AudioBackendError, MissingAudioAsset
from pointlisten.generation import Generation
from pointlisten.models import SessionMode
from pointlisten.player import PlayerEventKind, SpriteAudioPlayer
from pointlisten.sprites import build_sprite_index


@pytest.fixture
def coordinator(book, assets, backend, loop):
    index = build_sprite_index(book, assets)
    players = {
        name: SpriteAudioPlayer(handle, index[name], backend, loop)
        for name, handle in assets.items()
    }
    c = PlaybackCoordinator(book, players, Generation())
    c.started = []
    for p in players.values():
        p.subscribe(
            lambda e: c.started.append(e.hotspot_id) if e.kind == PlayerEventKind.STARTED else None
        )
    return c


def playing(coordinator):
    return [name for name, p in coordinator.players.items() if p.is_playing()]


def test_normal_activation_plays_and_clears(coordinator, book, loop):
    """Scenario: a 2.0s..4.5s hotspot plays for 2.5s, then nothing is current."""
    h1 = book.hotspot("h1")
    coordinator.activate(h1)

    assert coordinator.current_hotspot == h1
    loop.advance(2.5)
    assert coordinator.current_hotspot is None
    assert playing(coordinator) == []


def test_exclusive_across_assets(coordinator, book, backend, loop):
    for hid in ["h1", "hb", "h2", "hb", "h3"]:
        coordinator.activate(book.hotspot(hid))
        assert len(playing(coordinator)) == 1
        assert len(backend.sounding()) == 1
        loop.advance(0.3)

    # Last tap wins
    assert coordinator.current_hotspot.id == "h3"


def test_missing_asset_has_no_side_effects(coordinator, book):
    coordinator.activate(book.hotspot("h1"))

    with pytest.raises(MissingAudioAsset):
        coordinator.activate(book.hotspot("hm"))
    with pytest.raises(MissingAudioAsset):
        coordinator.activate(book.hotspot("hz"))

    assert coordinator.current_hotspot.id == "h1"
    assert playing(coordinator) == ["a.mp3"]


def test_sequential_fifo(coordinator, book, loop):
    """Activating A, B, C while A plays yields playback order A, B, C."""
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    for hid in ["h1", "hb", "h2"]:
        coordinator.activate(book.hotspot(hid))
        loop.advance(0.1)

    assert [h.id for h in coordinator.queue] == ["hb", "h2"]
    loop.advance(20.0)

    assert coordinator.started == ["h1", "hb", "h2"]
    assert coordinator.current_hotspot is None
    assert not coordinator.queue


def test_sequential_queue_starts_next_on_end(coordinator, book, loop):
    """Scenario: H2 tapped while H1 plays begins automatically when H1 ends."""
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    coordinator.activate(book.hotspot("h1"))
    loop.advance(1.0)
    coordinator.activate(book.hotspot("h2"))

    assert coordinator.current_hotspot.id == "h1"
    loop.advance(1.5)
    assert coordinator.current_hotspot.id == "h2"


def test_sequential_allows_duplicates(coordinator, book, loop):
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    h3 = book.hotspot("h3")
    for _ in range(3):
        coordinator.activate(h3)
    loop.advance(10.0)
    assert coordinator.started == ["h3", "h3", "h3"]


def test_interruption_does_not_advance_queue(coordinator, book, loop):
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    coordinator.activate(book.hotspot("h1"))
    coordinator.activate(book.hotspot("h2"))

    coordinator.players["a.mp3"].stop()

    assert coordinator.current_hotspot is None
    assert [h.id for h in coordinator.queue] == ["h2"]
    assert coordinator.started == ["h1"]


def test_leaving_sequential_drops_queue(coordinator, book, loop):
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    coordinator.activate(book.hotspot("h1"))
    coordinator.activate(book.hotspot("h2"))
    coordinator.set_mode(SessionMode.NORMAL)

    assert not coordinator.queue
    loop.advance(10.0)
    assert coordinator.started == ["h1"]


def test_stale_end_is_ignored_after_generation_change(coordinator, book, loop):
    coordinator.set_mode(SessionMode.SEQUENTIAL)
    coordinator.activate(book.hotspot("h1"))
    coordinator.activate(book.hotspot("h2"))

    coordinator.generation.bump()
    loop.advance(2.5)

    # The end of h1 belonged to an older generation: the queue stays put.
    assert [h.id for h in coordinator.queue] == ["h2"]
    assert coordinator.started == ["h1"]


def test_suspended_coordinator_ignores_taps(coordinator, book):
    coordinator.activate(book.hotspot("h1"))
    coordinator.suspend()

    assert playing(coordinator) == []
    assert coordinator.activate(book.hotspot("h2")) is False
    assert playing(coordinator) == []

    coordinator.resume()
    assert coordinator.activate(book.hotspot("h2")) is True
    assert coordinator.current_hotspot.id == "h2"


def test_failed_segment_advances_sequential_queue(book, backend, loop):
    """A queued segment that cannot start is skipped; the next one still plays."""
    # 6s of audio: h3 (8.0s..9.0s) starts past the end of the file
    assets = {"a.mp3": silent_handle("a.mp3", seconds=6), "b.mp3": silent_handle("b.mp3")}
    index = build_sprite_index(book, assets)
    players = {name: SpriteAudioPlayer(h, index[name], backend, loop) for name, h in assets.items()}
    errors = []
    c = PlaybackCoordinator(book, players, Generation(), on_error=errors.append)
    started = []
    for p in players.values():
        p.subscribe(lambda e: started.append(e.hotspot_id) if e.kind == PlayerEventKind.STARTED else None)

    c.set_mode(SessionMode.SEQUENTIAL)
    for hid in ["h1", "h3", "hb"]:
        c.activate(book.hotspot(hid))
    loop.advance(2.5)

    assert started == ["h1", "hb"]
    assert c.current_hotspot.id == "hb"
    assert isinstance(errors[0], AudioBackendError)
    loop.advance(2.0)
    assert c.current_hotspot is None
    assert not c.queue


def test_unavailable_device_clears_current(coordinator, book, backend):
    backend.device_lost = True
    assert coordinator.activate(book.hotspot("h1")) is True

    assert coordinator.current_hotspot is None
    assert not coordinator.is_busy()
