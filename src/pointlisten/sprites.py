"""
Sprite index: per audio asset, hotspot id -> (start, duration) in milliseconds.
"""

import logging
from collections.abc import Iterable

from .models import Book, Sprite

logger = logging.getLogger("pointlisten")

SpriteIndex = dict[str, dict[str, Sprite]]


def sprite_for(audio_start: float, audio_end: float) -> Sprite | None:
    """Convert a hotspot's second offsets to a sprite, or None if it cannot be scheduled."""
    start_ms = int(round(audio_start * 1000))
    duration_ms = int(round(audio_end * 1000)) - start_ms
    if duration_ms <= 0:
        return None
    return Sprite(start_ms=start_ms, duration_ms=duration_ms)


def build_sprite_index(book: Book, loaded_assets: Iterable[str]) -> SpriteIndex:
    """Group every playable hotspot of a book under the loaded asset it references.

    Hotspots pointing at an asset that did not load, and hotspots with an
    empty or negative span, are left out.
    """
    loaded = set(loaded_assets)
    index: SpriteIndex = {name: {} for name in loaded}

    for hotspot in book.hotspots:
        audio_file = book.audio_file_for(hotspot)
        if audio_file not in loaded:
            continue
        sprite = sprite_for(hotspot.audio_start, hotspot.audio_end)
        if sprite is None:
            logger.debug(f"Dropping hotspot {hotspot.id}: non-positive duration")
            continue
        index[audio_file][hotspot.id] = sprite

    logger.debug(
        "Sprite index: "
        + ", ".join(f"{name}={len(sprites)}" for name, sprites in sorted(index.items()))
    )
    return index


def playable_hotspot_ids(index: SpriteIndex) -> set[str]:
    return {hid for sprites in index.values() for hid in sprites}
