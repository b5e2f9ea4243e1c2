"""
pointlisten - Synchronized hotspot audio playback for point-and-listen books.

A reader taps a region of a page and hears the matching audio segment:
- Sprite index and per-asset sprite players
- Playback coordination (one sound at a time, sequential narration queue)
- Repeat mode: pick a range with two taps and loop it with pause/resume
- Book and audio loading, hit testing and a small CLI driver
"""

__version__ = "0.1.0"
