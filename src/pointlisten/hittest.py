"""
Hit testing: which hotspot sits under a point on the displayed page.
"""

from collections.abc import Iterable

from .models import Hotspot


def hotspots_on_page(hotspots: Iterable[Hotspot], page_number: int) -> list[Hotspot]:
    return [h for h in hotspots if h.page_number == page_number]


def hit_test(
    hotspots: Iterable[Hotspot], page_number: int, x_pct: float, y_pct: float
) -> Hotspot | None:
    """Return the hotspot under (x_pct, y_pct), given in percent of the page.

    Hotspots are drawn in authoring order, so when boxes overlap the one
    drawn last is on top and wins.
    """
    hit = None
    for hotspot in hotspots_on_page(hotspots, page_number):
        if hotspot.contains(x_pct, y_pct):
            hit = hotspot
    return hit
