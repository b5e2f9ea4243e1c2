"""
Tests for hit testing.
"""

from conftest import hotspot

from pointlisten.hittest import hit_test, hotspots_on_page


def test_hit_and_miss(book):
    assert hit_test(book.hotspots, 1, 15.0, 15.0).id == "h1"
    assert hit_test(book.hotspots, 1, 15.0, 35.0).id == "h2"
    assert hit_test(book.hotspots, 1, 90.0, 90.0) is None
    # Same box on page 2 belongs to h3
    assert hit_test(book.hotspots, 2, 15.0, 15.0).id == "h3"


def test_edges_are_inclusive(book):
    assert hit_test(book.hotspots, 1, 10.0, 10.0).id == "h1"
    assert hit_test(book.hotspots, 1, 30.0, 20.0).id == "h1"


def test_overlap_prefers_last_drawn():
    spots = [hotspot("under", 0, 1, x=0, y=0, w=50, h=50), hotspot("over", 1, 2, x=25, y=25, w=50, h=50)]
    assert hit_test(spots, 1, 30.0, 30.0).id == "over"
    assert hit_test(spots, 1, 10.0, 10.0).id == "under"


def test_hotspots_on_page(book):
    assert [h.id for h in hotspots_on_page(book.hotspots, 2)] == ["h3", "hm"]
