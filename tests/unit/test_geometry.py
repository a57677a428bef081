"""
Tests for geometry value types.
"""

import pytest

from playpilot.geometry import BoundingBox, ScreenGeometry


class TestBoundingBox:
    """Tests for BoundingBox."""

    def test_rejects_empty_size(self):
        with pytest.raises(ValueError):
            BoundingBox(0, 0, 0, 10)
        with pytest.raises(ValueError):
            BoundingBox(0, 0, 10, -1)

    def test_center_is_integer(self):
        box = BoundingBox(10, 20, 101, 51)
        assert box.center == (60, 45)

    def test_edges(self):
        box = BoundingBox(10, 20, 30, 40)
        assert box.right == 40
        assert box.bottom == 60

    def test_overlap(self):
        a = BoundingBox(0, 0, 50, 50)
        b = BoundingBox(40, 40, 50, 50)
        c = BoundingBox(200, 200, 10, 10)

        assert a.overlaps(b)
        assert b.overlaps(a)
        assert not a.overlaps(c)
        assert not c.overlaps(b)

    def test_touching_edges_overlap(self):
        a = BoundingBox(0, 0, 50, 50)
        assert a.overlaps(BoundingBox(50, 0, 10, 10))
        assert not a.overlaps(BoundingBox(51, 0, 10, 10))

    def test_covering(self):
        box = BoundingBox.covering([BoundingBox(0, 0, 50, 50), BoundingBox(40, 40, 50, 50)])
        assert box.to_tuple() == (0, 0, 90, 90)

    def test_covering_needs_boxes(self):
        with pytest.raises(ValueError):
            BoundingBox.covering([])

    def test_translated(self):
        assert BoundingBox(1, 2, 3, 4).translated(10, 20) == BoundingBox(11, 22, 3, 4)

    def test_dict_round_trip_accepts_left_top(self):
        box = BoundingBox.from_dict({"left": 5, "top": 6, "width": 7, "height": 8})
        assert box == BoundingBox(5, 6, 7, 8)
        assert box.to_dict() == {"x": 5, "y": 6, "width": 7, "height": 8}
        assert box.to_mss_dict() == {"left": 5, "top": 6, "width": 7, "height": 8}


class TestScreenGeometry:
    """Tests for ScreenGeometry bounds checks."""

    def test_contains_with_margin(self):
        screen = ScreenGeometry(1920, 1080)

        assert not screen.contains(5, 5, margin=10)
        assert screen.contains(1910, 5 + 5, margin=10)
        assert not screen.contains(1911, 10, margin=10)
        assert screen.contains(10, 10, margin=10)
        assert screen.contains(1910, 1070, margin=10)
        assert not screen.contains(1910, 1071, margin=10)

    def test_contains_without_margin(self):
        screen = ScreenGeometry(100, 100)
        assert screen.contains(0, 0)
        assert screen.contains(100, 100)
        assert not screen.contains(-1, 0)
