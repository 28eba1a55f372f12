"""Unit tests for core entities."""
import pytest
from dataclasses import FrozenInstanceError

import numpy as np

from pattern_hunter.core.constants import CELL_OFF, CELL_ON, OFF_RGBA, ON_RGBA
from pattern_hunter.core.entities import Location, MatchRecord, StatusSnapshot


class TestLocation:

    def test_to_dict(self):
        assert Location(3, 7).to_dict() == {"x": 3, "y": 7}

    def test_equality_and_immutability(self):
        loc = Location(1, 1)
        assert loc == Location(1, 1)
        with pytest.raises(FrozenInstanceError):
            loc.x = 2


class TestPattern:

    def test_cells_are_row_major(self, build_pattern):
        pattern = build_pattern([[1, 0, 0], [0, 0, 1]])

        assert pattern.width == 3
        assert pattern.height == 2
        assert pattern.cells == ((CELL_ON, CELL_OFF, CELL_OFF), (CELL_OFF, CELL_OFF, CELL_ON))

    def test_to_bitmap_uses_canonical_colors(self, build_pattern):
        bitmap = build_pattern([[1, 0]]).to_bitmap()

        assert bitmap.shape == (1, 2, 4)
        assert bitmap.dtype == np.uint8
        assert tuple(bitmap[0, 0]) == ON_RGBA
        assert tuple(bitmap[0, 1]) == OFF_RGBA

    def test_pattern_is_immutable(self, square_pattern):
        with pytest.raises(FrozenInstanceError):
            square_pattern.width = 5


class TestMatchRecord:

    def test_to_dict_includes_nested_location(self):
        record = MatchRecord(
            id="match_1_abcde",
            payload="http://www.abc.com",
            artifact_path=None,
            pattern_name="square.png",
            location=Location(4, 2),
            timestamp="2024-01-01T00:00:00",
        )

        data = record.to_dict()

        assert data["location"] == {"x": 4, "y": 2}
        assert data["is_self_test"] is False
        assert data["artifact_path"] is None


def test_status_snapshot_fields():
    snapshot = StatusSnapshot(searched_count=10, running=True, match_count=1)
    assert (snapshot.searched_count, snapshot.running, snapshot.match_count) == (10, True, 1)
