"""Tests for pattern loading and validation."""
import numpy as np
import pytest

from pattern_hunter.core.constants import CELL_OFF, CELL_ON
from pattern_hunter.core.exceptions import PatternLoadError, PatternValidationError
from pattern_hunter.services.pattern_store import PatternStore

GRAY = (128, 128, 128, 255)


@pytest.fixture
def store(templates_dir):
    return PatternStore(templates_dir)


class TestLoad:

    def test_loads_valid_pattern(self, store, pattern_file):
        pattern = store.load(pattern_file)

        assert pattern.name == "cross.png"
        assert (pattern.width, pattern.height) == (3, 3)
        assert pattern.cells[1] == (CELL_ON, CELL_ON, CELL_ON)
        assert pattern.cells[0] == (CELL_OFF, CELL_ON, CELL_OFF)

    def test_gray_pixel_at_origin_is_rejected(self, store, templates_dir, build_bitmap, save_image):
        bitmap = build_bitmap([[1, 1], [1, 1]])
        bitmap[0, 0] = GRAY
        save_image(templates_dir / "gray.png", bitmap)

        with pytest.raises(PatternValidationError) as exc_info:
            store.load("gray.png")

        error = exc_info.value
        assert (error.x, error.y) == (0, 0)
        assert error.rgba == GRAY
        assert error.pattern_name == "gray.png"
        assert "(0, 0)" in str(error)
        assert "R:128 G:128 B:128 A:255" in str(error)

    def test_reports_first_offending_pixel_in_row_major_order(self, store, templates_dir,
                                                             build_bitmap, save_image):
        bitmap = build_bitmap([[0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0]])
        bitmap[1, 0] = (255, 0, 0, 255)   # (x=0, y=1)
        bitmap[0, 3] = (0, 0, 255, 255)   # (x=3, y=0) comes first
        bitmap[2, 1] = GRAY
        save_image(templates_dir / "multi.png", bitmap)

        with pytest.raises(PatternValidationError) as exc_info:
            store.load("multi.png")

        assert (exc_info.value.x, exc_info.value.y) == (3, 0)
        assert exc_info.value.rgba == (0, 0, 255, 255)

    def test_transparent_black_is_not_canonical(self, store, templates_dir, build_bitmap, save_image):
        bitmap = build_bitmap([[1, 0]])
        bitmap[0, 0] = (0, 0, 0, 0)
        save_image(templates_dir / "transparent.png", bitmap)

        with pytest.raises(PatternValidationError):
            store.load("transparent.png")

    def test_missing_file(self, store):
        with pytest.raises(PatternLoadError):
            store.load("absent.png")

    @pytest.mark.parametrize("name", ["", "..", "../cross.png", "sub/cross.png"])
    def test_names_outside_templates_dir_are_rejected(self, store, pattern_file, name):
        with pytest.raises(PatternLoadError):
            store.load(name)

    def test_undecodable_file(self, store, templates_dir):
        (templates_dir / "broken.png").write_bytes(b"not an image")

        with pytest.raises(PatternLoadError):
            store.load("broken.png")


class TestCompile:

    def test_rejects_non_rgba_arrays(self):
        with pytest.raises(PatternLoadError):
            PatternStore.compile("rgb", np.zeros((2, 2, 3), dtype=np.uint8))

    def test_rejects_empty_arrays(self):
        with pytest.raises(PatternLoadError):
            PatternStore.compile("empty", np.zeros((0, 2, 4), dtype=np.uint8))


def test_list_patterns_filters_and_sorts(store, templates_dir, build_bitmap, save_image):
    save_image(templates_dir / "b.png", build_bitmap([[1]]))
    save_image(templates_dir / "a.BMP", build_bitmap([[1]]))
    (templates_dir / "notes.txt").write_text("ignored")
    (templates_dir / "nested.png").mkdir()

    assert store.list_patterns() == ["a.BMP", "b.png"]


def test_list_patterns_missing_directory(temp_dir):
    assert PatternStore(temp_dir / "nowhere").list_patterns() == []
