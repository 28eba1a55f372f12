"""Exact brute-force pattern search inside candidate bitmaps."""
from __future__ import annotations
from typing import List, Optional

import numpy as np

from ..core.entities import Location, Pattern
from ..utils.image_utils import encode_cells


def find(pattern: Pattern, candidate: np.ndarray) -> Optional[Location]:
    """Return the first top-left offset where ``pattern`` occurs in ``candidate``.

    Offsets are scanned row-major (y outer, x inner, both ascending), so the
    first window in that order whose every pixel equals the pattern cell wins.
    Comparison is exact on canonical colors; any other candidate color never
    matches. A pattern larger than the candidate returns None without scanning.
    """
    cand_h, cand_w = candidate.shape[:2]
    if pattern.width > cand_w or pattern.height > cand_h:
        return None

    rows: List[List[int]] = encode_cells(candidate).tolist()
    return _scan(pattern, rows, cand_w, cand_h)


def _scan(pattern: Pattern, rows: List[List[int]], cand_w: int, cand_h: int) -> Optional[Location]:
    cells = pattern.cells
    pw, ph = pattern.width, pattern.height
    for y in range(cand_h - ph + 1):
        for x in range(cand_w - pw + 1):
            if _window_matches(cells, rows, x, y, pw, ph):
                return Location(x, y)
    return None


def _window_matches(cells, rows, x: int, y: int, pw: int, ph: int) -> bool:
    for py in range(ph):
        pattern_row = cells[py]
        cand_row = rows[y + py]
        for px in range(pw):
            if cand_row[x + px] != pattern_row[px]:
                return False
    return True


class Matcher:
    """Matcher bound to one pattern, for callers that hold a pattern for their lifetime."""

    def __init__(self, pattern: Pattern):
        self.pattern = pattern

    def find(self, candidate: np.ndarray) -> Optional[Location]:
        return find(self.pattern, candidate)
