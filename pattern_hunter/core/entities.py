"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict, Any

import numpy as np

from .constants import CELL_ON, ON_RGBA, OFF_RGBA

Cells = Tuple[Tuple[int, ...], ...]  # row-major, CELL_ON / CELL_OFF

@dataclass(frozen=True, slots=True)
class Location:
    x: int
    y: int

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}

@dataclass(frozen=True, slots=True)
class Pattern:
    """Compiled binary pattern. Only built by PatternStore after validation."""
    name: str
    width: int
    height: int
    cells: Cells

    def to_bitmap(self) -> np.ndarray:
        """Render the pattern back to an RGBA bitmap of canonical colors."""
        mask = np.array(self.cells, dtype=np.uint8).reshape(self.height, self.width) == CELL_ON
        bitmap = np.empty((self.height, self.width, 4), dtype=np.uint8)
        bitmap[mask] = ON_RGBA
        bitmap[~mask] = OFF_RGBA
        return bitmap

@dataclass(frozen=True, slots=True)
class CandidateOptions:
    module_scale: int = 1
    quiet_zone_margin: int = 0
    error_correction_level: str = "H"

@dataclass(frozen=True, slots=True)
class Task:
    task_id: int
    payload: str

@dataclass(frozen=True, slots=True)
class MatchRecord:
    id: str
    payload: str
    artifact_path: Optional[str]
    pattern_name: str
    location: Location
    timestamp: str
    is_self_test: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    searched_count: int
    running: bool
    match_count: int
