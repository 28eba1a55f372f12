"""Search session state."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.entities import MatchRecord, StatusSnapshot
from ..core.exceptions import SessionError


@dataclass(slots=True)
class SearchSession:
    """Mutable state of the search, owned by the orchestrator.

    ``start`` resets the counters and the self-test flag. Match history is
    newest-first and survives stop/start unless explicitly cleared.
    """
    running: bool = False
    searched_count: int = 0
    self_test_completed: bool = False
    pattern_name: Optional[str] = None
    matches: List[MatchRecord] = field(default_factory=list)

    def start(self, pattern_name: str, clear_history: bool = False) -> None:
        if self.running:
            raise SessionError("Search is already running")
        self.running = True
        self.searched_count = 0
        self.self_test_completed = False
        self.pattern_name = pattern_name
        if clear_history:
            self.matches.clear()

    def stop(self) -> bool:
        """Returns whether the session was running."""
        was_running = self.running
        self.running = False
        return was_running

    def record_scan(self) -> None:
        self.searched_count += 1

    def add_match(self, record: MatchRecord) -> None:
        self.matches.insert(0, record)

    @property
    def match_count(self) -> int:
        return len(self.matches)

    def search_matches(self) -> List[MatchRecord]:
        """Matches found by workers, excluding self-test hits."""
        return [m for m in self.matches if not m.is_self_test]

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(
            searched_count=self.searched_count,
            running=self.running,
            match_count=self.match_count,
        )
