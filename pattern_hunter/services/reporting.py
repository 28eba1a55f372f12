"""Outward reporting of session status and matches."""

import logging
from typing import List, Protocol

from ..core.entities import MatchRecord, StatusSnapshot

logger = logging.getLogger(__name__)


class SessionReporter(Protocol):
    def publish_status(self, snapshot: StatusSnapshot) -> None: ...

    def publish_match(self, record: MatchRecord) -> None: ...


class LoggingReporter:
    """Default reporter: status at debug level, matches at info level."""

    def publish_status(self, snapshot: StatusSnapshot) -> None:
        logger.debug(f"Status: running={snapshot.running} searched={snapshot.searched_count} "
                     f"matches={snapshot.match_count}")

    def publish_match(self, record: MatchRecord) -> None:
        kind = "Self-test match" if record.is_self_test else "Match"
        logger.info(f"{kind} {record.id}: '{record.payload}' at ({record.location.x}, {record.location.y}) "
                    f"artifact={record.artifact_path}")


class CollectingReporter:
    """Keeps every published event in memory."""

    def __init__(self):
        self.statuses: List[StatusSnapshot] = []
        self.matches: List[MatchRecord] = []

    def publish_status(self, snapshot: StatusSnapshot) -> None:
        self.statuses.append(snapshot)

    def publish_match(self, record: MatchRecord) -> None:
        self.matches.append(record)

    @property
    def last_status(self):
        return self.statuses[-1] if self.statuses else None
