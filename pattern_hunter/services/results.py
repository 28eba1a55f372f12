"""Turns discovered matches into recorded, reported MatchRecords."""

import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..core.entities import CandidateOptions, Location, MatchRecord
from .candidate_source import QRCandidateSource, write_artifact
from .reporting import LoggingReporter, SessionReporter

logger = logging.getLogger(__name__)

SEARCH_ARTIFACT_PREFIX = "qr"
SELF_TEST_ARTIFACT_PREFIX = "self_test"


def new_match_id() -> str:
    return f"match_{int(time.time() * 1000)}_{uuid.uuid4().hex[:5]}"


class ResultAggregator:
    """Records matches into the session history and reports them.

    The artifact of a search match is the payload re-rendered with display
    options; a self-test match supplies its synthetic candidate instead. A
    failed render still records the match, without an artifact.
    """

    def __init__(self, candidate_source: QRCandidateSource, uploads_dir: Union[str, Path],
                 display_options: CandidateOptions, reporter: Optional[SessionReporter] = None):
        self.candidate_source = candidate_source
        self.uploads_dir = Path(uploads_dir)
        self.display_options = display_options
        self.reporter = reporter or LoggingReporter()

    def record_match(self, session, payload: str, location: Location, is_self_test: bool = False,
                     artifact_bitmap: Optional[np.ndarray] = None) -> MatchRecord:
        if artifact_bitmap is not None:
            artifact = write_artifact(artifact_bitmap, self.uploads_dir, SELF_TEST_ARTIFACT_PREFIX)
        else:
            artifact = self.candidate_source.render_to_file(
                payload, self.display_options, self.uploads_dir, SEARCH_ARTIFACT_PREFIX
            )
        if artifact is None:
            logger.warning(f"No artifact rendered for match on '{payload}'")

        record = MatchRecord(
            id=new_match_id(),
            payload=payload,
            artifact_path=str(artifact) if artifact is not None else None,
            pattern_name=session.pattern_name or "",
            location=location,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            is_self_test=is_self_test,
        )
        session.add_match(record)
        if not is_self_test:
            logger.info(f"MATCH FOUND for pattern '{record.pattern_name}' at ({location.x}, {location.y}) "
                        f"in '{payload}'")
        self.reporter.publish_match(record)
        return record
