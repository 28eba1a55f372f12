"""Services package for the search engine."""

from .pattern_store import PatternStore
from .matcher import Matcher, find
from .candidate_source import QRCandidateSource
from .payload_generator import PayloadGenerator
from .session import SearchSession
from .results import ResultAggregator
from .reporting import CollectingReporter, LoggingReporter, SessionReporter
from .self_test import SelfTestRunner
from .scheduler import Scheduler, WorkerPool
from .engine import SearchEngine

__all__ = [
    "PatternStore", "Matcher", "find", "QRCandidateSource", "PayloadGenerator",
    "SearchSession", "ResultAggregator", "CollectingReporter", "LoggingReporter",
    "SessionReporter", "SelfTestRunner", "Scheduler", "WorkerPool", "SearchEngine"
]
