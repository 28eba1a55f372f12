"""Search orchestrator: wires pattern store, scheduler, session and reporting together.

All engine methods must be called from one thread. Worker processes talk back
through a single shared event queue that ``run_once`` drains.
"""

import logging
import multiprocessing
import queue
import time
import uuid
from typing import Callable, Optional

from ..config.settings import Config
from ..core.entities import Pattern, StatusSnapshot
from ..core.exceptions import ConfigurationError
from ..core.logging_config import logging_manager
from .candidate_source import QRCandidateSource
from .pattern_store import PatternStore
from .payload_generator import PayloadGenerator
from .reporting import LoggingReporter, SessionReporter
from .results import ResultAggregator
from .scheduler import Scheduler, WorkerFactory
from .self_test import SelfTestRunner
from .session import SearchSession
from .worker import ProcessWorkerFactory

logger = logging.getLogger(__name__)

MAX_EVENTS_PER_CYCLE = 1000


class SearchEngine:
    """Event loop around the scheduler.

    Args:
        config: Application configuration
        reporter: Receives status snapshots and match records, logs them by default
        worker_factory: Replaces process spawning, mainly for tests
        events: Outbound worker queue; created from the multiprocessing context when omitted
        candidate_source: Candidate generator used for artifacts
        payload_generator: Callable producing payloads, built from config when omitted
        clock: Monotonic time source for timers
    """

    def __init__(self, config: Config, reporter: Optional[SessionReporter] = None,
                 worker_factory: Optional[WorkerFactory] = None, events=None,
                 candidate_source: Optional[QRCandidateSource] = None,
                 payload_generator: Optional[Callable[[], str]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.reporter = reporter or LoggingReporter()
        self.session = SearchSession()
        self.store = PatternStore(config.templates_dir)
        self.pattern: Optional[Pattern] = None
        self._clock = clock

        self._owns_events = events is None
        if events is None:
            ctx = multiprocessing.get_context(config.start_method)
            events = ctx.Queue()
            if worker_factory is None:
                worker_factory = ProcessWorkerFactory(config, events, ctx)
        elif worker_factory is None:
            raise ValueError("A worker_factory is required when an events queue is supplied")
        self.events = events

        self.candidate_source = candidate_source or QRCandidateSource()
        self.aggregator = ResultAggregator(
            self.candidate_source, config.uploads_dir, config.display_options(), self.reporter
        )
        self_test = None
        if config.run_self_test:
            self_test = SelfTestRunner(self.aggregator, config.self_test_margin, config.self_test_offset)

        self.scheduler = Scheduler(
            pool_size=config.resolved_worker_count(),
            worker_factory=worker_factory,
            payload_generator=payload_generator or PayloadGenerator.from_config(config),
            aggregator=self.aggregator,
            self_test=self_test,
            queue_high_water_factor=config.queue_high_water_factor,
            shutdown_timeout_s=config.worker_shutdown_timeout_s,
            clock=clock,
        )

        self._tick_delay = config.delay_between_batches_ms / 1000.0
        self._status_interval = config.status_update_interval_ms / 1000.0
        self._next_tick: Optional[float] = None
        self._next_status: Optional[float] = None
        self._closed = False

    def __enter__(self) -> "SearchEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_running(self) -> bool:
        return self.session.running

    def list_patterns(self):
        return self.store.list_patterns()

    def select_pattern(self, name: str) -> Pattern:
        """Load and validate a pattern for the next session.

        Raises:
            PatternLoadError: If the file cannot be read
            PatternValidationError: If the image is not strictly two-colored
        """
        pattern = self.store.load(name)
        self.pattern = pattern
        logger.info(f"Pattern '{name}' selected")
        return pattern

    def start(self) -> StatusSnapshot:
        """Start a session and schedule the first tick immediately.

        Raises:
            ConfigurationError: If no pattern has been selected
            SessionError: If a session is already running
        """
        if self.pattern is None:
            raise ConfigurationError("No pattern selected. Select a pattern before starting the search.")

        logging_manager.set_correlation_id(f"session-{uuid.uuid4().hex[:8]}")
        self.scheduler.start_session(self.session, self.pattern,
                                     clear_history=self.config.clear_history_on_start)
        now = self._clock()
        self._next_tick = now
        self._next_status = now + self._status_interval
        return self.status()

    def stop(self) -> StatusSnapshot:
        if not self.session.running:
            logger.info("Search is not running")
            return self.session.snapshot()
        self.scheduler.stop_session(self.session)
        self._next_tick = None
        self._next_status = None
        return self.status()

    def status(self) -> StatusSnapshot:
        snapshot = self.session.snapshot()
        self.reporter.publish_status(snapshot)
        return snapshot

    def run_once(self, timeout: Optional[float] = None) -> int:
        """Wait for worker events, handle them, then poll workers and run due timers.

        The wait never extends past the next timer deadline.

        Returns:
            Number of worker events handled
        """
        wait = self._tick_delay if timeout is None else timeout
        deadline = self._next_deadline()
        if deadline is not None:
            wait = min(wait, max(0.0, deadline - self._clock()))

        handled = 0
        try:
            message = self.events.get(timeout=wait)
        except queue.Empty:
            message = None
        while message is not None:
            self.scheduler.handle_event(self.session, message)
            handled += 1
            if handled >= MAX_EVENTS_PER_CYCLE:
                break
            try:
                message = self.events.get_nowait()
            except queue.Empty:
                message = None

        self.scheduler.poll_workers(self.session)
        self._run_timers()
        return handled

    def run(self, duration: Optional[float] = None, max_matches: Optional[int] = None,
            stop_event=None) -> StatusSnapshot:
        """Run until stopped, ``duration`` seconds pass or ``max_matches`` matches are found.

        Self-test matches do not count towards ``max_matches``.
        """
        if not self.session.running:
            self.start()
        deadline = self._clock() + duration if duration is not None else None
        baseline = len(self.session.search_matches())

        while self.session.running:
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested")
                break
            if deadline is not None and self._clock() >= deadline:
                logger.info(f"Search duration of {duration}s elapsed")
                break
            if max_matches is not None and len(self.session.search_matches()) - baseline >= max_matches:
                logger.info(f"Reached {max_matches} matches")
                break
            self.run_once()

        return self.stop()

    def drain(self, timeout: Optional[float] = None) -> None:
        """Keep handling events until every stopping worker has exited or ``timeout`` passes."""
        limit = self.config.worker_shutdown_timeout_s if timeout is None else timeout
        deadline = self._clock() + limit
        while self.scheduler.retired_count and self._clock() < deadline:
            self.run_once(timeout=min(0.05, limit))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.session.running:
            self.stop()
        self.drain()
        self.scheduler.shutdown()
        if self._owns_events:
            self.events.close()
        logging_manager.clear_correlation_id()
        logger.info("Search engine closed")

    def _next_deadline(self) -> Optional[float]:
        deadlines = [d for d in (self._next_tick, self._next_status) if d is not None]
        return min(deadlines) if deadlines else None

    def _run_timers(self) -> None:
        if not self.session.running:
            return
        now = self._clock()
        if self._next_tick is not None and now >= self._next_tick:
            self.scheduler.tick(self.session)
            self._next_tick = self._clock() + self._tick_delay
        if self._next_status is not None and now >= self._next_status:
            self.status()
            self._next_status = now + self._status_interval
