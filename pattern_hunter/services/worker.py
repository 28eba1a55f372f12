"""Search worker processes.

Each worker is a separate OS process that loads its own copy of the pattern and
processes one task at a time. The process target ``worker_main`` is a top-level
function so it stays importable under the ``spawn`` start method.
"""

import logging
import signal
from dataclasses import dataclass
from typing import Optional

from ..core.entities import CandidateOptions, Location
from ..core.exceptions import PatternError
from ..core.logging_config import configure_worker_logging
from ..core.protocol import InboundMessage, ProcessTask, Ready, Shutdown, TaskResult, WorkerFailed
from .candidate_source import QRCandidateSource
from .matcher import Matcher
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

CANDIDATE_GENERATION_FAILED = "Candidate generation failed"


@dataclass(frozen=True, slots=True)
class WorkerConfig:
    """Immutable bundle handed to a worker at spawn time."""
    templates_dir: str
    pattern_name: str
    search_options: CandidateOptions
    log_level: str = "INFO"


class WorkerRuntime:
    """Message handling of one worker, independent of the process that hosts it.

    Args:
        worker_id: Identifier assigned by the scheduler
        config: Worker configuration bundle
        outbox: Queue-like object with ``put`` receiving outbound messages
        candidate_source: Candidate generator, QR codes by default
    """

    def __init__(self, worker_id: int, config: WorkerConfig, outbox,
                 candidate_source: Optional[QRCandidateSource] = None):
        self.worker_id = worker_id
        self.config = config
        self.outbox = outbox
        self.candidate_source = candidate_source or QRCandidateSource()
        self.matcher: Optional[Matcher] = None
        self.init_error: Optional[str] = None

    def initialize(self) -> bool:
        """Load the pattern copy and announce the outcome."""
        try:
            pattern = PatternStore(self.config.templates_dir).load(self.config.pattern_name)
        except PatternError as e:
            self.init_error = f"Failed to load pattern '{self.config.pattern_name}': {e}"
            logger.error(f"Worker {self.worker_id}: {self.init_error}")
            self.outbox.put(WorkerFailed(self.worker_id, self.init_error))
            return False

        self.matcher = Matcher(pattern)
        logger.debug(f"Worker {self.worker_id} ready with pattern '{pattern.name}'")
        self.outbox.put(Ready(self.worker_id))
        return True

    def handle(self, message: InboundMessage) -> bool:
        """Handle one inbound message. Returns False when the worker should exit."""
        if isinstance(message, Shutdown):
            logger.debug(f"Worker {self.worker_id} received shutdown")
            return False
        if isinstance(message, ProcessTask):
            self.outbox.put(self.process(message))
            return True
        logger.warning(f"Worker {self.worker_id} ignoring unknown message {message!r}")
        return True

    def process(self, task: ProcessTask) -> TaskResult:
        if self.matcher is None:
            return TaskResult(self.worker_id, task.task_id, task.payload,
                              error=self.init_error or "Pattern not loaded")

        candidate = self.candidate_source.generate(task.payload, self.config.search_options)
        if candidate is None:
            return TaskResult(self.worker_id, task.task_id, task.payload, error=CANDIDATE_GENERATION_FAILED)

        location: Optional[Location] = self.matcher.find(candidate)
        return TaskResult(self.worker_id, task.task_id, task.payload, location=location)


def worker_main(worker_id: int, config: WorkerConfig, inbox, outbox) -> None:
    """Process entry point. Returning normally yields exit code 0."""
    # Ctrl-C reaches the whole process group; shutdown is driven by the orchestrator
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    configure_worker_logging(worker_id, config.log_level)

    runtime = WorkerRuntime(worker_id, config, outbox)
    runtime.initialize()
    while runtime.handle(inbox.get()):
        pass
    logger.debug(f"Worker {worker_id} exiting")


class ProcessWorker:
    """Orchestrator-side channel to one worker process and its private inbox."""

    def __init__(self, worker_id: int, config: WorkerConfig, events, ctx):
        self.worker_id = worker_id
        self._inbox = ctx.Queue()
        self._process = ctx.Process(
            target=worker_main,
            args=(worker_id, config, self._inbox, events),
            name=f"pattern-worker-{worker_id}",
            daemon=True,
        )

    def start(self) -> None:
        self._process.start()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def exitcode(self) -> Optional[int]:
        return self._process.exitcode

    def send(self, message: InboundMessage) -> None:
        self._inbox.put(message)

    def is_alive(self) -> bool:
        return self._process.is_alive()

    def terminate(self) -> None:
        self._process.terminate()

    def kill(self) -> None:
        self._process.kill()

    def join(self, timeout: Optional[float] = None) -> None:
        self._process.join(timeout)

    def close(self) -> None:
        """Release the inbox and, once the process has exited, its resources."""
        # The reader may be gone, so never block on flushing buffered messages
        self._inbox.cancel_join_thread()
        self._inbox.close()
        if self._process.exitcode is not None:
            self._process.close()


class ProcessWorkerFactory:
    """Spawns ``ProcessWorker`` instances for the scheduler.

    Args:
        config: Application configuration
        events: Queue shared by all workers for outbound messages
        ctx: multiprocessing context the queue was created from
    """

    def __init__(self, config, events, ctx):
        self.config = config
        self.events = events
        self.ctx = ctx

    def worker_config(self, pattern_name: str) -> WorkerConfig:
        return WorkerConfig(
            templates_dir=str(self.config.templates_dir),
            pattern_name=pattern_name,
            search_options=self.config.search_options(),
            log_level=self.config.log_level,
        )

    def __call__(self, worker_id: int, pattern_name: str) -> ProcessWorker:
        worker = ProcessWorker(worker_id, self.worker_config(pattern_name), self.events, self.ctx)
        worker.start()
        logger.debug(f"Spawned worker {worker_id} (pid {worker.pid})")
        return worker
