"""Worker pool, bounded task queue and assignment loop.

Everything here runs on the orchestrating thread. Worker processes are only
reached through their ``WorkerChannel``; no locks are needed because the queue,
the idle set and the pool slots are never touched from anywhere else.
"""

import itertools
import logging
import time
from collections import OrderedDict, deque
from typing import Callable, Deque, Dict, List, Optional

from ..core.constants import WORKER_SUCCESS_EXIT_CODE
from ..core.entities import Pattern, Task
from ..core.exceptions import (
    ConfigurationError, PoolFullError, WorkerCrash, WorkerInitError, WorkerStateError,
)
from ..core.protocol import OutboundMessage, ProcessTask, Ready, Shutdown, TaskResult, WorkerFailed
from ..core.worker_state import LifecycleEvent, WorkerChannel, WorkerHandle

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[int, str], WorkerChannel]

_FORCED_KILL_JOIN_S = 1.0


class WorkerPool:
    """Fixed-capacity arena of worker slots.

    Slots are reused through a free-slot stack; ``_index`` maps worker ids to
    slots so lookup and removal are O(1). The idle subset keeps arrival order.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Pool capacity must be at least 1")
        self.capacity = capacity
        self._slots: List[Optional[WorkerHandle]] = [None] * capacity
        self._free: List[int] = list(range(capacity - 1, -1, -1))
        self._index: Dict[int, int] = {}
        self._idle: "OrderedDict[int, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, worker_id: int) -> bool:
        return worker_id in self._index

    @property
    def is_full(self) -> bool:
        return not self._free

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    def add(self, handle: WorkerHandle) -> int:
        if not self._free:
            raise PoolFullError(f"Worker pool is full ({self.capacity} slots)")
        slot = self._free.pop()
        self._slots[slot] = handle
        self._index[handle.worker_id] = slot
        return slot

    def get(self, worker_id: int) -> Optional[WorkerHandle]:
        slot = self._index.get(worker_id)
        return None if slot is None else self._slots[slot]

    def remove(self, worker_id: int) -> Optional[WorkerHandle]:
        slot = self._index.pop(worker_id, None)
        if slot is None:
            return None
        handle = self._slots[slot]
        self._slots[slot] = None
        self._free.append(slot)
        self._idle.pop(worker_id, None)
        return handle

    def handles(self) -> List[WorkerHandle]:
        return [handle for handle in self._slots if handle is not None]

    def mark_idle(self, worker_id: int) -> None:
        if worker_id in self._index:
            self._idle[worker_id] = None

    def pop_idle(self) -> Optional[WorkerHandle]:
        """Oldest idle worker that can still take a task."""
        while self._idle:
            worker_id, _ = self._idle.popitem(last=False)
            handle = self.get(worker_id)
            if handle is not None and handle.is_idle_eligible:
                return handle
        return None

    def discard_idle(self, worker_id: int) -> None:
        self._idle.pop(worker_id, None)

    def clear_idle(self) -> None:
        self._idle.clear()


class Scheduler:
    """Keeps ``pool_size`` workers busy with generated payload tasks.

    Args:
        pool_size: Desired number of workers (N)
        worker_factory: Callable ``(worker_id, pattern_name) -> WorkerChannel`` that starts a worker
        payload_generator: Callable returning a fresh payload string
        aggregator: ResultAggregator receiving matches
        self_test: Optional SelfTestRunner, run once per session before any assignment
        queue_high_water_factor: Queue is refilled up to ``pool_size * factor`` tasks
        shutdown_timeout_s: Grace period before a stopping worker is terminated, then killed
        clock: Monotonic time source
    """

    def __init__(self, pool_size: int, worker_factory: WorkerFactory, payload_generator: Callable[[], str],
                 aggregator, self_test=None, queue_high_water_factor: int = 3,
                 shutdown_timeout_s: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.pool_size = pool_size
        self.pool = WorkerPool(pool_size)
        self.worker_factory = worker_factory
        self.payload_generator = payload_generator
        self.aggregator = aggregator
        self.self_test = self_test
        self.high_water_mark = pool_size * queue_high_water_factor
        self.shutdown_timeout_s = shutdown_timeout_s
        self._clock = clock

        self._queue: Deque[Task] = deque()
        self._task_ids = itertools.count(1)
        self._worker_ids = itertools.count(1)
        self._retired: Dict[int, WorkerHandle] = {}
        self._pattern: Optional[Pattern] = None

    @property
    def active_count(self) -> int:
        return len(self.pool)

    @property
    def idle_count(self) -> int:
        return self.pool.idle_count

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def retired_count(self) -> int:
        return len(self._retired)

    def queued_tasks(self) -> List[Task]:
        return list(self._queue)

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    def start_session(self, session, pattern: Optional[Pattern], clear_history: bool = False) -> None:
        """Replace every existing worker with ``pool_size`` fresh ones.

        Raises:
            ConfigurationError: If no pattern has been selected
            SessionError: If the session is already running
        """
        if pattern is None:
            raise ConfigurationError("No pattern selected. Select a pattern before starting the search.")

        session.start(pattern.name, clear_history=clear_history)
        self._terminate_all(self.shutdown_timeout_s)
        self._queue.clear()
        self.pool.clear_idle()
        self._pattern = pattern

        for _ in range(self.pool_size):
            self._spawn(session)
        logger.info(f"Search session started with {self.active_count}/{self.pool_size} workers "
                    f"for pattern '{pattern.name}'")

    def stop_session(self, session) -> None:
        """Stop assigning work and ask every worker to exit. Does not wait."""
        session.stop()
        dropped = len(self._queue)
        self._queue.clear()
        self.pool.clear_idle()

        now = self._clock()
        for handle in self.pool.handles():
            self.pool.remove(handle.worker_id)
            handle.shutdown_requested_at = now
            self._retired[handle.worker_id] = handle
            try:
                handle.channel.send(Shutdown())
            except (OSError, ValueError) as e:
                logger.warning(f"Could not send shutdown to worker {handle.worker_id}: {e}")
                self._force_terminate(handle)
        logger.info(f"Search session stopped ({dropped} queued tasks dropped, "
                    f"{len(self._retired)} workers shutting down)")

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Terminate and join every worker process, pooled or retiring."""
        self._queue.clear()
        self._terminate_all(self.shutdown_timeout_s if timeout is None else timeout)

    # ------------------------------------------------------------------
    # Periodic work
    # ------------------------------------------------------------------

    def tick(self, session) -> None:
        """Run the pending self-test, top up pool and queue, then assign."""
        if not session.running:
            return
        if self._self_test_pending(session):
            self.self_test.run(session, self._pattern)

        while len(self.pool) < self.pool_size:
            if self._spawn(session) is None:
                break

        self._fill_queue()
        self._assign_idle(session)

    def poll_workers(self, session) -> None:
        """Detect exited workers, reap retired ones and escalate stuck shutdowns."""
        for handle in self.pool.handles():
            if not handle.channel.is_alive():
                self.handle_exit(session, handle.worker_id, handle.channel.exitcode)

        now = self._clock()
        for worker_id, handle in list(self._retired.items()):
            if not handle.channel.is_alive():
                self._reap(handle)
                continue
            requested = handle.shutdown_requested_at
            if requested is None or now - requested < self.shutdown_timeout_s:
                continue
            if not handle.terminated:
                logger.warning(f"Worker {worker_id} did not exit within {self.shutdown_timeout_s}s, terminating")
                self._force_terminate(handle)
                handle.shutdown_requested_at = now
            else:
                logger.warning(f"Force killing worker {worker_id}")
                handle.channel.kill()
                handle.shutdown_requested_at = now

    # ------------------------------------------------------------------
    # Worker events
    # ------------------------------------------------------------------

    def handle_event(self, session, message: OutboundMessage) -> None:
        try:
            if isinstance(message, TaskResult):
                self._on_result(session, message)
            elif isinstance(message, Ready):
                self._on_ready(session, message)
            elif isinstance(message, WorkerFailed):
                self._on_failed(session, message)
            else:
                logger.warning(f"Ignoring unknown worker message {message!r}")
        except WorkerStateError as e:
            logger.warning(str(e))

    def handle_exit(self, session, worker_id: int, exitcode: Optional[int]) -> None:
        """A pooled worker's process is gone. Replace it while the session runs."""
        handle = self.pool.remove(worker_id)
        if handle is None:
            return
        if handle.can(LifecycleEvent.FAIL):
            handle.transition(LifecycleEvent.FAIL)

        if exitcode != WORKER_SUCCESS_EXIT_CODE:
            lost = f"; task {handle.current_task_id} lost" if handle.current_task_id is not None else ""
            logger.error(f"{WorkerCrash(worker_id, exitcode)}{lost}")
        else:
            logger.warning(f"Worker {worker_id} exited while still in the pool")
        self._reap(handle)

        # any exit from the pool is replaced, code 0 included, so the pool stays at N
        if session.running:
            self._spawn(session)

    def _on_ready(self, session, message: Ready) -> None:
        handle = self.pool.get(message.worker_id)
        if handle is None:
            logger.debug(f"Ready from unknown worker {message.worker_id} ignored")
            return
        handle.transition(LifecycleEvent.READY)
        handle.pattern_loaded = True
        logger.debug(f"Worker {handle.worker_id} ready")
        if session.running:
            self.pool.mark_idle(handle.worker_id)
            self._assign_idle(session)

    def _on_failed(self, session, message: WorkerFailed) -> None:
        handle = self.pool.get(message.worker_id)
        if handle is None:
            logger.debug(f"Error from unknown worker {message.worker_id} ignored: {message.message}")
            return
        logger.error(str(WorkerInitError(f"Worker {message.worker_id} failed to initialize: {message.message}")))
        self._fail_worker(session, handle)

    def _on_result(self, session, result: TaskResult) -> None:
        handle = self.pool.get(result.worker_id)
        if handle is None and result.worker_id not in self._retired:
            logger.debug(f"Result for task {result.task_id} from unknown worker {result.worker_id} ignored")
            return

        session.record_scan()
        if result.error:
            logger.debug(f"Task {result.task_id} failed on worker {result.worker_id}: {result.error}")
        if result.is_match:
            self.aggregator.record_match(session, result.payload, result.location)

        if handle is None:
            return
        handle.transition(LifecycleEvent.COMPLETE)
        handle.current_task_id = None

        if not session.running:
            return
        if self._queue and not self._self_test_pending(session):
            self._assign(session, handle)
        else:
            self.pool.mark_idle(handle.worker_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _self_test_pending(self, session) -> bool:
        return self.self_test is not None and not session.self_test_completed

    def _fill_queue(self) -> None:
        while len(self._queue) < self.high_water_mark:
            self._queue.append(Task(next(self._task_ids), self.payload_generator()))

    def _assign_idle(self, session) -> None:
        while session.running and self._queue and not self._self_test_pending(session):
            handle = self.pool.pop_idle()
            if handle is None:
                return
            self._assign(session, handle)

    def _assign(self, session, handle: WorkerHandle) -> bool:
        task = self._queue.popleft()
        handle.transition(LifecycleEvent.ASSIGN)
        try:
            handle.channel.send(ProcessTask(task.task_id, task.payload))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to send task {task.task_id} to worker {handle.worker_id}: {e}")
            # never delivered, so it goes back to the head of the queue
            self._queue.appendleft(task)
            self._fail_worker(session, handle)
            return False
        handle.current_task_id = task.task_id
        return True

    def _spawn(self, session) -> Optional[WorkerHandle]:
        if self.pool.is_full or self._pattern is None:
            return None
        worker_id = next(self._worker_ids)
        try:
            channel = self.worker_factory(worker_id, self._pattern.name)
        except OSError as e:
            logger.error(f"Failed to spawn worker {worker_id}: {e}")
            return None
        handle = WorkerHandle(worker_id=worker_id, channel=channel)
        self.pool.add(handle)
        logger.debug(f"Worker {worker_id} started ({self.active_count}/{self.pool_size})")
        return handle

    def _fail_worker(self, session, handle: WorkerHandle) -> None:
        """Remove a worker from the pool, terminate it and replace it while running."""
        self.pool.remove(handle.worker_id)
        if handle.can(LifecycleEvent.FAIL):
            handle.transition(LifecycleEvent.FAIL)
        handle.shutdown_requested_at = self._clock()
        self._retired[handle.worker_id] = handle
        self._force_terminate(handle)
        if session.running:
            self._spawn(session)

    def _force_terminate(self, handle: WorkerHandle) -> None:
        handle.terminated = True
        if handle.channel.is_alive():
            handle.channel.terminate()

    def _reap(self, handle: WorkerHandle) -> None:
        self._retired.pop(handle.worker_id, None)
        handle.channel.join(0)
        exitcode = handle.channel.exitcode
        handle.channel.close()
        logger.debug(f"Worker {handle.worker_id} reaped (exit code {exitcode})")

    def _terminate_all(self, timeout: float) -> None:
        handles = self.pool.handles() + list(self._retired.values())
        if not handles:
            return
        for handle in handles:
            self.pool.remove(handle.worker_id)
            if handle.can(LifecycleEvent.FAIL):
                handle.transition(LifecycleEvent.FAIL)
            self._force_terminate(handle)
        for handle in handles:
            handle.channel.join(timeout)
            if handle.channel.is_alive():
                logger.warning(f"Force killing worker {handle.worker_id}")
                handle.channel.kill()
                handle.channel.join(_FORCED_KILL_JOIN_S)
            self._reap(handle)
        logger.info(f"Terminated {len(handles)} workers")
