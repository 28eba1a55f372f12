"""Worker lifecycle state machine.

All state changes of a worker handle go through ``WorkerHandle.transition`` and
the single ``TRANSITIONS`` table below.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple

from .exceptions import WorkerStateError
from .protocol import InboundMessage


class WorkerState(Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    BUSY = "busy"
    DEAD = "dead"


class LifecycleEvent(Enum):
    READY = "ready"        # worker reported its pattern loaded
    ASSIGN = "assign"      # orchestrator handed over a task
    COMPLETE = "complete"  # worker reported a task result
    FAIL = "fail"          # init error, send failure, crash or exit


TRANSITIONS: Dict[Tuple[WorkerState, LifecycleEvent], WorkerState] = {
    (WorkerState.INITIALIZING, LifecycleEvent.READY): WorkerState.READY,
    (WorkerState.READY, LifecycleEvent.ASSIGN): WorkerState.BUSY,
    (WorkerState.BUSY, LifecycleEvent.COMPLETE): WorkerState.READY,
    (WorkerState.INITIALIZING, LifecycleEvent.FAIL): WorkerState.DEAD,
    (WorkerState.READY, LifecycleEvent.FAIL): WorkerState.DEAD,
    (WorkerState.BUSY, LifecycleEvent.FAIL): WorkerState.DEAD,
}


class WorkerChannel(Protocol):
    """Orchestrator-side view of one worker execution unit."""

    @property
    def pid(self) -> Optional[int]: ...

    @property
    def exitcode(self) -> Optional[int]: ...

    def send(self, message: InboundMessage) -> None: ...

    def is_alive(self) -> bool: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    def join(self, timeout: Optional[float] = None) -> None: ...

    def close(self) -> None: ...


@dataclass
class WorkerHandle:
    worker_id: int
    channel: WorkerChannel
    state: WorkerState = WorkerState.INITIALIZING
    pattern_loaded: bool = False
    current_task_id: Optional[int] = None
    shutdown_requested_at: Optional[float] = None
    terminated: bool = False

    def can(self, event: LifecycleEvent) -> bool:
        return (self.state, event) in TRANSITIONS

    def transition(self, event: LifecycleEvent) -> WorkerState:
        try:
            new_state = TRANSITIONS[(self.state, event)]
        except KeyError:
            raise WorkerStateError(
                f"Worker {self.worker_id}: invalid transition {event.value} from {self.state.value}"
            ) from None
        self.state = new_state
        return new_state

    @property
    def is_idle_eligible(self) -> bool:
        return self.state is WorkerState.READY
