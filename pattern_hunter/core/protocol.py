"""Message protocol between the orchestrator and worker processes.

Inbound messages travel on a worker's private queue, outbound messages on the
event queue shared by all workers. Every variant is a frozen dataclass so it
pickles across process boundaries and cannot be mutated in flight.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

from .entities import Location


@dataclass(frozen=True, slots=True)
class ProcessTask:
    task_id: int
    payload: str


@dataclass(frozen=True, slots=True)
class Shutdown:
    pass


@dataclass(frozen=True, slots=True)
class Ready:
    worker_id: int


@dataclass(frozen=True, slots=True)
class WorkerFailed:
    """Worker-reported fatal error (pattern load failure)."""
    worker_id: int
    message: str


@dataclass(frozen=True, slots=True)
class TaskResult:
    worker_id: int
    task_id: int
    payload: str
    location: Optional[Location] = None
    error: Optional[str] = None

    @property
    def is_match(self) -> bool:
        return self.location is not None


InboundMessage = Union[ProcessTask, Shutdown]
OutboundMessage = Union[Ready, WorkerFailed, TaskResult]

__all__ = [
    "ProcessTask", "Shutdown", "Ready", "WorkerFailed", "TaskResult",
    "InboundMessage", "OutboundMessage",
]
