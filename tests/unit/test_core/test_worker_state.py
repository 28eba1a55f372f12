"""Tests for the worker lifecycle state machine."""
import pytest

from pattern_hunter.core.exceptions import WorkerStateError
from pattern_hunter.core.worker_state import LifecycleEvent, WorkerHandle, WorkerState


@pytest.fixture
def handle():
    return WorkerHandle(worker_id=1, channel=None)


class TestWorkerHandle:

    def test_starts_initializing(self, handle):
        assert handle.state is WorkerState.INITIALIZING
        assert not handle.is_idle_eligible

    def test_ready_busy_cycle(self, handle):
        assert handle.transition(LifecycleEvent.READY) is WorkerState.READY
        assert handle.is_idle_eligible
        assert handle.transition(LifecycleEvent.ASSIGN) is WorkerState.BUSY
        assert not handle.is_idle_eligible
        assert handle.transition(LifecycleEvent.COMPLETE) is WorkerState.READY

    @pytest.mark.parametrize("events", [
        [],
        [LifecycleEvent.READY],
        [LifecycleEvent.READY, LifecycleEvent.ASSIGN],
    ])
    def test_fail_from_any_live_state(self, handle, events):
        for event in events:
            handle.transition(event)
        assert handle.transition(LifecycleEvent.FAIL) is WorkerState.DEAD

    def test_cannot_assign_before_ready(self, handle):
        assert not handle.can(LifecycleEvent.ASSIGN)
        with pytest.raises(WorkerStateError):
            handle.transition(LifecycleEvent.ASSIGN)
        assert handle.state is WorkerState.INITIALIZING

    def test_dead_is_terminal(self, handle):
        handle.transition(LifecycleEvent.FAIL)
        for event in LifecycleEvent:
            assert not handle.can(event)
        with pytest.raises(WorkerStateError):
            handle.transition(LifecycleEvent.READY)

    def test_complete_requires_busy(self, handle):
        handle.transition(LifecycleEvent.READY)
        with pytest.raises(WorkerStateError):
            handle.transition(LifecycleEvent.COMPLETE)
