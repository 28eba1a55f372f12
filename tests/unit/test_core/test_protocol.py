"""Tests for the orchestrator/worker message protocol."""
import pickle
from dataclasses import FrozenInstanceError

import pytest

from pattern_hunter.core.entities import Location
from pattern_hunter.core.protocol import ProcessTask, Ready, Shutdown, TaskResult, WorkerFailed


def test_task_result_is_match_only_with_location():
    assert TaskResult(1, 2, "p", location=Location(0, 0)).is_match
    assert not TaskResult(1, 2, "p").is_match
    assert not TaskResult(1, 2, "p", error="Candidate generation failed").is_match


@pytest.mark.parametrize("message", [
    ProcessTask(7, "http://www.abc.com"),
    Shutdown(),
    Ready(3),
    WorkerFailed(3, "Pattern file 'x.png' not found"),
    TaskResult(3, 7, "http://www.abc.com", location=Location(2, 5)),
])
def test_messages_survive_pickling(message):
    # Messages cross process boundaries through multiprocessing queues
    assert pickle.loads(pickle.dumps(message)) == message


def test_messages_are_frozen():
    task = ProcessTask(1, "a")
    with pytest.raises(FrozenInstanceError):
        task.payload = "b"
