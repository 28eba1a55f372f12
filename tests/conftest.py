"""Pytest configuration and shared fixtures for the pattern search engine.

Provides temporary directories, pattern images written with Pillow, fake
worker channels for driving the scheduler without processes, and the custom
markers used across the suite.
"""
import itertools
import os
import sys
import tempfile
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest
from PIL import Image

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from pattern_hunter.config.settings import Config
from pattern_hunter.core.entities import Pattern
from pattern_hunter.core.protocol import Shutdown
from pattern_hunter.services.candidate_source import QRCandidateSource
from pattern_hunter.services.pattern_store import PatternStore
from pattern_hunter.services.reporting import CollectingReporter
from pattern_hunter.services.results import ResultAggregator
from pattern_hunter.services.session import SearchSession
from pattern_hunter.utils.image_utils import mask_to_bitmap


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

# Disable some verbose loggers during testing
logging.getLogger('PIL').setLevel(logging.WARNING)


def cells_to_bitmap(cells: Sequence[Sequence[int]]) -> np.ndarray:
    """RGBA bitmap of canonical colors from a 0/1 grid (1 = on)."""
    return mask_to_bitmap(np.array(cells, dtype=bool))


def make_pattern(cells: Sequence[Sequence[int]], name: str = "pattern.png") -> Pattern:
    return PatternStore.compile(name, cells_to_bitmap(cells))


def write_image(path: Path, bitmap: np.ndarray) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(bitmap).save(path)
    return path


class FakeChannel:
    """In-memory stand-in for a worker process."""

    def __init__(self, worker_id: int, pattern_name: str):
        self.worker_id = worker_id
        self.pattern_name = pattern_name
        self.pid = 10000 + worker_id
        self.exitcode: Optional[int] = None
        self.sent: List = []
        self.alive = True
        self.fail_send = False
        self.exit_on_shutdown = True
        self.stubborn = False
        self.terminate_calls = 0
        self.kill_calls = 0
        self.closed = False

    @property
    def tasks(self):
        return [m for m in self.sent if not isinstance(m, Shutdown)]

    def send(self, message) -> None:
        if self.fail_send:
            raise OSError("broken pipe")
        self.sent.append(message)
        if isinstance(message, Shutdown) and self.exit_on_shutdown:
            self.exit(0)

    def exit(self, code: int) -> None:
        self.alive = False
        self.exitcode = code

    def is_alive(self) -> bool:
        return self.alive

    def terminate(self) -> None:
        self.terminate_calls += 1
        if not self.stubborn:
            self.exit(-15)

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-9)

    def join(self, timeout: Optional[float] = None) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class FakeWorkerFactory:
    """Scheduler worker factory creating FakeChannels and remembering them."""

    def __init__(self):
        self.channels: Dict[int, FakeChannel] = {}
        self.fail = False

    def __call__(self, worker_id: int, pattern_name: str) -> FakeChannel:
        if self.fail:
            raise OSError("cannot fork")
        channel = FakeChannel(worker_id, pattern_name)
        self.channels[worker_id] = channel
        return channel

    @property
    def alive(self) -> List[FakeChannel]:
        return [c for c in self.channels.values() if c.alive]

    def all_tasks(self):
        return [task for channel in self.channels.values() for task in channel.tasks]


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def project_root():
    """Provide project root directory path."""
    return PROJECT_ROOT


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def templates_dir(temp_dir):
    path = temp_dir / "templates"
    path.mkdir()
    return path


@pytest.fixture
def uploads_dir(temp_dir):
    path = temp_dir / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def pattern_file(templates_dir):
    """A valid 3x3 pattern image on disk."""
    write_image(templates_dir / "cross.png", cells_to_bitmap([[0, 1, 0], [1, 1, 1], [0, 1, 0]]))
    return "cross.png"


@pytest.fixture
def build_pattern():
    """Compile a Pattern from a 0/1 grid."""
    return make_pattern


@pytest.fixture
def build_bitmap():
    """Canonical RGBA bitmap from a 0/1 grid."""
    return cells_to_bitmap


@pytest.fixture
def save_image():
    """Write an RGBA array to a PNG with Pillow."""
    return write_image


@pytest.fixture
def square_pattern():
    return make_pattern([[1, 1], [1, 1]], name="square.png")


@pytest.fixture
def real_config(temp_dir, templates_dir, uploads_dir):
    """Provide a real configuration object with temporary directories."""
    return Config(
        templates_dir=str(templates_dir),
        uploads_dir=str(uploads_dir),
        log_dir=str(temp_dir / "logs"),
        worker_count=2,
        delay_between_batches_ms=100,
        status_update_interval_ms=250,
        worker_shutdown_timeout_s=5.0,
    )


@pytest.fixture
def session():
    return SearchSession()


@pytest.fixture
def reporter():
    return CollectingReporter()


@pytest.fixture
def aggregator(uploads_dir, reporter):
    return ResultAggregator(QRCandidateSource(), uploads_dir, Config().display_options(), reporter)


@pytest.fixture
def worker_factory():
    return FakeWorkerFactory()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def payloads():
    """Deterministic payload generator: payload-1, payload-2, ..."""
    counter = itertools.count(1)
    return lambda: f"payload-{next(counter)}"


# Integration test fixtures
@pytest.fixture(scope="session")
def integration_test_env():
    """Set up environment for integration tests."""
    # Only run integration tests if explicitly requested
    if not os.getenv("RUN_INTEGRATION_TESTS"):
        pytest.skip("Integration tests disabled. Set RUN_INTEGRATION_TESTS=1 to enable.")

    return True


# Test markers and utilities
def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
