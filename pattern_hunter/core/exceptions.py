"""Custom exceptions for the application."""
from typing import Optional, Tuple


class ApplicationError(Exception):
    """Base application error."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class ConfigurationError(ApplicationError):
    """Raised when a session cannot start because of missing configuration."""
    pass

class SessionError(ApplicationError):
    """Invalid search session transitions."""
    pass

class PatternError(ApplicationError):
    """Base exception for pattern loading problems."""

    def __init__(self, message: str, pattern_name: Optional[str] = None):
        super().__init__(message)
        self.pattern_name = pattern_name

class PatternLoadError(PatternError):
    """Pattern file missing, unreadable or outside the templates directory."""
    pass

class PatternValidationError(PatternError):
    """Pattern image contains a pixel that is not a canonical color."""

    def __init__(self, pattern_name: str, x: int, y: int, rgba: Tuple[int, int, int, int]):
        self.x = x
        self.y = y
        self.rgba = tuple(int(c) for c in rgba)
        r, g, b, a = self.rgba
        super().__init__(
            f"Pattern '{pattern_name}' contains non-monochrome pixel at ({x}, {y}): "
            f"R:{r} G:{g} B:{b} A:{a}. Expected opaque pure black or opaque pure white.",
            pattern_name=pattern_name,
        )

class CandidateGenerationFailure(ApplicationError):
    """A payload could not be turned into a candidate bitmap."""
    pass

class WorkerError(ApplicationError):
    """Base exception for worker pool problems."""
    pass

class WorkerInitError(WorkerError):
    """A worker failed to load its pattern copy."""
    pass

class WorkerCrash(WorkerError):
    """A worker exited unexpectedly while the session was running."""

    def __init__(self, worker_id: int, exitcode: Optional[int]):
        super().__init__(f"Worker {worker_id} exited unexpectedly with code {exitcode}")
        self.worker_id = worker_id
        self.exitcode = exitcode

class WorkerStateError(WorkerError):
    """Invalid worker lifecycle transition."""
    pass

class PoolFullError(WorkerError):
    """No free slot left in the worker pool."""
    pass
