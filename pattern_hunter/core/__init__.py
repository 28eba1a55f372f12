"""Core domain entities, protocol and constants."""

from .entities import CandidateOptions, Location, MatchRecord, Pattern, StatusSnapshot, Task
from .exceptions import (
    ApplicationError, ConfigError, ConfigurationError, PatternLoadError,
    PatternValidationError, SessionError, WorkerError,
)
from .constants import APP_NAME, VERSION, SUPPORTED_IMAGE_FORMATS

__all__ = [
    "CandidateOptions", "Location", "MatchRecord", "Pattern", "StatusSnapshot", "Task",
    "ApplicationError", "ConfigError", "ConfigurationError", "PatternLoadError",
    "PatternValidationError", "SessionError", "WorkerError",
    "APP_NAME", "VERSION", "SUPPORTED_IMAGE_FORMATS"
]
