"""Environment variable configuration.

Loads ``PATTERN_HUNTER_*`` variables from the process environment and an
optional ``.env`` file, validates them and exposes the result as an immutable
object. Environment values take priority over ``config.json``.
"""
import os
import logging
from typing import Optional, Dict, Union
from pathlib import Path
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENV_PREFIX = "PATTERN_HUNTER_"


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable environment configuration object."""

    pattern_file: Optional[str]
    templates_dir: Optional[str]
    uploads_dir: Optional[str]
    worker_count: Optional[int]
    log_level: Optional[str]
    debug_logging: bool


class EnvironmentError(Exception):
    """Custom exception for environment configuration errors."""
    pass


class EnvironmentValidator:
    """Validates environment variable values."""

    VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

    @classmethod
    def sanitize_path(cls, path: str) -> str:
        """Normalize a directory path, rejecting traversal and shell metacharacters.

        Raises:
            EnvironmentError: If path is empty or contains dangerous characters
        """
        if not path or not path.strip():
            raise EnvironmentError("Path cannot be empty")

        for pattern in ('..', '$', '`', ';', '|', '&', '<', '>'):
            if pattern in path:
                raise EnvironmentError(f"Path contains dangerous pattern: {pattern}")

        return os.path.normpath(path.strip())

    @classmethod
    def sanitize_file_name(cls, name: str) -> str:
        """Pattern files are plain names inside the templates directory."""
        name = name.strip()
        if not name or os.path.basename(name) != name or name in ('.', '..'):
            raise EnvironmentError(f"Invalid pattern file name: {name!r}")
        return name

    @classmethod
    def validate_numeric_range(cls, value: Union[str, int, float],
                               min_val: Optional[Union[int, float]] = None,
                               max_val: Optional[Union[int, float]] = None,
                               value_type: type = int) -> Union[int, float]:
        """Validate numeric value within specified range.

        Raises:
            EnvironmentError: If validation fails
        """
        try:
            numeric_value = value_type(value)
        except (ValueError, TypeError):
            raise EnvironmentError(f"Invalid {value_type.__name__} value: {value}")

        if min_val is not None and numeric_value < min_val:
            raise EnvironmentError(f"Value {numeric_value} below minimum {min_val}")

        if max_val is not None and numeric_value > max_val:
            raise EnvironmentError(f"Value {numeric_value} above maximum {max_val}")

        return numeric_value

    @classmethod
    def validate_log_level(cls, level: str) -> str:
        level = level.strip().upper()
        if level not in cls.VALID_LOG_LEVELS:
            raise EnvironmentError(f"Invalid log level: {level}")
        return level


def load_env_file(env_path: Optional[str] = None) -> Dict[str, str]:
    """Load KEY=VALUE pairs from a .env file.

    Args:
        env_path: Path to .env file. Defaults to .env in current directory.

    Returns:
        dict: Loaded environment variables (empty if the file does not exist)
    """
    env_file_path = Path(env_path or ".env")
    env_vars: Dict[str, str] = {}

    if not env_file_path.exists():
        logger.debug(f"Environment file {env_file_path} not found, using system environment only")
        return env_vars

    with open(env_file_path, 'r', encoding='utf-8') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith('#'):
                continue

            if '=' not in line:
                logger.warning(f"Invalid line format in {env_file_path}:{line_num}: {line}")
                continue

            key, value = line.split('=', 1)
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            env_vars[key.strip()] = value

    logger.info(f"Loaded {len(env_vars)} variables from {env_file_path}")
    return env_vars


def get_env_var(key: str, default: Optional[str] = None,
                env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Get a prefixed variable, preferring the .env file over the process environment."""
    full_key = f"{ENV_PREFIX}{key}"
    if env_vars and full_key in env_vars:
        return env_vars[full_key]
    return os.getenv(full_key, default)


def load_environment_config(env_file_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment configuration.

    Raises:
        EnvironmentError: If a provided value is invalid
    """
    env_vars = load_env_file(env_file_path)
    validator = EnvironmentValidator()

    pattern_file = get_env_var("PATTERN", env_vars=env_vars)
    if pattern_file:
        pattern_file = validator.sanitize_file_name(pattern_file)

    templates_dir = get_env_var("TEMPLATES_DIR", env_vars=env_vars)
    if templates_dir:
        templates_dir = validator.sanitize_path(templates_dir)

    uploads_dir = get_env_var("UPLOADS_DIR", env_vars=env_vars)
    if uploads_dir:
        uploads_dir = validator.sanitize_path(uploads_dir)

    workers_str = get_env_var("WORKERS", env_vars=env_vars)
    worker_count = None
    if workers_str:
        worker_count = validator.validate_numeric_range(workers_str, 0, 256, int)

    log_level = get_env_var("LOG_LEVEL", env_vars=env_vars)
    if log_level:
        log_level = validator.validate_log_level(log_level)

    debug_str = get_env_var("DEBUG", "false", env_vars=env_vars)
    debug_logging = debug_str.lower() in ('true', '1', 'yes', 'on')

    return EnvironmentConfig(
        pattern_file=pattern_file or None,
        templates_dir=templates_dir or None,
        uploads_dir=uploads_dir or None,
        worker_count=worker_count,
        log_level=log_level or None,
        debug_logging=debug_logging,
    )


__all__ = [
    "EnvironmentConfig",
    "EnvironmentError",
    "EnvironmentValidator",
    "load_environment_config",
    "load_env_file",
    "get_env_var",
]
