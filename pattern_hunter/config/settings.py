"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
engine and its services instead of a global module-level dictionary.

Priority (highest first): environment variables, ``config.json``, defaults.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, Optional
import json, os, logging

from .defaults import DEFAULT_CONFIG, VALID_ERROR_CORRECTION_LEVELS, VALID_START_METHODS
from .env_config import load_environment_config, EnvironmentConfig, EnvironmentError
from ..core.entities import CandidateOptions
from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)

@dataclass(slots=True)
class Config:
    # Directories
    templates_dir: str = DEFAULT_CONFIG["templates_dir"]
    uploads_dir: str = DEFAULT_CONFIG["uploads_dir"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]

    pattern_file: str = DEFAULT_CONFIG["pattern_file"]

    # Worker pool
    worker_count: int = DEFAULT_CONFIG["worker_count"]
    queue_high_water_factor: int = DEFAULT_CONFIG["queue_high_water_factor"]
    start_method: str = DEFAULT_CONFIG["start_method"]
    worker_shutdown_timeout_s: float = DEFAULT_CONFIG["worker_shutdown_timeout_s"]

    # Search process control
    delay_between_batches_ms: int = DEFAULT_CONFIG["delay_between_batches_ms"]
    status_update_interval_ms: int = DEFAULT_CONFIG["status_update_interval_ms"]

    # Candidate generation
    search_module_scale: int = DEFAULT_CONFIG["search_module_scale"]
    search_quiet_zone: int = DEFAULT_CONFIG["search_quiet_zone"]
    search_error_correction: str = DEFAULT_CONFIG["search_error_correction"]
    display_module_scale: int = DEFAULT_CONFIG["display_module_scale"]
    display_quiet_zone: int = DEFAULT_CONFIG["display_quiet_zone"]
    display_error_correction: str = DEFAULT_CONFIG["display_error_correction"]

    # Payload generation
    url_template: str = DEFAULT_CONFIG["url_template"]
    random_string_placeholder: str = DEFAULT_CONFIG["random_string_placeholder"]
    random_string_length: int = DEFAULT_CONFIG["random_string_length"]
    random_string_charset: str = DEFAULT_CONFIG["random_string_charset"]

    # Self-test
    run_self_test: bool = DEFAULT_CONFIG["run_self_test"]
    self_test_margin: int = DEFAULT_CONFIG["self_test_margin"]
    self_test_offset: int = DEFAULT_CONFIG["self_test_offset"]

    # Session behaviour
    clear_history_on_start: bool = DEFAULT_CONFIG["clear_history_on_start"]
    clean_uploads_on_startup: bool = DEFAULT_CONFIG["clean_uploads_on_startup"]

    # Debug and logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    enable_file_logging: bool = DEFAULT_CONFIG["enable_file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # merge extra keys at top-level for saving
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, self.extra.get(key, default))

    def resolved_worker_count(self) -> int:
        """Configured pool size, or one less than the CPU count (minimum 1)."""
        if self.worker_count > 0:
            return self.worker_count
        cpus = os.cpu_count() or 1
        return max(1, cpus - 1 if cpus > 1 else 1)

    def search_options(self) -> CandidateOptions:
        return CandidateOptions(
            module_scale=self.search_module_scale,
            quiet_zone_margin=self.search_quiet_zone,
            error_correction_level=self.search_error_correction,
        )

    def display_options(self) -> CandidateOptions:
        return CandidateOptions(
            module_scale=self.display_module_scale,
            quiet_zone_margin=self.display_quiet_zone,
            error_correction_level=self.display_error_correction,
        )


_NUMERIC_RANGES = {
    "worker_count": (0, 256),
    "queue_high_water_factor": (1, 100),
    "worker_shutdown_timeout_s": (0.1, 600.0),
    "delay_between_batches_ms": (0, 60_000),
    "status_update_interval_ms": (10, 60_000),
    "search_module_scale": (1, 64),
    "search_quiet_zone": (0, 64),
    "display_module_scale": (1, 64),
    "display_quiet_zone": (0, 64),
    "random_string_length": (1, 256),
    "self_test_margin": (0, 1024),
    "self_test_offset": (0, 1024),
}

_BOOLEAN_KEYS = (
    "run_self_test", "clear_history_on_start", "clean_uploads_on_startup",
    "debug", "enable_file_logging", "structured_logging",
)

_CONFIG_FIELDS = tuple(f.name for f in fields(Config) if f.name != "extra")


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from a JSON file, apply environment overrides and validate.

    A missing or malformed file falls back to defaults. Invalid values raise.

    Args:
        path: Path to config.json file
        env_file: Path to .env file (optional)

    Returns:
        Config: Loaded and validated configuration

    Raises:
        ConfigError: If a value is out of range or of the wrong kind
    """
    data: Dict[str, Any] = {}

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if isinstance(loaded_data, dict):
                data = loaded_data
                logger.info(f"Successfully loaded configuration from '{path}'")
            else:
                logger.error(f"Configuration file '{path}' does not contain a JSON object, using defaults")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except PermissionError:
            logger.error(f"Permission denied reading configuration file '{path}'. Using defaults.")
    else:
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")

    merged = {**DEFAULT_CONFIG, **data}

    try:
        env_config = load_environment_config(env_file)
    except EnvironmentError as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e
    merged = _apply_environment_overrides(merged, env_config)

    validate_config_values(merged)

    extra = {k: v for k, v in merged.items() if k not in _CONFIG_FIELDS}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    return Config(**{k: merged[k] for k in _CONFIG_FIELDS}, extra=extra)


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to JSON, keeping a backup of the previous file until the write succeeds."""
    backup_path = f"{path}.backup"
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as src, open(backup_path, "w", encoding="utf-8") as dst:
            dst.write(src.read())

    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info(f"Configuration saved successfully to '{path}'")

    if os.path.exists(backup_path):
        os.remove(backup_path)


def validate_config_values(config_dict: Dict[str, Any]) -> None:
    """Check ranges and enumerations of a merged configuration dictionary.

    Raises:
        ConfigError: On the first invalid value
    """
    for key, (min_val, max_val) in _NUMERIC_RANGES.items():
        value = config_dict.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'{key}' must be a number, got {value!r}")
        if not (min_val <= value <= max_val):
            raise ConfigError(f"'{key}'={value} out of range [{min_val}, {max_val}]")

    # the pattern must fit inside the synthetic self-test candidate
    if config_dict["self_test_offset"] > config_dict["self_test_margin"]:
        raise ConfigError(
            f"'self_test_offset'={config_dict['self_test_offset']} must not exceed "
            f"'self_test_margin'={config_dict['self_test_margin']}"
        )

    for key in _BOOLEAN_KEYS:
        value = config_dict.get(key)
        if not isinstance(value, bool):
            raise ConfigError(f"'{key}' must be true or false, got {value!r}")

    for key in ("search_error_correction", "display_error_correction"):
        level = str(config_dict.get(key, "")).upper()
        if level not in VALID_ERROR_CORRECTION_LEVELS:
            raise ConfigError(f"'{key}' must be one of {VALID_ERROR_CORRECTION_LEVELS}, got {config_dict.get(key)!r}")
        config_dict[key] = level

    if config_dict.get("start_method") not in VALID_START_METHODS:
        raise ConfigError(f"'start_method' must be one of {VALID_START_METHODS}")

    for key in ("templates_dir", "uploads_dir", "log_dir"):
        value = config_dict.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Path setting '{key}' must be a non-empty string")

    if not config_dict.get("random_string_charset"):
        raise ConfigError("'random_string_charset' cannot be empty")

    if config_dict.get("random_string_placeholder", "") not in config_dict.get("url_template", ""):
        logger.warning("Placeholder missing in url_template; random strings will be appended")


def _apply_environment_overrides(config_dict: Dict[str, Any], env_config: EnvironmentConfig) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    if env_config.pattern_file:
        config_dict["pattern_file"] = env_config.pattern_file
    if env_config.templates_dir:
        config_dict["templates_dir"] = env_config.templates_dir
    if env_config.uploads_dir:
        config_dict["uploads_dir"] = env_config.uploads_dir
    if env_config.worker_count is not None:
        config_dict["worker_count"] = env_config.worker_count
    if env_config.log_level:
        config_dict["log_level"] = env_config.log_level

    if env_config.debug_logging:
        config_dict["debug"] = True
        config_dict["log_level"] = "DEBUG"

    return config_dict
