"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Directories
    "templates_dir": "templates",
    "uploads_dir": "uploads",
    "log_dir": "logs",

    # Pattern selection (empty means: ask at startup)
    "pattern_file": "",

    # Worker pool
    "worker_count": 0,  # 0 = max(1, cpu_count - 1)
    "queue_high_water_factor": 3,
    "start_method": "spawn",
    "worker_shutdown_timeout_s": 5.0,

    # Search process control
    "delay_between_batches_ms": 100,  # pause between scheduler ticks
    "status_update_interval_ms": 250,

    # Candidates generated for searching: 1 pixel per module, no quiet zone
    "search_module_scale": 1,
    "search_quiet_zone": 0,
    "search_error_correction": "H",

    # Candidates rendered to disk for found matches
    "display_module_scale": 8,
    "display_quiet_zone": 4,
    "display_error_correction": "H",

    # Payload generation
    "url_template": "http://www.{RANDOM_STRING}.com",
    "random_string_placeholder": "{RANDOM_STRING}",
    "random_string_length": 8,
    "random_string_charset": "abcdefghijklmnopqrstuvwxyz0123456789",

    # Self-test
    "run_self_test": True,
    "self_test_margin": 5,
    "self_test_offset": 2,

    # Session behaviour
    "clear_history_on_start": False,
    "clean_uploads_on_startup": True,

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "enable_file_logging": False,
    "structured_logging": False,
}

VALID_ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")
VALID_START_METHODS = ("spawn", "fork", "forkserver")
