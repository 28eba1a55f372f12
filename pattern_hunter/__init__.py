"""
Concurrent exact pattern search over generated QR-code candidates.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import Location, MatchRecord, Pattern, StatusSnapshot

__all__ = [
    "Config", "load_config", "save_config",
    "Location", "MatchRecord", "Pattern", "StatusSnapshot"
]
