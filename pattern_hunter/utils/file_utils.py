"""File system utilities."""

import logging
import os
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)


def get_file_extension(filepath: Union[str, Path]) -> str:
    """Get file extension in lowercase."""
    return os.path.splitext(str(filepath))[1].lower()


def ensure_directory_exists(directory_path: Union[str, Path]) -> bool:
    """Ensure directory exists, create if it doesn't."""
    try:
        os.makedirs(directory_path, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Failed to create directory {directory_path}: {e}")
        return False


def clean_directory(directory_path: Union[str, Path]) -> None:
    """Remove a directory tree and recreate it empty."""
    path = Path(directory_path)
    if path.exists():
        shutil.rmtree(path)
        logger.info(f"Cleaned directory {path}")
    path.mkdir(parents=True, exist_ok=True)


def list_files_with_extensions(directory_path: Union[str, Path], extensions: Iterable[str]) -> List[str]:
    """Sorted names of regular files whose extension (case-insensitive) is in ``extensions``."""
    path = Path(directory_path)
    if not path.is_dir():
        return []
    wanted = {ext.lower() for ext in extensions}
    return sorted(
        entry.name for entry in path.iterdir()
        if entry.is_file() and get_file_extension(entry.name) in wanted
    )


def unique_file_name(prefix: str, extension: str = ".png") -> str:
    """``<prefix>_<epoch ms>_<random>.<ext>`` - unique enough for concurrent artifact writes."""
    millis = int(datetime.now().timestamp() * 1000)
    return f"{prefix}_{millis}_{uuid.uuid4().hex[:6]}{extension}"
