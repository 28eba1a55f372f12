"""Pattern loading, validation and pre-compilation."""

import logging
from pathlib import Path
from typing import List, Union

import numpy as np

from ..core.constants import CELL_OTHER, SUPPORTED_IMAGE_FORMATS
from ..core.entities import Pattern
from ..core.exceptions import PatternLoadError, PatternValidationError
from ..utils.file_utils import list_files_with_extensions
from ..utils.image_utils import encode_cells, load_rgba

logger = logging.getLogger(__name__)


class PatternStore:
    """Loads pattern images from a templates directory.

    A pattern image may contain only opaque pure black (on) and opaque pure
    white (off) pixels. Valid images are compiled into an immutable
    ``Pattern`` whose cells are stored row-major for constant-time lookup.
    """

    def __init__(self, templates_dir: Union[str, Path]):
        self.templates_dir = Path(templates_dir)

    def list_patterns(self) -> List[str]:
        """Names of image files in the templates directory, sorted."""
        return list_files_with_extensions(self.templates_dir, SUPPORTED_IMAGE_FORMATS)

    def resolve(self, name: str) -> Path:
        """Path of a pattern file. Names must not point outside the templates directory.

        Raises:
            PatternLoadError: If the name is empty or escapes the templates directory
        """
        if not name or Path(name).name != name or name in (".", ".."):
            raise PatternLoadError(f"Invalid pattern name '{name}'", pattern_name=name)
        return self.templates_dir / name

    def load(self, name: str) -> Pattern:
        """Load, validate and compile a pattern file.

        Args:
            name: File name inside the templates directory

        Returns:
            The compiled Pattern

        Raises:
            PatternLoadError: If the file is missing or cannot be decoded
            PatternValidationError: If the image contains a non-canonical pixel
        """
        path = self.resolve(name)
        if not path.is_file():
            raise PatternLoadError(f"Pattern file '{name}' not found in '{self.templates_dir}'", pattern_name=name)

        try:
            bitmap = load_rgba(path)
        except (OSError, ValueError) as e:
            raise PatternLoadError(f"Failed to load pattern '{name}' from '{path}': {e}", pattern_name=name) from e

        pattern = self.compile(name, bitmap)
        logger.info(f"Pattern '{name}' ({pattern.width}x{pattern.height}) loaded and validated.")
        return pattern

    @staticmethod
    def compile(name: str, bitmap: np.ndarray) -> Pattern:
        """Validate an RGBA bitmap and compile it into a Pattern.

        Raises:
            PatternLoadError: If the array is not a non-empty RGBA image
            PatternValidationError: On the first non-canonical pixel in row-major order
        """
        if bitmap.ndim != 3 or bitmap.shape[2] != 4 or bitmap.shape[0] == 0 or bitmap.shape[1] == 0:
            raise PatternLoadError(f"Pattern '{name}' is not a non-empty RGBA image (shape {bitmap.shape})",
                                   pattern_name=name)

        cells = encode_cells(bitmap)
        invalid = np.argwhere(cells == CELL_OTHER)
        if invalid.size:
            # argwhere walks row-major, so the first entry is the first offending pixel
            y, x = (int(v) for v in invalid[0])
            error = PatternValidationError(name, x, y, tuple(bitmap[y, x]))
            logger.error(str(error))
            raise error

        height, width = cells.shape
        return Pattern(
            name=name,
            width=width,
            height=height,
            cells=tuple(tuple(int(c) for c in row) for row in cells.tolist()),
        )
