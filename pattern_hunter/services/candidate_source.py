"""Candidate bitmap generation from text payloads (QR codes)."""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import qrcode
from qrcode.exceptions import DataOverflowError

from ..core.entities import CandidateOptions
from ..core.exceptions import CandidateGenerationFailure
from ..utils.file_utils import ensure_directory_exists, unique_file_name
from ..utils.image_utils import mask_to_bitmap, save_bitmap

logger = logging.getLogger(__name__)

_ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


class QRCandidateSource:
    """Encodes payloads as QR codes rendered in the two canonical colors.

    ``module_scale`` pixels per QR module and ``quiet_zone_margin`` modules of
    border. With scale 1 and margin 0 every pixel is one data module.
    """

    def encode(self, payload: str, options: CandidateOptions) -> np.ndarray:
        """Render a payload or raise.

        Raises:
            CandidateGenerationFailure: If the payload cannot be encoded with the given options
        """
        level = _ERROR_CORRECTION.get(options.error_correction_level.upper())
        if level is None:
            raise CandidateGenerationFailure(f"Unknown error correction level '{options.error_correction_level}'")

        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=level,
                box_size=max(1, options.module_scale),
                border=options.quiet_zone_margin,
            )
            qr.add_data(payload)
            qr.make(fit=True)
            modules = qr.get_matrix()
        except (DataOverflowError, ValueError, TypeError) as e:
            raise CandidateGenerationFailure(f"Cannot encode payload of length {len(payload)}: {e}") from e

        return mask_to_bitmap(np.array(modules, dtype=bool), scale=options.module_scale)

    def generate(self, payload: str, options: CandidateOptions) -> Optional[np.ndarray]:
        """Candidate bitmap for a payload, or None when it cannot be encoded."""
        try:
            return self.encode(payload, options)
        except CandidateGenerationFailure as e:
            logger.debug(f"Candidate generation failed: {e}")
            return None

    def render_to_file(self, payload: str, options: CandidateOptions,
                       directory: Union[str, Path], prefix: str = "qr") -> Optional[Path]:
        """Render a display-quality candidate into ``directory``.

        Returns:
            Path of the written PNG, or None if encoding or writing failed
        """
        bitmap = self.generate(payload, options)
        if bitmap is None:
            logger.error(f"Error generating QR code for text '{payload}'")
            return None
        return write_artifact(bitmap, directory, prefix)


def write_artifact(bitmap: np.ndarray, directory: Union[str, Path], prefix: str) -> Optional[Path]:
    """Save a bitmap under a unique name. Returns None if the file could not be written."""
    if not ensure_directory_exists(directory):
        return None
    path = Path(directory) / unique_file_name(prefix)
    if not save_bitmap(bitmap, path):
        logger.error(f"Failed to write artifact '{path}'")
        return None
    return path
