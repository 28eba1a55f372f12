"""Image processing utilities.

Bitmaps are ``(height, width, 4)`` uint8 RGBA arrays throughout the package.
"""

from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image

from ..core.constants import CELL_OFF, CELL_ON, CELL_OTHER, ON_RGBA, OFF_RGBA

RGBA = Tuple[int, int, int, int]


def pack_rgba(bitmap: np.ndarray) -> np.ndarray:
    """Pack an RGBA bitmap into one uint32 per pixel (0xRRGGBBAA)."""
    channels = bitmap.astype(np.uint32)
    return (channels[..., 0] << 24) | (channels[..., 1] << 16) | (channels[..., 2] << 8) | channels[..., 3]


def rgba_to_int(rgba: RGBA) -> int:
    r, g, b, a = rgba
    return (r << 24) | (g << 16) | (b << 8) | a


ON_INT = rgba_to_int(ON_RGBA)
OFF_INT = rgba_to_int(OFF_RGBA)


def encode_cells(bitmap: np.ndarray) -> np.ndarray:
    """Map each pixel to CELL_ON, CELL_OFF or CELL_OTHER."""
    packed = pack_rgba(bitmap)
    cells = np.full(packed.shape, CELL_OTHER, dtype=np.uint8)
    cells[packed == ON_INT] = CELL_ON
    cells[packed == OFF_INT] = CELL_OFF
    return cells


def solid_bitmap(width: int, height: int, color: RGBA = OFF_RGBA) -> np.ndarray:
    bitmap = np.empty((height, width, 4), dtype=np.uint8)
    bitmap[...] = color
    return bitmap


def blit(target: np.ndarray, source: np.ndarray, x: int, y: int) -> np.ndarray:
    """Copy ``source`` into ``target`` with its top-left corner at (x, y), clipping at the edges."""
    th, tw = target.shape[:2]
    sh, sw = source.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(tw, x + sw), min(th, y + sh)
    if x0 >= x1 or y0 >= y1:
        return target
    target[y0:y1, x0:x1] = source[y0 - y:y1 - y, x0 - x:x1 - x]
    return target


def mask_to_bitmap(mask: np.ndarray, scale: int = 1) -> np.ndarray:
    """Turn a boolean module mask (True = on) into a canonical-color bitmap."""
    if scale > 1:
        mask = np.repeat(np.repeat(mask, scale, axis=0), scale, axis=1)
    bitmap = np.empty(mask.shape + (4,), dtype=np.uint8)
    bitmap[mask] = ON_RGBA
    bitmap[~mask] = OFF_RGBA
    return bitmap


def load_rgba(path: Union[str, Path]) -> np.ndarray:
    """Read any image file Pillow understands as an RGBA array."""
    with Image.open(path) as image:
        return np.array(image.convert("RGBA"), dtype=np.uint8)


def save_bitmap(bitmap: np.ndarray, path: Union[str, Path]) -> bool:
    """Write an RGBA bitmap to disk. Returns False if OpenCV refuses to encode it."""
    bgra = cv2.cvtColor(bitmap, cv2.COLOR_RGBA2BGRA)
    return bool(cv2.imwrite(str(path), bgra))
