"""
Reference asset preparation.

Catalog references must be plain-text P3 files. These helpers turn an
ordinary product photo (JPEG, PNG, ...) into one: read with OpenCV,
normalize to uint8 RGB, shrink so the text file stays small, then encode.

Fingerprints are resolution independent (means and ratios), so a small
reference such as 64px on its longest side is enough.
"""

import os
import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from .errors import EmptyImageError, FormatError
from .ppm import PixelGrid, encode_ppm

logger = logging.getLogger(__name__)

REFERENCE_MAX_SIDE = int(os.environ.get("REFERENCE_MAX_SIDE", "64"))
MAX_SAMPLE_VALUE = 255


def normalize_image(image_np: np.ndarray) -> np.ndarray:
    """Ensure image is uint8 RGB format."""
    if image_np.dtype != np.uint8:
        if image_np.max() <= 1.0:
            image_np = (image_np * 255).round().astype(np.uint8)
        else:
            image_np = np.clip(image_np, 0, 255).astype(np.uint8)
    if image_np.ndim == 2:
        image_np = cv2.cvtColor(image_np, cv2.COLOR_GRAY2RGB)
    elif image_np.shape[2] == 4:
        image_np = cv2.cvtColor(image_np, cv2.COLOR_RGBA2RGB)
    return image_np


def load_rgb_image(path: Union[str, Path]) -> np.ndarray:
    """
    Read an image file as RGB uint8.

    Raises:
        FormatError: If OpenCV cannot decode the file.
    """
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise FormatError(f"Could not read image: {path}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def resize_for_reference(image_np: np.ndarray,
                         max_side: int = REFERENCE_MAX_SIDE) -> np.ndarray:
    """Downscale so the longest side is at most max_side. Never upscales."""
    h, w = image_np.shape[:2]
    if h == 0 or w == 0:
        raise EmptyImageError("Image has no pixels")
    scale = max_side / max(h, w)
    if scale < 1.0:
        new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
        image_np = cv2.resize(image_np, new_size, interpolation=cv2.INTER_AREA)
    return image_np


def image_to_grid(image_np: np.ndarray) -> PixelGrid:
    """Wrap an RGB image as a PixelGrid with max value 255."""
    image_np = normalize_image(image_np)
    h, w = image_np.shape[:2]
    channels = image_np.reshape(-1).astype(np.float32) / MAX_SAMPLE_VALUE
    return PixelGrid(width=w, height=h, max_value=MAX_SAMPLE_VALUE, channels=channels)


def convert_to_ppm(source: Union[str, Path],
                   destination: Union[str, Path],
                   max_side: Optional[int] = None) -> PixelGrid:
    """
    Convert a photo into a P3 reference asset.

    Args:
        source: Any image file OpenCV can read.
        destination: Path of the .ppm file to write.
        max_side: Longest side of the output (defaults to REFERENCE_MAX_SIDE).

    Returns:
        The PixelGrid that was written.
    """
    image = load_rgb_image(source)
    image = resize_for_reference(image, max_side or REFERENCE_MAX_SIDE)
    grid = image_to_grid(image)

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(encode_ppm(grid, comment=f"source: {Path(source).name}"))

    logger.info(f"Wrote {grid.width}x{grid.height} reference {destination}")
    return grid
