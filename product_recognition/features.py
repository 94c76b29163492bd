"""
Color and texture fingerprint extraction.

Reduces a decoded PixelGrid to nine scalars:
    avg_r, avg_g, avg_b      — mean of each channel
    horizontal_change        — mean |intensity delta| to the right neighbour
    vertical_change          — mean |intensity delta| to the pixel below
    grey/brown/blue/warm     — fraction of pixels in each color bucket

Both change signals are summed over adjacent pairs but divided by the
total pixel count, not the pair count.

Color buckets are mutually exclusive: each pixel lands in the first
bucket whose predicate it satisfies, or in none.
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Callable, Dict, List, Mapping, Tuple

import numpy as np

from .errors import EmptyImageError
from .ppm import PixelGrid

logger = logging.getLogger(__name__)

GREY_MAX_CHROMA = 0.08
GREY_MIN_INTENSITY = 0.6
BROWN_MIN_SPREAD = 0.15
BLUE_MIN_LEAD = 0.1
WARM_MIN_RED = 0.5
WARM_MIN_GREEN = 0.4
WARM_MAX_BLUE = 0.4


@dataclass(frozen=True)
class Fingerprint:
    """Fixed-size color/texture summary of one image. All fields in [0, 1]."""

    avg_r: float = 0.0
    avg_g: float = 0.0
    avg_b: float = 0.0
    horizontal_change: float = 0.0
    vertical_change: float = 0.0
    grey_ratio: float = 0.0
    brown_ratio: float = 0.0
    blue_ratio: float = 0.0
    warm_ratio: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, float]) -> "Fingerprint":
        """Build from a mapping; unknown keys are ignored, missing ones are 0."""
        return cls(**{name: float(values.get(name) or 0.0) for name in FINGERPRINT_FIELDS})

    def as_vector(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in FINGERPRINT_FIELDS],
                        dtype=np.float64)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


FINGERPRINT_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(Fingerprint))

# (r, g, b, intensity) arrays -> boolean mask
BucketPredicate = Callable[[np.ndarray, np.ndarray, np.ndarray, np.ndarray], np.ndarray]


def _is_grey(r, g, b, intensity):
    chroma = np.maximum(np.maximum(r, g), b) - np.minimum(np.minimum(r, g), b)
    return (chroma < GREY_MAX_CHROMA) & (intensity > GREY_MIN_INTENSITY)


def _is_brown(r, g, b, intensity):
    return (r > g) & (g > b) & (r - b > BROWN_MIN_SPREAD)


def _is_blue(r, g, b, intensity):
    return (b > r) & (b > g) & (b - np.maximum(r, g) > BLUE_MIN_LEAD)


def _is_warm(r, g, b, intensity):
    return (r > WARM_MIN_RED) & (g > WARM_MIN_GREEN) & (b < WARM_MAX_BLUE)


# Evaluated in order; the first matching bucket claims the pixel.
COLOR_BUCKETS: List[Tuple[str, BucketPredicate]] = [
    ("grey_ratio", _is_grey),
    ("brown_ratio", _is_brown),
    ("blue_ratio", _is_blue),
    ("warm_ratio", _is_warm),
]


def classify_pixels(r: np.ndarray, g: np.ndarray, b: np.ndarray,
                    intensity: np.ndarray) -> Dict[str, int]:
    """
    Count pixels per color bucket, first match wins.

    Returns:
        Dict of bucket name -> pixel count. Pixels matching no predicate
        are not counted anywhere.
    """
    unclaimed = np.ones(r.shape, dtype=bool)
    counts = {}
    for name, predicate in COLOR_BUCKETS:
        claimed = predicate(r, g, b, intensity) & unclaimed
        counts[name] = int(np.count_nonzero(claimed))
        unclaimed &= ~claimed
    return counts


def extract_fingerprint(grid: PixelGrid) -> Fingerprint:
    """
    Compute the Fingerprint of a decoded image.

    Args:
        grid: Decoded pixel grid with samples in [0, 1].

    Returns:
        Fingerprint with every field in [0, 1].

    Raises:
        EmptyImageError: If the grid has no pixels.
    """
    pixel_count = grid.pixel_count
    if not pixel_count:
        raise EmptyImageError("Image has no pixels")

    pixels = grid.as_image().astype(np.float64)
    r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
    intensity = (r + g + b) / 3

    horizontal = np.abs(np.diff(intensity, axis=1)).sum()
    vertical = np.abs(np.diff(intensity, axis=0)).sum()
    buckets = classify_pixels(r, g, b, intensity)

    fingerprint = Fingerprint(
        avg_r=float(r.sum() / pixel_count),
        avg_g=float(g.sum() / pixel_count),
        avg_b=float(b.sum() / pixel_count),
        horizontal_change=float(horizontal / pixel_count),
        vertical_change=float(vertical / pixel_count),
        **{name: count / pixel_count for name, count in buckets.items()},
    )
    logger.debug(f"Fingerprint for {grid.width}x{grid.height} image: {fingerprint}")
    return fingerprint
