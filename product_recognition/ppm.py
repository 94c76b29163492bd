"""
Plain-text PPM (P3) decoding and encoding.

The P3 format is whitespace separated text:

    P3
    # optional comment lines
    <width> <height>
    <max value>
    r g b r g b ...

Samples are row-major with R, G, B interleaved per pixel. Decoded samples
are divided by the max value and clamped to [0, 1] so images saved with
different bit depths produce comparable fingerprints.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np

from .errors import FormatError

logger = logging.getLogger(__name__)

PPM_MAGIC = "P3"
COMMENT_CHAR = "#"
HEADER_TOKENS = 4
INT64_MIN = int(np.iinfo(np.int64).min)
INT64_MAX = int(np.iinfo(np.int64).max)


@dataclass(frozen=True, eq=False)
class PixelGrid:
    """
    Normalized RGB pixel data decoded from a P3 payload.

    Attributes:
        width: Pixels per row.
        height: Number of rows.
        max_value: Max channel value declared by the source.
        channels: Read-only float32 array of width * height * 3 values in
                  [0, 1], row-major, R, G, B interleaved.
    """

    width: int
    height: int
    max_value: int
    channels: np.ndarray

    def __post_init__(self):
        channels = np.array(self.channels, dtype=np.float32).reshape(-1)
        expected = self.width * self.height * 3
        if channels.size != expected:
            raise FormatError(
                f"Pixel data has {channels.size} samples, "
                f"expected {expected} for {self.width}x{self.height}"
            )
        channels.setflags(write=False)
        object.__setattr__(self, "channels", channels)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def as_image(self) -> np.ndarray:
        """Return a (height, width, 3) view of the channels."""
        return self.channels.reshape(self.height, self.width, 3)


def tokenize_ppm(text: str) -> List[str]:
    """Split P3 text into tokens, skipping blank and full-line comments."""
    tokens = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_CHAR):
            continue
        tokens.extend(stripped.split())
    return tokens


def _parse_header_value(token: str, name: str) -> int:
    try:
        value = int(token)
    except ValueError:
        raise FormatError(f"Invalid PPM header: {name} is not an integer ({token!r})")
    if value <= 0:
        raise FormatError(f"Invalid PPM header: {name} must be positive, got {value}")
    return value


def _parse_samples(tokens: List[str]) -> np.ndarray:
    try:
        return np.array(tokens, dtype=str).astype(np.int64)
    except (ValueError, OverflowError):
        pass

    # Slow path: locate bad tokens and saturate values beyond int64
    values = []
    for i, token in enumerate(tokens):
        try:
            value = int(token)
        except ValueError:
            raise FormatError(f"Invalid pixel value {token!r} at index {i}")
        values.append(min(max(value, INT64_MIN), INT64_MAX))
    return np.array(values, dtype=np.int64)


def decode_ppm(data: Union[bytes, str]) -> PixelGrid:
    """
    Decode a P3 payload into a normalized PixelGrid.

    Trailing tokens after the expected samples are ignored. Missing samples
    are an error, never padded.

    Args:
        data: Raw P3 bytes (UTF-8) or already decoded text.

    Returns:
        PixelGrid with samples normalized to [0, 1].

    Raises:
        FormatError: On empty input, truncated header, non-P3 magic,
            invalid dimensions or max value, missing or non-numeric samples.
    """
    if not data:
        raise FormatError("Empty or missing image")

    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"PPM payload is not text: {e}") from e
    else:
        text = data

    tokens = tokenize_ppm(text)
    if len(tokens) < HEADER_TOKENS:
        raise FormatError("Invalid or incomplete PPM header")

    magic = tokens[0]
    if magic != PPM_MAGIC:
        raise FormatError(
            f"Unsupported PPM format: {magic}. Only ASCII {PPM_MAGIC} is accepted."
        )

    width = _parse_header_value(tokens[1], "width")
    height = _parse_header_value(tokens[2], "height")
    max_value = _parse_header_value(tokens[3], "max value")

    expected = width * height * 3
    samples = tokens[HEADER_TOKENS:]
    if len(samples) < expected:
        raise FormatError(
            f"Insufficient PPM data: {len(samples)} samples, expected {expected}"
        )

    values = _parse_samples(samples[:expected])
    channels = np.clip(values.astype(np.float64) / max_value, 0.0, 1.0)

    logger.debug(f"Decoded P3 image {width}x{height} (max {max_value})")
    return PixelGrid(width=width, height=height, max_value=max_value,
                     channels=channels.astype(np.float32))


def encode_ppm(grid: PixelGrid, comment: Optional[str] = None) -> bytes:
    """
    Encode a PixelGrid as P3 text, one pixel row per line.

    Samples are scaled back by the grid's max value and rounded, so a
    decode/encode cycle reproduces the source samples within one unit.
    """
    samples = np.rint(grid.channels.astype(np.float64) * grid.max_value).astype(np.int64)
    rows = samples.reshape(grid.height, grid.width * 3)

    lines = [PPM_MAGIC]
    if comment:
        lines.extend(f"{COMMENT_CHAR} {part}" for part in comment.splitlines())
    lines.append(f"{grid.width} {grid.height}")
    lines.append(str(grid.max_value))
    lines.extend(" ".join(str(v) for v in row) for row in rows)
    return ("\n".join(lines) + "\n").encode("utf-8")
