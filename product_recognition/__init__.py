"""
product_recognition — Catalog product recognition from URL hints and images.

Identifies which known reference product a listing photo shows, using a
cheap keyword match on the image URL first and a color/texture
fingerprint comparison on an embedded P3 image as fallback.

Modules:
    ppm            Plain-text P3 decoding and encoding
    features       Color/texture fingerprint extraction
    scoring        Fingerprint distance and confidence formulas
    catalog        Reference manifest loading
    engine         Recognizer (keyword then visual matching)
    errors         Error taxonomy and tagged Outcome
    preprocessing  OpenCV conversion of photos into P3 references
    cli            Command-line interface
"""

from .catalog import Catalog, CatalogEntry, load_catalog
from .engine import MatchResult, RecognitionQuery, Recognizer
from .errors import (
    CatalogLoadError,
    EmptyImageError,
    FormatError,
    InvalidPayloadError,
    Outcome,
    RecognitionError,
)
from .features import Fingerprint, extract_fingerprint
from .ppm import PixelGrid, decode_ppm, encode_ppm
from .scoring import fingerprint_distance

__version__ = "1.0.0"

__all__ = [
    "Catalog",
    "CatalogEntry",
    "CatalogLoadError",
    "EmptyImageError",
    "Fingerprint",
    "FormatError",
    "InvalidPayloadError",
    "MatchResult",
    "Outcome",
    "PixelGrid",
    "RecognitionError",
    "RecognitionQuery",
    "Recognizer",
    "decode_ppm",
    "encode_ppm",
    "extract_fingerprint",
    "fingerprint_distance",
    "load_catalog",
]
