"""
Product recognizer.

Runs a single query through two strategies, in a fixed order:
    1. Keyword matching — count catalog keywords found in the image URL
    2. Visual matching — decode an embedded P3 image, fingerprint it and
       take the nearest catalog reference

Visual matching is only a fallback: any keyword hit wins, even a weak one.
The recognizer holds no mutable state and can serve concurrent requests.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import numpy as np

from .catalog import Catalog, load_catalog
from .errors import InvalidPayloadError, Outcome, RecognitionError
from .features import Fingerprint, extract_fingerprint
from .ppm import decode_ppm
from .scoring import (
    DISTANCE_DECIMALS,
    fingerprint_distances,
    keyword_confidence,
    round_half_up,
    visual_confidence,
)

logger = logging.getLogger(__name__)

METHOD_KEYWORDS = "keywords"
METHOD_PPM = "ppm-features"

BASE64_MARKER = ";base64,"


@dataclass(frozen=True)
class RecognitionQuery:
    """A recognition request: an optional URL hint and/or embedded image."""

    image_url: Optional[str] = None
    image_base64: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RecognitionQuery":
        """Accept the wire keys (imageUrl, imageBase64) or snake_case ones."""
        return cls(
            image_url=data.get("imageUrl", data.get("image_url")),
            image_base64=data.get("imageBase64", data.get("image_base64")),
        )


@dataclass(frozen=True)
class MatchResult:
    """Best-guess identification for one query."""

    brand: str
    model: str
    name: str
    description: str
    method: str
    confidence: float
    distance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "brand": self.brand,
            "model": self.model,
            "name": self.name,
            "description": self.description,
            "method": self.method,
            "confidence": self.confidence,
        }
        if self.distance is not None:
            result["distance"] = self.distance
        return result


def normalize_base64_input(value: Optional[str]) -> Optional[str]:
    """
    Extract the base64 text from a raw payload or a data URL.

    Returns None for empty input. Everything up to and including
    ';base64,' is dropped when present.
    """
    if not value:
        return None
    trimmed = value.strip()
    if BASE64_MARKER in trimmed:
        trimmed = trimmed.split(BASE64_MARKER, 1)[1].strip()
    return trimmed or None


def decode_base64_payload(payload: str) -> bytes:
    """
    Decode base64 text to bytes, ignoring embedded whitespace.

    Raises:
        InvalidPayloadError: If the text is not valid base64.
    """
    compact = "".join(payload.split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidPayloadError(f"Invalid base64 image: {e}") from e


class Recognizer:
    """
    Matches queries against an immutable reference catalog.

    The catalog fingerprints are stacked once into a matrix so visual
    matching is a single vectorized distance computation.
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        if len(catalog):
            matrix = np.vstack([entry.fingerprint.as_vector() for entry in catalog])
        else:
            matrix = np.empty((0, 0), dtype=np.float64)
        matrix.setflags(write=False)
        self._fingerprints = matrix

    @classmethod
    def from_manifest(cls, manifest_path: Union[str, Path],
                      base_dir: Optional[Union[str, Path]] = None) -> "Recognizer":
        """Load a catalog from disk and wrap it. Raises CatalogLoadError."""
        return cls(load_catalog(manifest_path, base_dir=base_dir))

    def match_by_keywords(self, image_url: Optional[str]) -> Optional[MatchResult]:
        """
        Score each entry by how many of its keywords appear in the URL.

        The first entry to reach the best score keeps it; a later entry
        must score strictly higher to take over.
        """
        if not image_url:
            return None

        lowered = image_url.lower()
        best = None
        best_score = 0

        for entry in self.catalog:
            score = sum(1 for keyword in entry.keywords if keyword in lowered)
            if score > best_score:
                best_score = score
                best = entry

        if best is None:
            return None

        logger.debug(f"Keyword match {best.model} with score {best_score}")
        return MatchResult(
            brand=best.brand,
            model=best.model,
            name=best.name,
            description=best.description,
            method=METHOD_KEYWORDS,
            confidence=keyword_confidence(best_score),
        )

    def match_fingerprint(self, fingerprint: Fingerprint) -> Optional[MatchResult]:
        """Return the catalog entry nearest to a fingerprint, or None if empty."""
        if not len(self.catalog):
            return None

        distances = fingerprint_distances(fingerprint, self._fingerprints)
        # argmin returns the first occurrence, so catalog order breaks ties
        best_index = int(np.argmin(distances))
        best_distance = float(distances[best_index])
        best = self.catalog.entries[best_index]

        logger.debug(f"Visual match {best.model} at distance {best_distance:.4f}")
        return MatchResult(
            brand=best.brand,
            model=best.model,
            name=best.name,
            description=best.description,
            method=METHOD_PPM,
            confidence=visual_confidence(best_distance),
            distance=round_half_up(best_distance, DISTANCE_DECIMALS),
        )

    def match_by_ppm(self, image_base64: Optional[str]) -> Optional[MatchResult]:
        """
        Decode an embedded P3 image and match it visually.

        Raises:
            InvalidPayloadError: Malformed base64.
            FormatError: Payload is not a valid P3 image.
            EmptyImageError: Image has no pixels.
        """
        payload = normalize_base64_input(image_base64)
        if payload is None:
            return None

        data = decode_base64_payload(payload)
        fingerprint = extract_fingerprint(decode_ppm(data))
        return self.match_fingerprint(fingerprint)

    def recognize(self, query: Union[RecognitionQuery, Mapping[str, Any]]
                  ) -> Optional[MatchResult]:
        """
        Identify a product from a URL hint and/or an embedded image.

        Keyword matching always runs first; visual matching only runs when
        it found nothing and an image was supplied.

        Returns:
            MatchResult, or None when neither strategy produced a candidate.
        """
        if not isinstance(query, RecognitionQuery):
            query = RecognitionQuery.from_mapping(query)

        result = self.match_by_keywords(query.image_url)
        if result is not None:
            return result

        if query.image_base64:
            return self.match_by_ppm(query.image_base64)

        return None

    def try_recognize(self, query: Union[RecognitionQuery, Mapping[str, Any]]
                      ) -> Outcome:
        """Like recognize(), but reports request failures as an Outcome."""
        try:
            return Outcome.success(self.recognize(query))
        except RecognitionError as e:
            logger.warning(f"Recognition request rejected ({e.kind}): {e}")
            return Outcome.failure(e)
