"""
Fingerprint distance and match confidence scoring.

Keyword matches are weak evidence, so their confidence is capped below
certainty. Visual matches map the Euclidean fingerprint distance linearly
onto [0, 1], reaching zero at PPM_MAX_DISTANCE.

Constants can be overridden through the environment.
"""

import os
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence, Union

import numpy as np

from .features import Fingerprint

logger = logging.getLogger(__name__)

KEYWORD_BASE_CONFIDENCE = float(os.environ.get("KEYWORD_BASE_CONFIDENCE", "0.6"))
KEYWORD_STEP_CONFIDENCE = float(os.environ.get("KEYWORD_STEP_CONFIDENCE", "0.1"))
KEYWORD_MAX_CONFIDENCE = float(os.environ.get("KEYWORD_MAX_CONFIDENCE", "0.9"))

# Distance at which visual confidence drops to zero
PPM_MAX_DISTANCE = float(os.environ.get("PPM_MAX_DISTANCE", "1.5"))

CONFIDENCE_DECIMALS = 3
DISTANCE_DECIMALS = 4

FingerprintLike = Union[Fingerprint, Mapping[str, float]]


def round_half_up(value: float, decimals: int) -> float:
    """Round to `decimals` places, exact halves away from zero."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _as_vector(value: FingerprintLike) -> np.ndarray:
    if not isinstance(value, Fingerprint):
        value = Fingerprint.from_mapping(value)
    return value.as_vector()


def fingerprint_distance(a: FingerprintLike, b: FingerprintLike) -> float:
    """
    Euclidean distance over the nine fingerprint fields.

    Mappings are accepted as well as Fingerprint instances; a field absent
    from a mapping counts as 0.
    """
    return float(np.sqrt(np.sum((_as_vector(a) - _as_vector(b)) ** 2)))


def fingerprint_distances(query: FingerprintLike,
                          references: Union[np.ndarray, Sequence[FingerprintLike]]
                          ) -> np.ndarray:
    """
    Distances from one query to each reference, in reference order.

    References may be fingerprints, mappings, or a precomputed (n, 9)
    matrix of fingerprint vectors.
    """
    if len(references) == 0:
        return np.empty(0, dtype=np.float64)
    if isinstance(references, np.ndarray):
        matrix = references.astype(np.float64)
    else:
        matrix = np.vstack([_as_vector(ref) for ref in references])
    return np.sqrt(np.sum((matrix - _as_vector(query)) ** 2, axis=1))


def keyword_confidence(score: int) -> float:
    """Confidence for a keyword match with `score` matching keywords."""
    return min(KEYWORD_MAX_CONFIDENCE,
               KEYWORD_BASE_CONFIDENCE + KEYWORD_STEP_CONFIDENCE * score)


def visual_confidence(distance: float,
                      max_distance: float = PPM_MAX_DISTANCE) -> float:
    """Confidence for a visual match, rounded to CONFIDENCE_DECIMALS."""
    confidence = max(0.0, 1 - distance / max_distance)
    return round_half_up(confidence, CONFIDENCE_DECIMALS)
