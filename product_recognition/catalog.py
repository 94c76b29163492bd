"""
Reference catalog loading.

Reads a JSON manifest describing the known products, decodes each
reference P3 image and precomputes its fingerprint and keyword set. The
resulting Catalog is immutable and shared read-only by every request;
reloading means building a new Catalog.

Manifest format (JSON array):

    [
        {
            "model": "KIVIK",
            "name": "KIVIK 3-seat sofa",
            "description": "...",
            "referenceImage": "refs/kivik.ppm",
            "keywords": ["sofa", "canape"],
            "brand": "IKEA"                      (optional)
        }
    ]

Any failure is fatal: a partially loaded catalog is never returned.
"""

import os
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import CatalogLoadError, RecognitionError
from .features import Fingerprint, extract_fingerprint
from .ppm import decode_ppm

logger = logging.getLogger(__name__)

DEFAULT_BRAND = os.environ.get("RECOGNIZER_BRAND", "IKEA")

REQUIRED_FIELDS = ("model", "name", "description", "referenceImage")
# Fields that may not be empty strings either
NON_EMPTY_FIELDS = ("model", "referenceImage")


@dataclass(frozen=True)
class CatalogEntry:
    """One known reference product with its precomputed features."""

    brand: str
    model: str
    name: str
    description: str
    reference_image: Path
    fingerprint: Fingerprint
    keywords: FrozenSet[str]


@dataclass(frozen=True)
class Catalog:
    """
    Ordered, immutable collection of CatalogEntry.

    Entry order is significant: it breaks ties in both keyword and visual
    matching.
    """

    entries: Tuple[CatalogEntry, ...] = ()
    keyword_index: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def models_for_keyword(self, keyword: str) -> Tuple[str, ...]:
        return self.keyword_index.get(keyword.lower(), ())

    @classmethod
    def from_entries(cls, entries) -> "Catalog":
        """Build a catalog and its keyword -> models index from entries."""
        entries = tuple(entries)
        index: Dict[str, List[str]] = {}
        for entry in entries:
            for keyword in sorted(entry.keywords):
                index.setdefault(keyword, []).append(entry.model)
        frozen_index = MappingProxyType({k: tuple(v) for k, v in index.items()})
        return cls(entries=entries, keyword_index=frozen_index)


def build_keywords(model: str, keywords: Optional[List[str]] = None) -> FrozenSet[str]:
    """Lowercased union of the model name and its declared keywords."""
    return frozenset(str(k).lower() for k in [model, *(keywords or [])])


def load_reference_fingerprint(path: Path) -> Fingerprint:
    """Decode a reference P3 file and compute its fingerprint."""
    with open(path, "rb") as f:
        data = f.read()
    return extract_fingerprint(decode_ppm(data))


def _read_manifest(manifest_path: Path) -> list:
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            manifest = json.load(f)
    except OSError as e:
        raise CatalogLoadError(f"Cannot read catalog manifest {manifest_path}: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CatalogLoadError(f"Malformed catalog manifest {manifest_path}: {e}") from e

    if not isinstance(manifest, list):
        raise CatalogLoadError(
            f"Catalog manifest {manifest_path} must be a JSON array, "
            f"got {type(manifest).__name__}"
        )
    return manifest


def _build_entry(position: int, raw: dict, base_dir: Path) -> CatalogEntry:
    if not isinstance(raw, dict):
        raise CatalogLoadError(f"Catalog entry #{position} is not an object")

    missing = [name for name in REQUIRED_FIELDS
               if raw.get(name) is None or (name in NON_EMPTY_FIELDS and not raw[name])]
    if missing:
        raise CatalogLoadError(
            f"Catalog entry #{position} is missing fields: {', '.join(missing)}"
        )

    keywords = raw.get("keywords") or []
    if not isinstance(keywords, list):
        raise CatalogLoadError(f"Catalog entry #{position}: keywords must be a list")

    image_path = base_dir / raw["referenceImage"]
    try:
        fingerprint = load_reference_fingerprint(image_path)
    except OSError as e:
        raise CatalogLoadError(
            f"Cannot read reference image for {raw['model']}: {image_path}: {e}"
        ) from e
    except RecognitionError as e:
        raise CatalogLoadError(
            f"Invalid reference image for {raw['model']} ({image_path}): {e}"
        ) from e

    return CatalogEntry(
        brand=raw.get("brand") or DEFAULT_BRAND,
        model=raw["model"],
        name=raw["name"],
        description=raw["description"],
        reference_image=image_path,
        fingerprint=fingerprint,
        keywords=build_keywords(raw["model"], keywords),
    )


def load_catalog(manifest_path: Union[str, Path],
                 base_dir: Optional[Union[str, Path]] = None) -> Catalog:
    """
    Load the reference catalog described by a JSON manifest.

    Args:
        manifest_path: Path to the manifest JSON array.
        base_dir: Directory that referenceImage paths are relative to.
                  Defaults to $CATALOG_BASE_DIR, then the manifest's
                  directory.

    Returns:
        Immutable Catalog in manifest order.

    Raises:
        CatalogLoadError: If the manifest or any reference image cannot be
            read, parsed or fingerprinted.
    """
    manifest_path = Path(manifest_path)
    if base_dir is None:
        base_dir = os.environ.get("CATALOG_BASE_DIR") or manifest_path.parent
    base_dir = Path(base_dir)

    try:
        manifest = _read_manifest(manifest_path)
        entries = []
        for position, raw in enumerate(manifest):
            entry = _build_entry(position, raw, base_dir)
            logger.debug(
                f"Loaded reference {entry.model}: {len(entry.keywords)} keywords"
            )
            entries.append(entry)
    except CatalogLoadError as e:
        logger.error(f"Catalog load failed: {e}")
        raise

    catalog = Catalog.from_entries(entries)
    logger.info(
        f"Loaded catalog from {manifest_path}: {len(catalog)} references, "
        f"{len(catalog.keyword_index)} keywords"
    )
    return catalog
