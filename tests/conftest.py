"""Shared test fixtures for product recognition tests."""

import json

import numpy as np
import pytest


def build_ppm(image: np.ndarray, max_value: int = 255, comment: str = None) -> bytes:
    """Encode an (h, w, 3) integer array as P3 bytes."""
    h, w = image.shape[:2]
    lines = ["P3"]
    if comment:
        lines.append(f"# {comment}")
    lines.append(f"{w} {h}")
    lines.append(str(max_value))
    for row in image.reshape(h, w * 3):
        lines.append(" ".join(str(int(v)) for v in row))
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def make_ppm():
    """Builder turning an (h, w, 3) integer array into P3 bytes."""
    return build_ppm


@pytest.fixture
def grey_image():
    """4x4 uniform light grey."""
    return np.full((4, 4, 3), 220, dtype=np.uint8)


@pytest.fixture
def blue_image():
    """4x4 saturated blue."""
    img = np.zeros((4, 4, 3), dtype=np.uint8)
    img[:, :] = [20, 40, 210]
    return img


@pytest.fixture
def brown_image():
    """4x4 wood brown."""
    img = np.zeros((4, 4, 3), dtype=np.uint8)
    img[:, :] = [140, 90, 50]
    return img


@pytest.fixture
def striped_image():
    """6x6 vertical black/white stripes (strong horizontal change)."""
    img = np.zeros((6, 6, 3), dtype=np.uint8)
    img[:, ::2] = 255
    return img


@pytest.fixture
def noise_image():
    """16x16 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 256, (16, 16, 3)).astype(np.uint8)


@pytest.fixture
def catalog_dir(tmp_path, grey_image, blue_image, brown_image):
    """
    Catalog directory with three references written to disk.

    Returns the manifest path.
    """
    refs = tmp_path / "refs"
    refs.mkdir()
    (refs / "kivik.ppm").write_bytes(build_ppm(grey_image, comment="KIVIK"))
    (refs / "poang.ppm").write_bytes(build_ppm(brown_image))
    (refs / "ektorp.ppm").write_bytes(build_ppm(blue_image, max_value=255))

    manifest = [
        {
            "model": "KIVIK",
            "name": "KIVIK sofa",
            "description": "Three-seat sofa, light grey cover",
            "referenceImage": "refs/kivik.ppm",
            "keywords": ["sofa", "kivik-sofa"],
        },
        {
            "model": "POANG",
            "name": "POANG armchair",
            "description": "Bentwood armchair",
            "referenceImage": "refs/poang.ppm",
            "keywords": ["armchair", "fauteuil"],
        },
        {
            "model": "EKTORP",
            "name": "EKTORP sofa",
            "description": "Two-seat sofa, blue cover",
            "referenceImage": "refs/ektorp.ppm",
            "keywords": ["sofa"],
            "brand": "IKEA-FR",
        },
    ]
    manifest_path = tmp_path / "catalog.json"
    manifest_path.write_text(json.dumps(manifest), encoding="utf-8")
    return manifest_path
