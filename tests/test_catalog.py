"""Tests for catalog loading."""

import json
from dataclasses import FrozenInstanceError

import pytest

from product_recognition.catalog import (
    DEFAULT_BRAND,
    Catalog,
    build_keywords,
    load_catalog,
)
from product_recognition.errors import CatalogLoadError, FormatError


def _write_manifest(path, entries):
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


class TestLoadCatalog:
    """Tests for load_catalog."""

    def test_loads_in_manifest_order(self, catalog_dir):
        catalog = load_catalog(catalog_dir)
        assert [e.model for e in catalog] == ["KIVIK", "POANG", "EKTORP"]
        assert len(catalog) == 3

    def test_keywords_lowercased_union(self, catalog_dir):
        catalog = load_catalog(catalog_dir)
        assert catalog.entries[0].keywords == {"kivik", "sofa", "kivik-sofa"}

    def test_fingerprints_precomputed(self, catalog_dir):
        kivik = load_catalog(catalog_dir).entries[0]
        assert kivik.fingerprint.grey_ratio == 1.0

    def test_brand_default_and_override(self, catalog_dir):
        catalog = load_catalog(catalog_dir)
        assert catalog.entries[0].brand == DEFAULT_BRAND
        assert catalog.entries[2].brand == "IKEA-FR"

    def test_reverse_keyword_index(self, catalog_dir):
        catalog = load_catalog(catalog_dir)
        assert catalog.keyword_index["sofa"] == ("KIVIK", "EKTORP")
        assert catalog.models_for_keyword("ARMCHAIR") == ("POANG",)
        assert catalog.models_for_keyword("table") == ()

    def test_explicit_base_dir(self, catalog_dir, tmp_path):
        moved = tmp_path / "elsewhere" / "catalog.json"
        moved.parent.mkdir()
        moved.write_text(catalog_dir.read_text(encoding="utf-8"), encoding="utf-8")
        catalog = load_catalog(moved, base_dir=tmp_path)
        assert len(catalog) == 3

    def test_base_dir_from_environment(self, catalog_dir, tmp_path, monkeypatch):
        moved = tmp_path / "elsewhere" / "catalog.json"
        moved.parent.mkdir()
        moved.write_text(catalog_dir.read_text(encoding="utf-8"), encoding="utf-8")
        monkeypatch.setenv("CATALOG_BASE_DIR", str(tmp_path))
        assert len(load_catalog(moved)) == 3

    def test_empty_manifest(self, tmp_path):
        catalog = load_catalog(_write_manifest(tmp_path / "c.json", []))
        assert len(catalog) == 0

    def test_empty_description_and_name_allowed(self, tmp_path, grey_image, make_ppm):
        (tmp_path / "ok.ppm").write_bytes(make_ppm(grey_image))
        path = _write_manifest(tmp_path / "c.json", [{
            "model": "KIVIK", "name": "", "description": "",
            "referenceImage": "ok.ppm",
        }])
        entry = load_catalog(path).entries[0]
        assert entry.description == ""
        assert entry.name == ""

    def test_catalog_is_immutable(self, catalog_dir):
        catalog = load_catalog(catalog_dir)
        with pytest.raises(FrozenInstanceError):
            catalog.entries = ()
        with pytest.raises(TypeError):
            catalog.keyword_index["new"] = ("X",)


class TestLoadCatalogFailures:
    """Catalog failures are fatal and always CatalogLoadError."""

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(CatalogLoadError, match="Cannot read"):
            load_catalog(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_text("[{not json", encoding="utf-8")
        with pytest.raises(CatalogLoadError, match="Malformed"):
            load_catalog(path)

    def test_manifest_not_utf8(self, tmp_path):
        path = tmp_path / "c.json"
        path.write_bytes(b'[{"model": "\xff\xfe"}]')
        with pytest.raises(CatalogLoadError, match="Malformed"):
            load_catalog(path)

    def test_empty_model_rejected(self, tmp_path, grey_image, make_ppm):
        (tmp_path / "ok.ppm").write_bytes(make_ppm(grey_image))
        path = _write_manifest(tmp_path / "c.json", [{
            "model": "", "name": "KIVIK", "description": "sofa",
            "referenceImage": "ok.ppm",
        }])
        with pytest.raises(CatalogLoadError, match="model"):
            load_catalog(path)

    def test_not_an_array(self, tmp_path):
        path = _write_manifest(tmp_path / "c.json", {"model": "KIVIK"})
        with pytest.raises(CatalogLoadError, match="JSON array"):
            load_catalog(path)

    def test_missing_required_field(self, tmp_path):
        path = _write_manifest(tmp_path / "c.json", [{"model": "KIVIK", "name": "x"}])
        with pytest.raises(CatalogLoadError, match="referenceImage"):
            load_catalog(path)

    def test_missing_reference_image(self, tmp_path):
        path = _write_manifest(tmp_path / "c.json", [{
            "model": "KIVIK", "name": "KIVIK", "description": "sofa",
            "referenceImage": "nope.ppm",
        }])
        with pytest.raises(CatalogLoadError, match="Cannot read reference"):
            load_catalog(path)

    def test_invalid_reference_image(self, tmp_path):
        (tmp_path / "bad.ppm").write_bytes(b"P6\n1 1\n255\n\x00\x00\x00")
        path = _write_manifest(tmp_path / "c.json", [{
            "model": "KIVIK", "name": "KIVIK", "description": "sofa",
            "referenceImage": "bad.ppm",
        }])
        with pytest.raises(CatalogLoadError) as exc_info:
            load_catalog(path)
        assert isinstance(exc_info.value.__cause__, FormatError)

    def test_keywords_must_be_list(self, tmp_path, grey_image, make_ppm):
        (tmp_path / "ok.ppm").write_bytes(make_ppm(grey_image))
        path = _write_manifest(tmp_path / "c.json", [{
            "model": "KIVIK", "name": "KIVIK", "description": "sofa",
            "referenceImage": "ok.ppm", "keywords": "sofa",
        }])
        with pytest.raises(CatalogLoadError, match="keywords"):
            load_catalog(path)


class TestCatalogFromEntries:
    """Tests for building catalogs in memory."""

    def test_build_keywords(self):
        assert build_keywords("KIVIK", ["Sofa", "KIVIK"]) == {"kivik", "sofa"}
        assert build_keywords("POANG") == {"poang"}

    def test_empty_catalog(self):
        catalog = Catalog.from_entries([])
        assert len(catalog) == 0
        assert dict(catalog.keyword_index) == {}
