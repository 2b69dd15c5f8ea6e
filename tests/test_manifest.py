import json
from unittest.mock import patch

import pytest

from api_test_synth.errors import ManifestError
from api_test_synth.manifest import (
    MANIFEST_VERSION,
    GenerationManifest,
    InMemoryManifestStore,
    JsonManifestStore,
    ManifestEntry,
    atomic_write_text,
)

MANIFEST = GenerationManifest(
    spec_path="/specs/petstore.yaml",
    entries={
        "GET /pets": ManifestEntry(fingerprint="abc", files=["pets.spec.py"], generated_at="2024-01-01T00:00:00Z"),
    },
    strategy="by-tag",
    options_hash="1234",
)


class TestGenerationManifest:
    def test_json_uses_camel_case_keys(self):
        data = json.loads(MANIFEST.to_json())
        assert data["specPath"] == "/specs/petstore.yaml"
        assert data["entries"]["GET /pets"]["generatedAt"] == "2024-01-01T00:00:00Z"
        assert data["optionsHash"] == "1234"
        assert data["version"] == MANIFEST_VERSION

    def test_from_json_round_trip(self):
        assert GenerationManifest.from_json(MANIFEST.to_json()) == MANIFEST

    def test_from_json_minimal(self):
        manifest = GenerationManifest.from_json('{"specPath": "a.yaml", "entries": {}}')
        assert manifest.spec_path == "a.yaml"
        assert manifest.strategy is None

    def test_corrupt(self):
        with pytest.raises(ManifestError):
            GenerationManifest.from_json("{not json")
        with pytest.raises(ManifestError):
            GenerationManifest.from_json('{"entries": {"GET /a": {"files": []}}}')

    def test_files_for(self):
        assert MANIFEST.files_for("GET /pets") == ["pets.spec.py"]
        assert MANIFEST.files_for("GET /nope") == []


class TestJsonManifestStore:
    def test_missing_file_loads_none(self, tmp_path):
        assert JsonManifestStore(tmp_path / "manifest.json").load() is None

    def test_save_and_load(self, tmp_path):
        store = JsonManifestStore(tmp_path / "out" / "manifest.json")
        store.save(MANIFEST)
        assert store.load() == MANIFEST
        assert [p.name for p in (tmp_path / "out").iterdir()] == ["manifest.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text("garbage")
        with pytest.raises(ManifestError):
            JsonManifestStore(path).load()


class TestInMemoryManifestStore:
    def test_save_copies(self):
        store = InMemoryManifestStore()
        assert store.load() is None
        store.save(MANIFEST)
        loaded = store.load()
        loaded.entries.clear()
        assert store.load() == MANIFEST
        assert store.saves == 1


class TestAtomicWrite:
    def test_replaces_existing(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("old")
        atomic_write_text(path, "new")
        assert path.read_text() == "new"

    def test_failure_leaves_original_and_no_temp(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("old")
        with patch("api_test_synth.manifest.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write_text(path, "new")
        assert path.read_text() == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]
