"""Generation manifest: the only state persisted between runs.

Stored as JSON::

    {"specPath": "...", "entries": {"GET /pets": {"fingerprint": "...",
     "files": ["pets.spec.py"], "generatedAt": "2024-01-01T00:00:00Z"}}}
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from api_test_synth.errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


class ManifestEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fingerprint: str
    files: list[str] = Field(default_factory=list)
    generated_at: str = Field(default="", alias="generatedAt")


class GenerationManifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    spec_path: str = Field(default="", alias="specPath")
    entries: dict[str, ManifestEntry] = Field(default_factory=dict)
    strategy: str | None = None
    options_hash: str = Field(default="", alias="optionsHash")
    version: int = MANIFEST_VERSION

    def files_for(self, key: str) -> list[str]:
        entry = self.entries.get(key)
        return list(entry.files) if entry else []

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_json(cls, text: str) -> "GenerationManifest":
        try:
            return cls.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ManifestError(f"Corrupt manifest: {e}") from e


class ManifestStore(ABC):
    """Narrow persistence interface for the manifest."""

    @abstractmethod
    def load(self) -> GenerationManifest | None:
        """Return the stored manifest, None if there is none.

        Raises ManifestError if the stored manifest cannot be read.
        """

    @abstractmethod
    def save(self, manifest: GenerationManifest) -> None: ...


class JsonManifestStore(ManifestStore):
    def __init__(self, path: Path):
        self.path = path

    def load(self) -> GenerationManifest | None:
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Cannot read manifest {self.path}: {e}") from e
        return GenerationManifest.from_json(text)

    def save(self, manifest: GenerationManifest) -> None:
        atomic_write_text(self.path, manifest.to_json())
        logger.debug("Manifest saved to %s (%d entries)", self.path, len(manifest.entries))


class InMemoryManifestStore(ManifestStore):
    def __init__(self, manifest: GenerationManifest | None = None):
        self.manifest = manifest
        self.saves = 0

    def load(self) -> GenerationManifest | None:
        return self.manifest.model_copy(deep=True) if self.manifest else None

    def save(self, manifest: GenerationManifest) -> None:
        self.manifest = manifest.model_copy(deep=True)
        self.saves += 1


def atomic_write_text(path: Path, content: str) -> None:
    """Write via a temp file in the same directory and os.replace it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
