"""Generation configuration.

Values come from an optional YAML/JSON file and are overridden by CLI flags.
"""

import hashlib
import json
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from api_test_synth import __version__
from api_test_synth.errors import ConfigError

DEFAULT_MANIFEST_NAME = ".api-test-synth-manifest.json"

# Fields whose value changes the content of generated tests.
CONTENT_FIELDS = (
    "include_happy_path",
    "include_errors",
    "include_edge_cases",
    "include_auth",
    "include_flows",
    "include_performance",
    "include_ai",
    "seed",
    "generate_multiple",
    "generate_multiple_scenarios",
    "include_optional_params",
    "test_expired_tokens",
    "generator_version",
)


class GenerationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_happy_path: bool = True
    include_errors: bool = True
    include_edge_cases: bool = True
    include_auth: bool = True
    include_flows: bool = True
    include_performance: bool = False
    include_ai: bool = False

    organization: str | None = None
    seed: int = 42
    generate_multiple: bool = False
    generate_multiple_scenarios: bool = False
    include_optional_params: bool = False
    test_expired_tokens: bool = False

    incremental: bool = True
    force_all: bool = False
    dry_run: bool = False
    manifest_name: str = DEFAULT_MANIFEST_NAME

    max_workers: int = 1
    model: str | None = None
    base_url: str = "http://localhost:8080"
    generator_version: str = __version__

    def content_hash(self) -> str:
        """Hash of the options that affect generated test content."""
        options = {name: getattr(self, name) for name in CONTENT_FIELDS}
        raw = json.dumps(options, sort_keys=True)
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]

    def with_overrides(self, **overrides) -> "GenerationConfig":
        """Return a copy with every non-None override applied and validated."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return GenerationConfig(**values)
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def load_config(file_path: Path) -> GenerationConfig:
    """Load a YAML or JSON config file."""
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {file_path} must contain a mapping")

    # accept dashed keys as written on the command line
    data = {k.replace("-", "_"): v for k, v in data.items()}
    try:
        return GenerationConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {file_path}: {e}") from e
