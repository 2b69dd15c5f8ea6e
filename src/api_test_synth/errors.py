"""Error taxonomy for test generation.

Fatal errors (bad configuration, unusable spec, unknown organization
strategy) are raised. Everything else is recorded as an ``Issue`` on the
generation result so a partial run still produces files.
"""

from pydantic import BaseModel


class ApiTestSynthError(Exception):
    """Base class for all api-test-synth errors."""


class SpecError(ApiTestSynthError):
    """The API document cannot be used at all (fatal)."""


class SpecExtractionError(ApiTestSynthError):
    """Malformed endpoint data, recovered by defaulting."""


class GeneratorError(ApiTestSynthError):
    """A scenario generator failed for a single endpoint."""

    def __init__(self, message: str, generator: str = "", endpoint_key: str = ""):
        super().__init__(message)
        self.generator = generator
        self.endpoint_key = endpoint_key


class OrganizationError(ApiTestSynthError):
    """Test organization failed (fatal)."""


class InvalidStrategyError(OrganizationError):
    def __init__(self, strategy: str, valid: list[str]):
        super().__init__(f"Unknown organization strategy '{strategy}'. Valid strategies: {', '.join(valid)}")
        self.strategy = strategy


class ManifestError(ApiTestSynthError):
    """The manifest file is corrupt or unreadable."""


class ConfigError(ApiTestSynthError):
    """Invalid configuration file or value (fatal)."""


class Issue(BaseModel):
    """A non-fatal problem collected during a run."""

    kind: str  # extraction / generator / manifest / validation
    message: str
    endpoint: str = ""

    @classmethod
    def from_error(cls, kind: str, error: Exception, endpoint: str = "") -> "Issue":
        return cls(kind=kind, message=str(error), endpoint=endpoint)
