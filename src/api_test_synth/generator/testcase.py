"""Test case records produced by the scenario generators.

Test cases are immutable once created; the organizer and the code emitter
only read them.
"""

import json
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from api_test_synth.synth.body import GeneratedBody


class TestType(str, Enum):
    __test__ = False

    HAPPY_PATH = "happy-path"
    ERROR_CASE = "error-case"
    EDGE_CASE = "edge-case"
    AUTH = "auth"
    FLOW = "flow"
    PERFORMANCE = "performance"
    VALIDATION = "validation"


PRIORITIES = ("low", "medium", "high", "critical")
STABILITIES = ("stable", "flaky", "experimental")


class TestRequest(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    path_params: dict[str, Any] = Field(default_factory=dict)
    query_params: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)
    body: GeneratedBody | None = None


class ValidationRule(BaseModel):
    """A structural assertion on the response body.

    ``path`` is ``$`` for the root, ``$.name`` for a root property and
    ``$[*].name`` for a property of every array item.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    rule: str  # type / required / enum
    value: Any = None


class ExpectedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int | list[int]
    body_rules: list[ValidationRule] = Field(default_factory=list)

    def status_codes(self) -> list[int]:
        return [self.status] if isinstance(self.status, int) else list(self.status)


class TestAuth(BaseModel):
    """Which schemes a test authenticates with and the credential class used."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    schemes: list[str] = Field(default_factory=list)
    credential: str = "valid"  # valid / none / invalid / expired / limited-scope


class PerformanceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_type: str  # load / stress / spike / endurance
    load_pattern: str
    virtual_users: int
    duration: str
    ramp_up: str
    ramp_down: str
    thresholds: dict[str, float] = Field(default_factory=dict)


class FlowStep(BaseModel):
    """One request of a multi-step workflow test.

    ``capture`` names the response field the step stores for later steps;
    ``uses`` lists the path parameters filled with that stored value.
    """

    model_config = ConfigDict(frozen=True)

    method: str
    endpoint: str
    description: str
    request: TestRequest = Field(default_factory=TestRequest)
    expected_status: int
    auth: TestAuth | None = None
    capture: str = ""
    uses: list[str] = Field(default_factory=list)


class TestMetadata(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    tags: list[str]
    endpoint_tags: list[str] = Field(default_factory=list)
    priority: str = "medium"
    stability: str = "stable"
    generated_at: str = ""
    generator_version: str = ""


class TestCase(BaseModel):
    __test__ = False
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    type: TestType
    method: str
    endpoint: str
    request: TestRequest = Field(default_factory=TestRequest)
    expected_response: ExpectedResponse
    auth: TestAuth | None = None
    performance: PerformanceProfile | None = None
    metadata: TestMetadata
    steps: list[FlowStep] = Field(default_factory=list)

    @property
    def endpoint_key(self) -> str:
        return f"{self.method.upper()} {self.endpoint}"

    def signature(self) -> str:
        """Identity used for de-duplication: same request, same expectation."""
        return json.dumps(
            {
                "method": self.method,
                "endpoint": self.endpoint,
                "request": self.request.model_dump(mode="json"),
                "status": self.expected_response.status_codes(),
                "auth": self.auth.model_dump(mode="json") if self.auth else None,
                "performance": self.performance.model_dump(mode="json") if self.performance else None,
                "steps": [step.model_dump(mode="json") for step in self.steps],
            },
            sort_keys=True,
            default=str,
        )


def slugify(text: str) -> str:
    """Lowercase alphanumerics joined by single hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def make_test_id(method: str, path: str, suffix: str) -> str:
    return f"{method.lower()}-{slugify(path) or 'root'}-{suffix}"


def finalize_tests(tests: list[TestCase]) -> list[TestCase]:
    """Drop duplicate scenarios and make ids pairwise unique, preserving order."""
    seen_signatures = set()
    seen_ids: dict[str, int] = {}
    result = []
    for test in tests:
        signature = test.signature()
        if signature in seen_signatures:
            continue
        seen_signatures.add(signature)

        if test.id in seen_ids:
            seen_ids[test.id] += 1
            new_id = f"{test.id}-{seen_ids[test.id]}"
            while new_id in seen_ids:
                seen_ids[test.id] += 1
                new_id = f"{test.id}-{seen_ids[test.id]}"
            seen_ids[new_id] = 1
            test = test.model_copy(update={"id": new_id})
        else:
            seen_ids[test.id] = 1
        result.append(test)
    return result
