"""Shared pieces of the scenario generators."""

import zlib
from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field

from api_test_synth import __version__
from api_test_synth.generator.testcase import (
    ExpectedResponse,
    PerformanceProfile,
    TestAuth,
    TestCase,
    TestMetadata,
    TestRequest,
    TestType,
    make_test_id,
)
from api_test_synth.parser.base import ApiEndpoint, AuthScheme, Param
from api_test_synth.synth.body import Variant, build_body
from api_test_synth.synth.values import Mode, synthesize


class GeneratorKind(str, Enum):
    HAPPY_PATH = "happy-path"
    ERROR_CASE = "error-case"
    EDGE_CASE = "edge-case"
    AUTH = "auth"
    FLOW = "flow"
    PERFORMANCE = "performance"
    AI = "ai"


class GenerationContext(BaseModel):
    """Per-run inputs shared by every generator."""

    seed: int = 42
    auth_schemes: dict[str, AuthScheme] = Field(default_factory=dict)
    endpoints: list[ApiEndpoint] = Field(default_factory=list)  # every endpoint of the document
    generated_at: str = ""
    generator_version: str = __version__
    generate_multiple: bool = False
    generate_multiple_scenarios: bool = False
    include_optional_params: bool = False
    test_expired_tokens: bool = False

    def endpoint_seed(self, endpoint: ApiEndpoint) -> int:
        return (self.seed + zlib.crc32(endpoint.key.encode("utf-8"))) % 2**32


class ScenarioGenerator(ABC):
    """A pluggable source of test cases for one category."""

    kind: GeneratorKind

    def __init__(self, context: GenerationContext):
        self.context = context

    @abstractmethod
    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        """Produce this category's tests for a single endpoint."""

    def generate_batch(self, endpoints: list[ApiEndpoint]) -> list[TestCase]:
        tests = []
        for endpoint in endpoints:
            tests.extend(self.generate_tests(endpoint))
        return tests

    def make_test(
        self,
        endpoint: ApiEndpoint,
        suffix: str,
        label: str,
        test_type: TestType,
        request: TestRequest,
        status: int | list[int],
        tags: list[str],
        priority: str = "medium",
        auth: TestAuth | None = None,
        description: str = "",
        rules=None,
        performance: PerformanceProfile | None = None,
        method: str | None = None,
        stability: str = "stable",
        steps=None,
    ) -> TestCase:
        method = method or endpoint.method
        summary = endpoint.summary or endpoint.operation_id or endpoint.path
        return TestCase(
            id=make_test_id(method, endpoint.path, suffix),
            name=f"{method.upper()} {endpoint.path} - {label}",
            description=description or f"{summary}: {label}",
            type=test_type,
            method=method,
            endpoint=endpoint.path,
            request=request,
            expected_response=ExpectedResponse(status=status, body_rules=rules or []),
            auth=auth,
            performance=performance,
            steps=steps or [],
            metadata=TestMetadata(
                tags=tags + [t for t in endpoint.tags if t not in tags],
                endpoint_tags=list(endpoint.tags),
                priority=priority,
                stability=stability,
                generated_at=self.context.generated_at,
                generator_version=self.context.generator_version,
            ),
        )


def build_request(
    endpoint: ApiEndpoint,
    seed: int,
    body_variant: Variant = Variant.VALID,
    include_optional: bool = False,
    omit: tuple[str, str] | None = None,
    overrides: dict[tuple[str, str], object] | None = None,
) -> TestRequest:
    """Build a request with realistic parameters and a body of ``body_variant``.

    ``omit`` drops one (name, location) parameter; ``overrides`` replaces the
    value of specific (name, location) parameters.
    """
    overrides = overrides or {}
    values: dict[str, dict] = {"path": {}, "query": {}, "header": {}, "cookie": {}}
    for index, param in enumerate(endpoint.parameters):
        ident = (param.name, param.location)
        if ident == omit or param.location not in values:
            continue
        if not (param.required or param.location == "path" or include_optional or ident in overrides):
            continue
        if ident in overrides:
            value = overrides[ident]
        else:
            value = param_value(param, seed + index)
        if param.location in ("header", "cookie"):
            value = _as_text(value)
        values[param.location][param.name] = value

    body = None
    if endpoint.request_body is not None:
        content_type, schema = endpoint.request_body.preferred()
        body = build_body(schema, content_type, body_variant, seed)

    return TestRequest(
        path_params=values["path"],
        query_params=values["query"],
        headers=values["header"],
        cookies=values["cookie"],
        body=body,
    )


def param_value(param: Param, seed: int, mode: Mode = Mode.REALISTIC):
    value = synthesize(param.schema_ or {"type": "string"}, mode, seed, field_name=param.name)
    if value == {} and not param.schema_.get("type") == "object":
        return "value"
    return value


def default_auth(endpoint: ApiEndpoint) -> TestAuth | None:
    """Valid credentials for the first security alternative that needs any."""
    for group in endpoint.security:
        if group:
            return TestAuth(schemes=list(group), credential="valid")
    return None


def first_secured_group(endpoint: ApiEndpoint) -> list[str]:
    for group in endpoint.security:
        if group:
            return list(group)
    return []


def _as_text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
