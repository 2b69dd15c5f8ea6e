"""Error-case scenarios: one representative request per supported error code.

A code is supported when the endpoint declares it or when it can be inferred
from the endpoint's shape. At most MAX_ERROR_TESTS are emitted per endpoint;
when more apply, the lowest-priority codes are dropped.
"""

from api_test_synth.generator.base import (
    GeneratorKind,
    ScenarioGenerator,
    build_request,
    default_auth,
    first_secured_group,
    param_value,
)
from api_test_synth.generator.testcase import TestAuth, TestCase, TestRequest, TestType
from api_test_synth.parser.base import ApiEndpoint
from api_test_synth.synth.body import GeneratedBody, Variant, find_field, set_field
from api_test_synth.synth.values import INVALID_FORMAT_VALUES, Mode, first_required, has_constraints, synthesize

MAX_ERROR_TESTS = 5

# Highest priority first.
PRIORITY = (401, 400, 403, 404, 422, 405)

NONEXISTENT_ID = 999999999
NONEXISTENT_UUID = "00000000-0000-0000-0000-000000000000"


def supported_codes(endpoint: ApiEndpoint) -> list[int]:
    """Error codes this endpoint can meaningfully be tested for, by priority."""
    declared = set(endpoint.status_codes())
    secured = bool(endpoint.security)
    inferred = {
        400: endpoint.request_body is not None or any(p.required for p in endpoint.parameters),
        401: secured,
        403: secured,
        404: bool(endpoint.params_in("path")),
        422: has_constraints(endpoint.json_body_schema()),
        405: False,
    }
    return [code for code in PRIORITY if code in declared or inferred[code]]


class ErrorCaseGenerator(ScenarioGenerator):
    kind = GeneratorKind.ERROR_CASE

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        seed = self.context.endpoint_seed(endpoint)
        builders = {
            401: self._unauthorized,
            400: self._bad_request,
            403: self._forbidden,
            404: self._not_found,
            422: self._unprocessable,
            405: self._method_not_allowed,
        }
        tests = []
        for code in supported_codes(endpoint):
            test = builders[code](endpoint, seed)
            if test is not None:
                tests.append(test)
            if len(tests) == MAX_ERROR_TESTS:
                break
        return tests

    def _error(
        self,
        endpoint: ApiEndpoint,
        code: int,
        label: str,
        request: TestRequest,
        auth: TestAuth | None,
        priority: str,
        extra_tags=(),
        status: int | list[int] | None = None,
        method: str | None = None,
    ) -> TestCase:
        return self.make_test(
            endpoint,
            suffix=f"error-{code}",
            label=label,
            test_type=TestType.ERROR_CASE,
            request=request,
            status=status or code,
            tags=["error-case", "error", f"status-{code}", *extra_tags],
            priority=priority,
            auth=auth,
            method=method,
        )

    def _unauthorized(self, endpoint: ApiEndpoint, seed: int) -> TestCase:
        request = build_request(endpoint, seed)
        group = first_secured_group(endpoint)
        if endpoint.auth_optional:
            # anonymous access is allowed, so only a bad credential can yield 401
            auth = TestAuth(schemes=group, credential="invalid")
            return self._error(endpoint, 401, "invalid credential is rejected", request, auth, "high", ["invalid-credential"])
        auth = TestAuth(schemes=group, credential="none")
        return self._error(endpoint, 401, "missing credential is rejected", request, auth, "high", ["no-credential"])

    def _bad_request(self, endpoint: ApiEndpoint, seed: int) -> TestCase | None:
        auth = default_auth(endpoint)
        schema = endpoint.json_body_schema()

        missing = first_required(schema)
        if missing:
            request = build_request(endpoint, seed, body_variant=Variant.MISSING_REQUIRED)
            label = f"missing required field '{missing}'"
            return self._error(endpoint, 400, label, request, auth, "high", ["missing-required"])

        for param in endpoint.parameters:
            if param.required and param.location in ("query", "header", "cookie"):
                request = build_request(endpoint, seed, omit=(param.name, param.location))
                label = f"missing required {param.location} parameter '{param.name}'"
                return self._error(endpoint, 400, label, request, auth, "high", ["missing-required"])

        for param in endpoint.params_in("path"):
            if param.param_type in ("integer", "number", "boolean"):
                bad = param_value(param, seed, Mode.INVALID_TYPE)
                request = build_request(endpoint, seed, overrides={(param.name, "path"): bad})
                label = f"malformed path parameter '{param.name}'"
                return self._error(endpoint, 400, label, request, auth, "medium", ["invalid-type"])

        if endpoint.request_body is not None:
            request = build_request(endpoint, seed, body_variant=Variant.WRONG_TYPE)
            return self._error(endpoint, 400, "request body with wrong types", request, auth, "medium", ["invalid-type"])
        return None

    def _forbidden(self, endpoint: ApiEndpoint, seed: int) -> TestCase | None:
        group = first_secured_group(endpoint)
        if not group:
            return None
        request = build_request(endpoint, seed)
        auth = TestAuth(schemes=group, credential="limited-scope")
        return self._error(endpoint, 403, "credential without required scope", request, auth, "high", ["limited-scope"])

    def _not_found(self, endpoint: ApiEndpoint, seed: int) -> TestCase | None:
        path_params = endpoint.params_in("path")
        if not path_params:
            return None
        param = path_params[0]
        request = build_request(endpoint, seed, overrides={(param.name, "path"): nonexistent_value(param.schema_)})
        label = f"nonexistent '{param.name}'"
        return self._error(endpoint, 404, label, request, default_auth(endpoint), "medium", ["not-found"])

    def _unprocessable(self, endpoint: ApiEndpoint, seed: int) -> TestCase | None:
        schema = endpoint.json_body_schema()
        found = find_field(schema, lambda s, required: violation_mode(s) is not None) if schema else None
        if found is None:
            return None
        path, field_schema = found
        request = build_request(endpoint, seed)
        bad = synthesize(field_schema, violation_mode(field_schema), seed, field_name=path[-1])
        body = GeneratedBody(
            content_type=request.body.content_type,
            data=set_field(request.body.data, path, bad),
        )
        request = request.model_copy(update={"body": body})
        label = f"constraint violation on '{'.'.join(path)}'"
        return self._error(
            endpoint, 422, label, request, default_auth(endpoint), "medium", ["constraint-violation"], status=[422, 400]
        )

    def _method_not_allowed(self, endpoint: ApiEndpoint, seed: int) -> TestCase:
        other = "put" if endpoint.method == "patch" else "patch"
        request = build_request(endpoint, seed)
        return self._error(
            endpoint, 405, f"unsupported method {other.upper()}", request, default_auth(endpoint), "low",
            ["method-not-allowed"], method=other,
        )


def violation_mode(schema: dict) -> Mode | None:
    """How to break a constraint while keeping the value's type."""
    if schema.get("minimum") is not None or schema.get("minLength"):
        return Mode.BELOW_MIN
    if schema.get("maximum") is not None or schema.get("maxLength") is not None:
        return Mode.ABOVE_MAX
    if schema.get("format") in INVALID_FORMAT_VALUES or schema.get("enum") or schema.get("pattern"):
        return Mode.INVALID_FORMAT
    if schema.get("minItems"):
        return Mode.BELOW_MIN
    if schema.get("maxItems") is not None:
        return Mode.ABOVE_MAX
    return None


def nonexistent_value(schema: dict):
    kind = schema.get("type", "string")
    if kind in ("integer", "number"):
        maximum = schema.get("maximum")
        if maximum is not None and maximum < NONEXISTENT_ID:
            return maximum
        return NONEXISTENT_ID
    if schema.get("format") == "uuid":
        return NONEXISTENT_UUID
    return "nonexistent-0000"
