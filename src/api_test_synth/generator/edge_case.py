"""Edge-case scenarios for endpoints that take a JSON request body."""

from api_test_synth.generator.base import GeneratorKind, ScenarioGenerator, build_request, default_auth
from api_test_synth.generator.testcase import TestCase, TestRequest, TestType
from api_test_synth.parser.base import ApiEndpoint
from api_test_synth.synth.body import GeneratedBody, find_field, set_field
from api_test_synth.synth.values import Mode, payload_kinds, schema_type, synthesize

MAX_EDGE_TESTS = 4

PAYLOAD_TAGS = {
    "xss": "xss",
    "sqli": "sql-injection",
    "unicode": "unicode",
    "null-byte": "null-byte",
}

_EMPTY_VALUES = {
    "string": ("", "empty-string"),
    "array": ([], "empty-array"),
    "object": ({}, "empty-object"),
}


def _has_bound(schema: dict, required: bool) -> bool:
    kind = schema_type(schema)
    if kind in ("integer", "number"):
        return schema.get("minimum") is not None or schema.get("maximum") is not None
    if kind == "string" and not schema.get("enum"):
        return bool(schema.get("minLength")) or schema.get("maxLength") is not None
    return False


class EdgeCaseGenerator(ScenarioGenerator):
    kind = GeneratorKind.EDGE_CASE

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        schema = endpoint.json_body_schema()
        if not schema:
            return []

        seed = self.context.endpoint_seed(endpoint)
        base = build_request(endpoint, seed)
        tolerant = endpoint.success_codes() or [endpoint.success_status()]

        tests = []
        for build in (self._boundary, self._special_characters, self._empty_value, self._large_payload):
            test = build(endpoint, schema, base, seed, tolerant)
            if test is not None:
                tests.append(test)
        return tests[:MAX_EDGE_TESTS]

    def _edge(self, endpoint, suffix, label, request, status, tags, priority="medium"):
        return self.make_test(
            endpoint,
            suffix=f"edge-{suffix}",
            label=label,
            test_type=TestType.EDGE_CASE,
            request=request,
            status=status,
            tags=["edge-case", *tags],
            priority=priority,
            auth=default_auth(endpoint),
        )

    def _boundary(self, endpoint, schema, base: TestRequest, seed, tolerant) -> TestCase | None:
        found = find_field(schema, _has_bound)
        if found is None:
            return None
        path, field_schema = found
        below = field_schema.get("minimum") is not None or bool(field_schema.get("minLength"))
        mode = Mode.BELOW_MIN if below else Mode.ABOVE_MAX
        value = synthesize(field_schema, mode, seed, field_name=path[-1])
        request = _with_body(base, set_field(base.body.data, path, value))
        side = "below minimum" if below else "above maximum"
        return self._edge(endpoint, "boundary", f"'{'.'.join(path)}' {side}", request, [400, 422], ["boundary"])

    def _special_characters(self, endpoint, schema, base: TestRequest, seed, tolerant) -> TestCase | None:
        data = synthesize(schema, Mode.MALICIOUS_MIXED, seed)
        kinds = payload_kinds(data)
        if not kinds:
            return None
        request = _with_body(base, data)
        tags = ["special-characters", "security"] + [PAYLOAD_TAGS[k] for k in kinds]
        return self._edge(
            endpoint, "special-characters", "injection and unicode payloads", request, tolerant + [400, 422], tags, "high"
        )

    def _empty_value(self, endpoint, schema, base: TestRequest, seed, tolerant) -> TestCase | None:
        found = find_field(schema, lambda s, required: not required and schema_type(s) in _EMPTY_VALUES)
        if found is None:
            return None
        path, field_schema = found
        value, sub_tag = _EMPTY_VALUES[schema_type(field_schema)]
        request = _with_body(base, set_field(base.body.data, path, value))
        return self._edge(
            endpoint, "empty-value", f"empty optional '{'.'.join(path)}'", request, tolerant + [400, 422],
            ["empty-value", sub_tag], "low",
        )

    def _large_payload(self, endpoint, schema, base: TestRequest, seed, tolerant) -> TestCase | None:
        found = find_field(schema, lambda s, required: schema_type(s) in ("string", "array") and not s.get("enum"))
        if found is None:
            return None
        path, field_schema = found
        value = synthesize(field_schema, Mode.LARGE, seed, field_name=path[-1])
        request = _with_body(base, set_field(base.body.data, path, value))
        return self._edge(
            endpoint, "large-payload", f"oversized '{'.'.join(path)}'", request, tolerant + [400, 413, 422],
            ["large-payload"], "low",
        )


def _with_body(request: TestRequest, data) -> TestRequest:
    body = GeneratedBody(content_type=request.body.content_type, data=data)
    return request.model_copy(update={"body": body})
