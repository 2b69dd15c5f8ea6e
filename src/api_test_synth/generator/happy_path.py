"""Happy-path scenarios: realistic input, lowest declared 2xx expected."""

from api_test_synth.generator.base import GeneratorKind, ScenarioGenerator, build_request, default_auth
from api_test_synth.generator.testcase import TestCase, TestType, ValidationRule
from api_test_synth.parser.base import ApiEndpoint, Response
from api_test_synth.synth.values import resolve, schema_type


class HappyPathGenerator(ScenarioGenerator):
    kind = GeneratorKind.HAPPY_PATH

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        count = 2 if self.context.generate_multiple else 1
        status = endpoint.success_status()
        rules = response_rules(endpoint.responses.get(str(status)))
        base_seed = self.context.endpoint_seed(endpoint)

        tests = []
        for i in range(count):
            request = build_request(
                endpoint,
                base_seed + i,
                include_optional=self.context.include_optional_params or i > 0,
            )
            suffix = "happy-path" if i == 0 else f"happy-path-{i + 1}"
            label = "successful request" if i == 0 else f"successful request (variant {i + 1})"
            tests.append(
                self.make_test(
                    endpoint,
                    suffix=suffix,
                    label=label,
                    test_type=TestType.HAPPY_PATH,
                    request=request,
                    status=status,
                    tags=["happy-path", "smoke"] if i == 0 else ["happy-path"],
                    priority="critical" if i == 0 else "high",
                    auth=default_auth(endpoint),
                    rules=rules,
                )
            )
        return tests


def response_rules(response: Response | None) -> list[ValidationRule]:
    """Structural assertions derived from a response schema."""
    if response is None or not response.schema_:
        return []
    schema = resolve(response.schema_)
    kind = schema_type(schema)

    if kind == "object":
        return [ValidationRule(path="$", rule="type", value="object")] + _object_rules(schema, "$")
    if kind == "array":
        rules = [ValidationRule(path="$", rule="type", value="array")]
        items = resolve(schema.get("items") or {})
        if schema_type(items) == "object":
            rules += _object_rules(items, "$[*]")
        return rules
    return []


def _object_rules(schema: dict, prefix: str) -> list[ValidationRule]:
    properties = schema.get("properties") or {}
    rules = [ValidationRule(path=f"{prefix}.{name}", rule="required") for name in schema.get("required") or []]
    for name, prop in properties.items():
        prop = resolve(prop or {})
        if prop.get("enum") and schema_type(prop) == "string":
            rules.append(ValidationRule(path=f"{prefix}.{name}", rule="enum", value=list(prop["enum"])))
    return rules
