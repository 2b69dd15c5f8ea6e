"""AI-augmented validation scenarios.

Asks an LLM for extra business-rule scenarios the deterministic generators
cannot infer from the schema, and converts its JSON answer into TestCases.
"""

import json
import re

from api_test_synth.errors import GeneratorError
from api_test_synth.generator.base import GeneratorKind, GenerationContext, ScenarioGenerator, default_auth
from api_test_synth.generator.testcase import PRIORITIES, TestCase, TestRequest, TestType
from api_test_synth.llm import LlmClient
from api_test_synth.parser.base import ApiEndpoint
from api_test_synth.synth.body import GeneratedBody

MAX_AI_TESTS = 3

SYSTEM_PROMPT = """You are a senior API test engineer. Given one HTTP endpoint described as JSON,
propose additional validation scenarios that a schema-driven generator would miss
(business rules, cross-field dependencies, state-dependent behaviour).

Output a JSON array with at most 3 objects. Each object must have these fields:
- name: short scenario name
- description: what the scenario checks
- path_params: object of path parameter values
- query_params: object of query parameter values
- headers: object of header values (strings)
- body: JSON request body or null
- expected_status: integer HTTP status code
- priority: one of low / medium / high / critical

Output ONLY the JSON array, no other text."""


class AiTestGenerator(ScenarioGenerator):
    kind = GeneratorKind.AI

    def __init__(self, context: GenerationContext, model: str | None = None, client: LlmClient | None = None):
        super().__init__(context)
        self.client = client or LlmClient(model=model)

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        response = self.client.call(system=SYSTEM_PROMPT, user=_describe(endpoint))
        try:
            data = json.loads(_extract_json(response))
        except json.JSONDecodeError as e:
            raise GeneratorError(f"LLM returned invalid JSON: {e}", self.kind.value, endpoint.key) from e
        if not isinstance(data, list):
            raise GeneratorError("LLM output is not a JSON array", self.kind.value, endpoint.key)

        tests = []
        for index, item in enumerate(data[:MAX_AI_TESTS]):
            if not isinstance(item, dict) or "expected_status" not in item:
                raise GeneratorError(f"LLM scenario #{index + 1} is malformed", self.kind.value, endpoint.key)
            tests.append(self._to_test(endpoint, index, item))
        return tests

    def _to_test(self, endpoint: ApiEndpoint, index: int, item: dict) -> TestCase:
        body = None
        if item.get("body") is not None:
            content_type = endpoint.request_body.preferred()[0] if endpoint.request_body else "application/json"
            body = GeneratedBody(content_type=content_type, data=item["body"])
        request = TestRequest(
            path_params=item.get("path_params") or {},
            query_params=item.get("query_params") or {},
            headers={k: str(v) for k, v in (item.get("headers") or {}).items()},
            body=body,
        )
        priority = item.get("priority", "medium")
        try:
            status = int(item["expected_status"])
        except (TypeError, ValueError) as e:
            raise GeneratorError(f"Invalid expected_status {item['expected_status']!r}", self.kind.value, endpoint.key) from e
        return self.make_test(
            endpoint,
            suffix=f"ai-{index + 1}",
            label=str(item.get("name") or f"AI scenario {index + 1}"),
            description=str(item.get("description", "")),
            test_type=TestType.VALIDATION,
            request=request,
            status=status,
            tags=["validation", "ai-generated"],
            priority=priority if priority in PRIORITIES else "medium",
            auth=default_auth(endpoint),
            stability="experimental",
        )


def _describe(endpoint: ApiEndpoint) -> str:
    return json.dumps(endpoint.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def _extract_json(text: str) -> str:
    """Extract JSON from a response that might contain Markdown code blocks."""
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text.strip()
