"""Workflow scenarios spanning several endpoints of one resource.

A collection path ``P`` and its item path ``P/{param}`` form a resource:
``POST P`` creates, ``GET P`` lists, ``GET P/{param}`` reads, ``PUT`` or
``PATCH P/{param}`` updates and ``DELETE P/{param}`` removes. A workflow
test belongs to the endpoint of its first step; the other endpoints it
calls are reported by ``related_keys`` so the incremental engine can fold
them into that endpoint's fingerprint.
"""

import re

from api_test_synth.generator.base import GeneratorKind, ScenarioGenerator, build_request, default_auth
from api_test_synth.generator.testcase import FlowStep, TestCase, TestType
from api_test_synth.parser.base import ApiEndpoint

ITEM_PATH = re.compile(r"^(?P<collection>.*)/\{(?P<param>[^{}/]+)\}$")
ITEM_ROLES = {"get": "read", "put": "update", "patch": "update", "delete": "delete"}
ID_FIELD = "id"


class FlowGenerator(ScenarioGenerator):
    kind = GeneratorKind.FLOW

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        tests = []
        for flow_type, roles in self._flows(endpoint):
            steps = self._steps(endpoint, roles)
            first = steps[0]
            tests.append(
                self.make_test(
                    endpoint,
                    suffix=f"flow-{flow_type}",
                    label=f"{flow_type} workflow",
                    test_type=TestType.FLOW,
                    request=first.request,
                    status=first.expected_status,
                    tags=["flow", "workflow", flow_type],
                    priority="high",
                    auth=default_auth(endpoint),
                    description=" -> ".join(step.description for step in steps),
                    steps=steps,
                )
            )
        return tests

    def related_keys(self, endpoint: ApiEndpoint) -> list[str]:
        """Keys of the other endpoints called by this endpoint's workflow tests."""
        keys = []
        for _, roles in self._flows(endpoint):
            for _, member in roles:
                if member.key != endpoint.key and member.key not in keys:
                    keys.append(member.key)
        return keys

    def _flows(self, endpoint: ApiEndpoint) -> list[tuple[str, list[tuple[str, ApiEndpoint]]]]:
        if ITEM_PATH.match(endpoint.path):
            return []
        resource = self._resource(endpoint.path)
        flows = []
        if endpoint.method == "post" and "read" in resource:
            create_read = [("create", endpoint), ("read", resource["read"])]
            lifecycle = create_read + [(role, resource[role]) for role in ("update", "delete") if role in resource]
            if "delete" in resource:
                lifecycle.append(("verify-deleted", resource["read"]))
            if len(lifecycle) > len(create_read):
                flows.append(("crud", lifecycle))
            flows.append(("create-read", create_read))
        if endpoint.method == "get" and endpoint.params_in("query"):
            flows.append(("list-filter", [("list", endpoint), ("filter", endpoint)]))
        return flows

    def _resource(self, collection: str) -> dict[str, ApiEndpoint]:
        """Item-path endpoints under ``collection``, by role; the first endpoint wins a role."""
        resource: dict[str, ApiEndpoint] = {}
        for candidate in self.context.endpoints:
            match = ITEM_PATH.match(candidate.path)
            if match is None or match.group("collection") != collection:
                continue
            role = ITEM_ROLES.get(candidate.method)
            if role is not None:
                resource.setdefault(role, candidate)
        return resource

    def _steps(self, anchor: ApiEndpoint, roles: list[tuple[str, ApiEndpoint]]) -> list[FlowStep]:
        seed = self.context.endpoint_seed(anchor)
        name = anchor.path.strip("/").split("/")[-1] or "resource"
        steps = []
        for index, (role, endpoint) in enumerate(roles):
            match = ITEM_PATH.match(endpoint.path)
            uses = [match.group("param")] if match and index > 0 else []
            steps.append(
                FlowStep(
                    method=endpoint.method,
                    endpoint=endpoint.path,
                    description=_describe(role, name),
                    request=build_request(endpoint, seed + index, include_optional=role == "filter"),
                    expected_status=404 if role == "verify-deleted" else endpoint.success_status(),
                    auth=default_auth(endpoint),
                    capture=ID_FIELD if role == "create" else "",
                    uses=uses,
                )
            )
        return steps


def _describe(role: str, name: str) -> str:
    return {
        "create": f"create a new {name} item",
        "read": f"read the created {name} item",
        "update": f"update the {name} item",
        "delete": f"delete the {name} item",
        "verify-deleted": f"verify the {name} item is gone",
        "list": f"list {name}",
        "filter": f"list {name} with filters",
    }[role]
