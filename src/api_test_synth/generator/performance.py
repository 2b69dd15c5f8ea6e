"""Performance scenarios: load-profile descriptors rather than assertions."""

from api_test_synth.generator.base import GeneratorKind, ScenarioGenerator, build_request, default_auth
from api_test_synth.generator.testcase import PerformanceProfile, TestCase, TestType
from api_test_synth.parser.base import ApiEndpoint

PROFILES = {
    "load": dict(load_pattern="constant", virtual_users=10, duration="5m", ramp_up="30s", ramp_down="30s"),
    "stress": dict(load_pattern="ramping", virtual_users=50, duration="10m", ramp_up="2m", ramp_down="1m"),
    "spike": dict(load_pattern="spike", virtual_users=100, duration="2m", ramp_up="10s", ramp_down="10s"),
    "endurance": dict(load_pattern="constant", virtual_users=20, duration="30m", ramp_up="1m", ramp_down="1m"),
}

WRITE_METHODS = ("post", "put", "patch", "delete")


def thresholds_for(endpoint: ApiEndpoint, test_type: str) -> dict[str, float]:
    p95 = 1000.0 if endpoint.method in WRITE_METHODS else 500.0
    error_rate = 0.05 if test_type in ("stress", "spike") else 0.01
    if test_type in ("stress", "spike"):
        p95 *= 2
    return {"p95_ms": p95, "error_rate": error_rate}


class PerformanceGenerator(ScenarioGenerator):
    kind = GeneratorKind.PERFORMANCE

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        test_types = list(PROFILES) if self.context.generate_multiple_scenarios else ["load"]
        request = build_request(endpoint, self.context.endpoint_seed(endpoint))

        tests = []
        for test_type in test_types:
            profile = PerformanceProfile(
                test_type=test_type,
                thresholds=thresholds_for(endpoint, test_type),
                **PROFILES[test_type],
            )
            tests.append(
                self.make_test(
                    endpoint,
                    suffix=f"perf-{test_type}",
                    label=f"{test_type} test ({profile.virtual_users} VUs for {profile.duration})",
                    test_type=TestType.PERFORMANCE,
                    request=request,
                    status=endpoint.success_status(),
                    tags=["performance", test_type],
                    priority="low",
                    auth=default_auth(endpoint),
                    performance=profile,
                    stability="experimental",
                )
            )
        return tests
