"""Authentication scenarios derived from an endpoint's security requirements.

Each requirement group is tested as a whole: schemes combined in one group
(AND semantics) get a single combined-credential scenario. An empty group
among the alternatives (OR semantics) makes auth optional, so anonymous
requests are expected to succeed.
"""

import logging

from api_test_synth.generator.base import GeneratorKind, ScenarioGenerator, build_request
from api_test_synth.generator.testcase import TestAuth, TestCase, TestType, slugify
from api_test_synth.parser.base import ApiEndpoint

logger = logging.getLogger(__name__)


class AuthGenerator(ScenarioGenerator):
    kind = GeneratorKind.AUTH

    def generate_tests(self, endpoint: ApiEndpoint) -> list[TestCase]:
        if not endpoint.security:
            return []

        request = build_request(endpoint, self.context.endpoint_seed(endpoint))
        success = endpoint.success_codes() or [endpoint.success_status()]
        groups = _distinct_groups(endpoint.security)

        tests = []
        if endpoint.auth_optional:
            tests.append(
                self._auth_test(
                    endpoint, "auth-anonymous", "anonymous request is allowed", request,
                    success, TestAuth(credential="none"), ["no-credential", "optional-auth"], "high",
                )
            )
        else:
            tests.append(
                self._auth_test(
                    endpoint, "auth-no-credential", "request without credentials", request,
                    401, TestAuth(schemes=groups[0], credential="none"), ["no-credential"], "critical",
                )
            )

        for names in groups:
            missing = [n for n in names if n not in self.context.auth_schemes]
            if missing:
                logger.warning("%s references undeclared security schemes: %s", endpoint.key, ", ".join(missing))
            label = " + ".join(names)
            slug = slugify("-".join(names))
            tests.append(
                self._auth_test(
                    endpoint, f"auth-{slug}-valid", f"valid {label} credentials", request,
                    success, TestAuth(schemes=names, credential="valid"), ["valid-credential"], "critical",
                )
            )
            tests.append(
                self._auth_test(
                    endpoint, f"auth-{slug}-invalid", f"invalid {label} credentials", request,
                    401, TestAuth(schemes=names, credential="invalid"), ["invalid-credential"], "high",
                )
            )
            if self.context.test_expired_tokens and self._supports_expiry(names):
                tests.append(
                    self._auth_test(
                        endpoint, f"auth-{slug}-expired", f"expired {label} token", request,
                        401, TestAuth(schemes=names, credential="expired"), ["expired-token"], "medium",
                    )
                )
        return tests

    def _supports_expiry(self, names: list[str]) -> bool:
        schemes = [self.context.auth_schemes.get(n) for n in names]
        return any(s is not None and s.supports_expiry for s in schemes)

    def _auth_test(self, endpoint, suffix, label, request, status, auth, tags, priority) -> TestCase:
        return self.make_test(
            endpoint,
            suffix=suffix,
            label=label,
            test_type=TestType.AUTH,
            request=request,
            status=status,
            tags=["auth", "security", *tags],
            priority=priority,
            auth=auth,
        )


def _distinct_groups(security: list[dict[str, list[str]]]) -> list[list[str]]:
    groups = []
    seen = set()
    for group in security:
        if not group:
            continue
        ident = tuple(sorted(group))
        if ident in seen:
            continue
        seen.add(ident)
        groups.append(list(group))
    return groups
