"""Code emitter: renders organized test cases into a runnable pytest project.

Output is fully deterministic: the same organized tests and auth schemes
always render to the same file contents.
"""

import pprint
import re
from urllib.parse import quote

import yaml
from pydantic import BaseModel, Field

from api_test_synth.generator.organizer import OrganizedTests
from api_test_synth.generator.testcase import TestCase, TestType, ValidationRule
from api_test_synth.parser.base import AuthScheme

PERFORMANCE_FILE = "performance.yaml"
SUPPORT_FILES = ("conftest.py", "pytest.ini", "requirements.txt", PERFORMANCE_FILE)

MARKERS = {
    TestType.HAPPY_PATH: "happy_path",
    TestType.ERROR_CASE: "error_case",
    TestType.EDGE_CASE: "edge_case",
    TestType.AUTH: "auth",
    TestType.FLOW: "flow",
    TestType.PERFORMANCE: "performance",
    TestType.VALIDATION: "validation",
}


class GeneratedFile(BaseModel):
    file_name: str
    content: str
    tests: list[TestCase] = Field(default_factory=list)


class CodeGenerator:
    """Renders pytest + requests source for organized test cases."""

    def __init__(self, auth_schemes: dict[str, AuthScheme] | None = None, base_url: str = "http://localhost:8080"):
        self.auth_schemes = auth_schemes or {}
        self.base_url = base_url

    def generate(self, organized: OrganizedTests) -> list[GeneratedFile]:
        """Test files in organizer order, followed by the support files."""
        files = [
            GeneratedFile(file_name=name, content=self.render_file(name, tests), tests=tests)
            for name, tests in organized.files.items()
        ]
        files.append(GeneratedFile(file_name="conftest.py", content=self._render_conftest()))
        files.append(GeneratedFile(file_name="pytest.ini", content=self._render_pytest_ini()))
        files.append(GeneratedFile(file_name="requirements.txt", content=self._render_requirements()))

        perf_tests = [t for tests in organized.files.values() for t in tests if t.performance is not None]
        if perf_tests:
            files.append(GeneratedFile(file_name=PERFORMANCE_FILE, content=self._render_performance(perf_tests)))
        return files

    def render_file(self, file_name: str, tests: list[TestCase]) -> str:
        group = file_name.removesuffix(".spec.py")
        lines = [
            f'"""Generated API tests: {group} ({len(tests)} tests).',
            "",
            "Regenerate from the API specification instead of editing by hand.",
            '"""',
            "",
            "import pytest",
            "import requests",
            "",
            "TIMEOUT = 30",
        ]
        used_names: set[str] = set()
        for test in tests:
            lines += ["", ""]
            lines += self._render_test(test, _function_name(test, used_names))
        return "\n".join(lines) + "\n"

    def _render_test(self, test: TestCase, function_name: str) -> list[str]:
        lines = [f"@pytest.mark.{MARKERS[test.type]}"]
        lines.append(f"def {function_name}(base_url, credentials):")
        lines.append(f"    {_docstring(test)}")
        if test.steps:
            return lines + self._render_steps(test)

        request = test.request
        lines += _credential_lines(test.auth)
        lines += _request_lines(test.method, repr(_fill_path(test.endpoint, request.path_params)), request)
        lines += _status_lines(test.expected_response.status_codes())

        if test.performance is not None:
            p95 = test.performance.thresholds.get("p95_ms")
            if p95:
                lines.append(f"    assert response.elapsed.total_seconds() * 1000 <= {p95}")

        rules = test.expected_response.body_rules
        if rules:
            lines.append("    body = response.json()")
            for rule in rules:
                lines += ["    " + line for line in _render_rule(rule)]
        return lines

    def _render_steps(self, test: TestCase) -> list[str]:
        lines = []
        for step in test.steps:
            lines.append("")
            lines.append(f"    # {' '.join(step.description.split())}")
            static = {k: v for k, v in step.request.path_params.items() if k not in step.uses}
            url = repr(_fill_path(step.endpoint, static))
            for param in step.uses:
                url += f".replace({'{' + param + '}'!r}, str(resource_id))"
            lines += _credential_lines(step.auth)
            lines += _request_lines(step.method, url, step.request)
            lines += _status_lines([step.expected_status])
            if step.capture:
                lines.append(f"    resource_id = response.json()[{step.capture!r}]")
        return lines

    def _render_conftest(self) -> str:
        schemes = {}
        for name, scheme in self.auth_schemes.items():
            config = {"type": scheme.type}
            if scheme.type == "apiKey":
                config["in"] = scheme.location
                config["name"] = scheme.param_name
            schemes[name] = config

        return f'''"""Shared fixtures for the generated API tests.

Credentials are read from environment variables named after each scheme,
e.g. API_BEARERAUTH_TOKEN, API_BEARERAUTH_LIMITED_TOKEN,
API_BASICAUTH_USERNAME and API_BASICAUTH_PASSWORD.
"""

import base64
import os
import re
from types import SimpleNamespace

import pytest

SCHEMES = {_literal(schemes, 0)}


def _env(scheme, suffix, default=""):
    name = "API_" + re.sub(r"[^A-Z0-9]", "_", scheme.upper()) + "_" + suffix
    return os.getenv(name, default)


def _secret(scheme, credential):
    if credential == "valid":
        return _env(scheme, "TOKEN")
    if credential == "limited-scope":
        return _env(scheme, "LIMITED_TOKEN", "limited-scope-token")
    if credential == "expired":
        return _env(scheme, "EXPIRED_TOKEN", "expired-token")
    return "invalid-token"


def build_credentials(schemes, credential):
    creds = SimpleNamespace(headers={{}}, params={{}}, cookies={{}})
    if credential == "none":
        return creds
    for name in schemes:
        config = SCHEMES.get(name, {{"type": "http-bearer"}})
        if config["type"] == "http-basic":
            if credential == "valid":
                user, password = _env(name, "USERNAME"), _env(name, "PASSWORD")
            else:
                user, password = "invalid-user", "invalid-password"
            token = base64.b64encode(f"{{user}}:{{password}}".encode()).decode()
            creds.headers["Authorization"] = f"Basic {{token}}"
        elif config["type"] == "apiKey":
            target = {{"header": creds.headers, "query": creds.params, "cookie": creds.cookies}}[config["in"]]
            target[config["name"]] = _secret(name, credential)
        else:
            creds.headers["Authorization"] = f"Bearer {{_secret(name, credential)}}"
    return creds


@pytest.fixture
def base_url():
    return os.getenv("API_BASE_URL", {self.base_url!r}).rstrip("/")


@pytest.fixture
def credentials():
    return build_credentials
'''

    def _render_pytest_ini(self) -> str:
        lines = [
            "[pytest]",
            "python_files = *.spec.py",
            "addopts = --import-mode=importlib",
            "markers =",
        ]
        for test_type, marker in MARKERS.items():
            lines.append(f"    {marker}: {test_type.value} tests")
        return "\n".join(lines) + "\n"

    def _render_requirements(self) -> str:
        return "pytest\nrequests\n"

    def _render_performance(self, tests: list[TestCase]) -> str:
        scenarios = []
        for test in tests:
            profile = test.performance
            scenarios.append(
                {
                    "id": test.id,
                    "method": test.method.upper(),
                    "endpoint": test.endpoint,
                    "path": _fill_path(test.endpoint, test.request.path_params),
                    "test_type": profile.test_type,
                    "load_pattern": profile.load_pattern,
                    "virtual_users": profile.virtual_users,
                    "duration": profile.duration,
                    "ramp_up": profile.ramp_up,
                    "ramp_down": profile.ramp_down,
                    "thresholds": dict(profile.thresholds),
                }
            )
        return yaml.safe_dump({"scenarios": scenarios}, sort_keys=False, allow_unicode=True)


def _credential_lines(auth) -> list[str]:
    if auth is not None and auth.credential != "none":
        return [f"    creds = credentials({auth.schemes!r}, {auth.credential!r})"]
    return ["    creds = credentials([], 'none')"]


def _request_lines(method: str, url: str, request) -> list[str]:
    lines = [
        "    response = requests.request(",
        f"        {method.upper()!r},",
        f"        base_url + {url},",
        f"        params={{**{_literal(request.query_params, 8)}, **creds.params}},",
        f"        headers={{**{_literal(request.headers, 8)}, **creds.headers}},",
        f"        cookies={{**{_literal(request.cookies, 8)}, **creds.cookies}},",
    ]
    if request.body is not None:
        keyword = "json" if _is_json(request.body.content_type) else "data"
        lines.append(f"        {keyword}={_literal(request.body.data, 8)},")
        if keyword == "data":
            lines.append(f"        # content type: {request.body.content_type}")
    lines.append("        timeout=TIMEOUT,")
    lines.append("    )")
    return lines


def _status_lines(codes: list[int]) -> list[str]:
    if len(codes) == 1:
        return [f"    assert response.status_code == {codes[0]}, response.text"]
    return [f"    assert response.status_code in {tuple(codes)!r}, response.text"]


def _render_rule(rule: ValidationRule) -> list[str]:
    each = rule.path.startswith("$[*]")
    field = rule.path.split(".", 1)[1] if "." in rule.path else ""

    if rule.rule == "type":
        kind = "dict" if rule.value == "object" else "list"
        return [f"assert isinstance(body, {kind})"]
    if rule.rule == "required":
        if each:
            return [f"assert all({field!r} in item for item in body)"]
        return [f"assert {field!r} in body"]
    if rule.rule == "enum":
        allowed = _literal(rule.value, 4)
        if each:
            return [f"assert all(item[{field!r}] in {allowed} for item in body if {field!r} in item)"]
        return [f"if {field!r} in body:", f"    assert body[{field!r}] in {allowed}"]
    return []


def _function_name(test: TestCase, used: set[str]) -> str:
    base = "test_" + re.sub(r"[^a-zA-Z0-9]+", "_", test.id).strip("_").lower()
    name = base
    counter = 2
    while name in used:
        name = f"{base}_{counter}"
        counter += 1
    used.add(name)
    return name


def _docstring(test: TestCase) -> str:
    text = test.name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"""{text}"""'


def _fill_path(template: str, values: dict) -> str:
    def replace(match):
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return quote(str(values[name]), safe="")

    return re.sub(r"\{([^}]+)\}", replace, template)


def _literal(value, indent: int) -> str:
    text = pprint.pformat(value, width=100, sort_dicts=False)
    return text.replace("\n", "\n" + " " * indent)


def _is_json(content_type: str) -> bool:
    media = content_type.split(";")[0].strip().lower()
    return media == "application/json" or media.endswith("+json")
