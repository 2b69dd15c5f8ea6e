import pytest

from api_test_synth.errors import InvalidStrategyError
from api_test_synth.generator.organizer import (
    Strategy,
    organize,
    parse_strategy,
    recommend_strategy,
    resource_root,
    sanitize_file_name,
)
from api_test_synth.generator.testcase import ExpectedResponse, TestCase, TestMetadata, TestType


def _case(method: str, path: str, test_type: TestType = TestType.HAPPY_PATH, tags=None, suffix: str = "t") -> TestCase:
    return TestCase(
        id=f"{method}-{path.strip('/')}-{suffix}",
        name=f"{method.upper()} {path}",
        type=test_type,
        method=method,
        endpoint=path,
        expected_response=ExpectedResponse(status=200),
        metadata=TestMetadata(tags=[], endpoint_tags=tags or []),
    )


TESTS = [
    _case("get", "/pets", tags=["Pets"]),
    _case("post", "/pets", TestType.ERROR_CASE, tags=["Pets", "Admin"]),
    _case("get", "/users/{id}/orders", TestType.AUTH, tags=[]),
    _case("delete", "/", TestType.HAPPY_PATH, tags=["System Ops"]),
]


class TestOrganize:
    def test_by_tag_uses_first_tag(self):
        organized = organize(TESTS, "by-tag")
        assert list(organized.files) == ["pets.spec.py", "untagged.spec.py", "system-ops.spec.py"]
        assert len(organized.files["pets.spec.py"]) == 2
        assert organized.total_tests == 4

    def test_by_endpoint_uses_resource_root(self):
        organized = organize(TESTS, Strategy.BY_ENDPOINT)
        assert list(organized.files) == ["pets.spec.py", "users.spec.py", "root.spec.py"]

    def test_by_type(self):
        organized = organize(TESTS, "by-type")
        assert list(organized.files) == ["happy-path.spec.py", "error-case.spec.py", "auth.spec.py"]

    def test_by_method(self):
        organized = organize(TESTS, "by-method")
        assert list(organized.files) == ["get-tests.spec.py", "post-tests.spec.py", "delete-tests.spec.py"]

    def test_flat(self):
        organized = organize(TESTS, "flat")
        assert list(organized.files) == ["all-tests.spec.py"]
        assert organized.files["all-tests.spec.py"] == TESTS

    def test_every_test_in_exactly_one_file(self):
        for strategy in Strategy:
            organized = organize(TESTS, strategy)
            placed = [t.id for tests in organized.files.values() for t in tests]
            assert sorted(placed) == sorted(t.id for t in TESTS)

    def test_empty_input(self):
        organized = organize([], "by-tag")
        assert organized.files == {}
        assert organized.total_tests == 0

    def test_unknown_strategy(self):
        with pytest.raises(InvalidStrategyError, match="by-tag"):
            organize(TESTS, "by-color")

    def test_files_by_endpoint(self):
        organized = organize(TESTS, "by-type")
        mapping = organized.files_by_endpoint()
        assert mapping["GET /pets"] == ["happy-path.spec.py"]
        assert mapping["POST /pets"] == ["error-case.spec.py"]


class TestRecommendStrategy:
    def test_many_tags(self):
        tests = [_case("get", f"/r{i}", tags=[f"tag{i}"]) for i in range(5)]
        assert recommend_strategy(tests) == Strategy.BY_TAG

    def test_many_endpoints(self):
        tests = [_case("get", f"/r{i}") for i in range(10)]
        assert recommend_strategy(tests) == Strategy.BY_ENDPOINT

    def test_many_types(self):
        assert recommend_strategy(TESTS) == Strategy.BY_TYPE

    def test_default(self):
        assert recommend_strategy([]) == Strategy.BY_TAG


class TestNames:
    def test_resource_root(self):
        assert resource_root("/api/users/{id}/orders") == "api-users"
        assert resource_root("/{tenant}/items") == "root"
        assert resource_root("/") == "root"

    def test_sanitize_file_name(self):
        assert sanitize_file_name("User Management!") == "user-management"
        assert sanitize_file_name("***") == "untagged"

    def test_parse_strategy(self):
        assert parse_strategy("flat") == Strategy.FLAT
        with pytest.raises(InvalidStrategyError):
            parse_strategy("nope")
