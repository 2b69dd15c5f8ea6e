from api_test_synth.generator.testcase import (
    ExpectedResponse,
    TestAuth,
    TestCase,
    TestMetadata,
    TestRequest,
    TestType,
    finalize_tests,
    make_test_id,
    slugify,
)
from api_test_synth.parser.base import ApiEndpoint, AuthScheme, Param, RequestBody, Response


def _case(test_id: str, status: int = 200, query: dict | None = None) -> TestCase:
    return TestCase(
        id=test_id,
        name=test_id,
        type=TestType.HAPPY_PATH,
        method="get",
        endpoint="/pets",
        request=TestRequest(query_params=query or {}),
        expected_response=ExpectedResponse(status=status),
        metadata=TestMetadata(tags=["happy-path"]),
    )


class TestParam:
    def test_create_required_param(self):
        p = Param(name="id", location="path", required=True, schema={"type": "integer"})
        assert p.name == "id"
        assert p.required is True
        assert p.description == ""
        assert p.param_type == "integer"

    def test_param_type_defaults_to_string(self):
        p = Param(name="q", location="query")
        assert p.param_type == "string"


class TestApiEndpoint:
    def test_key_uses_uppercase_method(self):
        ep = ApiEndpoint(method="get", path="/api/users")
        assert ep.key == "GET /api/users"

    def test_success_status_is_lowest_2xx(self):
        ep = ApiEndpoint(
            method="post",
            path="/users",
            responses={"400": Response(), "202": Response(), "201": Response(), "default": Response()},
        )
        assert ep.status_codes() == [201, 202, 400]
        assert ep.success_status() == 201

    def test_success_status_defaults_to_200(self):
        ep = ApiEndpoint(method="get", path="/health", responses={"500": Response()})
        assert ep.success_status() == 200

    def test_auth_required_and_optional(self):
        required = ApiEndpoint(method="get", path="/a", security=[{"bearer": []}])
        optional = ApiEndpoint(method="get", path="/a", security=[{"bearer": []}, {}])
        public = ApiEndpoint(method="get", path="/a")
        assert required.auth_required and not required.auth_optional
        assert optional.auth_optional and not optional.auth_required
        assert not public.auth_required and not public.auth_optional

    def test_json_body_schema_prefers_json(self):
        body = RequestBody(
            content={
                "application/xml": {"type": "object"},
                "application/vnd.api+json": {"type": "object", "properties": {"a": {"type": "string"}}},
            }
        )
        ep = ApiEndpoint(method="post", path="/a", request_body=body)
        assert ep.json_body_schema()["properties"] == {"a": {"type": "string"}}

    def test_json_body_schema_none_for_form(self):
        body = RequestBody(content={"application/x-www-form-urlencoded": {"type": "object"}})
        ep = ApiEndpoint(method="post", path="/a", request_body=body)
        assert ep.json_body_schema() is None


class TestAuthScheme:
    def test_expiry_support(self):
        assert AuthScheme(name="b", type="http-bearer").supports_expiry
        assert not AuthScheme(name="k", type="apiKey").supports_expiry


class TestTestIds:
    def test_slugify(self):
        assert slugify("/api/users/{id}") == "api-users-id"

    def test_make_test_id(self):
        assert make_test_id("GET", "/pets/{id}", "happy-path") == "get-pets-id-happy-path"
        assert make_test_id("get", "/", "happy-path") == "get-root-happy-path"


class TestFinalizeTests:
    def test_duplicates_are_dropped(self):
        tests = finalize_tests([_case("a"), _case("a")])
        assert [t.id for t in tests] == ["a"]

    def test_colliding_ids_get_suffixes(self):
        tests = finalize_tests([_case("a", 200), _case("a", 201), _case("a", 202)])
        assert [t.id for t in tests] == ["a", "a-2", "a-3"]

    def test_suffix_does_not_collide_with_existing_id(self):
        tests = finalize_tests([_case("a", 200), _case("a-2", 200, {"x": 1}), _case("a", 201)])
        ids = [t.id for t in tests]
        assert len(ids) == len(set(ids))
        assert ids[:2] == ["a", "a-2"]

    def test_same_request_different_auth_is_kept(self):
        first = _case("a").model_copy(update={"auth": TestAuth(schemes=["b"], credential="none")})
        second = _case("a").model_copy(update={"auth": TestAuth(schemes=["b"], credential="invalid")})
        assert len(finalize_tests([first, second])) == 2
