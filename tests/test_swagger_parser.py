from pathlib import Path

from api_test_synth.errors import Issue
from api_test_synth.parser.loader import load_spec
from api_test_synth.parser.swagger import extract_auth_schemes, extract_endpoints

FIXTURES = Path(__file__).parent / "fixtures"


def _find(endpoints, key):
    return [e for e in endpoints if e.key == key][0]


def _doc(paths: dict, **extra) -> dict:
    return {"openapi": "3.0.0", "info": {"title": "T", "version": "1"}, "paths": paths, **extra}


class TestOpenApiExtraction:
    def test_petstore_endpoint_order(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "petstore.yaml"))
        assert [e.key for e in endpoints] == ["GET /pets", "POST /pets", "GET /pets/{id}", "POST /users"]

    def test_get_pets(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "petstore.yaml"))
        get_pets = _find(endpoints, "GET /pets")
        assert get_pets.summary == "List all pets"
        assert get_pets.operation_id == "listPets"
        assert len(get_pets.parameters) == 1
        assert get_pets.parameters[0].name == "limit"
        assert get_pets.parameters[0].required is False
        assert get_pets.security == []
        assert get_pets.tags == ["pets"]
        assert get_pets.responses["200"].schema_["type"] == "array"

    def test_post_pets_has_body_and_security(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "petstore.yaml"))
        post_pets = _find(endpoints, "POST /pets")
        assert post_pets.request_body.required is True
        assert "name" in post_pets.json_body_schema()["properties"]
        assert post_pets.security == [{"bearerAuth": []}]
        assert post_pets.auth_required is True

    def test_path_param_is_required(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "petstore.yaml"))
        get_pet = _find(endpoints, "GET /pets/{id}")
        param = get_pet.params_in("path")[0]
        assert param.name == "id"
        assert param.required is True
        assert param.param_type == "integer"

    def test_methods_in_canonical_order(self):
        item = {m: {"responses": {"200": {"description": "ok"}}} for m in ("delete", "options", "get", "post", "head")}
        endpoints = extract_endpoints(_doc({"/a": item}))
        assert [e.method for e in endpoints] == ["get", "post", "delete", "options", "head"]

    def test_uppercase_method_keys(self):
        endpoints = extract_endpoints(_doc({"/a": {"GET": {"responses": {"200": {"description": "ok"}}}}}))
        assert endpoints[0].key == "GET /a"

    def test_operation_params_override_path_params(self):
        item = {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}},
                {"name": "trace", "in": "header", "schema": {"type": "string"}},
            ],
            "get": {
                "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}],
                "responses": {"200": {"description": "ok"}},
            },
        }
        endpoint = extract_endpoints(_doc({"/a/{id}": item}))[0]
        assert [(p.name, p.location) for p in endpoint.parameters] == [("trace", "header"), ("id", "path")]
        assert endpoint.params_in("path")[0].param_type == "integer"

    def test_document_security_is_inherited(self):
        doc = _doc({"/a": {"get": {"responses": {"200": {"description": "ok"}}}}}, security=[{"key": []}])
        assert extract_endpoints(doc)[0].security == [{"key": []}]

    def test_operation_can_opt_out_of_security(self):
        doc = _doc(
            {"/a": {"get": {"security": [], "responses": {"200": {"description": "ok"}}}}},
            security=[{"key": []}],
        )
        assert extract_endpoints(doc)[0].security == []


class TestMalformedInput:
    def test_missing_responses_recorded(self):
        issues: list[Issue] = []
        endpoints = extract_endpoints(_doc({"/a": {"get": {"summary": "no responses"}}}), issues)
        assert endpoints[0].responses == {}
        assert endpoints[0].success_status() == 200
        assert issues[0].kind == "extraction"
        assert issues[0].endpoint == "GET /a"

    def test_malformed_parameter_skipped(self):
        issues: list[Issue] = []
        op = {"parameters": [{"in": "query"}, {"name": "ok", "in": "query"}], "responses": {"200": {"description": "ok"}}}
        endpoints = extract_endpoints(_doc({"/a": {"get": op}}), issues)
        assert [p.name for p in endpoints[0].parameters] == ["ok"]
        assert len(issues) == 1

    def test_non_mapping_path_item(self):
        issues: list[Issue] = []
        endpoints = extract_endpoints(_doc({"/a": "nope", "/b": {"get": {"responses": {"200": {}}}}}), issues)
        assert [e.key for e in endpoints] == ["GET /b"]
        assert issues[0].endpoint == "/a"

    def test_no_paths(self):
        assert extract_endpoints({"openapi": "3.0.0", "info": {"title": "T", "version": "1"}}) == []

    def test_scalar_fields_coerced_to_text(self):
        issues: list[Issue] = []
        op = {"operationId": 123, "summary": 2024, "tags": [7], "responses": {"200": {"description": 1}}}
        endpoint = extract_endpoints(_doc({"/a": {"get": op}}), issues)[0]
        assert endpoint.operation_id == "123"
        assert endpoint.summary == "2024"
        assert endpoint.tags == ["7"]
        assert endpoint.responses["200"].description == "1"
        assert issues == []

    def test_non_mapping_parameter_schema_defaulted(self):
        issues: list[Issue] = []
        op = {"parameters": [{"name": "limit", "in": "query", "schema": "integer"}], "responses": {"200": {}}}
        endpoint = extract_endpoints(_doc({"/a": {"get": op}}), issues)[0]
        assert endpoint.parameters[0].schema_ == {}
        assert [i.kind for i in issues] == ["extraction"]
        assert "limit" in issues[0].message

    def test_non_mapping_schemas_in_bodies_and_responses(self):
        issues: list[Issue] = []
        op = {
            "requestBody": {"content": {"application/json": {"schema": "Pet"}}},
            "responses": {"200": {"content": {"application/json": {"schema": ["Pet"]}}}},
        }
        endpoint = extract_endpoints(_doc({"/a": {"post": op}}), issues)[0]
        assert endpoint.request_body.content == {"application/json": {}}
        assert endpoint.responses["200"].schema_ is None
        assert len(issues) == 1

    def test_scalar_scopes_and_names(self):
        op = {"responses": {"200": {}}, "security": [{"oauth": [1, "read"]}]}
        endpoint = extract_endpoints(_doc({"/a": {"get": op}}))[0]
        assert endpoint.security == [{"oauth": ["1", "read"]}]


class TestSwagger2Extraction:
    def test_endpoints(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "swagger2.yaml"))
        assert [e.key for e in endpoints] == ["GET /orders", "POST /orders", "POST /orders/{orderId}/notes"]

    def test_inline_param_schema(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "swagger2.yaml"))
        page = _find(endpoints, "GET /orders").parameters[0]
        assert page.schema_ == {"type": "integer", "minimum": 1}

    def test_body_parameter_becomes_request_body(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "swagger2.yaml"))
        post = _find(endpoints, "POST /orders")
        assert post.parameters == []
        assert post.request_body.required is True
        assert post.json_body_schema()["required"] == ["item"]

    def test_form_data_becomes_request_body(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "swagger2.yaml"))
        notes = _find(endpoints, "POST /orders/{orderId}/notes")
        content_type, schema = notes.request_body.preferred()
        assert content_type == "application/x-www-form-urlencoded"
        assert schema["properties"]["text"] == {"type": "string"}
        assert [p.name for p in notes.parameters] == ["orderId"]
        assert notes.security == [{"legacyOAuth": ["read"]}]

    def test_response_schema(self):
        endpoints = extract_endpoints(load_spec(FIXTURES / "swagger2.yaml"))
        assert _find(endpoints, "GET /orders").responses["200"].schema_["type"] == "array"


class TestAuthSchemes:
    def test_openapi_bearer(self):
        schemes = extract_auth_schemes(load_spec(FIXTURES / "petstore.yaml"))
        assert schemes["bearerAuth"].type == "http-bearer"
        assert schemes["bearerAuth"].bearer_format == "JWT"

    def test_swagger2_schemes(self):
        schemes = extract_auth_schemes(load_spec(FIXTURES / "swagger2.yaml"))
        assert schemes["apiKey"].type == "apiKey"
        assert schemes["apiKey"].location == "header"
        assert schemes["apiKey"].param_name == "X-API-Key"
        assert schemes["legacyOAuth"].type == "oauth2"
        assert schemes["legacyOAuth"].flows["password"]["tokenUrl"] == "http://localhost/token"

    def test_basic_and_openid(self):
        doc = _doc(
            {},
            components={
                "securitySchemes": {
                    "basic": {"type": "http", "scheme": "basic"},
                    "oidc": {"type": "openIdConnect", "openIdConnectUrl": "http://id/.well-known"},
                    "digest": {"type": "http", "scheme": "digest"},
                }
            },
        )
        schemes = extract_auth_schemes(doc)
        assert schemes["basic"].type == "http-basic"
        assert schemes["oidc"].openid_connect_url == "http://id/.well-known"
        assert "digest" not in schemes
