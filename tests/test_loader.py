from pathlib import Path

import pytest

from api_test_synth.errors import SpecError
from api_test_synth.parser.loader import detect_format, load_spec, resolve_refs, validate_info

FIXTURES = Path(__file__).parent / "fixtures"


class TestDetectFormat:
    def test_openapi(self):
        assert detect_format({"openapi": "3.0.0"}) == "openapi"

    def test_swagger(self):
        assert detect_format({"swagger": "2.0"}) == "swagger"

    def test_unknown(self):
        with pytest.raises(SpecError):
            detect_format({"info": {}})


class TestValidateInfo:
    def test_title_and_version(self):
        assert validate_info({"info": {"title": "T", "version": 2}}) == ("T", "2")

    def test_missing_info(self):
        with pytest.raises(SpecError, match="info"):
            validate_info({"openapi": "3.0.0"})

    def test_missing_title(self):
        with pytest.raises(SpecError, match="info.title"):
            validate_info({"info": {"version": "1"}})

    def test_missing_version(self):
        with pytest.raises(SpecError, match="info.version"):
            validate_info({"info": {"title": "T"}})


class TestLoadSpec:
    def test_load_petstore_resolves_refs(self):
        doc = load_spec(FIXTURES / "petstore.yaml")
        schema = doc["paths"]["/pets/{id}"]["get"]["responses"]["200"]["content"]["application/json"]["schema"]
        assert "$ref" not in schema
        assert schema["required"] == ["id", "name"]

    def test_load_json(self, tmp_path):
        f = tmp_path / "api.json"
        f.write_text('{"openapi": "3.0.0", "info": {"title": "T", "version": "1"}, "paths": {}}')
        assert load_spec(f)["info"]["title"] == "T"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpecError, match="Cannot read"):
            load_spec(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        f = tmp_path / "bad.yaml"
        f.write_text("openapi: [unclosed\n")
        with pytest.raises(SpecError, match="Cannot parse"):
            load_spec(f)

    def test_not_a_mapping(self, tmp_path):
        f = tmp_path / "list.yaml"
        f.write_text("- a\n- b\n")
        with pytest.raises(SpecError):
            load_spec(f)


class TestResolveRefs:
    def test_nested_refs(self):
        doc = {
            "components": {
                "schemas": {
                    "A": {"type": "object", "properties": {"b": {"$ref": "#/components/schemas/B"}}},
                    "B": {"type": "string"},
                }
            },
            "root": {"$ref": "#/components/schemas/A"},
        }
        resolved = resolve_refs(doc)
        assert resolved["root"]["properties"]["b"] == {"type": "string"}

    def test_cyclic_ref_becomes_empty(self):
        doc = {
            "components": {
                "schemas": {
                    "Node": {"type": "object", "properties": {"next": {"$ref": "#/components/schemas/Node"}}},
                }
            },
            "root": {"$ref": "#/components/schemas/Node"},
        }
        resolved = resolve_refs(doc)
        assert resolved["root"]["properties"]["next"] == {}

    def test_unresolvable_ref(self):
        resolved = resolve_refs({"root": {"$ref": "#/missing/thing"}})
        assert resolved["root"] == {}

    def test_original_untouched(self):
        doc = {"defs": {"A": {"type": "string"}}, "root": {"$ref": "#/defs/A"}}
        resolve_refs(doc)
        assert doc["root"] == {"$ref": "#/defs/A"}
