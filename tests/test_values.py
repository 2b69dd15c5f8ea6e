import re

from api_test_synth.synth.values import (
    DEFAULT_LARGE_STRING,
    INVALID_FORMAT_VALUES,
    OUT_OF_ENUM,
    PAYLOADS,
    Mode,
    first_required,
    has_constraints,
    payload_kinds,
    resolve,
    synthesize,
)

USER = {
    "type": "object",
    "required": ["email", "age"],
    "properties": {
        "nickname": {"type": "string", "maxLength": 20},
        "email": {"type": "string", "format": "email"},
        "age": {"type": "integer", "minimum": 18, "maximum": 120},
    },
}


class TestRealistic:
    def test_deterministic_for_same_seed(self):
        assert synthesize(USER, Mode.REALISTIC, 7) == synthesize(USER, Mode.REALISTIC, 7)

    def test_object_has_all_properties(self):
        value = synthesize(USER, Mode.REALISTIC, 1)
        assert set(value) == {"nickname", "email", "age"}
        assert "@" in value["email"]
        assert 18 <= value["age"] <= 120
        assert len(value["nickname"]) <= 20

    def test_formats(self):
        assert re.fullmatch(r"[0-9a-f-]{36}", synthesize({"type": "string", "format": "uuid"}, seed=3))
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", synthesize({"type": "string", "format": "date"}, seed=3))
        assert synthesize({"type": "string", "format": "date-time"}, seed=3).endswith("Z")

    def test_enum_returns_first_value(self):
        assert synthesize({"type": "string", "enum": ["b", "a"]}) == "b"

    def test_string_length_bounds(self):
        value = synthesize({"type": "string", "minLength": 30, "maxLength": 40}, seed=5)
        assert 30 <= len(value) <= 40

    def test_exclusive_bounds(self):
        schema = {"type": "integer", "minimum": 1, "maximum": 3, "exclusiveMinimum": True, "exclusiveMaximum": True}
        for seed in range(10):
            assert synthesize(schema, seed=seed) == 2

    def test_multiple_of(self):
        for seed in range(10):
            assert synthesize({"type": "integer", "minimum": 1, "maximum": 100, "multipleOf": 5}, seed=seed) % 5 == 0

    def test_array_honours_min_items(self):
        value = synthesize({"type": "array", "minItems": 3, "items": {"type": "integer"}}, seed=1)
        assert len(value) == 3
        assert all(isinstance(v, int) for v in value)

    def test_empty_schema_is_empty_object(self):
        assert synthesize({}) == {}
        assert synthesize(None) == {}

    def test_nullable_type_list(self):
        assert isinstance(synthesize({"type": ["null", "integer"], "minimum": 5, "maximum": 5}), int)

    def test_deep_nesting_is_cut(self):
        schema = {"type": "object", "properties": {}}
        node = schema
        for _ in range(10):
            child = {"type": "object", "properties": {}}
            node["properties"]["child"] = child
            node = child
        node["properties"]["leaf"] = {"type": "string"}
        value = synthesize(schema, seed=1)
        depth = 0
        while isinstance(value, dict) and "child" in value:
            value = value["child"]
            depth += 1
        assert depth <= 7


class TestBoundaries:
    def test_numeric_modes(self):
        schema = {"type": "integer", "minimum": 18, "maximum": 120}
        assert synthesize(schema, Mode.BOUNDARY_MIN) == 18
        assert synthesize(schema, Mode.BOUNDARY_MAX) == 120
        assert synthesize(schema, Mode.BELOW_MIN) == 17
        assert synthesize(schema, Mode.ABOVE_MAX) == 121

    def test_string_modes(self):
        schema = {"type": "string", "minLength": 3, "maxLength": 5}
        assert synthesize(schema, Mode.BOUNDARY_MIN) == "aaa"
        assert synthesize(schema, Mode.BELOW_MIN) == "aa"
        assert synthesize(schema, Mode.BOUNDARY_MAX) == "aaaaa"
        assert synthesize(schema, Mode.ABOVE_MAX) == "aaaaaa"

    def test_array_modes(self):
        schema = {"type": "array", "minItems": 2, "maxItems": 4, "items": {"type": "integer"}}
        assert len(synthesize(schema, Mode.BELOW_MIN)) == 1
        assert len(synthesize(schema, Mode.ABOVE_MAX)) == 5

    def test_large(self):
        assert len(synthesize({"type": "string"}, Mode.LARGE)) == DEFAULT_LARGE_STRING
        assert len(synthesize({"type": "string", "maxLength": 10}, Mode.LARGE)) == 100


class TestInvalidValues:
    def test_invalid_type_targets_first_required_field(self):
        value = synthesize(USER, Mode.INVALID_TYPE, 1)
        assert value["email"] == 12345
        assert isinstance(value["age"], int)
        assert isinstance(value["nickname"], str)

    def test_missing_required_omits_first_required_field(self):
        value = synthesize(USER, Mode.MISSING_REQUIRED, 1)
        assert "email" not in value
        assert "age" in value

    def test_missing_required_without_required_fields_keeps_object(self):
        schema = {"type": "object", "properties": {"nickname": {"type": "string"}, "bio": {"type": "string"}}}
        value = synthesize(schema, Mode.MISSING_REQUIRED, 1)
        assert set(value) == {"nickname", "bio"}

    def test_invalid_type_without_required_fields_targets_first_property(self):
        schema = {"type": "object", "properties": {"nickname": {"type": "string"}, "bio": {"type": "string"}}}
        value = synthesize(schema, Mode.INVALID_TYPE, 1)
        assert not isinstance(value["nickname"], str)
        assert isinstance(value["bio"], str)

    def test_invalid_format(self):
        assert synthesize({"type": "string", "format": "email"}, Mode.INVALID_FORMAT) == INVALID_FORMAT_VALUES["email"]
        assert synthesize({"type": "integer", "format": "int32"}, Mode.INVALID_FORMAT) == 2**31

    def test_out_of_enum(self):
        assert synthesize({"type": "string", "enum": ["a"]}, Mode.INVALID_FORMAT) == OUT_OF_ENUM
        assert synthesize({"type": "integer", "enum": [1, 5]}, Mode.ABOVE_MAX) == 6


class TestMalicious:
    def test_single_payload_mode(self):
        assert synthesize({"type": "string"}, Mode.MALICIOUS_XSS) == PAYLOADS["xss"]
        assert synthesize({"type": "string"}, Mode.MALICIOUS_NULL_BYTE) == "abc\x00def"

    def test_mixed_rotates_payloads(self):
        schema = {"type": "object", "properties": {k: {"type": "string"} for k in ("a", "b", "c", "d")}}
        value = synthesize(schema, Mode.MALICIOUS_MIXED)
        assert payload_kinds(value) == ["xss", "sqli", "unicode", "null-byte"]

    def test_non_string_fields_stay_typed(self):
        schema = {"type": "object", "properties": {"n": {"type": "integer", "minimum": 1, "maximum": 1}}}
        assert synthesize(schema, Mode.MALICIOUS_MIXED) == {"n": 1}


class TestSchemaHelpers:
    def test_resolve_all_of(self):
        schema = {
            "allOf": [
                {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]},
                {"properties": {"b": {"type": "integer"}}, "required": ["b"]},
            ]
        }
        resolved = resolve(schema)
        assert set(resolved["properties"]) == {"a", "b"}
        assert resolved["required"] == ["a", "b"]

    def test_resolve_one_of_takes_first(self):
        resolved = resolve({"oneOf": [{"type": "string"}, {"type": "integer"}]})
        assert resolved["type"] == "string"

    def test_first_required_uses_declared_order(self):
        assert first_required(USER) == "email"
        assert first_required({"type": "object", "properties": {"a": {}}}) is None
        assert first_required(None) is None

    def test_has_constraints(self):
        assert has_constraints(USER)
        assert not has_constraints({"type": "object", "properties": {"a": {"type": "string"}}})
        assert has_constraints({"type": "array", "items": {"type": "string", "pattern": "^a"}})
