"""Request body synthesis on top of the value synthesizer."""

import copy
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

from .values import MAX_DEPTH, Mode, merge_all_of, resolve, schema_type, synthesize


class Variant(str, Enum):
    VALID = "valid"
    MISSING_REQUIRED = "missing-required"
    WRONG_TYPE = "wrong-type"
    INVALID_FORMAT = "invalid-format"
    BOUNDARY_MIN = "boundary-min"
    BOUNDARY_MAX = "boundary-max"
    BELOW_MIN = "below-min"
    ABOVE_MAX = "above-max"
    EMPTY = "empty"
    LARGE = "large"
    MALICIOUS_XSS = "malicious-xss"
    MALICIOUS_SQLI = "malicious-sqli"
    MALICIOUS_UNICODE = "malicious-unicode"
    MALICIOUS_NULL_BYTE = "malicious-null-byte"
    MALICIOUS_MIXED = "malicious-mixed"
    WRONG_VARIANT = "wrong-variant"


_MODES = {
    Variant.VALID: Mode.REALISTIC,
    Variant.MISSING_REQUIRED: Mode.MISSING_REQUIRED,
    Variant.WRONG_TYPE: Mode.INVALID_TYPE,
    Variant.INVALID_FORMAT: Mode.INVALID_FORMAT,
    Variant.BOUNDARY_MIN: Mode.BOUNDARY_MIN,
    Variant.BOUNDARY_MAX: Mode.BOUNDARY_MAX,
    Variant.BELOW_MIN: Mode.BELOW_MIN,
    Variant.ABOVE_MAX: Mode.ABOVE_MAX,
    Variant.LARGE: Mode.LARGE,
    Variant.MALICIOUS_XSS: Mode.MALICIOUS_XSS,
    Variant.MALICIOUS_SQLI: Mode.MALICIOUS_SQLI,
    Variant.MALICIOUS_UNICODE: Mode.MALICIOUS_UNICODE,
    Variant.MALICIOUS_NULL_BYTE: Mode.MALICIOUS_NULL_BYTE,
    Variant.MALICIOUS_MIXED: Mode.MALICIOUS_MIXED,
}


class GeneratedBody(BaseModel):
    content_type: str
    data: Any = None
    generated: bool = True


def build_body(
    schema: dict | None,
    content_type: str = "application/json",
    variant: Variant | str = Variant.VALID,
    seed: int = 0,
) -> GeneratedBody:
    """Build a request payload for ``schema``.

    Only JSON media types are synthesized; anything else gets a minimal
    placeholder.
    """
    variant = Variant(variant)
    if not _is_json(content_type):
        placeholder = "" if content_type.startswith("text/") else {}
        return GeneratedBody(content_type=content_type, data=placeholder)

    schema = schema or {}
    if variant == Variant.EMPTY:
        return GeneratedBody(content_type=content_type, data=_empty_of(schema))
    if variant == Variant.WRONG_VARIANT:
        return GeneratedBody(content_type=content_type, data=_wrong_variant(schema, seed))
    return GeneratedBody(content_type=content_type, data=synthesize(schema, _MODES[variant], seed))


def _wrong_variant(schema: dict, seed: int):
    """Merge the first two composition members so no single member matches."""
    for keyword in ("oneOf", "anyOf"):
        members = schema.get(keyword) or []
        if len(members) >= 2:
            base = {k: v for k, v in schema.items() if k not in ("oneOf", "anyOf", "discriminator")}
            mixed = merge_all_of([base, resolve(members[0]), resolve(members[1])])
            return synthesize(mixed, Mode.REALISTIC, seed)
    return synthesize(schema, Mode.INVALID_TYPE, seed)


def _empty_of(schema: dict):
    kind = schema_type(resolve(schema))
    if kind == "array":
        return []
    if kind == "string":
        return ""
    return {}


def _is_json(content_type: str) -> bool:
    media = content_type.split(";")[0].strip().lower()
    return media == "application/json" or media.endswith("+json")


def find_field(
    schema: dict | None,
    predicate: Callable[[dict, bool], bool],
    _prefix: tuple = (),
    _depth: int = 0,
) -> tuple[tuple, dict] | None:
    """Depth-first search, in declared order, for the first object property
    whose schema satisfies ``predicate(schema, required)``.

    Returns (path, property_schema) or None.
    """
    if not schema or _depth > MAX_DEPTH:
        return None
    schema = resolve(schema)
    if schema_type(schema) != "object":
        return None
    required = set(schema.get("required") or [])
    for name, prop in (schema.get("properties") or {}).items():
        prop = resolve(prop or {})
        path = _prefix + (name,)
        if predicate(prop, name in required):
            return path, prop
        nested = find_field(prop, predicate, path, _depth + 1)
        if nested:
            return nested
    return None


def set_field(data, path: tuple, value):
    """Return a copy of ``data`` with the value at ``path`` replaced."""
    result = copy.deepcopy(data)
    node = result
    for key in path[:-1]:
        if not isinstance(node, dict):
            return result
        node = node.setdefault(key, {})
    if isinstance(node, dict):
        node[path[-1]] = value
    return result


def remove_field(data, path: tuple):
    """Return a copy of ``data`` without the value at ``path``."""
    result = copy.deepcopy(data)
    node = result
    for key in path[:-1]:
        if not isinstance(node, dict) or key not in node:
            return result
        node = node[key]
    if isinstance(node, dict):
        node.pop(path[-1], None)
    return result
