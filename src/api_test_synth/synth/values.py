"""Schema value synthesizer.

``synthesize(schema, mode, seed)`` turns a JSON-schema node into a concrete
value. Realistic values come from Faker; the instance is re-seeded on every
call, so the same (schema, mode, seed) always yields the same value.
"""

import math
import threading
from datetime import datetime
from enum import Enum

from faker import Faker

MAX_DEPTH = 6

DEFAULT_LARGE_STRING = 10_000
DEFAULT_LARGE_ARRAY = 100

PAYLOADS = {
    "xss": "<script>alert(1)</script>",
    "sqli": "' OR 1=1; DROP TABLE x; --",
    "unicode": "名前 \u202eevil\u202c \U0001F680 Ñoño",
    "null-byte": "abc\x00def",
}

INVALID_FORMAT_VALUES = {
    "email": "not-an-email",
    "uuid": "not-a-uuid",
    "date-time": "not-a-date-time",
    "date": "2024-13-45",
    "time": "25:61:00",
    "uri": "not a uri",
    "url": "not a url",
    "hostname": "-invalid-.host",
    "ipv4": "999.999.999.999",
    "ipv6": "not:an:ipv6",
    "byte": "!!!not-base64!!!",
}

OUT_OF_ENUM = "__not_in_enum__"

_RANGE_START = datetime(2020, 1, 1)
_RANGE_END = datetime(2025, 12, 31)


class Mode(str, Enum):
    REALISTIC = "realistic"
    BOUNDARY_MIN = "boundary-min"
    BOUNDARY_MAX = "boundary-max"
    BELOW_MIN = "below-min"
    ABOVE_MAX = "above-max"
    INVALID_TYPE = "invalid-type"
    INVALID_FORMAT = "invalid-format"
    MISSING_REQUIRED = "missing-required"
    EMPTY = "empty"
    LARGE = "large"
    MALICIOUS_XSS = "malicious-xss"
    MALICIOUS_SQLI = "malicious-sqli"
    MALICIOUS_UNICODE = "malicious-unicode"
    MALICIOUS_NULL_BYTE = "malicious-null-byte"
    MALICIOUS_MIXED = "malicious-mixed"

    @property
    def is_malicious(self) -> bool:
        return self.value.startswith("malicious-")

    @property
    def targets_one_field(self) -> bool:
        """Modes that corrupt exactly one property of an object."""
        return self in _TARGETED


_TARGETED = {Mode.INVALID_TYPE, Mode.INVALID_FORMAT, Mode.MISSING_REQUIRED, Mode.EMPTY}
_MIXED_ORDER = ("xss", "sqli", "unicode", "null-byte")

_local = threading.local()


def _faker(seed: int) -> Faker:
    fake = getattr(_local, "faker", None)
    if fake is None:
        fake = Faker()
        _local.faker = fake
    fake.seed_instance(seed)
    return fake


def synthesize(schema: dict | None, mode: Mode | str = Mode.REALISTIC, seed: int = 0, field_name: str = ""):
    """Produce a value for ``schema`` in the given mode.

    An empty or missing schema yields an empty object.
    """
    walk = _Walk(_faker(seed), Mode(mode))
    return walk.value(schema or {}, field_name, 0)


def payload_kinds(data) -> list[str]:
    """Payload kinds present anywhere in ``data``, in canonical order."""
    found = set()

    def visit(node):
        if isinstance(node, dict):
            for v in node.values():
                visit(v)
        elif isinstance(node, list):
            for v in node:
                visit(v)
        elif isinstance(node, str):
            found.update(kind for kind, payload in PAYLOADS.items() if payload == node)

    visit(data)
    return [kind for kind in _MIXED_ORDER if kind in found]


def resolve(schema: dict, choice: int = 0) -> dict:
    """Collapse composition keywords into a single schema.

    ``allOf`` members are merged; for ``oneOf``/``anyOf`` member ``choice``
    (clamped to the available members) is merged with the sibling keys.
    """
    if not isinstance(schema, dict):
        return {}
    if "allOf" in schema:
        base = {k: v for k, v in schema.items() if k != "allOf"}
        return merge_all_of([base] + [resolve(m) for m in schema["allOf"] or []])
    for keyword in ("oneOf", "anyOf"):
        members = schema.get(keyword)
        if members:
            base = {k: v for k, v in schema.items() if k not in ("oneOf", "anyOf", "discriminator")}
            member = resolve(members[min(choice, len(members) - 1)])
            return merge_all_of([base, member])
    return schema


def merge_all_of(schemas: list[dict]) -> dict:
    merged: dict = {}
    properties: dict = {}
    required: list[str] = []
    for s in schemas:
        if not isinstance(s, dict):
            continue
        for key, value in s.items():
            if key == "properties":
                properties.update(value or {})
            elif key == "required":
                required += [r for r in value or [] if r not in required]
            else:
                merged[key] = value
    if properties:
        merged["properties"] = properties
        merged.setdefault("type", "object")
    if required:
        merged["required"] = required
    return merged


def first_required(schema: dict | None) -> str | None:
    """First required property of an object schema, in declared order."""
    schema = resolve(schema or {})
    required = set(schema.get("required") or [])
    return next((name for name in schema.get("properties") or {} if name in required), None)


def schema_type(schema: dict) -> str | None:
    kind = schema.get("type")
    if isinstance(kind, list):
        kind = next((k for k in kind if k != "null"), "null")
    if kind:
        return kind
    if "properties" in schema:
        return "object"
    if "items" in schema:
        return "array"
    if schema.get("enum"):
        first = schema["enum"][0]
        if isinstance(first, bool):
            return "boolean"
        if isinstance(first, int):
            return "integer"
        if isinstance(first, float):
            return "number"
        return "string"
    return None


def has_constraints(schema: dict | None, depth: int = 0) -> bool:
    """True if the schema carries validation beyond bare typing anywhere."""
    if not schema or depth > MAX_DEPTH:
        return False
    schema = resolve(schema)
    if any(k in schema for k in CONSTRAINT_KEYS):
        return True
    for prop in (schema.get("properties") or {}).values():
        if has_constraints(prop, depth + 1):
            return True
    return has_constraints(schema.get("items"), depth + 1)


CONSTRAINT_KEYS = (
    "format", "enum", "pattern", "minimum", "maximum", "exclusiveMinimum",
    "exclusiveMaximum", "multipleOf", "minLength", "maxLength", "minItems", "maxItems",
)


class _Walk:
    def __init__(self, fake: Faker, mode: Mode):
        self.fake = fake
        self.mode = mode
        self.rng = fake.random
        self.string_count = 0

    def value(self, schema: dict, name: str, depth: int, mode: Mode | None = None):
        mode = mode or self.mode
        schema = resolve(schema)
        if depth > MAX_DEPTH:
            return _placeholder(schema_type(schema))

        kind = schema_type(schema)
        if kind is None:
            return {}
        if kind == "null":
            return "not-null" if mode == Mode.INVALID_TYPE else None
        if schema.get("enum") and kind != "object":
            return self.enum(schema, kind, mode)
        if kind == "string":
            return self.string(schema, name, mode)
        if kind in ("integer", "number"):
            return self.number(schema, kind, mode)
        if kind == "boolean":
            return self.boolean(mode)
        if kind == "array":
            return self.array(schema, name, depth, mode)
        if kind == "object":
            return self.object(schema, depth, mode)
        return {}

    # -- leaves --------------------------------------------------------

    def enum(self, schema: dict, kind: str, mode: Mode):
        values = schema["enum"]
        if mode == Mode.INVALID_TYPE:
            return _wrong_type(kind)
        if mode in (Mode.INVALID_FORMAT, Mode.BELOW_MIN, Mode.ABOVE_MAX):
            if kind in ("integer", "number"):
                numeric = [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]
                return (max(numeric) + 1) if numeric else OUT_OF_ENUM
            candidate = OUT_OF_ENUM
            while candidate in values:
                candidate += "_"
            return candidate
        if mode == Mode.EMPTY and kind == "string":
            return ""
        if mode.is_malicious and kind == "string":
            return self.payload(mode)
        return values[0]

    def string(self, schema: dict, name: str, mode: Mode):
        fmt = schema.get("format", "")
        min_len = schema.get("minLength")
        max_len = schema.get("maxLength")

        if mode.is_malicious:
            return self.payload(mode)
        if mode == Mode.INVALID_TYPE:
            return 12345
        if mode == Mode.INVALID_FORMAT:
            if fmt in INVALID_FORMAT_VALUES:
                return INVALID_FORMAT_VALUES[fmt]
            if "pattern" in schema:
                return "!@#$%^&*()"
            return 12345
        if mode == Mode.EMPTY:
            return ""
        if mode == Mode.LARGE:
            return "a" * (max_len * 10 if max_len else DEFAULT_LARGE_STRING)
        if mode == Mode.BOUNDARY_MIN and min_len is not None:
            return "a" * min_len
        if mode == Mode.BELOW_MIN and min_len:
            return "a" * (min_len - 1)
        if mode == Mode.BOUNDARY_MAX and max_len is not None:
            return "a" * max_len
        if mode == Mode.ABOVE_MAX and max_len is not None:
            return "a" * (max_len + 1)
        return self.realistic_string(fmt, name, min_len, max_len)

    def realistic_string(self, fmt: str, name: str, min_len: int | None, max_len: int | None) -> str:
        fake = self.fake
        if fmt == "email":
            return fake.email()
        if fmt == "uuid":
            return str(fake.uuid4())
        if fmt == "date-time":
            return fake.date_time_between(start_date=_RANGE_START, end_date=_RANGE_END).strftime("%Y-%m-%dT%H:%M:%SZ")
        if fmt == "date":
            return fake.date_between(start_date=_RANGE_START.date(), end_date=_RANGE_END.date()).isoformat()
        if fmt == "time":
            return fake.date_time_between(start_date=_RANGE_START, end_date=_RANGE_END).strftime("%H:%M:%S")
        if fmt in ("uri", "url", "uri-reference"):
            return fake.url()
        if fmt == "hostname":
            return fake.hostname()
        if fmt == "ipv4":
            return fake.ipv4()
        if fmt == "ipv6":
            return fake.ipv6()
        if fmt == "byte":
            return "aGVsbG8gd29ybGQ="
        if fmt == "binary":
            return "binary-data"
        if fmt == "password":
            return fake.password(length=max(12, min_len or 0))

        lowered = name.lower()
        if "email" in lowered:
            value = fake.email()
        elif lowered.endswith("url") or lowered.endswith("uri"):
            value = fake.url()
        elif lowered in ("username", "login"):
            value = fake.user_name()
        elif "name" in lowered:
            value = fake.name()
        elif "phone" in lowered:
            value = fake.numerify("+1-###-###-####")
        elif "city" in lowered:
            value = fake.city()
        elif "country" in lowered:
            value = fake.country()
        elif "address" in lowered:
            value = fake.street_address()
        elif lowered in ("description", "comment", "bio", "message", "text"):
            value = fake.sentence()
        else:
            value = fake.word()
        return _fit_length(value, min_len, max_len)

    def number(self, schema: dict, kind: str, mode: Mode):
        integer = kind == "integer"
        lo, hi = _bounds(schema, integer)
        if mode == Mode.INVALID_TYPE:
            return "not-a-number"
        if mode == Mode.INVALID_FORMAT:
            fmt = schema.get("format")
            if fmt == "int32":
                return 2**31
            if fmt == "int64":
                return 2**63
            return "not-a-number"
        if mode == Mode.EMPTY:
            return 0
        if mode == Mode.LARGE:
            if schema.get("maximum") is not None:
                return max(abs(schema["maximum"]) * 10, 10)
            return 10**12
        if mode == Mode.BOUNDARY_MIN and lo is not None:
            return lo
        if mode == Mode.BELOW_MIN and lo is not None:
            return lo - 1
        if mode == Mode.BOUNDARY_MAX and hi is not None:
            return hi
        if mode == Mode.ABOVE_MAX and hi is not None:
            return hi + 1
        return self.realistic_number(schema, lo, hi, integer)

    def realistic_number(self, schema: dict, lo, hi, integer: bool):
        if lo is None:
            lo = (hi - 100) if hi is not None else 1
        if hi is None:
            hi = lo + 999
        if hi < lo:
            hi = lo

        step = schema.get("multipleOf")
        if step:
            first = math.ceil(lo / step) * step
            count = math.floor((hi - first) / step)
            value = first + step * self.rng.randint(0, max(count, 0))
            return int(value) if integer else value
        if integer:
            return self.rng.randint(int(math.ceil(lo)), int(math.floor(hi)))
        return round(min(max(self.rng.uniform(lo, hi), lo), hi), 2)

    def boolean(self, mode: Mode):
        if mode == Mode.INVALID_TYPE:
            return "not-a-boolean"
        if mode == Mode.EMPTY:
            return False
        return True

    def payload(self, mode: Mode) -> str:
        if mode == Mode.MALICIOUS_MIXED:
            kind = _MIXED_ORDER[self.string_count % len(_MIXED_ORDER)]
            self.string_count += 1
            return PAYLOADS[kind]
        return PAYLOADS[mode.value[len("malicious-"):]]

    # -- containers ----------------------------------------------------

    def array(self, schema: dict, name: str, depth: int, mode: Mode):
        min_items = schema.get("minItems")
        max_items = schema.get("maxItems")
        items = schema.get("items") or {}

        if mode == Mode.INVALID_TYPE:
            return "not-an-array"
        if mode == Mode.EMPTY:
            return []

        item_mode = mode
        count = min_items if min_items else 1
        if max_items is not None:
            count = min(count, max_items)
        if mode == Mode.LARGE:
            count = max_items * 10 if max_items else DEFAULT_LARGE_ARRAY
            item_mode = Mode.REALISTIC
        elif mode == Mode.BOUNDARY_MIN and min_items is not None:
            count = min_items
        elif mode == Mode.BELOW_MIN and min_items:
            count = min_items - 1
        elif mode == Mode.BOUNDARY_MAX and max_items is not None:
            count = max_items
        elif mode == Mode.ABOVE_MAX and max_items is not None:
            count = max_items + 1
        elif mode.targets_one_field:
            item_mode = Mode.REALISTIC

        return [self.value(items, name, depth + 1, item_mode) for _ in range(count)]

    def object(self, schema: dict, depth: int, mode: Mode):
        properties = schema.get("properties") or {}
        required_set = set(schema.get("required") or [])
        required = [name for name in properties if name in required_set]

        if not properties:
            if mode == Mode.INVALID_TYPE:
                return "not-an-object"
            return {}

        if not mode.targets_one_field:
            return {name: self.value(prop or {}, name, depth + 1, mode) for name, prop in properties.items()}

        if mode == Mode.MISSING_REQUIRED and not required:
            return {name: self.value(prop or {}, name, depth + 1, Mode.REALISTIC) for name, prop in properties.items()}

        # with nothing required, the other single-field modes fall back to the first property
        target = required[0] if required else next(iter(properties))
        result = {}
        for name, prop in properties.items():
            if name != target:
                result[name] = self.value(prop or {}, name, depth + 1, Mode.REALISTIC)
            elif mode != Mode.MISSING_REQUIRED:
                result[name] = self.value(prop or {}, name, depth + 1, mode)
        return result


def _bounds(schema: dict, integer: bool):
    lo = schema.get("minimum")
    hi = schema.get("maximum")
    step = 1 if integer else 0.01
    excl_lo = schema.get("exclusiveMinimum")
    excl_hi = schema.get("exclusiveMaximum")
    # 3.0 uses booleans, 3.1 uses the bound itself
    if excl_lo is True and lo is not None:
        lo = lo + step
    elif isinstance(excl_lo, (int, float)) and not isinstance(excl_lo, bool):
        lo = excl_lo + step
    if excl_hi is True and hi is not None:
        hi = hi - step
    elif isinstance(excl_hi, (int, float)) and not isinstance(excl_hi, bool):
        hi = excl_hi - step
    return lo, hi


def _fit_length(value: str, min_len: int | None, max_len: int | None) -> str:
    if min_len and len(value) < min_len:
        value = value + "a" * (min_len - len(value))
    if max_len is not None and len(value) > max_len:
        value = value[:max_len]
    return value


def _wrong_type(kind: str):
    if kind == "string":
        return 12345
    if kind in ("integer", "number"):
        return "not-a-number"
    if kind == "boolean":
        return "not-a-boolean"
    return "invalid"


def _placeholder(kind: str | None):
    return {"string": "", "integer": 0, "number": 0, "boolean": False, "array": []}.get(kind or "", {})

