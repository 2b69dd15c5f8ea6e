"""OpenAPI / Swagger endpoint extraction.

Flattens OpenAPI 3.x and Swagger 2.0 documents into ApiEndpoint models.
Malformed operation data never aborts extraction: the offending piece is
defaulted and an Issue is recorded.
"""

import logging

from pydantic import ValidationError

from api_test_synth.errors import Issue, SpecExtractionError
from .base import CANONICAL_METHODS, EXTRA_METHODS, ApiEndpoint, AuthScheme, Param, RequestBody, Response

logger = logging.getLogger(__name__)

_SWAGGER_SCHEMA_KEYS = (
    "type", "format", "enum", "default", "items", "minimum", "maximum",
    "exclusiveMinimum", "exclusiveMaximum", "minLength", "maxLength",
    "minItems", "maxItems", "pattern", "multipleOf", "uniqueItems",
)


def extract_endpoints(doc: dict, issues: list[Issue] | None = None) -> list[ApiEndpoint]:
    """Extract endpoints in path declaration order, methods in canonical order."""
    issues = issues if issues is not None else []
    swagger2 = "swagger" in doc
    global_security = doc.get("security", [])
    global_consumes = doc.get("consumes", ["application/json"])

    endpoints = []
    paths = doc.get("paths") or {}
    for path, item in paths.items():
        path = str(path)
        if not isinstance(item, dict):
            _record(issues, SpecExtractionError(f"Path item for {path} is not a mapping"), path)
            continue

        path_params = item.get("parameters", [])
        for method, item_key in _ordered_methods(item):
            operation = item[item_key]
            key = f"{method.upper()} {path}"
            if not isinstance(operation, dict):
                _record(issues, SpecExtractionError(f"Operation {key} is not a mapping"), key)
                operation = {}

            params = _merge_parameters(
                _parse_parameters(path_params, swagger2, issues, key),
                _parse_parameters(operation.get("parameters", []), swagger2, issues, key),
            )
            if swagger2:
                consumes = operation.get("consumes", global_consumes)
                request_body = _swagger_body(operation.get("parameters", []), path_params, consumes)
            else:
                request_body = _parse_request_body(operation.get("requestBody"))

            try:
                endpoint = ApiEndpoint(
                    method=method,
                    path=path,
                    operation_id=_text(operation.get("operationId")),
                    summary=_text(operation.get("summary")),
                    description=_text(operation.get("description")),
                    parameters=[p for p in params if p.location != "body" and p.location != "formData"],
                    request_body=request_body,
                    responses=_parse_responses(operation.get("responses"), swagger2, issues, key),
                    security=_parse_security(operation.get("security", global_security), issues, key),
                    tags=[str(t) for t in _as_list(operation.get("tags"))],
                )
            except ValidationError as e:
                _record(issues, SpecExtractionError(f"Operation {key} is malformed, keeping only method and path: {e}"), key)
                endpoint = ApiEndpoint(method=method, path=path)
            endpoints.append(endpoint)
    return endpoints


def extract_auth_schemes(doc: dict) -> dict[str, AuthScheme]:
    """Map scheme name to AuthScheme from securitySchemes / securityDefinitions."""
    if "swagger" in doc:
        definitions = doc.get("securityDefinitions") or {}
    else:
        definitions = (doc.get("components") or {}).get("securitySchemes") or {}

    schemes = {}
    for name, definition in definitions.items():
        if not isinstance(definition, dict):
            continue
        scheme = _parse_scheme(name, definition)
        if scheme is None:
            logger.warning("Ignoring unsupported security scheme %s (%s)", name, definition.get("type"))
            continue
        schemes[name] = scheme
    return schemes


def _parse_scheme(name: str, definition: dict) -> AuthScheme | None:
    kind = definition.get("type")
    if kind == "http":
        http_scheme = str(definition.get("scheme", "")).lower()
        if http_scheme == "bearer":
            return AuthScheme(name=name, type="http-bearer", bearer_format=definition.get("bearerFormat", ""))
        if http_scheme == "basic":
            return AuthScheme(name=name, type="http-basic")
        return None
    if kind == "basic":
        return AuthScheme(name=name, type="http-basic")
    if kind == "apiKey":
        return AuthScheme(
            name=name,
            type="apiKey",
            location=definition.get("in", "header"),
            param_name=definition.get("name", "X-API-Key"),
        )
    if kind == "oauth2":
        flows = definition.get("flows")
        if flows is None:
            # Swagger 2.0 declares a single flow inline
            flow = definition.get("flow", "implicit")
            flows = {flow: {k: v for k, v in definition.items() if k in ("authorizationUrl", "tokenUrl", "scopes")}}
        return AuthScheme(name=name, type="oauth2", flows=flows)
    if kind == "openIdConnect":
        return AuthScheme(name=name, type="openIdConnect", openid_connect_url=definition.get("openIdConnectUrl", ""))
    return None


def _ordered_methods(item: dict) -> list[tuple[str, str]]:
    """Return (method, key) pairs: canonical methods first, then extras in declaration order."""
    present = {k.lower(): k for k in item if isinstance(k, str)}
    methods = [m for m in CANONICAL_METHODS if m in present]
    methods += [k.lower() for k in item if isinstance(k, str) and k.lower() in EXTRA_METHODS]
    return [(m, present[m]) for m in methods]


def _parse_parameters(params, swagger2: bool, issues: list[Issue], key: str) -> list[Param]:
    if not isinstance(params, list):
        _record(issues, SpecExtractionError(f"Parameters of {key} are not a list"), key)
        return []

    result = []
    for p in params:
        if not isinstance(p, dict) or "name" not in p or "in" not in p:
            _record(issues, SpecExtractionError(f"Skipping malformed parameter in {key}: {p!r}"), key)
            continue
        if swagger2 and p["in"] != "body":
            schema = {k: p[k] for k in _SWAGGER_SCHEMA_KEYS if k in p}
        else:
            schema = p.get("schema") or {}
        if not isinstance(schema, dict):
            _record(issues, SpecExtractionError(f"Schema of parameter {p['name']} in {key} is not a mapping"), key)
            schema = {}
        try:
            param = Param(
                name=str(p["name"]),
                location=str(p["in"]),
                required=bool(p.get("required", p["in"] == "path")),
                schema=schema,
                description=_text(p.get("description")),
            )
        except ValidationError as e:
            _record(issues, SpecExtractionError(f"Skipping malformed parameter in {key}: {e}"), key)
            continue
        result.append(param)
    return result


def _merge_parameters(path_level: list[Param], op_level: list[Param]) -> list[Param]:
    """Operation-level parameters override path-level ones with the same name+location."""
    overrides = {(p.name, p.location) for p in op_level}
    merged = [p for p in path_level if (p.name, p.location) not in overrides]
    return merged + op_level


def _parse_request_body(body) -> RequestBody | None:
    if not isinstance(body, dict):
        return None
    content = {}
    media_types = body.get("content")
    for content_type, media in (media_types if isinstance(media_types, dict) else {}).items():
        schema = media.get("schema") if isinstance(media, dict) else None
        content[str(content_type)] = schema if isinstance(schema, dict) else {}
    return RequestBody(required=bool(body.get("required", False)), content=content)


def _swagger_body(op_params, path_params, consumes) -> RequestBody | None:
    params = [p for p in _as_list(path_params) + _as_list(op_params) if isinstance(p, dict)]
    consumes = [str(c) for c in _as_list(consumes)] or ["application/json"]

    for p in params:
        if p.get("in") == "body":
            schema = p.get("schema")
            schema = schema if isinstance(schema, dict) else {}
            return RequestBody(required=bool(p.get("required", False)), content={ct: schema for ct in consumes})

    form = [p for p in params if p.get("in") == "formData" and "name" in p]
    if not form:
        return None
    properties = {str(p["name"]): {k: p[k] for k in _SWAGGER_SCHEMA_KEYS if k in p} for p in form}
    required = [str(p["name"]) for p in form if p.get("required")]
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    multipart = any(p.get("type") == "file" for p in form) or "multipart/form-data" in consumes
    content_type = "multipart/form-data" if multipart else "application/x-www-form-urlencoded"
    return RequestBody(required=bool(required), content={content_type: schema})


def _parse_responses(responses, swagger2: bool, issues: list[Issue], key: str) -> dict[str, Response]:
    if not isinstance(responses, dict) or not responses:
        _record(issues, SpecExtractionError(f"Operation {key} has no usable responses; assuming 200"), key)
        return {}

    result = {}
    for status_code, resp in responses.items():
        if not isinstance(resp, dict):
            result[str(status_code)] = Response()
            continue
        if swagger2:
            schema = resp.get("schema")
        else:
            content = resp.get("content")
            schema = _media_schema(content if isinstance(content, dict) else {})
        if schema is not None and not isinstance(schema, dict):
            _record(issues, SpecExtractionError(f"Response {status_code} schema of {key} is not a mapping"), key)
            schema = None
        result[str(status_code)] = Response(description=_text(resp.get("description")), schema=schema)
    return result


def _media_schema(content: dict) -> dict | None:
    for content_type, media in content.items():
        if "json" in str(content_type) and isinstance(media, dict):
            return media.get("schema")
    for media in content.values():
        if isinstance(media, dict):
            return media.get("schema")
    return None


def _parse_security(security, issues: list[Issue], key: str) -> list[dict[str, list[str]]]:
    if security is None:
        return []
    if not isinstance(security, list):
        _record(issues, SpecExtractionError(f"Security of {key} is not a list; treating as no auth"), key)
        return []
    groups = []
    for group in security:
        if not isinstance(group, dict):
            continue
        groups.append({str(name): [str(s) for s in _as_list(scopes)] for name, scopes in group.items()})
    return groups


def _text(value) -> str:
    return "" if value is None else str(value)


def _as_list(value) -> list:
    return list(value) if isinstance(value, list) else []


def _record(issues: list[Issue], error: SpecExtractionError, endpoint: str) -> None:
    logger.warning("%s", error)
    issues.append(Issue.from_error("extraction", error, endpoint))
