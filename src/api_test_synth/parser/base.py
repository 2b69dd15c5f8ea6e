"""Data models for endpoints extracted from an API specification.

The extractor converts OpenAPI 3.x and Swagger 2.0 documents into these
models; generators only ever see these, never the raw document.
"""

from pydantic import BaseModel, ConfigDict, Field

CANONICAL_METHODS = ("get", "post", "put", "patch", "delete")
EXTRA_METHODS = ("head", "options", "trace")


class Param(BaseModel):
    """A single API parameter (query, path, header, or cookie)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    location: str  # query / path / header / cookie
    required: bool = False
    schema_: dict = Field(default_factory=dict, alias="schema")
    description: str = ""

    @property
    def param_type(self) -> str:
        return self.schema_.get("type", "string")


class RequestBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    required: bool = False
    content: dict[str, dict] = Field(default_factory=dict)  # content-type -> schema

    def preferred(self) -> tuple[str, dict]:
        """Return (content_type, schema), preferring JSON media types."""
        for content_type, schema in self.content.items():
            if _is_json(content_type):
                return content_type, schema
        for content_type, schema in self.content.items():
            return content_type, schema
        return "application/json", {}


class Response(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: str = ""
    schema_: dict | None = Field(default=None, alias="schema")


class ApiEndpoint(BaseModel):
    """One (path, method) operation."""

    model_config = ConfigDict(frozen=True)

    method: str  # lowercase
    path: str  # /api/users/{id}
    operation_id: str = ""
    summary: str = ""
    description: str = ""
    parameters: list[Param] = Field(default_factory=list)
    request_body: RequestBody | None = None
    responses: dict[str, Response] = Field(default_factory=dict)
    security: list[dict[str, list[str]]] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.method.upper()} {self.path}"

    @property
    def auth_required(self) -> bool:
        """True when every security alternative needs a credential."""
        return bool(self.security) and all(group for group in self.security)

    @property
    def auth_optional(self) -> bool:
        return bool(self.security) and any(not group for group in self.security)

    def params_in(self, location: str) -> list[Param]:
        return [p for p in self.parameters if p.location == location]

    def status_codes(self) -> list[int]:
        codes = []
        for code in self.responses:
            if code.isdigit():
                codes.append(int(code))
        return sorted(codes)

    def success_codes(self) -> list[int]:
        return [c for c in self.status_codes() if 200 <= c < 300]

    def success_status(self) -> int:
        """Lowest declared 2xx, 200 when none is declared."""
        codes = self.success_codes()
        return codes[0] if codes else 200

    def json_body_schema(self) -> dict | None:
        if self.request_body is None:
            return None
        content_type, schema = self.request_body.preferred()
        if not _is_json(content_type):
            return None
        return schema or None


class AuthScheme(BaseModel):
    """A security scheme declared by the API document."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str  # http-bearer / http-basic / apiKey / oauth2 / openIdConnect
    location: str = "header"  # apiKey: header / query / cookie
    param_name: str = ""  # apiKey header/query/cookie name
    bearer_format: str = ""
    flows: dict = Field(default_factory=dict)  # oauth2 flows
    openid_connect_url: str = ""

    @property
    def supports_expiry(self) -> bool:
        return self.type in ("http-bearer", "oauth2", "openIdConnect")


def _is_json(content_type: str) -> bool:
    media = content_type.split(";")[0].strip().lower()
    return media == "application/json" or media.endswith("+json")
