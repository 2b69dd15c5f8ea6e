"""Generate pytest API test suites from OpenAPI / Swagger specifications."""

__version__ = "0.1.0"
