"""Load an OpenAPI / Swagger document from disk.

YAML and JSON are both read with ``yaml.safe_load``. Local ``#/...``
references are resolved in place so downstream code sees plain schemas.
"""

import copy
import logging
from pathlib import Path

import yaml

from api_test_synth.errors import SpecError

logger = logging.getLogger(__name__)


def detect_format(doc: dict) -> str:
    """Return 'openapi' or 'swagger' for a parsed document."""
    if "openapi" in doc:
        return "openapi"
    if "swagger" in doc:
        return "swagger"
    raise SpecError("Document is neither OpenAPI 3.x nor Swagger 2.0 (no 'openapi' or 'swagger' key)")


def load_spec(file_path: Path) -> dict:
    """Read, validate and dereference an API document."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecError(f"Cannot read {file_path}: {e}") from e

    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecError(f"Cannot parse {file_path}: {e}") from e

    if not isinstance(doc, dict):
        raise SpecError(f"{file_path} does not contain a mapping at the top level")

    detect_format(doc)
    validate_info(doc)
    return resolve_refs(doc)


def validate_info(doc: dict) -> tuple[str, str]:
    """Return (title, version); both are required."""
    info = doc.get("info")
    if not isinstance(info, dict):
        raise SpecError("Spec is missing the 'info' object")
    title = info.get("title")
    version = info.get("version")
    if not title:
        raise SpecError("Spec is missing required field info.title")
    if version is None or version == "":
        raise SpecError("Spec is missing required field info.version")
    return str(title), str(version)


def resolve_refs(doc: dict) -> dict:
    """Replace local ``$ref`` objects with deep copies of their targets.

    A reference that is already being expanded higher up the same branch
    is replaced by an empty schema, which keeps recursive models finite.
    """

    def lookup(ref: str):
        node = doc
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, dict) or part not in node:
                logger.warning("Unresolvable reference %s", ref)
                return {}
            node = node[part]
        return node

    def walk(node, active: tuple[str, ...]):
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/"):
                if ref in active:
                    return {}
                return walk(copy.deepcopy(lookup(ref)), active + (ref,))
            return {k: walk(v, active) for k, v in node.items()}
        if isinstance(node, list):
            return [walk(item, active) for item in node]
        return node

    return walk(doc, ())
