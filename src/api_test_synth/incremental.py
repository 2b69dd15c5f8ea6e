"""Incremental regeneration: endpoint fingerprints and the generation plan.

A fingerprint covers everything about an endpoint that can change its
generated tests. Free-text ``summary`` and ``description`` fields are left
out so prose-only edits do not trigger regeneration.
"""

import hashlib
import json
import logging
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field

from api_test_synth.manifest import GenerationManifest
from api_test_synth.parser.base import ApiEndpoint

logger = logging.getLogger(__name__)

VOLATILE_KEYS = ("description", "summary")


class ChangeKind(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    FORCED = "forced"
    MISSING_FILES = "missing-files"
    UNCHANGED = "unchanged"


class GenerationPlan(BaseModel):
    to_generate: list[ApiEndpoint] = Field(default_factory=list)
    unchanged: list[ApiEndpoint] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    reasons: dict[str, ChangeKind] = Field(default_factory=dict)
    fingerprints: dict[str, str] = Field(default_factory=dict)

    def keys(self, kind: ChangeKind) -> list[str]:
        return [key for key, reason in self.reasons.items() if reason == kind]


def fingerprint(endpoint: ApiEndpoint) -> str:
    """Stable sha256 over the normalized, order-independent endpoint content."""
    data = endpoint.model_dump(mode="json", by_alias=True, exclude={"summary", "description"})
    data["method"] = data["method"].lower()
    data["parameters"] = sorted(data["parameters"], key=lambda p: (p["location"], p["name"]))
    data["security"] = sorted(
        ({name: sorted(scopes) for name, scopes in group.items()} for group in data["security"]),
        key=lambda g: json.dumps(g, sort_keys=True),
    )
    raw = json.dumps(_strip_volatile(data), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def combined_fingerprint(own: str, related: list[str]) -> str:
    """Fold related endpoints' fingerprints into ``own``; ``own`` itself when there are none."""
    if not related:
        return own
    raw = "\n".join([own] + sorted(related))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _strip_volatile(node, in_properties: bool = False):
    if isinstance(node, dict):
        result = {}
        for key, value in node.items():
            # inside a "properties" map the keys are field names, not keywords
            if not in_properties and key in VOLATILE_KEYS:
                continue
            result[key] = _strip_volatile(value, in_properties=not in_properties and key == "properties")
        return result
    if isinstance(node, list):
        return [_strip_volatile(item) for item in node]
    return node


def plan(
    endpoints: list[ApiEndpoint],
    manifest: GenerationManifest | None,
    force_all: bool = False,
    dry_run: bool = False,
    file_exists: Callable[[str], bool] | None = None,
    dependencies: dict[str, list[str]] | None = None,
) -> GenerationPlan:
    """Classify endpoints against the previous manifest.

    ``file_exists`` checks previous output files; it is not consulted in
    dry-run mode, where nothing is written anyway. ``dependencies`` maps an
    endpoint key to the keys whose content also ends up in its tests (the
    other steps of its workflow tests); their fingerprints are folded into
    the endpoint's own.
    """
    entries = manifest.entries if manifest else {}
    result = GenerationPlan()
    own = {e.key: fingerprint(e) for e in endpoints}

    for endpoint in endpoints:
        key = endpoint.key
        current = combined_fingerprint(own[key], [own[k] for k in (dependencies or {}).get(key, []) if k in own])
        result.fingerprints[key] = current
        entry = entries.get(key)

        if force_all:
            reason = ChangeKind.FORCED
        elif entry is None:
            reason = ChangeKind.NEW
        elif entry.fingerprint != current:
            reason = ChangeKind.CHANGED
        elif not dry_run and file_exists is not None and not all(file_exists(f) for f in entry.files):
            reason = ChangeKind.MISSING_FILES
        else:
            reason = ChangeKind.UNCHANGED

        result.reasons[key] = reason
        if reason == ChangeKind.UNCHANGED:
            result.unchanged.append(endpoint)
        else:
            result.to_generate.append(endpoint)

    current_keys = {e.key for e in endpoints}
    result.removed = [key for key in entries if key not in current_keys]

    logger.debug(
        "Plan: %d to generate, %d unchanged, %d removed",
        len(result.to_generate), len(result.unchanged), len(result.removed),
    )
    return result
