"""Partition generated tests into output files."""

import re
from enum import Enum

from pydantic import BaseModel

from api_test_synth.errors import InvalidStrategyError
from api_test_synth.generator.testcase import TestCase

FILE_SUFFIX = ".spec.py"
UNTAGGED = "untagged"


class Strategy(str, Enum):
    BY_TAG = "by-tag"
    BY_ENDPOINT = "by-endpoint"
    BY_TYPE = "by-type"
    BY_METHOD = "by-method"
    FLAT = "flat"


class OrganizedTests(BaseModel):
    strategy: Strategy
    files: dict[str, list[TestCase]]
    total_tests: int

    def files_by_endpoint(self) -> dict[str, list[str]]:
        """Endpoint key -> files holding its tests, in file order."""
        mapping: dict[str, list[str]] = {}
        for file_name, tests in self.files.items():
            for test in tests:
                files = mapping.setdefault(test.endpoint_key, [])
                if file_name not in files:
                    files.append(file_name)
        return mapping


def parse_strategy(strategy: str | Strategy) -> Strategy:
    try:
        return Strategy(strategy)
    except ValueError:
        raise InvalidStrategyError(str(strategy), [s.value for s in Strategy]) from None


def organize(tests: list[TestCase], strategy: str | Strategy) -> OrganizedTests:
    """Group tests by file name. Insertion order is kept within and across files."""
    strategy = parse_strategy(strategy)
    key_of = {
        Strategy.BY_TAG: lambda t: t.metadata.endpoint_tags[0] if t.metadata.endpoint_tags else UNTAGGED,
        Strategy.BY_ENDPOINT: lambda t: resource_root(t.endpoint),
        Strategy.BY_TYPE: lambda t: t.type.value,
        Strategy.BY_METHOD: lambda t: f"{t.method.lower()}-tests",
        Strategy.FLAT: lambda t: "all-tests",
    }[strategy]

    files: dict[str, list[TestCase]] = {}
    for test in tests:
        file_name = sanitize_file_name(key_of(test)) + FILE_SUFFIX
        files.setdefault(file_name, []).append(test)
    return OrganizedTests(strategy=strategy, files=files, total_tests=len(tests))


def recommend_strategy(tests: list[TestCase]) -> Strategy:
    tags = {tag for t in tests for tag in t.metadata.endpoint_tags}
    if len(tags) >= 5:
        return Strategy.BY_TAG
    if len({(t.method.lower(), t.endpoint) for t in tests}) >= 10:
        return Strategy.BY_ENDPOINT
    if len({t.type for t in tests}) >= 3:
        return Strategy.BY_TYPE
    return Strategy.BY_TAG


def resource_root(path: str) -> str:
    """Leading run of literal path segments: /api/users/{id}/orders -> api-users."""
    segments = []
    for segment in path.strip("/").split("/"):
        if not segment or "{" in segment:
            break
        segments.append(segment)
    return "-".join(segments) or "root"


def sanitize_file_name(name: str) -> str:
    cleaned = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return cleaned or UNTAGGED
