"""Generation pipeline.

extract -> plan -> generate -> organize -> emit -> save manifest.

Only configuration mistakes and unusable specs raise. Extraction problems,
generator failures, corrupt manifests and emitted-file validation errors are
collected in ``GenerationResult.issues`` and the run carries on.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field

from api_test_synth.config import GenerationConfig
from api_test_synth.errors import Issue, ManifestError
from api_test_synth.generator.base import GenerationContext, GeneratorKind, ScenarioGenerator
from api_test_synth.generator.code import PERFORMANCE_FILE, CodeGenerator, GeneratedFile
from api_test_synth.generator.flow import FlowGenerator
from api_test_synth.generator.organizer import OrganizedTests, Strategy, organize, parse_strategy, recommend_strategy
from api_test_synth.generator.registry import build_generators
from api_test_synth.generator.testcase import TestCase, finalize_tests
from api_test_synth.generator.validator import validate_files
from api_test_synth.incremental import GenerationPlan, plan
from api_test_synth.manifest import GenerationManifest, ManifestEntry, ManifestStore
from api_test_synth.parser.base import ApiEndpoint
from api_test_synth.parser.loader import validate_info
from api_test_synth.parser.swagger import extract_auth_schemes, extract_endpoints

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GenerationResult(BaseModel):
    plan: GenerationPlan
    tests: list[TestCase] = Field(default_factory=list)
    organized: OrganizedTests | None = None
    files: list[GeneratedFile] = Field(default_factory=list)
    manifest: GenerationManifest | None = None
    regenerated: list[str] = Field(default_factory=list)
    stale_files: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    dry_run: bool = False
    cancelled: bool = False


class GenerationPipeline:
    def __init__(
        self,
        config: GenerationConfig | None = None,
        store: ManifestStore | None = None,
        generators: dict[GeneratorKind, ScenarioGenerator] | None = None,
        clock: Callable[[], str] = utc_now,
    ):
        self.config = config or GenerationConfig()
        self.store = store
        self.generators = generators
        self.clock = clock

    def run(
        self,
        doc: dict,
        spec_path: str = "",
        file_exists: Callable[[str], bool] | None = None,
        cancel: threading.Event | None = None,
    ) -> GenerationResult:
        config = self.config
        validate_info(doc)
        requested = parse_strategy(config.organization) if config.organization else None

        issues: list[Issue] = []
        endpoints = extract_endpoints(doc, issues)
        schemes = extract_auth_schemes(doc)
        context = GenerationContext(
            seed=config.seed,
            auth_schemes=schemes,
            endpoints=endpoints,
            generated_at=self.clock(),
            generator_version=config.generator_version,
            generate_multiple=config.generate_multiple,
            generate_multiple_scenarios=config.generate_multiple_scenarios,
            include_optional_params=config.include_optional_params,
            test_expired_tokens=config.test_expired_tokens,
        )
        generators = self.generators if self.generators is not None else build_generators(config, context)

        manifest = self._load_manifest(issues) if config.incremental else None
        force_all = config.force_all or not config.incremental
        if manifest is not None and not force_all:
            if manifest.options_hash != config.content_hash():
                logger.info("Generation options changed since the last run, regenerating all endpoints")
                force_all = True
            elif requested is not None and manifest.strategy != requested.value:
                logger.info("Organization strategy changed since the last run, regenerating all endpoints")
                force_all = True

        the_plan = plan(
            endpoints,
            manifest,
            force_all=force_all,
            dry_run=config.dry_run,
            file_exists=file_exists,
            dependencies=_flow_dependencies(generators, endpoints),
        )
        strategy = requested or _stored_strategy(manifest)

        by_key = {e.key: e for e in endpoints}
        selected = [e.key for e in the_plan.to_generate]
        touched = _files_of(manifest, selected + the_plan.removed)
        results: dict[str, list[TestCase]] = {}
        failed: set[str] = set()
        cancelled = False

        while True:
            pending = [by_key[key] for key in selected if key not in results]
            cancelled = self._generate(pending, generators, results, failed, issues, cancel)
            tests = finalize_tests([t for e in endpoints if e.key in results for t in results[e.key]])
            if strategy is None:
                strategy = recommend_strategy(tests)
            organized = organize(tests, strategy)
            if cancelled or manifest is None:
                break

            # unchanged endpoints sharing a rewritten file must be regenerated with it
            touched |= {f for files in _files_by_endpoint(organized).values() for f in files}
            extra = [
                e.key for e in the_plan.unchanged
                if e.key not in results and touched.intersection(manifest.files_for(e.key))
            ]
            if not extra:
                break
            logger.debug("Regenerating %d unchanged endpoints that share output files", len(extra))
            selected += extra
            touched |= _files_of(manifest, extra)

        result = GenerationResult(
            plan=the_plan,
            tests=tests,
            organized=organized,
            regenerated=[e.key for e in endpoints if e.key in results],
            dry_run=config.dry_run,
            cancelled=cancelled,
        )
        if cancelled:
            logger.warning("Generation cancelled after %d of %d endpoints", len(results), len(selected))
            result.issues = issues
            return result

        emitter = CodeGenerator(schemes, base_url=config.base_url)
        result.files = emitter.generate(organized)
        for file_name, message in validate_files({f.file_name: f.content for f in result.files}).items():
            logger.warning("Emitted file %s failed validation: %s", file_name, message)
            issues.append(Issue(kind="validation", message=f"{file_name}: {message}"))

        result.manifest = self._build_manifest(endpoints, manifest, the_plan, organized, results, failed, spec_path, context)
        produced = {f.file_name for f in result.files}
        result.stale_files = _stale_files(manifest, the_plan, results, result.manifest, produced)

        if not config.dry_run and self.store is not None:
            try:
                self.store.save(result.manifest)
            except OSError as e:
                logger.warning("Cannot save manifest: %s", e)
                issues.append(Issue.from_error("manifest", ManifestError(f"Cannot save manifest: {e}")))
        result.issues = issues
        return result

    def _load_manifest(self, issues: list[Issue]) -> GenerationManifest | None:
        if self.store is None:
            return None
        try:
            return self.store.load()
        except ManifestError as e:
            logger.warning("Ignoring manifest, regenerating everything: %s", e)
            issues.append(Issue.from_error("manifest", e))
            return None

    def _generate(self, endpoints, generators, results, failed, issues, cancel) -> bool:
        """Generate tests for ``endpoints`` into ``results``. Returns True if cancelled."""
        outcomes: dict[str, tuple[list[TestCase], list[Issue]]] = {}
        if self.config.max_workers > 1 and len(endpoints) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                futures = {}
                for endpoint in endpoints:
                    if cancel is not None and cancel.is_set():
                        break
                    futures[endpoint.key] = pool.submit(self._generate_endpoint, endpoint, generators)
                outcomes = {key: future.result() for key, future in futures.items()}
        else:
            for endpoint in endpoints:
                if cancel is not None and cancel.is_set():
                    break
                outcomes[endpoint.key] = self._generate_endpoint(endpoint, generators)

        for key, (tests, endpoint_issues) in outcomes.items():
            results[key] = tests
            if endpoint_issues:
                failed.add(key)
                issues.extend(endpoint_issues)
        return len(outcomes) < len(endpoints)

    def _generate_endpoint(self, endpoint: ApiEndpoint, generators) -> tuple[list[TestCase], list[Issue]]:
        tests: list[TestCase] = []
        issues: list[Issue] = []
        for kind, generator in generators.items():
            try:
                tests.extend(generator.generate_tests(endpoint))
            except Exception as e:
                logger.warning("%s generator failed for %s: %s", kind.value, endpoint.key, e)
                issues.append(Issue(kind="generator", message=f"{kind.value}: {e}", endpoint=endpoint.key))
        return tests, issues

    def _build_manifest(self, endpoints, previous, the_plan, organized, results, failed, spec_path, context):
        files_by_endpoint = _files_by_endpoint(organized)
        entries = {}
        for endpoint in endpoints:
            key = endpoint.key
            if key in results:
                entries[key] = ManifestEntry(
                    # an empty fingerprint never matches, so failed endpoints are retried next run
                    fingerprint="" if key in failed else the_plan.fingerprints[key],
                    files=files_by_endpoint.get(key, []),
                    generated_at=context.generated_at,
                )
            elif previous is not None and key in previous.entries:
                entries[key] = previous.entries[key]
        return GenerationManifest(
            spec_path=spec_path,
            entries=entries,
            strategy=organized.strategy.value,
            options_hash=self.config.content_hash(),
        )


def _files_by_endpoint(organized: OrganizedTests) -> dict[str, list[str]]:
    """Test files per endpoint, plus performance.yaml for endpoints with load profiles."""
    mapping = organized.files_by_endpoint()
    for tests in organized.files.values():
        for test in tests:
            if test.performance is None:
                continue
            files = mapping.setdefault(test.endpoint_key, [])
            if PERFORMANCE_FILE not in files:
                files.append(PERFORMANCE_FILE)
    return mapping


def _flow_dependencies(generators, endpoints: list[ApiEndpoint]) -> dict[str, list[str]] | None:
    flows = generators.get(GeneratorKind.FLOW)
    if not isinstance(flows, FlowGenerator):
        return None
    return {e.key: flows.related_keys(e) for e in endpoints}


def _files_of(manifest: GenerationManifest | None, keys: list[str]) -> set[str]:
    if manifest is None:
        return set()
    return {f for key in keys for f in manifest.files_for(key)}


def _stored_strategy(manifest: GenerationManifest | None) -> Strategy | None:
    if manifest is None or not manifest.strategy:
        return None
    try:
        return Strategy(manifest.strategy)
    except ValueError:
        return None


def _stale_files(previous, the_plan, results, current, produced: set[str]) -> list[str]:
    """Files from the last run that nothing produces or owns any more."""
    if previous is None:
        return []
    before = _files_of(previous, the_plan.removed + list(results))
    owned = {f for entry in current.entries.values() for f in entry.files}
    return sorted(before - produced - owned)
