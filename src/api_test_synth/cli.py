"""CLI entry point for api-test-synth."""

import logging
from pathlib import Path

import click

from api_test_synth.config import GenerationConfig, load_config
from api_test_synth.errors import ApiTestSynthError
from api_test_synth.generator.organizer import Strategy
from api_test_synth.incremental import ChangeKind
from api_test_synth.manifest import JsonManifestStore
from api_test_synth.parser.loader import load_spec
from api_test_synth.pipeline import GenerationPipeline, GenerationResult


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run_pipeline(spec_path: Path, output: Path, config: GenerationConfig) -> GenerationResult:
    try:
        doc = load_spec(spec_path)
        store = JsonManifestStore(output / config.manifest_name)
        pipeline = GenerationPipeline(config, store)
        return pipeline.run(
            doc,
            spec_path=str(spec_path.resolve()),
            file_exists=lambda name: (output / name).exists(),
        )
    except ApiTestSynthError as e:
        raise click.ClickException(str(e)) from e


def _echo_plan(result: GenerationResult) -> None:
    the_plan = result.plan
    counts = {kind: len(the_plan.keys(kind)) for kind in ChangeKind}
    click.echo(
        "Endpoints: "
        f"{counts[ChangeKind.NEW]} new, {counts[ChangeKind.CHANGED]} changed, "
        f"{counts[ChangeKind.FORCED] + counts[ChangeKind.MISSING_FILES]} regenerated, "
        f"{counts[ChangeKind.UNCHANGED]} unchanged, {len(the_plan.removed)} removed."
    )
    for key, reason in the_plan.reasons.items():
        if reason != ChangeKind.UNCHANGED:
            click.echo(f"  [{reason.value}] {key}")
    for key in the_plan.removed:
        click.echo(f"  [removed] {key}")


def _echo_issues(result: GenerationResult) -> None:
    for issue in result.issues:
        where = f" ({issue.endpoint})" if issue.endpoint else ""
        click.echo(f"Warning [{issue.kind}]{where}: {issue.message}", err=True)


@click.group()
def main():
    """API Test Synth: generate pytest API test suites from OpenAPI/Swagger documents."""
    pass


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(file_okay=False, path_type=Path), help="Output directory for generated tests.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML/JSON configuration file.")
@click.option("--organization", default=None, type=click.Choice([s.value for s in Strategy]), help="How tests are split into files.")
@click.option("--no-happy-path", is_flag=True, help="Skip happy-path tests.")
@click.option("--no-auth", is_flag=True, help="Skip authentication tests.")
@click.option("--no-errors", is_flag=True, help="Skip error-case tests.")
@click.option("--no-edge-cases", is_flag=True, help="Skip edge-case tests.")
@click.option("--no-flows", is_flag=True, help="Skip multi-step workflow tests.")
@click.option("--performance", is_flag=True, help="Add performance load profiles.")
@click.option("--ai-tests/--no-ai-tests", default=None, help="Ask an LLM for extra validation scenarios.")
@click.option("--model", default=None, help="LLM model for --ai-tests.")
@click.option("--seed", default=None, type=int, help="Seed for generated data.")
@click.option("--multiple", is_flag=True, help="Emit several happy-path and performance scenarios.")
@click.option("--base-url", default=None, help="Default base URL written into conftest.py.")
@click.option("--no-incremental", is_flag=True, help="Ignore the manifest and regenerate everything.")
@click.option("--force-all", is_flag=True, help="Regenerate every endpoint.")
@click.option("--dry-run", is_flag=True, help="Report what would change without writing.")
@click.option("--keep-stale", is_flag=True, help="Do not delete files of removed endpoints.")
@click.option("--workers", default=None, type=click.IntRange(min=1), help="Parallel generation workers.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def generate(
    spec_path: Path,
    output: Path,
    config_path: Path | None,
    organization: str | None,
    no_happy_path: bool,
    no_auth: bool,
    no_errors: bool,
    no_edge_cases: bool,
    no_flows: bool,
    performance: bool,
    ai_tests: bool | None,
    model: str | None,
    seed: int | None,
    multiple: bool,
    base_url: str | None,
    no_incremental: bool,
    force_all: bool,
    dry_run: bool,
    keep_stale: bool,
    workers: int | None,
    verbose: bool,
):
    """Generate a pytest suite from an OpenAPI/Swagger document."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path) if config_path else GenerationConfig()
        config = config.with_overrides(
            organization=organization,
            include_happy_path=False if no_happy_path else None,
            include_auth=False if no_auth else None,
            include_errors=False if no_errors else None,
            include_edge_cases=False if no_edge_cases else None,
            include_flows=False if no_flows else None,
            include_performance=performance or None,
            include_ai=ai_tests,
            model=model,
            seed=seed,
            generate_multiple=multiple or None,
            generate_multiple_scenarios=multiple or None,
            base_url=base_url,
            incremental=False if no_incremental else None,
            force_all=force_all or None,
            dry_run=dry_run or None,
            max_workers=workers,
        )
    except ApiTestSynthError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Parsing {spec_path}...")
    result = _run_pipeline(spec_path, output, config)
    _echo_plan(result)
    click.echo(f"Generated {len(result.tests)} tests for {len(result.regenerated)} endpoints "
               f"(strategy: {result.organized.strategy.value}).")

    if result.dry_run:
        for generated in result.files:
            click.echo(f"  Would write {output / generated.file_name}")
        for name in result.stale_files:
            click.echo(f"  Would delete {output / name}")
        _echo_issues(result)
        click.echo("Dry run: no files written.")
        return

    output.mkdir(parents=True, exist_ok=True)
    for generated in result.files:
        file_path = output / generated.file_name
        file_path.write_text(generated.content, encoding="utf-8")
        click.echo(f"  Created {file_path}")

    if not keep_stale:
        for name in result.stale_files:
            stale = output / name
            if stale.exists():
                stale.unlink()
                click.echo(f"  Deleted {stale}")

    _echo_issues(result)
    click.echo(f"Done! Wrote {len(result.files)} files to {output}")


@main.command()
@click.argument("spec_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(file_okay=False, path_type=Path), help="Output directory of a previous run.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML/JSON configuration file.")
@click.option("--force-all", is_flag=True, help="Plan as if every endpoint must be regenerated.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def plan(spec_path: Path, output: Path, config_path: Path | None, force_all: bool, verbose: bool):
    """Show which endpoints would be regenerated, without writing anything."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path) if config_path else GenerationConfig()
        config = config.with_overrides(force_all=force_all or None, dry_run=True)
    except ApiTestSynthError as e:
        raise click.ClickException(str(e)) from e

    result = _run_pipeline(spec_path, output, config)
    _echo_plan(result)
    _echo_issues(result)
