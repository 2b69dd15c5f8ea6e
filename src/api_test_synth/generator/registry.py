"""Generator registry: a fixed GeneratorKind -> implementation map built from config."""

from api_test_synth.config import GenerationConfig
from api_test_synth.generator.ai import AiTestGenerator
from api_test_synth.generator.auth import AuthGenerator
from api_test_synth.generator.base import GenerationContext, GeneratorKind, ScenarioGenerator
from api_test_synth.generator.edge_case import EdgeCaseGenerator
from api_test_synth.generator.error_case import ErrorCaseGenerator
from api_test_synth.generator.flow import FlowGenerator
from api_test_synth.generator.happy_path import HappyPathGenerator
from api_test_synth.generator.performance import PerformanceGenerator

GENERATORS: dict[GeneratorKind, type[ScenarioGenerator]] = {
    GeneratorKind.HAPPY_PATH: HappyPathGenerator,
    GeneratorKind.ERROR_CASE: ErrorCaseGenerator,
    GeneratorKind.EDGE_CASE: EdgeCaseGenerator,
    GeneratorKind.AUTH: AuthGenerator,
    GeneratorKind.FLOW: FlowGenerator,
    GeneratorKind.PERFORMANCE: PerformanceGenerator,
    GeneratorKind.AI: AiTestGenerator,
}


def enabled_kinds(config: GenerationConfig) -> list[GeneratorKind]:
    toggles = {
        GeneratorKind.HAPPY_PATH: config.include_happy_path,
        GeneratorKind.ERROR_CASE: config.include_errors,
        GeneratorKind.EDGE_CASE: config.include_edge_cases,
        GeneratorKind.AUTH: config.include_auth,
        GeneratorKind.FLOW: config.include_flows,
        GeneratorKind.PERFORMANCE: config.include_performance,
        GeneratorKind.AI: config.include_ai,
    }
    return [kind for kind in GeneratorKind if toggles[kind]]


def build_generators(config: GenerationConfig, context: GenerationContext) -> dict[GeneratorKind, ScenarioGenerator]:
    """Instantiate the enabled generators in canonical order."""
    generators = {}
    for kind in enabled_kinds(config):
        if kind == GeneratorKind.AI:
            generators[kind] = AiTestGenerator(context, model=config.model)
        else:
            generators[kind] = GENERATORS[kind](context)
    return generators
