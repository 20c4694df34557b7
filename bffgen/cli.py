"""bffgen command-line entry point.

Usage:
    bffgen --facts build/fbuild-targets.xml --output-dir build
    bffgen --facts build/fbuild-targets.xml --list-targets --filter core
"""

import xml.etree.ElementTree as ET
from dataclasses import replace

from .config import DiscoveryConfig, GenerateConfig, build_config
from .discovery import run_discovery
from .errors import ConfigError, CycleDetectedError, GenerationError
from .facts import load_project, validate_project
from .generate import FileWriteResult, compile_graph, render_bff, write_bff
from .summary import build_generation_summary, print_generation_summary


def run_generate(config: GenerateConfig) -> FileWriteResult:
    """Execute the complete generation pipeline for a GenerateConfig.

    Stages: load facts -> order and materialize targets -> link targets ->
    aliases -> render -> write. Nothing is written unless every stage
    succeeds.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        FileWriteResult of the written .bff file.

    Raises:
        ConfigError: Malformed or inconsistent facts.
        CycleDetectedError: Targets or custom commands depend on each other
            in a loop.
        GenerationError: A target cannot be generated.
        OSError: Facts file not readable or filesystem write failure.
        ET.ParseError: Malformed facts XML.
        InternalError: A structural invariant was violated.
    """
    print(f"Parsing: {config.facts}")
    project = load_project(config.facts)
    if config.configurations:
        project = replace(project, configurations=config.configurations)
        validate_project(project)
    print(
        f"  Facts: {len(project.targets)} targets, {len(project.commands)} commands, "
        f"configurations {', '.join(project.configurations)}"
    )

    graph = compile_graph(project)
    print(
        f"  Graph: {len(graph.targets)} target records, "
        f"{len(graph.compilers)} compilers, {len(graph.aliases)} global aliases"
    )

    text = render_bff(graph)
    result = write_bff(config.output_dir, text)
    print(f"  Written: {result.line_count} lines to {result.path}")

    print_generation_summary(build_generation_summary(graph, result))
    return result


# ===--- Main generation ---=== #


def main():
    try:
        config = build_config()
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err
    except CycleDetectedError as err:
        print(f"Error: dependency cycle between: {', '.join(err.nodes)}")
        raise SystemExit(1) from err
    except GenerationError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
