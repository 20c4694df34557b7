"""Discovery commands: inspect a facts file without generating anything."""

import sys
from dataclasses import dataclass

from .config import DiscoveryConfig
from .facts import ProjectFacts, TargetFacts, load_project
from .generate import order_targets


# ===--- Data extractors ---=== #


@dataclass(frozen=True)
class TargetSummary:
    """One row of the --list-targets table.

    Attributes:
        name: Target name.
        kind: Target type as written in the facts file.
        dependency_count: Declared dependencies plus command `depends`.
        command_count: Commands across all four command phases.
        source_count: Distinct source files across all compile entries.
        excluded: True when the target is excluded from the configuration
            aliases.
    """

    name: str
    kind: str
    dependency_count: int
    command_count: int
    source_count: int
    excluded: bool


@dataclass(frozen=True)
class TargetDetail:
    summary: TargetSummary
    dependencies: tuple[str, ...]
    phases: tuple[tuple[str, tuple[str, ...]], ...]
    compiles: tuple[tuple[str, str, int], ...]
    links: tuple[tuple[str, str], ...]


def _summarize(project: ProjectFacts, target: TargetFacts) -> TargetSummary:
    sources: set[str] = set()
    for compile_facts in target.compiles:
        sources.update(compile_facts.sources)
    return TargetSummary(
        name=target.name,
        kind=target.kind.value,
        dependency_count=len(project.target_dependencies(target)),
        command_count=len(target.command_ids()),
        source_count=len(sources),
        excluded=target.exclude_from_all,
    )


def gather_target_summaries(project: ProjectFacts) -> list[TargetSummary]:
    """Summaries in build order; raises CycleDetectedError on a target cycle."""
    return [_summarize(project, target) for target in order_targets(project)]


def filter_targets_by_text(
    summaries: list[TargetSummary], text: str
) -> list[TargetSummary]:
    needle = text.lower()
    return [s for s in summaries if needle in s.name.lower() or needle == s.kind]


def gather_target_detail(project: ProjectFacts, name: str) -> TargetDetail | None:
    target = project.target(name)
    if target is None:
        return None

    phases = (
        ("Pre-build", target.pre_build),
        ("Custom commands", target.custom_commands),
        ("Pre-link", target.pre_link),
        ("Post-build", target.post_build),
    )
    compiles = tuple(
        (c.language, c.config or "all", len(c.sources)) for c in target.compiles
    )
    links = tuple((link.config or "all", link.output) for link in target.links)
    return TargetDetail(
        summary=_summarize(project, target),
        dependencies=project.target_dependencies(target),
        phases=phases,
        compiles=compiles,
        links=links,
    )


# ===--- Formatters ---=== #


def format_targets_table(summaries: list[TargetSummary], project_name: str) -> str:
    """Return the complete --list-targets output as a single string.

    Output format:

        3 targets in demo (build order):

          gen      utility      0 deps   2 cmds    0 srcs
          core     static       1 deps   1 cmds    2 srcs
          app      executable   1 deps   0 cmds    1 srcs   (excluded)

    Name and type column widths come from the widest value in summaries.
    Filtering is not applied here.
    """
    lines = [f"{len(summaries)} targets in {project_name} (build order):", ""]

    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.name) for s in summaries)
    kind_width = max(len(s.kind) for s in summaries)

    for s in summaries:
        row = (
            f"  {s.name.ljust(name_width)}  {s.kind.ljust(kind_width)}"
            f"  {s.dependency_count:>3} deps {s.command_count:>3} cmds"
            f" {s.source_count:>4} srcs"
        )
        if s.excluded:
            row += "   (excluded)"
        lines.append(row)

    lines.append("")
    return "\n".join(lines)


def format_target_detail(detail: TargetDetail) -> str:
    """Return the complete --info output for one target as a string.

    Output format:

        core (static)
          Depends:  gen
          Excluded: no

          Pre-build (1):
            core/pre-build/0
          ...

          Compile (1):
            CXX     all        2 sources

          Link (1):
            all        lib/$ConfigName$/libcore.a
    """
    s = detail.summary
    lines = [f"{s.name} ({s.kind})"]
    if detail.dependencies:
        lines.append(f"  Depends:  {', '.join(detail.dependencies)}")
    lines.append(f"  Excluded: {'yes' if s.excluded else 'no'}")

    for label, command_ids in detail.phases:
        if not command_ids:
            continue
        lines.append("")
        lines.append(f"  {label} ({len(command_ids)}):")
        for command_id in command_ids:
            lines.append(f"    {command_id}")

    if detail.compiles:
        lines.append("")
        lines.append(f"  Compile ({len(detail.compiles)}):")
        for language, config, count in detail.compiles:
            lines.append(f"    {language:<7} {config:<10} {count} sources")

    if detail.links:
        lines.append("")
        lines.append(f"  Link ({len(detail.links)}):")
        for config, output in detail.links:
            lines.append(f"    {config:<10} {output}")

    lines.append("")
    return "\n".join(lines)


# ===--- Dispatch ---=== #


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command specified in config.

    dispatch table:
      "list-targets" -> gather_target_summaries -> [filter] -> format_targets_table
      "info"         -> gather_target_detail -> [None check] -> format_target_detail

    Raises:
        SystemExit(1): When config.command == "info" and the target is not in
            the facts file.
    """
    project = load_project(config.facts)

    if config.command == "list-targets":
        summaries = gather_target_summaries(project)
        if config.filter_text is not None:
            summaries = filter_targets_by_text(summaries, config.filter_text)
        print(format_targets_table(summaries, project.name), end="")

    elif config.command == "info":
        assert config.info_target is not None
        detail = gather_target_detail(project, config.info_target)
        if detail is None:
            print(
                f"Error: target '{config.info_target}' not found in {config.facts}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_target_detail(detail), end="")
