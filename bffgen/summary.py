"""Post-generation console report."""

from dataclasses import dataclass

from .generate import BuildGraph, FileWriteResult
from .model import LinkKind


@dataclass(frozen=True)
class NodeCounts:
    """Count of emitted nodes per statement kind.

    Attributes:
        execs: Exec nodes, excluding actions emitted as aliases.
        object_lists: ObjectList nodes.
        libraries: Library nodes (static link).
        dlls: DLL nodes (shared and module link).
        executables: Executable nodes.
        aliases: Alias statements of every origin.
    """

    execs: int
    object_lists: int
    libraries: int
    dlls: int
    executables: int
    aliases: int

    @property
    def links(self) -> int:
        return self.libraries + self.dlls + self.executables


@dataclass(frozen=True)
class GenerationSummary:
    """Complete, immutable data for the post-generation console report.

    Produced by build_generation_summary. Consumed by format_generation_summary
    and print_generation_summary.

    Attributes:
        project_name: Name from the facts file.
        configurations: Configurations generated, in order.
        target_count: Generated targets (interface targets excluded).
        counts: Node counts from build_node_counts.
        dedup_aliases: Shared actions collapsed into an alias.
        fresh_actions: Shared actions renamed with a host suffix.
        file: Write result of the .bff file.
    """

    project_name: str
    configurations: tuple[str, ...]
    target_count: int
    counts: NodeCounts
    dedup_aliases: int
    fresh_actions: int
    file: FileWriteResult


def build_node_counts(graph: BuildGraph) -> NodeCounts:
    execs = 0
    object_lists = 0
    links = {kind: 0 for kind in LinkKind}
    aliases = len(graph.aliases)

    for definition in graph.targets:
        record = definition.record
        for action in record.build_actions():
            if action.is_alias:
                aliases += 1
            else:
                execs += 1
        object_lists += len(record.compile_batches)
        if record.link is not None:
            links[record.link.kind] += 1
        aliases += len(definition.aliases)

    return NodeCounts(
        execs=execs,
        object_lists=object_lists,
        libraries=links[LinkKind.STATIC],
        dlls=links[LinkKind.SHARED],
        executables=links[LinkKind.EXECUTABLE],
        aliases=aliases,
    )


def build_generation_summary(
    graph: BuildGraph, write_result: FileWriteResult
) -> GenerationSummary:
    return GenerationSummary(
        project_name=graph.project.name,
        configurations=graph.configurations,
        target_count=len({definition.facts.name for definition in graph.targets}),
        counts=build_node_counts(graph),
        dedup_aliases=graph.dedup_alias_count,
        fresh_actions=graph.fresh_action_count,
        file=write_result,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary to the multi-section console string.

    The duplicates row appears only when shared actions were found. Line
    counts use thousands separators. Returns a string with exactly one
    trailing newline.
    """
    counts = summary.counts
    lines: list[str] = []
    lines.append(f"FASTBuild description generated for {summary.project_name}:")
    lines.append("")
    lines.append(f"  Configurations: {', '.join(summary.configurations)}")
    lines.append(f"  Output:         {summary.file.path}")
    lines.append("")
    lines.append("  Nodes generated:")
    lines.append(f"    {'Targets:':<15}{summary.target_count:>6}")
    lines.append(f"    {'Exec:':<15}{counts.execs:>6}")
    lines.append(f"    {'ObjectList:':<15}{counts.object_lists:>6}")
    lines.append(
        f"    {'Link:':<15}{counts.links:>6}"
        f"  ({counts.libraries} Library, {counts.dlls} DLL,"
        f" {counts.executables} Executable)"
    )
    lines.append(f"    {'Alias:':<15}{counts.aliases:>6}")
    if summary.dedup_aliases or summary.fresh_actions:
        lines.append("")
        lines.append(
            f"  Shared commands: {summary.dedup_aliases} aliased,"
            f" {summary.fresh_actions} host-suffixed"
        )
    lines.append("")
    lines.append(
        f"  Total: {summary.file.line_count:,} lines in {summary.file.filename}"
    )
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    """Print the generation summary to stdout.

    Thin wrapper around format_generation_summary, which stays testable
    without stdout capture.
    """
    print(format_generation_summary(summary), end="")
