"""Generation pipeline: target facts -> ordered build graph -> .bff text.

Stage functions take an explicit GenerationContext, created at the start of a
run and discarded at the end. Nothing here prints; run_generate in cli.py
reports progress.
"""

import io
import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from .dedup import ActionDeduplicator
from .emitter import ScopedWriter
from .errors import GenerationError, InternalError
from .facts import (
    CommandFacts,
    CompileFacts,
    LinkFacts,
    ProjectFacts,
    TargetFacts,
    TargetKind,
    normalize_path,
    resolve_config_name,
)
from .linker import link_all
from .model import (
    Alias,
    BuildAction,
    CompileBatch,
    LinkAction,
    LinkKind,
    TargetArena,
    TargetPhases,
    append_unique,
)
from .toposort import topological_sort

BFF_FILENAME = "fbuild.bff"
CACHE_DIRNAME = ".fbuild.cache"
LIBRARY_COMPILER_OPTIONS = "-c %1 -o %2"

_LINK_KINDS = {
    TargetKind.EXECUTABLE: LinkKind.EXECUTABLE,
    TargetKind.SHARED: LinkKind.SHARED,
    TargetKind.MODULE: LinkKind.SHARED,
    TargetKind.STATIC: LinkKind.STATIC,
}


# ===--- Graph types ---=== #


@dataclass(frozen=True)
class CompilerDef:
    """One Compiler node, shared by every batch using the same executable.

    Attributes:
        name: Node name, `Compiler-<LANG>[-<LANG>...]`.
        executable: Normalized compiler path.
        languages: Languages compiled with it, sorted.
        extra_files: Files the engine ships alongside the compiler.
    """

    name: str
    executable: str
    languages: tuple[str, ...]
    extra_files: tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetDefinition:
    """One target in one configuration, with the aliases emitted after it."""

    facts: TargetFacts
    config: str
    record: TargetPhases
    aliases: tuple[Alias, ...]

    @property
    def alias_name(self) -> str | None:
        name = target_alias_name(self.facts.name, self.config)
        return name if any(a.name == name for a in self.aliases) else None


@dataclass(frozen=True)
class BuildGraph:
    """The ordered, deduplicated node and alias set of one run.

    `targets` is in emission order: dependencies first, configurations in
    declaration order within a target.
    """

    project: ProjectFacts
    configurations: tuple[str, ...]
    compilers: tuple[CompilerDef, ...]
    targets: tuple[TargetDefinition, ...]
    aliases: tuple[Alias, ...]
    dedup_alias_count: int = 0
    fresh_action_count: int = 0

    def records(self) -> list[TargetPhases]:
        return [definition.record for definition in self.targets]


@dataclass
class GenerationContext:
    project: ProjectFacts
    configurations: tuple[str, ...]
    arena: TargetArena = field(default_factory=TargetArena)
    deduplicator: ActionDeduplicator = field(default_factory=ActionDeduplicator)
    ordered_targets: list[TargetFacts] = field(default_factory=list)
    record_ids: dict[tuple[str, str], int] = field(default_factory=dict)
    compilers: dict[str, CompilerDef] = field(default_factory=dict)


def target_alias_name(target: str, config: str) -> str:
    return f"{target}-{config}"


def products_alias_name(target: str, config: str) -> str:
    return f"{target}-{config}-products"


# ===--- Target order ---=== #


def order_targets(project: ProjectFacts) -> list[TargetFacts]:
    """Sort targets so every target follows the targets it depends on.

    Raises:
        CycleDetectedError: If targets depend on each other in a loop.
    """
    return topological_sort(
        list(project.targets),
        outputs=lambda target: (target.name,),
        inputs=project.target_dependencies,
        label=lambda target: target.name,
    )


def _command_paths(paths: tuple[str, ...], command: CommandFacts, config: str) -> list[str]:
    base = resolve_config_name(command.working_dir, config)
    return [normalize_path(resolve_config_name(p, config), base) for p in paths]


def sort_custom_commands(
    project: ProjectFacts, target: TargetFacts, config: str
) -> list[CommandFacts]:
    """Order a target's custom commands so producers precede consumers.

    One command's declared input is often another command's declared output.

    Raises:
        CycleDetectedError: If the commands feed each other in a loop.
    """
    commands = [project.commands[cid] for cid in target.custom_commands]
    return topological_sort(
        commands,
        outputs=lambda c: _command_paths(c.outputs + c.byproducts, c, config),
        inputs=lambda c: _command_paths(c.inputs, c, config),
        label=lambda c: c.identity,
    )


# ===--- Compilers ---=== #


def collect_compilers(context: GenerationContext) -> dict[str, CompilerDef]:
    """Create one CompilerDef per distinct compiler executable.

    Returns:
        Map of normalized executable path -> CompilerDef, in first-use order.
    """
    languages: dict[str, list[str]] = {}
    extra_files: dict[str, list[str]] = {}
    for target in context.project.targets:
        if target.kind is TargetKind.INTERFACE:
            continue
        for config in context.configurations:
            for compile_facts in target.compiles_for(config):
                executable = normalize_path(
                    resolve_config_name(compile_facts.compiler, config)
                )
                append_unique(languages.setdefault(executable, []), compile_facts.language)
                files = extra_files.setdefault(executable, [])
                for extra in compile_facts.extra_files:
                    append_unique(files, normalize_path(extra))

    compilers: dict[str, CompilerDef] = {}
    used_names: set[str] = set()
    for executable, langs in languages.items():
        base_name = "Compiler-" + "-".join(sorted(langs))
        name = base_name
        suffix = 2
        while name in used_names:
            name = f"{base_name}-{suffix}"
            suffix += 1
        used_names.add(name)
        compilers[executable] = CompilerDef(
            name=name,
            executable=executable,
            languages=tuple(sorted(langs)),
            extra_files=tuple(extra_files[executable]),
        )
    context.compilers = compilers
    return compilers


# ===--- Per-target phase records ---=== #


def _materialize_command(
    context: GenerationContext,
    action: BuildAction,
    command: CommandFacts,
    target: TargetFacts,
    config: str,
) -> None:
    working_dir = normalize_path(resolve_config_name(command.working_dir, config))
    outputs = _command_paths(command.outputs, command, config)

    action.executable = normalize_path(resolve_config_name(command.executable, config))
    action.arguments = [resolve_config_name(arg, config) for arg in command.arguments]
    action.working_dir = working_dir
    action.inputs = _command_paths(command.inputs, command, config)
    action.always_run = command.always_run
    action.comment = command.comment
    if outputs:
        action.output = outputs[0]

    for dep in command.depends:
        dep_id = context.record_ids.get((dep, config))
        if dep_id is not None and context.arena[dep_id].last_executed():
            append_unique(action.dependencies, target_alias_name(dep, config))

    context.deduplicator.resolve(
        action,
        identity=command.identity,
        host=target.name,
        config=config,
        outputs=command.outputs,
    )


def _fill_compile_batch(
    context: GenerationContext, batch: CompileBatch, facts: CompileFacts, config: str
) -> None:
    executable = normalize_path(resolve_config_name(facts.compiler, config))
    batch.compiler = context.compilers[executable].name
    batch.language = facts.language
    batch.compiler_options = resolve_config_name(facts.options, config)
    batch.output_dir = normalize_path(resolve_config_name(facts.output_dir, config))
    batch.input_files = [
        normalize_path(resolve_config_name(source, config)) for source in facts.sources
    ]


def _fill_link_action(link: LinkAction, facts: LinkFacts, config: str) -> None:
    link.linker = normalize_path(resolve_config_name(facts.linker, config))
    link.linker_options = resolve_config_name(facts.options, config)
    link.output = normalize_path(resolve_config_name(facts.output, config))
    if link.kind is LinkKind.EXECUTABLE:
        link.link_dependency_output = ""
    elif facts.link_dependency_output is not None:
        link.link_dependency_output = normalize_path(
            resolve_config_name(facts.link_dependency_output, config)
        )
    else:
        link.link_dependency_output = link.output
    for library in facts.libraries:
        append_unique(link.references, resolve_config_name(library, config))


def build_target_phases(
    context: GenerationContext, target: TargetFacts, config: str
) -> int:
    """Materialize one target in one configuration into the arena.

    PreBuild holds the explicit pre-build commands followed by the sorted
    custom commands. Every command passes through the deduplicator as it is
    created, before any ordering edge is wired.

    Returns:
        Arena id of the new record.

    Raises:
        GenerationError: A linkable target has no link command for `config`.
        InternalError: A target has more than one link command for `config`.
        CycleDetectedError: The target's custom commands form a loop.
    """
    project = context.project
    record = TargetPhases(target_alias_name(target.name, config))

    for command_id in target.pre_build:
        _materialize_command(
            context, record.make_pre_build_action(), project.commands[command_id], target, config
        )
    for command in sort_custom_commands(project, target, config):
        _materialize_command(context, record.make_pre_build_action(), command, target, config)

    for compile_facts in target.compiles_for(config):
        if not compile_facts.sources:
            continue
        _fill_compile_batch(context, record.make_compile_batch(), compile_facts, config)

    for command_id in target.pre_link:
        _materialize_command(
            context, record.make_pre_link_action(), project.commands[command_id], target, config
        )

    if target.kind.links:
        links = target.links_for(config)
        if not links:
            raise GenerationError(
                target.name,
                f"unable to determine the link command for configuration {config}",
            )
        if len(links) > 1:
            raise InternalError(
                f"Expected a single link command for {target.name} ({config}), "
                f"found {len(links)}"
            )
        _fill_link_action(record.make_link_action(_LINK_KINDS[target.kind]), links[0], config)

    for command_id in target.post_build:
        _materialize_command(
            context, record.make_post_build_action(), project.commands[command_id], target, config
        )

    record.compute_default_outputs(project.root_dir)
    record.compute_internal_dependencies()

    target_id = context.arena.add(record)
    context.record_ids[(target.name, config)] = target_id
    return target_id


# ===--- Cross-target edges ---=== #


def link_target_dependencies(context: GenerationContext) -> int:
    """Add inter-target edges for every declared dependency and configuration.

    Dependencies on interface targets carry no nodes and are skipped.

    Returns:
        Number of edges applied.
    """
    edges: list[tuple[int, int]] = []
    for target in context.ordered_targets:
        for config in context.configurations:
            this_id = context.record_ids.get((target.name, config))
            if this_id is None:
                continue
            for dep in target.dependencies:
                other_id = context.record_ids.get((dep, config))
                if other_id is not None:
                    edges.append((this_id, other_id))
    return link_all(context.arena, edges)


# ===--- Aliases ---=== #


def action_alias(action: BuildAction) -> Alias:
    """Alias emitted in place of a deduplicated action.

    The alias also lists the action's own ordering dependencies, so whatever
    waits on the alias still waits on them.
    """
    if action.alias_of is None:
        raise InternalError(f"Action {action.name} is not an alias")
    return Alias(action.name, (action.alias_of, *action.dependencies))


def target_aliases(record: TargetPhases, target: str, config: str) -> tuple[Alias, ...]:
    aliases: list[Alias] = []
    products = record.products()
    if products:
        aliases.append(Alias(products_alias_name(target, config), tuple(products)))
    completion = record.last_executed()
    if completion:
        aliases.append(Alias(target_alias_name(target, config), tuple(completion)))
    return tuple(aliases)


def global_aliases(
    definitions: list[TargetDefinition], configurations: tuple[str, ...]
) -> tuple[Alias, ...]:
    """Per-configuration, per-target and `All` aliases.

    A configuration alias lists every target not excluded from all; empty
    aliases are dropped.
    """
    per_config: dict[str, list[str]] = {config: [] for config in configurations}
    per_target: dict[str, list[str]] = {}
    for definition in definitions:
        name = definition.alias_name
        if name is None:
            continue
        per_target.setdefault(definition.facts.name, []).append(name)
        if not definition.facts.exclude_from_all:
            per_config[definition.config].append(name)

    aliases: list[Alias] = []
    for config, names in per_config.items():
        if names:
            aliases.append(Alias(config, tuple(names)))
    for target, names in per_target.items():
        aliases.append(Alias(target, tuple(names)))
    all_configs = tuple(config for config, names in per_config.items() if names)
    if all_configs:
        aliases.append(Alias("All", all_configs))
    return tuple(aliases)


def collect_aliases(
    context: GenerationContext,
) -> tuple[list[TargetDefinition], tuple[Alias, ...]]:
    """Pair every record with its target aliases, then derive the global ones.

    Returns:
        (definitions in emission order, global aliases).
    """
    definitions: list[TargetDefinition] = []
    for target in context.ordered_targets:
        for config in context.configurations:
            record = context.arena[context.record_ids[(target.name, config)]]
            definitions.append(
                TargetDefinition(
                    facts=target,
                    config=config,
                    record=record,
                    aliases=target_aliases(record, target.name, config),
                )
            )
    return definitions, global_aliases(definitions, context.configurations)


# ===--- Pipeline ---=== #


def compile_graph(
    project: ProjectFacts, configurations: tuple[str, ...] | None = None
) -> BuildGraph:
    """Run every graph stage and return the ordered, deduplicated build graph.

    Args:
        project: Validated facts.
        configurations: Overrides project.configurations when given.

    Raises:
        CycleDetectedError: Targets or custom commands depend on each other
            in a loop.
        GenerationError: A target cannot be generated.
        InternalError: A structural invariant was violated.
    """
    context = GenerationContext(
        project=project,
        configurations=tuple(configurations or project.configurations),
    )
    context.ordered_targets = [
        t for t in order_targets(project) if t.kind is not TargetKind.INTERFACE
    ]
    collect_compilers(context)

    for target in context.ordered_targets:
        for config in context.configurations:
            build_target_phases(context, target, config)

    link_target_dependencies(context)
    definitions, aliases = collect_aliases(context)

    return BuildGraph(
        project=project,
        configurations=context.configurations,
        compilers=tuple(context.compilers.values()),
        targets=tuple(definitions),
        aliases=aliases,
        dedup_alias_count=len(context.deduplicator.aliases),
        fresh_action_count=context.deduplicator.fresh_count,
    )


# ===--- Rendering ---=== #


def format_arguments(arguments: list[str]) -> str:
    """Join an argument list into one command-line string.

    Arguments that are empty or contain whitespace are double-quoted.
    """
    parts: list[str] = []
    for arg in arguments:
        if arg == "" or any(ch.isspace() for ch in arg):
            escaped = arg.replace('"', '\\"')
            parts.append(f'"{escaped}"')
        else:
            parts.append(arg)
    return " ".join(parts)


def _write_alias(writer: ScopedWriter, alias: Alias) -> None:
    writer.push_function_call("Alias", alias.name)
    writer.write_array("Targets", list(alias.targets))
    writer.pop_function_call()


def _write_exec(writer: ScopedWriter, action: BuildAction) -> None:
    if action.comment:
        writer.write_comment(action.comment)
    if action.is_alias:
        _write_alias(writer, action_alias(action))
        return
    writer.push_function_call("Exec", action.name)
    writer.write_variable("ExecExecutable", action.executable)
    if action.working_dir:
        writer.write_variable("ExecWorkingDir", action.working_dir)
    if action.inputs:
        writer.write_array("ExecInput", action.inputs)
    writer.write_variable("ExecOutput", action.output)
    if action.arguments:
        writer.write_variable("ExecArguments", format_arguments(action.arguments))
    writer.write_variable("ExecUseStdOutAsOutput", action.use_stdout_as_output)
    writer.write_variable("ExecAlways", action.always_run)
    if action.dependencies:
        writer.write_array("PreBuildDependencies", action.dependencies)
    writer.pop_function_call()


def _write_object_list(writer: ScopedWriter, batch: CompileBatch) -> None:
    writer.push_function_call("ObjectList", batch.alias)
    writer.write_variable("Compiler", batch.compiler)
    writer.write_variable("CompilerOptions", batch.compiler_options)
    writer.write_variable("CompilerOutputPath", batch.output_dir)
    writer.write_array("CompilerInputFiles", batch.input_files)
    if batch.dependencies:
        writer.write_array("PreBuildDependencies", batch.dependencies)
    writer.pop_function_call()


def _write_link(
    writer: ScopedWriter, link: LinkAction, graph: BuildGraph
) -> None:
    writer.push_function_call(link.kind.statement, link.name)
    if link.kind is LinkKind.STATIC:
        if graph.compilers:
            # The Library function compiles nothing here but still requires
            # the compiler settings.
            writer.write_variable("Compiler", graph.compilers[0].name)
            writer.write_variable("CompilerOptions", LIBRARY_COMPILER_OPTIONS)
            writer.write_variable(
                "CompilerOutputPath", f"{graph.project.root_dir}/dummy"
            )
        writer.write_variable("Librarian", link.linker)
        writer.write_variable("LibrarianOptions", link.linker_options)
        writer.write_variable("LibrarianOutput", link.output)
        writer.write_array("LibrarianAdditionalInputs", link.references)
    else:
        writer.write_variable("Linker", link.linker)
        writer.write_variable("LinkerOptions", link.linker_options)
        writer.write_variable("LinkerOutput", link.output)
        writer.write_array("Libraries", link.references)
    if link.dependencies:
        writer.write_array("PreBuildDependencies", link.dependencies)
    writer.pop_function_call()


def _write_compiler(writer: ScopedWriter, compiler: CompilerDef) -> None:
    root, filename = posixpath.split(compiler.executable)
    writer.push_function_call("Compiler", compiler.name)
    writer.write_variable("CompilerRoot", root)
    writer.write_variable(
        "Executable", f"$CompilerRoot$/{filename}" if root else filename,
        allow_macros=True,
    )
    if compiler.extra_files:
        writer.write_array("ExtraFiles", list(compiler.extra_files))
    writer.pop_function_call()


def _write_target(writer: ScopedWriter, definition: TargetDefinition, graph: BuildGraph) -> None:
    record = definition.record
    writer.write_blank_line()
    writer.write_comment(f"Target definition: {definition.facts.name} ({definition.config})")
    for action in record.pre_build:
        _write_exec(writer, action)
    for batch in record.compile_batches:
        _write_object_list(writer, batch)
    for action in record.pre_link:
        _write_exec(writer, action)
    if record.link is not None:
        _write_link(writer, record.link, graph)
    for action in record.post_build:
        _write_exec(writer, action)
    for alias in definition.aliases:
        _write_alias(writer, alias)


def render_bff(graph: BuildGraph) -> str:
    """Serialize a BuildGraph into .bff text in a single append-only pass.

    Raises:
        InternalError: Propagated from the writer on unbalanced scopes.
    """
    stream = io.StringIO()
    writer = ScopedWriter(stream)
    project = graph.project

    writer.write_section_header(
        f"FASTBuild build description for {project.name} - generated by bffgen"
    )

    writer.write_section_header("Settings")
    writer.push_function_call("Settings")
    writer.write_variable("CachePath", f"{project.root_dir}/{CACHE_DIRNAME}")
    writer.pop_function_call()

    writer.write_section_header("Compilers")
    for compiler in graph.compilers:
        _write_compiler(writer, compiler)

    writer.write_section_header("Target Definitions")
    for definition in graph.targets:
        _write_target(writer, definition, graph)

    writer.write_section_header("Aliases")
    for alias in graph.aliases:
        _write_alias(writer, alias)

    writer.close()
    return stream.getvalue()


# ===--- Writer I/O ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing the generated file.

    Attributes:
        filename: Filename written, e.g. "fbuild.bff".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the content.
        byte_count: Number of UTF-8 bytes written.
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


def write_bff(output_dir: Path, text: str, filename: str = BFF_FILENAME) -> FileWriteResult:
    """Write .bff text to disk, creating output_dir if needed.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / filename
    file_path.write_text(text, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=filename,
        path=resolved,
        line_count=text.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )
