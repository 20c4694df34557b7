"""Per-target phase records and the arena that stores them.

A target builds in five ordered phases: PreBuild, Compile, PreLink, Link and
PostBuild. TargetPhases owns the nodes of one target in one configuration and
wires the intra-target ordering edges between them.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


class Phase(str, Enum):
    PRE_BUILD = "PreBuild"
    COMPILE = "Compile"
    PRE_LINK = "PreLink"
    LINK = "Link"
    POST_BUILD = "PostBuild"


class LinkKind(str, Enum):
    STATIC = "static"
    SHARED = "shared"
    EXECUTABLE = "executable"

    @property
    def statement(self) -> str:
        """The .bff function that builds this kind of link node."""
        return _LINK_STATEMENTS[self]


_LINK_STATEMENTS = {
    LinkKind.STATIC: "Library",
    LinkKind.SHARED: "DLL",
    LinkKind.EXECUTABLE: "Executable",
}


def append_unique(values: list[str], value: str) -> None:
    if value not in values:
        values.append(value)


# ===--- Nodes ---=== #


@dataclass
class BuildAction:
    """One external-process invocation ("Exec").

    Attributes:
        name: Unique node name.
        executable: Program to run.
        arguments: Argument list, rendered as one string on emission.
        working_dir: Working directory, empty for the engine default.
        output: Declared output path. Empty until compute_default_outputs
            assigns a placeholder.
        use_stdout_as_output: Capture stdout into `output`.
        always_run: Run on every build regardless of output state.
        dependencies: Names of nodes that must finish first.
        inputs: Declared input files.
        alias_of: Set by the deduplicator when this action is emitted as an
            alias of an action already defined elsewhere.
        comment: Free text written above the node.
    """

    name: str
    executable: str = ""
    arguments: list[str] = field(default_factory=list)
    working_dir: str = ""
    output: str = ""
    use_stdout_as_output: bool = False
    always_run: bool = False
    dependencies: list[str] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)
    alias_of: str | None = None
    comment: str | None = None

    @property
    def is_alias(self) -> bool:
        return self.alias_of is not None


@dataclass
class CompileBatch:
    """Source files sharing one compiler and one option string ("ObjectList")."""

    alias: str
    compiler: str = ""
    compiler_options: str = ""
    output_dir: str = ""
    input_files: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    language: str = ""

    @property
    def name(self) -> str:
        return self.alias


@dataclass
class LinkAction:
    """The single link step of a target ("Library", "DLL" or "Executable").

    Attributes:
        link_dependency_output: Path a dependent target references so the
            engine relinks it when this output changes. Empty for executables.
        references: Libraries, object lists and paths passed to the linker.
    """

    name: str
    kind: LinkKind
    linker: str = ""
    linker_options: str = ""
    output: str = ""
    link_dependency_output: str = ""
    references: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Alias:
    name: str
    targets: tuple[str, ...]


# ===--- Target phase record ---=== #


class TargetPhases:
    """All build nodes of one target, grouped by phase.

    Nodes are created through the make_* methods so their names follow
    `<name>_<Phase>_<index>` (`<name>_Library` for the link action).
    """

    def __init__(self, name: str):
        self.name = name
        self.pre_build: list[BuildAction] = []
        self.compile_batches: list[CompileBatch] = []
        self.pre_link: list[BuildAction] = []
        self.link: LinkAction | None = None
        self.post_build: list[BuildAction] = []

    def __repr__(self) -> str:
        return f"TargetPhases({self.name!r})"

    @property
    def has_link_action(self) -> bool:
        return self.link is not None

    @property
    def has_build_actions(self) -> bool:
        return bool(self.pre_build or self.pre_link or self.post_build)

    def _phase_name(self, phase: Phase, index: int) -> str:
        return f"{self.name}_{phase.value}_{index}"

    # Node factories

    def make_pre_build_action(self) -> BuildAction:
        action = BuildAction(self._phase_name(Phase.PRE_BUILD, len(self.pre_build)))
        self.pre_build.append(action)
        return action

    def make_compile_batch(self) -> CompileBatch:
        batch = CompileBatch(
            self._phase_name(Phase.COMPILE, len(self.compile_batches))
        )
        self.compile_batches.append(batch)
        return batch

    def make_pre_link_action(self) -> BuildAction:
        action = BuildAction(self._phase_name(Phase.PRE_LINK, len(self.pre_link)))
        self.pre_link.append(action)
        return action

    def make_link_action(self, kind: LinkKind) -> LinkAction:
        self.link = LinkAction(f"{self.name}_Library", kind)
        return self.link

    def make_post_build_action(self) -> BuildAction:
        action = BuildAction(
            self._phase_name(Phase.POST_BUILD, len(self.post_build))
        )
        self.post_build.append(action)
        return action

    # Derived views

    def build_actions(self) -> Iterator[BuildAction]:
        yield from self.pre_build
        yield from self.pre_link
        yield from self.post_build

    def nodes(self) -> Iterator[BuildAction | CompileBatch | LinkAction]:
        """Yield every node in phase order, which is also emission order."""
        yield from self.pre_build
        yield from self.compile_batches
        yield from self.pre_link
        if self.link is not None:
            yield self.link
        yield from self.post_build

    def compute_default_outputs(self, root_dir: str) -> None:
        """Give every output-less action a placeholder that captures stdout.

        The build engine requires every Exec to declare an output. Aliased
        actions are skipped; they are not emitted as Exec nodes.
        """
        for action in self.build_actions():
            if action.is_alias or action.output:
                continue
            action.output = f"{root_dir}/{action.name}.txt"
            action.use_stdout_as_output = True
            action.always_run = True

    def compute_internal_dependencies(self) -> None:
        """Wire the ordering edges between this target's phases.

        Steps, applied in this order:
          1. The link action references every compile batch.
          2. Within each action phase, action i waits on action i-1.
          3. Every compile batch waits on the last pre-build action.
          4. The first pre-link action waits on all compile batches, else on
             the last pre-build action.
          5. The link action waits on the last pre-link action.
          6. The first post-build action waits on the link action, else the
             last pre-link action, else all compile batches, else the last
             pre-build action.

        Safe to call more than once; edges are never duplicated.
        """
        batch_names = [batch.alias for batch in self.compile_batches]

        if self.link is not None and batch_names:
            missing = [name for name in batch_names if name not in self.link.references]
            self.link.references[0:0] = missing

        for actions in (self.pre_build, self.pre_link, self.post_build):
            for previous, current in zip(actions, actions[1:]):
                append_unique(current.dependencies, previous.name)

        if self.pre_build:
            last_pre_build = self.pre_build[-1].name
            for batch in self.compile_batches:
                append_unique(batch.dependencies, last_pre_build)

        if self.pre_link:
            first_pre_link = self.pre_link[0]
            if batch_names:
                for name in batch_names:
                    append_unique(first_pre_link.dependencies, name)
            elif self.pre_build:
                append_unique(first_pre_link.dependencies, self.pre_build[-1].name)

        if self.link is not None and self.pre_link:
            append_unique(self.link.dependencies, self.pre_link[-1].name)

        if self.post_build:
            first_post_build = self.post_build[0]
            if self.link is not None:
                upstream = [self.link.name]
            elif self.pre_link:
                upstream = [self.pre_link[-1].name]
            elif batch_names:
                upstream = batch_names
            elif self.pre_build:
                upstream = [self.pre_build[-1].name]
            else:
                upstream = []
            for name in upstream:
                append_unique(first_post_build.dependencies, name)

    def last_executed(self) -> list[str]:
        """Names of the nodes marking this target's completion point."""
        if self.post_build:
            return [self.post_build[-1].name]
        if self.link is not None:
            return [self.link.name]
        if self.pre_link:
            return [self.pre_link[-1].name]
        if self.compile_batches:
            return [batch.alias for batch in self.compile_batches]
        if self.pre_build:
            return [self.pre_build[-1].name]
        return []

    def first_executed(self) -> list[BuildAction | CompileBatch | LinkAction]:
        """Entry nodes whose dependency lists grow when this target must wait."""
        if self.pre_build:
            return [self.pre_build[0]]
        if self.compile_batches:
            return list(self.compile_batches)
        if self.pre_link:
            return [self.pre_link[0]]
        if self.link is not None:
            return [self.link]
        if self.post_build:
            return [self.post_build[0]]
        return []

    def products(self) -> list[str]:
        """Names of the linkable nodes: the link action, else the object lists."""
        if self.link is not None:
            return [self.link.name]
        return [batch.alias for batch in self.compile_batches]


# ===--- Arena ---=== #


class TargetArena:
    """Owns every TargetPhases record of a run; callers hold integer ids."""

    def __init__(self) -> None:
        self._records: list[TargetPhases] = []
        self._ids: dict[str, int] = {}

    def add(self, record: TargetPhases) -> int:
        if record.name in self._ids:
            raise ValueError(f"Target record already exists: {record.name}")
        self._ids[record.name] = len(self._records)
        self._records.append(record)
        return self._ids[record.name]

    def __getitem__(self, target_id: int) -> TargetPhases:
        return self._records[target_id]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[TargetPhases]:
        return iter(self._records)

    def id_of(self, name: str) -> int | None:
        return self._ids.get(name)
