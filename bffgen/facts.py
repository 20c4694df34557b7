"""Target facts handed over by the host project model.

Facts are plain frozen data: names, paths, flags and lists, already resolved
by the host except for the `$ConfigName$` placeholder, which generation
resolves per configuration. They are loaded from an XML facts file.
"""

import posixpath
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ConfigError

DEFAULT_CONFIGURATIONS: tuple[str, ...] = ("Debug", "Release")
RESERVED_ALIAS_NAMES = frozenset({"All"})
CONFIG_NAME_MACRO = "$ConfigName$"


class TargetKind(str, Enum):
    EXECUTABLE = "executable"
    SHARED = "shared"
    MODULE = "module"
    STATIC = "static"
    OBJECT = "object"
    UTILITY = "utility"
    INTERFACE = "interface"

    @property
    def links(self) -> bool:
        return self in _LINKING_KINDS

    @property
    def compiles(self) -> bool:
        return self in _LINKING_KINDS or self is TargetKind.OBJECT


_LINKING_KINDS = frozenset(
    {TargetKind.EXECUTABLE, TargetKind.SHARED, TargetKind.MODULE, TargetKind.STATIC}
)


class CommandPhase(str, Enum):
    PRE_BUILD = "pre-build"
    CUSTOM = "custom-commands"
    PRE_LINK = "pre-link"
    POST_BUILD = "post-build"


# ===--- Facts data classes ---=== #


@dataclass(frozen=True)
class CommandFacts:
    """One user-declared command.

    Attributes:
        identity: Deduplication key. Project-level commands use their `id`;
            inline commands use `<target>/<phase>/<index>`.
        executable: Program to run.
        arguments: Argument list.
        working_dir: Working directory, empty for the engine default.
        outputs: Declared output files; may contain `$ConfigName$`.
        byproducts: Extra files written; only used for ordering.
        inputs: Declared input files.
        depends: Target names this command waits on.
        always_run: Run on every build.
        comment: Free text echoed into the .bff file.
    """

    identity: str
    executable: str
    arguments: tuple[str, ...] = ()
    working_dir: str = ""
    outputs: tuple[str, ...] = ()
    byproducts: tuple[str, ...] = ()
    inputs: tuple[str, ...] = ()
    depends: tuple[str, ...] = ()
    always_run: bool = False
    comment: str | None = None


@dataclass(frozen=True)
class CompileFacts:
    language: str
    compiler: str
    options: str
    output_dir: str
    sources: tuple[str, ...]
    config: str | None = None
    extra_files: tuple[str, ...] = ()


@dataclass(frozen=True)
class LinkFacts:
    linker: str
    options: str
    output: str
    link_dependency_output: str | None = None
    libraries: tuple[str, ...] = ()
    config: str | None = None


@dataclass(frozen=True)
class TargetFacts:
    """Everything the host knows about one target.

    Command phases hold identities into ProjectFacts.commands, in declaration
    order.
    """

    name: str
    kind: TargetKind
    dependencies: tuple[str, ...] = ()
    pre_build: tuple[str, ...] = ()
    custom_commands: tuple[str, ...] = ()
    pre_link: tuple[str, ...] = ()
    post_build: tuple[str, ...] = ()
    compiles: tuple[CompileFacts, ...] = ()
    links: tuple[LinkFacts, ...] = ()
    exclude_from_all: bool = False

    def command_ids(self) -> tuple[str, ...]:
        return self.pre_build + self.custom_commands + self.pre_link + self.post_build

    def compiles_for(self, config: str) -> tuple[CompileFacts, ...]:
        return tuple(c for c in self.compiles if c.config in (None, config))

    def links_for(self, config: str) -> tuple[LinkFacts, ...]:
        return tuple(link for link in self.links if link.config in (None, config))


@dataclass(frozen=True)
class ProjectFacts:
    name: str
    root_dir: str
    configurations: tuple[str, ...]
    commands: dict[str, CommandFacts]
    targets: tuple[TargetFacts, ...]

    def target(self, name: str) -> TargetFacts | None:
        for target in self.targets:
            if target.name == name:
                return target
        return None

    def target_dependencies(self, target: TargetFacts) -> tuple[str, ...]:
        """Declared dependencies plus targets named by the target's commands."""
        names: list[str] = list(target.dependencies)
        for command_id in target.command_ids():
            for dep in self.commands[command_id].depends:
                if dep not in names:
                    names.append(dep)
        return tuple(names)


# ===--- Placeholder and path helpers ---=== #


def resolve_config_name(text: str, config: str) -> str:
    return text.replace(CONFIG_NAME_MACRO, config)


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or (len(path) > 1 and path[1] == ":")


def normalize_path(path: str, base: str = "") -> str:
    """Convert slashes and anchor a relative path at `base` when one is given."""
    converted = path.replace("\\", "/")
    if base and not _is_absolute(converted):
        return posixpath.normpath(posixpath.join(base.replace("\\", "/"), converted))
    return converted


# ===--- XML loading ---=== #

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


def _parse_bool(raw: str | None, where: str) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(
        "INVALID_FACTS",
        f"Invalid boolean {raw!r} in {where}",
        "Use true or false.",
    )


def _require_attr(element: ET.Element, attr: str, where: str) -> str:
    value = element.get(attr)
    if value is None or not value.strip():
        raise ConfigError(
            "INVALID_FACTS",
            f"<{element.tag}> in {where} is missing the '{attr}' attribute",
        )
    return value


def _texts(element: ET.Element, tag: str) -> tuple[str, ...]:
    return tuple((child.text or "").strip() for child in element.findall(tag))


def parse_command(element: ET.Element, identity: str) -> CommandFacts:
    where = f"command '{identity}'"
    return CommandFacts(
        identity=identity,
        executable=_require_attr(element, "executable", where),
        arguments=tuple(child.text or "" for child in element.findall("arg")),
        working_dir=element.get("working-dir", ""),
        outputs=_texts(element, "output"),
        byproducts=_texts(element, "byproduct"),
        inputs=_texts(element, "input"),
        depends=_texts(element, "depends"),
        always_run=_parse_bool(element.get("always"), where),
        comment=element.get("comment"),
    )


def _parse_compile(element: ET.Element, target: str) -> CompileFacts:
    where = f"target '{target}'"
    return CompileFacts(
        language=_require_attr(element, "language", where),
        compiler=_require_attr(element, "compiler", where),
        options=element.get("options", ""),
        output_dir=_require_attr(element, "output-dir", where),
        sources=_texts(element, "source"),
        config=element.get("config"),
        extra_files=_texts(element, "extra-file"),
    )


def _parse_link(element: ET.Element, target: str) -> LinkFacts:
    where = f"target '{target}'"
    return LinkFacts(
        linker=_require_attr(element, "linker", where),
        options=element.get("options", ""),
        output=_require_attr(element, "output", where),
        link_dependency_output=element.get("link-output"),
        libraries=_texts(element, "library"),
        config=element.get("config"),
    )


def _parse_target(
    element: ET.Element, commands: dict[str, CommandFacts]
) -> TargetFacts:
    name = _require_attr(element, "name", "project")
    raw_kind = _require_attr(element, "type", f"target '{name}'")
    try:
        kind = TargetKind(raw_kind)
    except ValueError as err:
        raise ConfigError(
            "INVALID_FACTS",
            f"Unknown type {raw_kind!r} for target '{name}'",
            "Use one of: " + ", ".join(k.value for k in TargetKind) + ".",
        ) from err

    phases: dict[CommandPhase, list[str]] = {phase: [] for phase in CommandPhase}
    for phase in CommandPhase:
        for container in element.findall(phase.value):
            for command in container.findall("command"):
                ref = command.get("ref")
                if ref is not None:
                    if ref not in commands:
                        raise ConfigError(
                            "UNKNOWN_REFERENCE",
                            f"Target '{name}' references unknown command '{ref}'",
                            "Declare the command at project level with <command id=...>.",
                        )
                    phases[phase].append(ref)
                    continue
                identity = f"{name}/{phase.value}/{len(phases[phase])}"
                commands[identity] = parse_command(command, identity)
                phases[phase].append(identity)

    compiles = tuple(_parse_compile(c, name) for c in element.findall("compile"))
    links = tuple(_parse_link(link, name) for link in element.findall("link"))
    if compiles and not kind.compiles:
        raise ConfigError(
            "INVALID_FACTS",
            f"Target '{name}' of type {kind.value} cannot have <compile> elements",
        )
    if links and not kind.links:
        raise ConfigError(
            "INVALID_FACTS",
            f"Target '{name}' of type {kind.value} cannot have <link> elements",
        )

    return TargetFacts(
        name=name,
        kind=kind,
        dependencies=_texts(element, "depends"),
        pre_build=tuple(phases[CommandPhase.PRE_BUILD]),
        custom_commands=tuple(phases[CommandPhase.CUSTOM]),
        pre_link=tuple(phases[CommandPhase.PRE_LINK]),
        post_build=tuple(phases[CommandPhase.POST_BUILD]),
        compiles=compiles,
        links=links,
        exclude_from_all=_parse_bool(
            element.get("exclude-from-all"), f"target '{name}'"
        ),
    )


def _generated_name_clash(
    name: str, targets: list[str], configurations: tuple[str, ...]
) -> str | None:
    """Return the target whose generated aliases or nodes `name` would shadow."""
    for other in targets:
        if other == name:
            continue
        for config in configurations:
            record = f"{other}-{config}"
            if name in (record, f"{record}-products") or name.startswith(f"{record}_"):
                return other
    return None


def validate_project(project: ProjectFacts) -> None:
    """Reject duplicate names and dangling target references.

    A target may not take a name generated for another target in any
    configuration: `<T>-<C>`, `<T>-<C>-products` or a `<T>-<C>_` node name.

    Raises:
        ConfigError: DUPLICATE_NAME or UNKNOWN_REFERENCE.
    """
    seen: set[str] = set()
    reserved = set(project.configurations) | RESERVED_ALIAS_NAMES
    for target in project.targets:
        if target.name in seen:
            raise ConfigError("DUPLICATE_NAME", f"Duplicate target name: {target.name}")
        if target.name in reserved:
            raise ConfigError(
                "DUPLICATE_NAME",
                f"Target name '{target.name}' clashes with a generated alias",
                "Rename the target; configuration names and 'All' are reserved.",
            )
        seen.add(target.name)

    names = [target.name for target in project.targets]
    for target in project.targets:
        clash = _generated_name_clash(target.name, names, project.configurations)
        if clash is not None:
            raise ConfigError(
                "DUPLICATE_NAME",
                f"Target name '{target.name}' clashes with a name generated for "
                f"target '{clash}'",
                "Rename the target; '<target>-<config>' and the node names "
                "derived from it are reserved.",
            )

    for target in project.targets:
        for dep in project.target_dependencies(target):
            if dep not in seen:
                raise ConfigError(
                    "UNKNOWN_REFERENCE",
                    f"Target '{target.name}' depends on unknown target '{dep}'",
                )


def parse_project(root: ET.Element) -> ProjectFacts:
    """Build ProjectFacts from a parsed facts document.

    Args:
        root: The <project> element.

    Returns:
        Validated ProjectFacts.

    Raises:
        ConfigError: On any malformed or inconsistent fact.
    """
    if root.tag != "project":
        raise ConfigError(
            "INVALID_FACTS",
            f"Facts root element must be <project>, got <{root.tag}>",
        )

    commands: dict[str, CommandFacts] = {}
    for element in root.findall("command"):
        identity = _require_attr(element, "id", "project")
        if identity in commands:
            raise ConfigError("DUPLICATE_NAME", f"Duplicate command id: {identity}")
        commands[identity] = parse_command(element, identity)

    configurations = tuple(
        _require_attr(c, "name", "project") for c in root.findall("configuration")
    )
    targets = tuple(_parse_target(t, commands) for t in root.findall("target"))

    project = ProjectFacts(
        name=root.get("name", "project"),
        root_dir=normalize_path(root.get("root", ".")),
        configurations=configurations or DEFAULT_CONFIGURATIONS,
        commands=commands,
        targets=targets,
    )
    validate_project(project)
    return project


def load_project(path: Path) -> ProjectFacts:
    """Parse and validate a facts file.

    Raises:
        OSError: File not readable.
        ET.ParseError: Malformed XML.
        ConfigError: Malformed or inconsistent facts.
    """
    return parse_project(ET.parse(path).getroot())
