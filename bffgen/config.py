"""Command-line configuration: argparse flags -> validated config contracts."""

import argparse
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

DEFAULT_FACTS = Path("fbuild-targets.xml")
DEFAULT_OUTPUT_DIR = Path(".")
_RESERVED_CONFIG_CHARS = frozenset("'\"$^{}[]\\/ \t")


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    """Inputs of one generation run.

    Attributes:
        facts: Target facts file.
        output_dir: Directory receiving fbuild.bff.
        configurations: Overrides the facts file's configurations when
            non-empty.
    """

    facts: Path
    output_dir: Path
    configurations: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_target: str | None
    facts: Path


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def validate_configuration_name(name: str) -> str:
    if name and not any(ch in _RESERVED_CONFIG_CHARS for ch in name):
        return name
    raise ConfigError(
        "INVALID_CONFIGURATION",
        f"Invalid configuration name: {name!r}",
        "Configuration names are non-empty and contain no quotes, slashes, "
        "braces, '$', '^' or whitespace.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bffgen",
        description="Generate a FASTBuild .bff file from target facts",
    )

    parser.add_argument("--facts", type=Path, default=DEFAULT_FACTS)
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument(
        "--config", dest="configurations", action="append", default=None
    )

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-targets", action="store_true", default=False)
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(args.output_dir is not None or args.configurations)
    has_discovery_command = bool(args.list_targets or args.info)

    if args.filter and not args.list_targets:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-targets.",
            "Add --list-targets or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    facts = validate_path_exists(
        args.facts,
        "--facts",
        "Export target facts from the host project first,\n"
        "or pass a custom path: --facts /your/path/to/fbuild-targets.xml",
    )

    if has_discovery_command:
        return DiscoveryConfig(
            command="list-targets" if args.list_targets else "info",
            filter_text=args.filter,
            info_target=args.info,
            facts=facts,
        )

    configurations: list[str] = []
    for name in args.configurations or []:
        validate_configuration_name(name)
        if name in configurations:
            raise ConfigError(
                "INVALID_CONFIGURATION",
                f"Configuration given twice: {name}",
                "Pass each --config name once.",
            )
        configurations.append(name)

    return GenerateConfig(
        facts=facts,
        output_dir=args.output_dir if args.output_dir is not None else DEFAULT_OUTPUT_DIR,
        configurations=tuple(configurations),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))
