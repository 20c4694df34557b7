import argparse
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from bffgen.facts import (  # noqa: E402
    CommandFacts,
    CompileFacts,
    LinkFacts,
    ProjectFacts,
    TargetFacts,
    TargetKind,
    parse_project,
)


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    facts = tmp_path / "fbuild-targets.xml"
    facts.write_text('<project name="empty" root="build" />\n', encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "facts": facts,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "facts": existing_paths["facts"],
            "output_dir": None,
            "configurations": None,
            "list_targets": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_project_root() -> Callable[[str], ET.Element]:
    def _make_project_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f'<project name="demo" root="/build">{inner_xml}</project>')

    return _make_project_root


@pytest.fixture
def load_xml_project(
    make_project_root: Callable[[str], ET.Element],
) -> Callable[[str], ProjectFacts]:
    def _load(inner_xml: str) -> ProjectFacts:
        return parse_project(make_project_root(inner_xml))

    return _load


@pytest.fixture
def make_command() -> Callable[..., CommandFacts]:
    def _make_command(identity: str, **overrides: object) -> CommandFacts:
        fields: dict[str, object] = {"identity": identity, "executable": "/usr/bin/tool"}
        fields.update(overrides)
        return CommandFacts(**fields)

    return _make_command


@pytest.fixture
def make_compile() -> Callable[..., CompileFacts]:
    def _make_compile(*sources: str, **overrides: object) -> CompileFacts:
        fields: dict[str, object] = {
            "language": "CXX",
            "compiler": "/usr/bin/c++",
            "options": "-c %1 -o %2",
            "output_dir": "/build/obj",
            "sources": sources or ("/src/main.cpp",),
        }
        fields.update(overrides)
        return CompileFacts(**fields)

    return _make_compile


@pytest.fixture
def make_link() -> Callable[..., LinkFacts]:
    def _make_link(output: str, **overrides: object) -> LinkFacts:
        fields: dict[str, object] = {
            "linker": "/usr/bin/c++",
            "options": "%1 -o %2",
            "output": output,
        }
        fields.update(overrides)
        return LinkFacts(**fields)

    return _make_link


@pytest.fixture
def make_target() -> Callable[..., TargetFacts]:
    def _make_target(name: str, kind: str = "utility", **overrides: object) -> TargetFacts:
        return TargetFacts(name=name, kind=TargetKind(kind), **overrides)

    return _make_target


@pytest.fixture
def make_project() -> Callable[..., ProjectFacts]:
    def _make_project(
        targets: list[TargetFacts],
        commands: list[CommandFacts] | None = None,
        configurations: tuple[str, ...] = ("Debug",),
    ) -> ProjectFacts:
        return ProjectFacts(
            name="demo",
            root_dir="/build",
            configurations=configurations,
            commands={c.identity: c for c in commands or []},
            targets=tuple(targets),
        )

    return _make_project
