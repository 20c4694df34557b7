from pathlib import Path

import pytest

from bffgen.config import DiscoveryConfig
from bffgen.discovery import (
    TargetSummary,
    filter_targets_by_text,
    format_target_detail,
    format_targets_table,
    gather_target_detail,
    gather_target_summaries,
    run_discovery,
)
from bffgen.errors import CycleDetectedError
from bffgen.facts import load_project

FIXTURES = Path(__file__).resolve().parent / "fixtures"
DEMO = FIXTURES / "demo_project.xml"


def _summary(name: str, kind: str = "utility", **overrides: object) -> TargetSummary:
    fields: dict[str, object] = {
        "name": name,
        "kind": kind,
        "dependency_count": 0,
        "command_count": 0,
        "source_count": 0,
        "excluded": False,
    }
    fields.update(overrides)
    return TargetSummary(**fields)


# ===--- Extractors ---=== #


def test_summaries_are_in_build_order() -> None:
    summaries = gather_target_summaries(load_project(DEMO))

    assert [(s.name, s.kind) for s in summaries] == [
        ("core", "static"),
        ("app", "executable"),
        ("docs", "utility"),
    ]
    core, app, docs = summaries
    assert (core.dependency_count, core.command_count, core.source_count) == (0, 2, 2)
    assert (app.dependency_count, app.command_count, app.source_count) == (1, 2, 1)
    assert docs.excluded is True


def test_summaries_raise_on_cycle() -> None:
    with pytest.raises(CycleDetectedError):
        gather_target_summaries(load_project(FIXTURES / "cyclic_project.xml"))


def test_filter_matches_name_substring_case_insensitively() -> None:
    summaries = [_summary("CoreLib"), _summary("app"), _summary("core_tests")]

    assert [s.name for s in filter_targets_by_text(summaries, "core")] == [
        "CoreLib",
        "core_tests",
    ]


def test_filter_matches_exact_type() -> None:
    summaries = [_summary("a", "static"), _summary("b", "shared")]

    assert [s.name for s in filter_targets_by_text(summaries, "shared")] == ["b"]


def test_detail_for_unknown_target_is_none() -> None:
    assert gather_target_detail(load_project(DEMO), "missing") is None


# ===--- Formatters ---=== #


def test_table_layout() -> None:
    output = format_targets_table(
        [
            _summary("core", "static", command_count=2, source_count=2),
            _summary("docs", "utility", dependency_count=1, command_count=1, excluded=True),
        ],
        "demo",
    )

    lines = output.split("\n")
    assert lines[0] == "2 targets in demo (build order):"
    assert lines[1] == ""
    assert lines[2] == "  core  static " + "    0 deps   2 cmds    2 srcs"
    assert lines[3] == "  docs  utility" + "    1 deps   1 cmds    0 srcs   (excluded)"
    assert output.endswith("\n")


def test_empty_table() -> None:
    assert format_targets_table([], "demo") == "0 targets in demo (build order):\n\n"


def test_detail_layout() -> None:
    detail = gather_target_detail(load_project(DEMO), "core")
    assert detail is not None

    assert format_target_detail(detail) == (
        "core (static)\n"
        "  Excluded: no\n"
        "\n"
        "  Custom commands (2):\n"
        "    gen_version\n"
        "    gen_config\n"
        "\n"
        "  Compile (1):\n"
        "    CXX     all        2 sources\n"
        "\n"
        "  Link (1):\n"
        "    all        /work/build/lib/$ConfigName$/libcore.a\n"
    )


def test_detail_lists_dependencies_and_inline_commands() -> None:
    detail = gather_target_detail(load_project(DEMO), "app")
    assert detail is not None

    output = format_target_detail(detail)

    assert "  Depends:  core\n" in output
    assert "  Post-build (1):\n    app/post-build/0\n" in output


# ===--- Dispatch ---=== #


def test_run_discovery_list_targets_with_filter(capsys: pytest.CaptureFixture[str]) -> None:
    run_discovery(
        DiscoveryConfig(command="list-targets", filter_text="doc", info_target=None, facts=DEMO)
    )

    out = capsys.readouterr().out
    assert out.startswith("1 targets in demo (build order):")
    assert "docs" in out
    assert "core" not in out


def test_run_discovery_info_unknown_target_exits(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        run_discovery(
            DiscoveryConfig(command="info", filter_text=None, info_target="nope", facts=DEMO)
        )

    assert exc_info.value.code == 1
    assert "target 'nope' not found" in capsys.readouterr().err
