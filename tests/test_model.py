import pytest

from bffgen.model import LinkKind, Phase, TargetArena, TargetPhases


def _target_a() -> TargetPhases:
    target = TargetPhases("A")
    target.make_pre_build_action()
    target.make_pre_build_action()
    target.make_compile_batch()
    target.make_link_action(LinkKind.STATIC)
    return target


# ===--- Naming ---=== #


def test_node_names_follow_target_phase_index() -> None:
    target = TargetPhases("app-Debug")

    pre = target.make_pre_build_action()
    batch = target.make_compile_batch()
    pre_link = target.make_pre_link_action()
    link = target.make_link_action(LinkKind.EXECUTABLE)
    post = target.make_post_build_action()
    second_post = target.make_post_build_action()

    assert pre.name == "app-Debug_PreBuild_0"
    assert batch.alias == batch.name == "app-Debug_Compile_0"
    assert pre_link.name == "app-Debug_PreLink_0"
    assert link.name == "app-Debug_Library"
    assert post.name == "app-Debug_PostBuild_0"
    assert second_post.name == "app-Debug_PostBuild_1"


def test_link_kind_maps_to_bff_statement() -> None:
    assert LinkKind.STATIC.statement == "Library"
    assert LinkKind.SHARED.statement == "DLL"
    assert LinkKind.EXECUTABLE.statement == "Executable"


def test_phase_values_are_bff_names() -> None:
    assert [p.value for p in Phase] == ["PreBuild", "Compile", "PreLink", "Link", "PostBuild"]


# ===--- Internal dependencies ---=== #


def test_scenario_a_prebuild_compile_static_library() -> None:
    target = _target_a()

    target.compute_internal_dependencies()

    first, second = target.pre_build
    batch = target.compile_batches[0]
    assert first.dependencies == []
    assert second.dependencies == [first.name]
    assert batch.dependencies == [second.name]
    assert target.link is not None
    assert batch.alias in target.link.references
    assert target.link.dependencies == []


def test_scenario_b_post_build_only_completes_at_post_build() -> None:
    target = TargetPhases("B")
    post = target.make_post_build_action()

    target.compute_internal_dependencies()

    assert target.last_executed() == [post.name]
    assert post.dependencies == []


def test_compile_batches_reference_before_existing_link_references() -> None:
    target = TargetPhases("lib")
    target.make_compile_batch()
    target.make_compile_batch()
    link = target.make_link_action(LinkKind.SHARED)
    link.references.append("m")

    target.compute_internal_dependencies()

    assert link.references == ["lib_Compile_0", "lib_Compile_1", "m"]


def test_compile_batches_are_not_chained() -> None:
    target = TargetPhases("obj")
    target.make_compile_batch()
    target.make_compile_batch()

    target.compute_internal_dependencies()

    assert all(batch.dependencies == [] for batch in target.compile_batches)


def test_first_pre_link_waits_on_all_batches() -> None:
    target = TargetPhases("t")
    target.make_pre_build_action()
    target.make_compile_batch()
    target.make_compile_batch()
    first = target.make_pre_link_action()
    second = target.make_pre_link_action()

    target.compute_internal_dependencies()

    assert first.dependencies == ["t_Compile_0", "t_Compile_1"]
    assert second.dependencies == [first.name]


def test_first_pre_link_falls_back_to_last_pre_build() -> None:
    target = TargetPhases("t")
    target.make_pre_build_action()
    last_pre = target.make_pre_build_action()
    pre_link = target.make_pre_link_action()

    target.compute_internal_dependencies()

    assert pre_link.dependencies == [last_pre.name]


def test_link_waits_on_last_pre_link() -> None:
    target = TargetPhases("t")
    target.make_pre_link_action()
    last = target.make_pre_link_action()
    link = target.make_link_action(LinkKind.EXECUTABLE)

    target.compute_internal_dependencies()

    assert link.dependencies == [last.name]


@pytest.mark.parametrize(
    ("build", "expected"),
    [
        (("pre", "batch", "pre_link", "link"), ["t_Library"]),
        (("pre", "batch", "pre_link"), ["t_PreLink_0"]),
        (("pre", "batch"), ["t_Compile_0"]),
        (("pre",), ["t_PreBuild_0"]),
        ((), []),
    ],
)
def test_first_post_build_fallback_order(build: tuple[str, ...], expected: list[str]) -> None:
    target = TargetPhases("t")
    if "pre" in build:
        target.make_pre_build_action()
    if "batch" in build:
        target.make_compile_batch()
    if "pre_link" in build:
        target.make_pre_link_action()
    if "link" in build:
        target.make_link_action(LinkKind.EXECUTABLE)
    post = target.make_post_build_action()

    target.compute_internal_dependencies()

    assert post.dependencies == expected


def test_compute_internal_dependencies_is_idempotent() -> None:
    target = _target_a()
    target.make_post_build_action()

    target.compute_internal_dependencies()
    snapshot = [list(getattr(node, "dependencies")) for node in target.nodes()]
    target.compute_internal_dependencies()

    assert [list(getattr(node, "dependencies")) for node in target.nodes()] == snapshot
    assert target.link is not None
    assert target.link.references.count("A_Compile_0") == 1


# ===--- Derived views ---=== #


@pytest.mark.parametrize(
    ("build", "expected"),
    [
        (("pre", "batch", "pre_link", "link", "post"), ["t_PostBuild_0"]),
        (("pre", "batch", "pre_link", "link"), ["t_Library"]),
        (("pre", "batch", "pre_link"), ["t_PreLink_0"]),
        (("pre", "batch"), ["t_Compile_0"]),
        (("pre",), ["t_PreBuild_0"]),
        ((), []),
    ],
)
def test_last_executed_fallback_order(build: tuple[str, ...], expected: list[str]) -> None:
    target = TargetPhases("t")
    if "pre" in build:
        target.make_pre_build_action()
    if "batch" in build:
        target.make_compile_batch()
    if "pre_link" in build:
        target.make_pre_link_action()
    if "link" in build:
        target.make_link_action(LinkKind.STATIC)
    if "post" in build:
        target.make_post_build_action()

    assert target.last_executed() == expected


def test_first_executed_prefers_pre_build_then_batches() -> None:
    target = TargetPhases("t")
    target.make_compile_batch()
    target.make_compile_batch()
    assert [n.name for n in target.first_executed()] == ["t_Compile_0", "t_Compile_1"]

    target.make_pre_build_action()
    assert [n.name for n in target.first_executed()] == ["t_PreBuild_0"]


def test_products_prefers_link_action() -> None:
    target = TargetPhases("t")
    target.make_compile_batch()
    assert target.products() == ["t_Compile_0"]

    target.make_link_action(LinkKind.SHARED)
    assert target.products() == ["t_Library"]


def test_default_outputs_capture_stdout_and_always_run() -> None:
    target = TargetPhases("t")
    placeholder = target.make_pre_build_action()
    declared = target.make_post_build_action()
    declared.output = "/build/gen.h"
    aliased = target.make_pre_link_action()
    aliased.alias_of = "other_PreBuild_0"

    target.compute_default_outputs("/build")

    assert placeholder.output == "/build/t_PreBuild_0.txt"
    assert placeholder.use_stdout_as_output is True
    assert placeholder.always_run is True
    assert declared.output == "/build/gen.h"
    assert declared.use_stdout_as_output is False
    assert aliased.output == ""


def test_has_build_actions_ignores_compile_and_link() -> None:
    target = TargetPhases("t")
    target.make_compile_batch()
    target.make_link_action(LinkKind.STATIC)

    assert target.has_link_action is True
    assert target.has_build_actions is False


# ===--- Arena ---=== #


def test_arena_assigns_sequential_ids() -> None:
    arena = TargetArena()

    first = arena.add(TargetPhases("a"))
    second = arena.add(TargetPhases("b"))

    assert (first, second) == (0, 1)
    assert arena[second].name == "b"
    assert arena.id_of("a") == 0
    assert arena.id_of("missing") is None
    assert len(arena) == 2
    assert [record.name for record in arena] == ["a", "b"]


def test_arena_rejects_duplicate_names() -> None:
    arena = TargetArena()
    arena.add(TargetPhases("a"))

    with pytest.raises(ValueError, match="already exists"):
        arena.add(TargetPhases("a"))
