"""Turn target -> target relations into ordering edges and link references."""

from collections.abc import Iterable

from .model import TargetArena, append_unique


def add_dependency(arena: TargetArena, this_id: int, other_id: int) -> None:
    """Make target `this_id` depend on target `other_id`.

    1. When both targets link and `other` publishes a link-dependency output,
       that path joins this target's link references, so the engine relinks
       on change. An object library (compile batches, no link action) is
       referenced through its object lists instead.
    2. When neither target has pre-build, pre-link or post-build actions the
       link reference is enough and no ordering edge is added.
    3. Otherwise every entry node of this target waits on every completion
       node of `other`. Build actions may read or write files the artifact
       graph does not see, so the whole dependency is serialized.

    Args:
        arena: Owner of both records.
        this_id: Arena id of the dependent target record.
        other_id: Arena id of the target record it depends on.
    """
    this = arena[this_id]
    other = arena[other_id]

    if this.link is not None:
        if other.link is not None:
            if other.link.link_dependency_output:
                append_unique(this.link.references, other.link.link_dependency_output)
        else:
            for batch in other.compile_batches:
                append_unique(this.link.references, batch.alias)

    if not this.has_build_actions and not other.has_build_actions:
        return

    completion = other.last_executed()
    for node in this.first_executed():
        for name in completion:
            append_unique(node.dependencies, name)


def link_all(arena: TargetArena, edges: Iterable[tuple[int, int]]) -> int:
    """Apply add_dependency to every (this_id, other_id) edge.

    Returns:
        Number of edges applied.
    """
    count = 0
    for this_id, other_id in edges:
        add_dependency(arena, this_id, other_id)
        count += 1
    return count
