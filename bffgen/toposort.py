"""Order opaque nodes by matching their inputs against other nodes' outputs."""

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from .errors import CycleDetectedError

NodeT = TypeVar("NodeT")


def topological_sort(
    nodes: Sequence[NodeT],
    outputs: Callable[[NodeT], Iterable[str]],
    inputs: Callable[[NodeT], Iterable[str]],
    label: Callable[[NodeT], str] = str,
) -> list[NodeT]:
    """Return nodes ordered so every producer precedes its consumers.

    Builds an output -> node map, resolves each node's inputs against it into
    forward and reverse adjacency, then repeatedly emits every node whose
    forward adjacency is empty, in input order, and removes it from its
    dependents. Inputs that no node produces are ignored. When two nodes
    declare the same output the later one wins.

    Nodes are handled by index, so they need not be hashable.

    Args:
        nodes: Nodes to order.
        outputs: Names a node produces.
        inputs: Names a node consumes.
        label: Display name used in the cycle error.

    Returns:
        A new list holding every node exactly once.

    Raises:
        CycleDetectedError: If a pass emits nothing while nodes remain. The
            error names every unresolved node.
    """
    producer: dict[str, int] = {}
    for index, node in enumerate(nodes):
        for name in outputs(node):
            producer[name] = index

    forward: dict[int, set[int]] = {index: set() for index in range(len(nodes))}
    reverse: dict[int, set[int]] = {index: set() for index in range(len(nodes))}
    for index, node in enumerate(nodes):
        for name in inputs(node):
            source = producer.get(name)
            if source is None:
                continue
            forward[index].add(source)
            reverse[source].add(index)

    ordered: list[NodeT] = []
    while forward:
        ready = [index for index, deps in forward.items() if not deps]
        if not ready:
            remaining = tuple(label(nodes[index]) for index in sorted(forward))
            raise CycleDetectedError(remaining)
        for index in ready:
            ordered.append(nodes[index])
            del forward[index]
            for dependent in reverse[index]:
                if dependent in forward:
                    forward[dependent].discard(index)

    return ordered
