"""
Upstream dependency walk.

Given a node, find every node it (transitively) depends on through its
input connections. The walk is a breadth-first search with a visited set,
so cycles terminate, plus a depth cap so a pathological graph cannot grow
the walk without bound. A walk that stops at the cap reports
``truncated=True`` instead of silently dropping the rest of the chain.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from nodeflow.config import DEFAULT_MAX_DEPENDENCY_DEPTH
from nodeflow.graph.model import Connection, Node, NodeId, find_node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependedNode:
    """An upstream node reached by the walk."""

    node_id: NodeId
    node_type: str  # content kind of the upstream node, "" if dangling
    depth: int  # 1 = direct dependency
    connection_id: str  # connection through which it was first reached


@dataclass
class DependencyWalk:
    """Result of an upstream walk, deepest dependencies first."""

    root_id: NodeId
    nodes: list[DependedNode] = field(default_factory=list)
    truncated: bool = False
    revisits: list[tuple[NodeId, NodeId]] = field(default_factory=list)  # (downstream, upstream)

    @property
    def node_ids(self) -> list[NodeId]:
        return [n.node_id for n in self.nodes]


def get_depended_nodes(
    nodes: Sequence[Node],
    connections: Sequence[Connection],
    node_id: NodeId,
    max_depth: int = DEFAULT_MAX_DEPENDENCY_DEPTH,
) -> DependencyWalk:
    """
    Walk upstream from ``node_id``.

    Args:
        nodes: All nodes of the graph
        connections: All connections of the graph
        node_id: Node to start from (not included in the result)
        max_depth: Maximum number of hops to follow

    Returns:
        DependencyWalk ordered by depth descending, so the result can be
        executed front to back.
    """
    if max_depth < 1:
        raise ValueError("max_depth must be >= 1")

    incoming: dict[NodeId, list[Connection]] = {}
    for connection in connections:
        incoming.setdefault(connection.target_node_id, []).append(connection)

    walk = DependencyWalk(root_id=node_id)
    visited: set[NodeId] = {node_id}
    found: list[DependedNode] = []
    queue: deque[tuple[NodeId, int]] = deque([(node_id, 0)])

    while queue:
        current, depth = queue.popleft()
        for connection in incoming.get(current, []):
            upstream_id = connection.source_node_id
            if upstream_id in visited:
                walk.revisits.append((current, upstream_id))
                continue
            if depth >= max_depth:
                walk.truncated = True
                continue
            visited.add(upstream_id)
            upstream = find_node(nodes, upstream_id)
            found.append(
                DependedNode(
                    node_id=upstream_id,
                    node_type=upstream.content.type if upstream else "",
                    depth=depth + 1,
                    connection_id=connection.id,
                )
            )
            queue.append((upstream_id, depth + 1))

    if walk.truncated:
        logger.warning(
            "Dependency walk from %s stopped at depth %d; deeper nodes omitted",
            node_id,
            max_depth,
        )

    # stable sort keeps discovery order within a depth level
    walk.nodes = sorted(found, key=lambda n: -n.depth)
    return walk
