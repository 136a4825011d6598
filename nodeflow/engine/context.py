"""Per-execution context: the target node plus the topology it resolves against."""

from __future__ import annotations

from dataclasses import dataclass, field

from nodeflow.errors import NodeNotFoundError
from nodeflow.graph.model import (
    AgentId,
    Artifact,
    Connection,
    ExecutionId,
    ExecutionSnapshot,
    GeneratedArtifact,
    Graph,
    Node,
    NodeHandleId,
    NodeId,
    find_artifact,
    find_connection,
    find_node,
)


@dataclass
class ExecutionContext:
    """
    Everything one execution reads. Built once per call, never persisted.

    ``node`` must be one of ``nodes``.
    """

    agent_id: AgentId
    execution_id: ExecutionId
    node: Node
    artifacts: list[Artifact] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)

    def __post_init__(self) -> None:
        if find_node(self.nodes, self.node.id) is None:
            raise NodeNotFoundError(self.node.id)

    @classmethod
    def from_graph(
        cls,
        agent_id: AgentId,
        execution_id: ExecutionId,
        graph: Graph,
        node: Node,
        artifacts: list[Artifact] | None = None,
    ) -> ExecutionContext:
        return cls(
            agent_id=agent_id,
            execution_id=execution_id,
            node=node,
            artifacts=list(graph.artifacts if artifacts is None else artifacts),
            nodes=list(graph.nodes),
            connections=list(graph.connections),
        )

    @classmethod
    def from_snapshot(
        cls,
        agent_id: AgentId,
        execution_id: ExecutionId,
        snapshot: ExecutionSnapshot,
        node: Node,
        artifacts: list[Artifact],
    ) -> ExecutionContext:
        return cls(
            agent_id=agent_id,
            execution_id=execution_id,
            node=node,
            artifacts=list(artifacts),
            nodes=list(snapshot.nodes),
            connections=list(snapshot.connections),
        )

    def resolve_upstream_node(self, handle_id: NodeHandleId) -> Node | None:
        """Node feeding ``handle_id``; first matching connection wins."""
        connection = find_connection(
            self.connections,
            lambda c: c.target_node_handle_id == handle_id,
        )
        if connection is None:
            return None
        return find_node(self.nodes, connection.source_node_id)

    def resolve_generated_artifact(self, creator_node_id: NodeId) -> GeneratedArtifact | None:
        artifact = find_artifact(self.artifacts, creator_node_id)
        if not isinstance(artifact, GeneratedArtifact):
            return None
        return artifact
