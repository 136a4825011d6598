"""
Execution Engine - the public entry points.

Each entry point loads the topology it needs (an agent's current graph or
a stored execution snapshot), locates the target node, builds an
ExecutionContext and hands it to the single GenerationDispatcher.
"""

from __future__ import annotations

import logging

from nodeflow.config import EngineConfig
from nodeflow.engine.context import ExecutionContext
from nodeflow.engine.dispatcher import GenerationDispatcher
from nodeflow.engine.prompts import PromptRenderer
from nodeflow.engine.quota import QuotaGate
from nodeflow.engine.stream import StreamHandle
from nodeflow.errors import (
    AgentNotFoundError,
    FlowNotFoundError,
    NodeNotFoundError,
    SnapshotNotFoundError,
    StepNotFoundError,
)
from nodeflow.graph.model import (
    AgentId,
    Artifact,
    ExecutionId,
    FlowId,
    Graph,
    NodeId,
    StepId,
    find_node,
    find_step,
)
from nodeflow.llm.registry import ProviderRegistry, default_registry
from nodeflow.observability.logging import clear_trace_context, set_trace_context
from nodeflow.observability.tracing import TracingSink
from nodeflow.storage.file_store import FileStore
from nodeflow.storage.graph_store import GraphStore

logger = logging.getLogger(__name__)


def _start_trace(**fields: str) -> None:
    """Replace, rather than merge into, the trace context of the current task."""
    clear_trace_context()
    set_trace_context(**fields)


class ExecutionEngine:
    """
    Runs text-generation nodes of stored graphs.

    Example:
        engine = ExecutionEngine(graph_store, file_store, quota_gate)
        handle = await engine.execute_by_node("agnt_1", "exec_1", "nd_summary")
        async for artifact in handle:
            print(artifact.title)
    """

    def __init__(
        self,
        graph_store: GraphStore,
        file_store: FileStore,
        quota_gate: QuotaGate,
        registry: ProviderRegistry | None = None,
        tracing: TracingSink | None = None,
        renderer: PromptRenderer | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self._graph_store = graph_store
        self._dispatcher = GenerationDispatcher(
            quota_gate=quota_gate,
            registry=registry or default_registry(timeout=self.config.http_timeout_seconds),
            file_store=file_store,
            tracing=tracing,
            renderer=renderer,
            stream_buffer_size=self.config.stream_buffer_size,
            default_model=self.config.default_model,
        )

    async def _load_graph(self, agent_id: AgentId) -> Graph:
        graph = await self._graph_store.fetch_graph_by_agent(agent_id)
        if graph is None:
            raise AgentNotFoundError(agent_id)
        return graph

    async def execute(self, context: ExecutionContext) -> StreamHandle:
        """Dispatch an already-built context."""
        return await self._dispatcher.dispatch(context)

    async def execute_by_step(
        self,
        agent_id: AgentId,
        flow_id: FlowId,
        execution_id: ExecutionId,
        step_id: StepId,
        artifacts: list[Artifact],
    ) -> StreamHandle:
        """Run one step of a flow against the agent's current graph."""
        _start_trace(agent_id=agent_id, execution_id=execution_id, step_id=step_id)
        graph = await self._load_graph(agent_id)
        flow = graph.get_flow(flow_id)
        if flow is None:
            raise FlowNotFoundError(flow_id)
        step = find_step([flow], step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        node = graph.get_node(step.node_id)
        if node is None:
            raise NodeNotFoundError(step.node_id)

        logger.info("Executing step %s of flow %s", step_id, flow_id)
        context = ExecutionContext.from_graph(agent_id, execution_id, graph, node, artifacts)
        return await self.execute(context)

    async def execute_by_node(
        self,
        agent_id: AgentId,
        execution_id: ExecutionId,
        node_id: NodeId,
    ) -> StreamHandle:
        """Run a single node using the graph's own artifacts."""
        _start_trace(agent_id=agent_id, execution_id=execution_id)
        graph = await self._load_graph(agent_id)
        node = graph.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)

        logger.info("Executing node %s", node_id)
        context = ExecutionContext.from_graph(agent_id, execution_id, graph, node)
        return await self.execute(context)

    async def retry_step(
        self,
        agent_id: AgentId,
        snapshot_ref: str,
        execution_id: ExecutionId,
        step_id: StepId,
        artifacts: list[Artifact],
    ) -> StreamHandle:
        """Re-run a step against the topology frozen in an execution snapshot."""
        _start_trace(agent_id=agent_id, execution_id=execution_id, step_id=step_id)
        snapshot = await self._graph_store.fetch_snapshot(snapshot_ref)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_ref)
        step = find_step([snapshot.flow], step_id)
        if step is None:
            raise StepNotFoundError(step_id)
        node = find_node(snapshot.nodes, step.node_id)
        if node is None:
            raise NodeNotFoundError(step.node_id)

        logger.info("Retrying step %s from snapshot %s", step_id, snapshot_ref)
        context = ExecutionContext.from_snapshot(agent_id, execution_id, snapshot, node, artifacts)
        return await self.execute(context)
