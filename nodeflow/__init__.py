"""
nodeflow - execution engine for node-graph workflows.

Runs text-generation nodes of a stored graph: resolves their inputs from
upstream nodes, checks the owning team's quota, calls a structured-output
model and streams the resulting artifact back as it is generated.
"""

from nodeflow.config import EngineConfig
from nodeflow.engine import ExecutionContext, ExecutionEngine, QuotaGate, StreamHandle
from nodeflow.errors import NodeflowError
from nodeflow.graph import Graph, Node, TextArtifactObject
from nodeflow.llm import ProviderRegistry, default_registry

__all__ = [
    "EngineConfig",
    "ExecutionContext",
    "ExecutionEngine",
    "Graph",
    "Node",
    "NodeflowError",
    "ProviderRegistry",
    "QuotaGate",
    "StreamHandle",
    "TextArtifactObject",
    "default_registry",
]
