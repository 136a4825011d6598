"""Graph structures: nodes, handles, connections, artifacts and flows."""

from nodeflow.graph.model import (
    Artifact,
    ArtifactMessages,
    Connection,
    ExecutionSnapshot,
    FileContent,
    FileData,
    FilesContent,
    FileStatus,
    Flow,
    GeneratedArtifact,
    Graph,
    Job,
    Node,
    NodeContent,
    NodeHandle,
    RequestContent,
    ResponseContent,
    Step,
    StreamArtifact,
    TextArtifactObject,
    TextContent,
    TextGenerationContent,
    UnknownContent,
    find_artifact,
    find_connection,
    find_flow,
    find_node,
    find_step,
)
from nodeflow.graph.traversal import DependedNode, DependencyWalk, get_depended_nodes
from nodeflow.graph.validator import find_cycles, validate_graph

__all__ = [
    # Model
    "Artifact",
    "ArtifactMessages",
    "Connection",
    "ExecutionSnapshot",
    "FileContent",
    "FileData",
    "FilesContent",
    "FileStatus",
    "Flow",
    "GeneratedArtifact",
    "Graph",
    "Job",
    "Node",
    "NodeContent",
    "NodeHandle",
    "RequestContent",
    "ResponseContent",
    "Step",
    "StreamArtifact",
    "TextArtifactObject",
    "TextContent",
    "TextGenerationContent",
    "UnknownContent",
    # Lookups
    "find_artifact",
    "find_connection",
    "find_flow",
    "find_node",
    "find_step",
    # Traversal
    "DependedNode",
    "DependencyWalk",
    "get_depended_nodes",
    # Validation
    "find_cycles",
    "validate_graph",
]
