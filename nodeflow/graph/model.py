"""
Graph Model - Nodes, handles, connections and artifacts.

The graph is the unit fetched per execution. Every model is frozen: the
engine reads a graph, it never mutates one.

Graph JSON is camelCase on the wire; fields are snake_case in Python and
both spellings are accepted when parsing.

Lookups are plain functions over sequences so they work the same on a
Graph, an ExecutionSnapshot and an ExecutionContext. Absent lookups return
None; the caller decides whether absence is fatal.
"""

from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

NodeId = str
NodeHandleId = str
ConnectionId = str
ArtifactId = str
FlowId = str
JobId = str
StepId = str
AgentId = str
ExecutionId = str

_MODEL_CONFIG = {
    "frozen": True,
    "populate_by_name": True,
    "alias_generator": to_camel,
}


class GraphModel(BaseModel):
    """Base for all graph models: frozen, camelCase aliases."""

    model_config = _MODEL_CONFIG

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Handles and files
# ---------------------------------------------------------------------------


class NodeHandle(GraphModel):
    """A named input or output slot on a node."""

    id: NodeHandleId
    node_id: NodeId


class FileStatus(StrEnum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FileData(GraphModel):
    id: str
    name: str
    content_type: str = ""
    size: int = 0
    status: FileStatus
    text_data_url: str | None = None


# ---------------------------------------------------------------------------
# Node content (discriminated on ``type``)
# ---------------------------------------------------------------------------


class TextContent(GraphModel):
    type: Literal["text"] = "text"
    text: str = ""


class FileContent(GraphModel):
    type: Literal["file"] = "file"
    data: FileData | None = None


class FilesContent(GraphModel):
    type: Literal["files"] = "files"
    data: list[FileData | None] = Field(default_factory=list)


class TextGenerationContent(GraphModel):
    type: Literal["textGeneration"] = "textGeneration"
    llm: str = Field(description="Model selector in 'provider:model' form")
    temperature: float = 0.7
    top_p: float = 1.0
    instruction: str = ""
    sources: list[NodeHandle] = Field(default_factory=list)
    requirement: NodeHandle | None = None
    system: str | None = Field(default=None, description="Prompt template override")
    output_schema: dict[str, Any] | None = None


class RequestContent(GraphModel):
    """Entry port of a published agent."""

    type: Literal["request"] = "request"


class ResponseContent(GraphModel):
    """Exit port of a published agent."""

    type: Literal["response"] = "response"


class UnknownContent(GraphModel):
    """Any node kind the engine neither executes nor reads as a source."""

    model_config = {**_MODEL_CONFIG, "extra": "allow"}

    type: str


_CONTENT_TAGS = frozenset({"text", "file", "files", "textGeneration", "request", "response"})


def _content_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if isinstance(value, UnknownContent) or not isinstance(kind, str) or kind not in _CONTENT_TAGS:
        return "unknown"
    return kind


NodeContent = Annotated[
    Annotated[TextContent, Tag("text")]
    | Annotated[FileContent, Tag("file")]
    | Annotated[FilesContent, Tag("files")]
    | Annotated[TextGenerationContent, Tag("textGeneration")]
    | Annotated[RequestContent, Tag("request")]
    | Annotated[ResponseContent, Tag("response")]
    | Annotated[UnknownContent, Tag("unknown")],
    Discriminator(_content_tag),
]


class Node(GraphModel):
    id: NodeId
    name: str = ""
    type: Literal["variable", "action"] = "variable"
    content: NodeContent


class Connection(GraphModel):
    """Directed edge from a source node into a target node's input handle."""

    id: ConnectionId
    source_node_id: NodeId
    source_node_type: str = ""
    target_node_id: NodeId
    target_node_handle_id: NodeHandleId
    target_node_type: str = ""


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class ArtifactMessages(GraphModel):
    plan: str = ""
    description: str = ""


class TextArtifactObject(GraphModel):
    """Artifact payload pushed to subscribers. Each value is a full snapshot."""

    type: Literal["text"] = "text"
    title: str = ""
    content: str = ""
    messages: ArtifactMessages = Field(default_factory=ArtifactMessages)


class GeneratedArtifact(GraphModel):
    type: Literal["generatedArtifact"] = "generatedArtifact"
    id: ArtifactId
    creator_node_id: NodeId
    created_at: int = 0
    object: TextArtifactObject


class StreamArtifact(GraphModel):
    """An artifact whose generation is still in flight."""

    type: Literal["streamArtifact"] = "streamArtifact"
    id: ArtifactId
    creator_node_id: NodeId
    object: TextArtifactObject


Artifact = Annotated[GeneratedArtifact | StreamArtifact, Field(discriminator="type")]


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


class Step(GraphModel):
    id: StepId
    node_id: NodeId
    name: str = ""


class Job(GraphModel):
    id: JobId
    steps: list[Step] = Field(default_factory=list)


class Flow(GraphModel):
    id: FlowId
    name: str = ""
    jobs: list[Job] = Field(default_factory=list)

    def iter_steps(self) -> Iterable[Step]:
        for job in self.jobs:
            yield from job.steps


class Graph(GraphModel):
    """Nodes, connections, prior artifacts and flows of one agent."""

    id: str = ""
    nodes: list[Node] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)
    flows: list[Flow] = Field(default_factory=list)

    def get_node(self, node_id: NodeId) -> Node | None:
        return find_node(self.nodes, node_id)

    def get_flow(self, flow_id: FlowId) -> Flow | None:
        return find_flow(self.flows, flow_id)

    def get_artifact(self, creator_node_id: NodeId) -> Artifact | None:
        return find_artifact(self.artifacts, creator_node_id)


class ExecutionSnapshot(GraphModel):
    """Frozen topology of one flow, used to replay a step."""

    nodes: list[Node] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    flow: Flow

    @classmethod
    def from_graph(cls, graph: Graph, flow_id: FlowId) -> "ExecutionSnapshot | None":
        flow = graph.get_flow(flow_id)
        if flow is None:
            return None
        return cls(nodes=graph.nodes, connections=graph.connections, flow=flow)


# ---------------------------------------------------------------------------
# Pure lookups
# ---------------------------------------------------------------------------


def find_node(nodes: Sequence[Node], node_id: NodeId | None) -> Node | None:
    if node_id is None:
        return None
    return next((node for node in nodes if node.id == node_id), None)


def find_connection(
    connections: Sequence[Connection],
    predicate: Callable[[Connection], bool],
) -> Connection | None:
    """Return the first connection matching ``predicate``.

    If several connections target the same handle, the first one in
    declaration order wins.
    """
    return next((connection for connection in connections if predicate(connection)), None)


def find_artifact(artifacts: Sequence[Artifact], creator_node_id: NodeId) -> Artifact | None:
    return next(
        (artifact for artifact in artifacts if artifact.creator_node_id == creator_node_id),
        None,
    )


def find_flow(flows: Sequence[Flow], flow_id: FlowId) -> Flow | None:
    return next((flow for flow in flows if flow.id == flow_id), None)


def find_step(flows: Iterable[Flow], step_id: StepId) -> Step | None:
    for flow in flows:
        for step in flow.iter_steps():
            if step.id == step_id:
                return step
    return None
