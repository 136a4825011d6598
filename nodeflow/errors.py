"""Error taxonomy for the execution engine.

Every error carries a ``retryable`` flag so callers can decide whether to
re-queue an execution or surface a permanent failure.
"""

from __future__ import annotations


class NodeflowError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(NodeflowError):
    """A referenced agent, flow, step, node or snapshot does not exist."""


class AgentNotFoundError(NotFoundError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent with id {agent_id} not found")
        self.agent_id = agent_id


class FlowNotFoundError(NotFoundError):
    def __init__(self, flow_id: str):
        super().__init__(f"Flow with id {flow_id} not found")
        self.flow_id = flow_id


class StepNotFoundError(NotFoundError):
    def __init__(self, step_id: str):
        super().__init__(f"Step with id {step_id} not found")
        self.step_id = step_id


class NodeNotFoundError(NotFoundError):
    def __init__(self, node_id: str):
        super().__init__(f"Node with id {node_id} not found")
        self.node_id = node_id


class SnapshotNotFoundError(NotFoundError):
    def __init__(self, ref: str):
        super().__init__(f"Execution snapshot {ref} not found")
        self.ref = ref


class SourceFileMissingError(NotFoundError):
    """A file node is wired as a source but has no uploaded data."""

    def __init__(self, node_id: str):
        super().__init__(f"File not found on node {node_id}")
        self.node_id = node_id


# ---------------------------------------------------------------------------
# Authorization / integrity
# ---------------------------------------------------------------------------


class DataIntegrityError(NodeflowError):
    """Upstream data violates an invariant (e.g. an agent in several teams)."""


class QuotaExceededError(NodeflowError):
    """The owning team has no agent time left."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent time is not available for agent {agent_id}")
        self.agent_id = agent_id


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class TransientInputError(NodeflowError):
    """An input is not ready yet. Re-invoke the execution later."""

    retryable = True

    def __init__(self, message: str, node_id: str, file_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id
        self.file_id = file_id


class FileUploadingError(TransientInputError):
    def __init__(self, node_id: str, file_id: str | None = None):
        super().__init__("File is uploading", node_id, file_id)


class FileProcessingError(TransientInputError):
    def __init__(self, node_id: str, file_id: str | None = None):
        super().__init__("File is processing", node_id, file_id)


# ---------------------------------------------------------------------------
# Configuration / dispatch
# ---------------------------------------------------------------------------


class UnsupportedProviderError(NodeflowError):
    def __init__(self, llm: str):
        super().__init__(f"Unsupported model provider: {llm!r}")
        self.llm = llm


class UnsupportedNodeError(NodeflowError):
    def __init__(self, node_id: str, content_type: str):
        super().__init__(f"Node {node_id} of type {content_type!r} cannot be executed")
        self.node_id = node_id
        self.content_type = content_type


class BackendStreamError(NodeflowError):
    """Any failure raised by a generation backend while streaming."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class InvalidTransitionError(NodeflowError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid dispatch transition {current} -> {target}")
        self.current = current
        self.target = target
