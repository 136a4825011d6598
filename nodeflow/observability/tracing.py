"""Tracing sinks for generation spans.

The dispatcher opens one "generation" span per execution and closes it
exactly once on the terminal transition. Sinks decide where spans go:

- ``InMemoryTracingSink`` keeps span records in memory (tests, CLI)
- ``NullTracingSink`` drops everything
- ``LangfuseTracingSink`` forwards spans to Langfuse

Span and trace ids follow the OTel sizes (16 / 32 hex chars) so records
can be correlated with structured log lines.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from nodeflow.observability.logging import get_trace_context

if TYPE_CHECKING:
    from langfuse import Langfuse

logger = logging.getLogger(__name__)


class SpanStatus(StrEnum):
    OPEN = "open"
    OK = "ok"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SpanMeta:
    """What is known about a generation when its span is opened."""

    name: str
    session_id: str  # execution id
    model: str = ""
    input: Any = None
    model_parameters: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SpanHandle:
    span_id: str
    trace_id: str


class TracingSink(Protocol):
    """Collaborator that records generation spans."""

    def open_span(self, meta: SpanMeta) -> SpanHandle: ...

    def update_span(
        self,
        handle: SpanHandle,
        *,
        input: Any = None,
        output: Any = None,
        error: str | None = None,
    ) -> None: ...

    def close_span(self, handle: SpanHandle, status: SpanStatus = SpanStatus.OK) -> None: ...

    def flush(self) -> None: ...


def _new_handle() -> SpanHandle:
    trace_id = get_trace_context().get("trace_id") or uuid.uuid4().hex
    return SpanHandle(span_id=uuid.uuid4().hex[:16], trace_id=trace_id)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


@dataclass
class SpanRecord:
    handle: SpanHandle
    meta: SpanMeta
    input: Any = None
    output: Any = None
    error: str | None = None
    status: SpanStatus = SpanStatus.OPEN
    close_count: int = 0
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    ended_at: str | None = None


class InMemoryTracingSink:
    """Keeps every span in memory. Handy for tests and local runs."""

    def __init__(self) -> None:
        self.spans: dict[str, SpanRecord] = {}
        self.flush_count = 0

    def open_span(self, meta: SpanMeta) -> SpanHandle:
        handle = _new_handle()
        self.spans[handle.span_id] = SpanRecord(handle=handle, meta=meta, input=meta.input)
        return handle

    def update_span(
        self,
        handle: SpanHandle,
        *,
        input: Any = None,
        output: Any = None,
        error: str | None = None,
    ) -> None:
        record = self.spans[handle.span_id]
        if input is not None:
            record.input = input
        if output is not None:
            record.output = output
        if error is not None:
            record.error = error

    def close_span(self, handle: SpanHandle, status: SpanStatus = SpanStatus.OK) -> None:
        record = self.spans[handle.span_id]
        record.close_count += 1
        if record.close_count > 1:
            logger.warning("Span %s closed more than once", handle.span_id)
            return
        record.status = status
        record.ended_at = datetime.now(UTC).isoformat()

    def flush(self) -> None:
        self.flush_count += 1

    def for_session(self, session_id: str) -> list[SpanRecord]:
        return [r for r in self.spans.values() if r.meta.session_id == session_id]


class NullTracingSink:
    """Discards spans."""

    def open_span(self, meta: SpanMeta) -> SpanHandle:
        return _new_handle()

    def update_span(self, handle: SpanHandle, **kwargs: Any) -> None:
        pass

    def close_span(self, handle: SpanHandle, status: SpanStatus = SpanStatus.OK) -> None:
        pass

    def flush(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Langfuse
# ---------------------------------------------------------------------------


class LangfuseTracingSink:
    """
    Forwards generation spans to Langfuse.

    Credentials come from the environment (LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY, LANGFUSE_HOST) unless a client is passed in.
    """

    def __init__(self, client: Langfuse | None = None):
        if client is None:
            from langfuse import Langfuse

            client = Langfuse()
        self._client = client
        self._open: dict[str, Any] = {}

    def open_span(self, meta: SpanMeta) -> SpanHandle:
        generation = self._client.start_generation(
            name=meta.name,
            input=meta.input,
            model=meta.model,
            model_parameters=meta.model_parameters,
            metadata=meta.metadata,
        )
        generation.update_trace(session_id=meta.session_id, input=meta.input)
        handle = SpanHandle(span_id=generation.id, trace_id=generation.trace_id)
        self._open[handle.span_id] = generation
        return handle

    def update_span(
        self,
        handle: SpanHandle,
        *,
        input: Any = None,
        output: Any = None,
        error: str | None = None,
    ) -> None:
        generation = self._open.get(handle.span_id)
        if generation is None:
            logger.warning("Update for unknown or closed span %s", handle.span_id)
            return
        if input is not None:
            generation.update(input=input)
        if output is not None:
            generation.update(output=output)
            generation.update_trace(output=output)
        if error is not None:
            generation.update(level="ERROR", status_message=error)

    def close_span(self, handle: SpanHandle, status: SpanStatus = SpanStatus.OK) -> None:
        generation = self._open.pop(handle.span_id, None)
        if generation is None:
            logger.warning("Span %s closed more than once", handle.span_id)
            return
        if status == SpanStatus.ABORTED:
            generation.update(level="WARNING", status_message="aborted by consumer")
        generation.end()

    def flush(self) -> None:
        self._client.flush()
