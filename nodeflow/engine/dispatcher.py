"""
Generation Dispatcher - runs one text-generation node and streams its artifact.

Lifecycle of a dispatch:

    idle -> authorized -> prompting -> streaming -> completed
                                                 -> failed
                                                 -> aborted

Failures before streaming (quota, missing inputs, unknown provider) raise
from ``dispatch``. Once streaming, the outcome is delivered through the
StreamHandle: partial snapshots, then either the terminal artifact and
"done", or an error. The tracing span is opened on entering streaming and
closed exactly once on the terminal transition.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import time
from enum import StrEnum
from typing import Any

from nodeflow.config import DEFAULT_MODEL, DEFAULT_STREAM_BUFFER_SIZE
from nodeflow.engine.context import ExecutionContext
from nodeflow.engine.prompts import (
    DEFAULT_TEXT_GENERATION_PROMPT,
    JinjaPromptRenderer,
    PromptRenderer,
)
from nodeflow.engine.quota import QuotaGate
from nodeflow.engine.sources import resolve_requirement, resolve_sources
from nodeflow.engine.stream import StreamHandle
from nodeflow.errors import BackendStreamError, InvalidTransitionError, UnsupportedNodeError
from nodeflow.graph.model import ArtifactMessages, TextArtifactObject, TextGenerationContent
from nodeflow.llm.provider import ARTIFACT_SCHEMA, GenerationBackend
from nodeflow.llm.registry import ProviderRegistry
from nodeflow.llm.stream_events import FinishEvent, PartialObjectEvent, StreamErrorEvent
from nodeflow.observability.logging import set_trace_context
from nodeflow.observability.tokens import TokenUsage, measure_token_usage
from nodeflow.observability.tracing import (
    NullTracingSink,
    SpanHandle,
    SpanMeta,
    SpanStatus,
    TracingSink,
)
from nodeflow.storage.file_store import FileStore

logger = logging.getLogger(__name__)

GENERATION_SPAN_NAME = "generate-text"


class DispatchState(StrEnum):
    IDLE = "idle"
    AUTHORIZED = "authorized"
    PROMPTING = "prompting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.ABORTED})

_TRANSITIONS: dict[DispatchState, frozenset[DispatchState]] = {
    DispatchState.IDLE: frozenset({DispatchState.AUTHORIZED, DispatchState.FAILED}),
    DispatchState.AUTHORIZED: frozenset({DispatchState.PROMPTING, DispatchState.FAILED}),
    DispatchState.PROMPTING: frozenset({DispatchState.STREAMING, DispatchState.FAILED}),
    DispatchState.STREAMING: frozenset(
        {DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.ABORTED}
    ),
}


class DispatchRun:
    """State of one dispatch. Owns the span so it is closed exactly once."""

    def __init__(self, execution_id: str, node_id: str, tracing: TracingSink):
        self.execution_id = execution_id
        self.node_id = node_id
        self.state = DispatchState.IDLE
        self.history: list[DispatchState] = [DispatchState.IDLE]
        self._tracing = tracing
        self.span: SpanHandle | None = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, target: DispatchState) -> None:
        if target not in _TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransitionError(self.state, target)
        logger.debug(
            "Dispatch %s: %s -> %s",
            self.execution_id,
            self.state,
            target,
            extra={"event": "dispatch_transition", "dispatch_state": str(target)},
        )
        self.state = target
        self.history.append(target)

    def open_span(self, meta: SpanMeta) -> SpanHandle:
        self.span = self._tracing.open_span(meta)
        return self.span

    def close_span(self, status: SpanStatus) -> None:
        if self.span is None:
            return
        span, self.span = self.span, None
        self._tracing.close_span(span, status)


def to_artifact_object(obj: dict[str, Any]) -> TextArtifactObject:
    """Build an artifact snapshot from a (possibly partial) generated object."""

    def text(key: str) -> str:
        value = obj.get(key)
        return value if isinstance(value, str) else ""

    return TextArtifactObject(
        title=text("title"),
        content=text("content"),
        messages=ArtifactMessages(plan=text("plan"), description=text("description")),
    )


class GenerationDispatcher:
    def __init__(
        self,
        quota_gate: QuotaGate,
        registry: ProviderRegistry,
        file_store: FileStore,
        tracing: TracingSink | None = None,
        renderer: PromptRenderer | None = None,
        stream_buffer_size: int = DEFAULT_STREAM_BUFFER_SIZE,
        default_model: str = DEFAULT_MODEL,
    ):
        self._quota_gate = quota_gate
        self._registry = registry
        self._file_store = file_store
        self._tracing = tracing or NullTracingSink()
        self._renderer = renderer or JinjaPromptRenderer()
        self._stream_buffer_size = stream_buffer_size
        self._default_model = default_model

    async def dispatch(self, context: ExecutionContext) -> StreamHandle:
        """
        Run the context's node and return the stream of its artifact.

        Raises:
            UnsupportedNodeError: the node is not a text-generation node
            NodeflowError: any failure before streaming starts
        """
        node = context.node
        content = node.content
        if not isinstance(content, TextGenerationContent):
            raise UnsupportedNodeError(node.id, content.type)

        set_trace_context(node_id=node.id)
        llm = content.llm or self._default_model
        run = DispatchRun(context.execution_id, node.id, self._tracing)

        try:
            await self._quota_gate.authorize(context.agent_id)
            run.transition(DispatchState.AUTHORIZED)

            run.transition(DispatchState.PROMPTING)
            sources = await resolve_sources(content.sources, context, self._file_store)
            requirement = resolve_requirement(content.requirement, context)
            backend = self._registry.resolve(llm)
            prompt = self._renderer.render(
                content.system or DEFAULT_TEXT_GENERATION_PROMPT,
                {
                    "instruction": content.instruction,
                    "requirement": requirement,
                    "sources": sources,
                },
            )
        except Exception:
            run.transition(DispatchState.FAILED)
            raise

        started_at = time.monotonic()
        run.open_span(
            SpanMeta(
                name=GENERATION_SPAN_NAME,
                session_id=context.execution_id,
                model=llm,
                input=prompt,
                model_parameters={"topP": content.top_p, "temperature": content.temperature},
                metadata={"agent_id": context.agent_id, "node_id": node.id},
            )
        )
        run.transition(DispatchState.STREAMING)

        handle = StreamHandle(context.execution_id, maxsize=self._stream_buffer_size)
        task = asyncio.create_task(
            self._produce(run, backend, prompt, content, handle, started_at),
            name=f"generate-{context.execution_id}",
        )
        task.add_done_callback(functools.partial(self._on_producer_done, run))
        handle.attach(task)
        return handle

    @staticmethod
    def _on_producer_done(run: DispatchRun, task: asyncio.Task) -> None:
        # A task cancelled before its first step never enters _produce.
        if task.cancelled() and not run.finished:
            run.transition(DispatchState.ABORTED)
            run.close_span(SpanStatus.ABORTED)

    async def _produce(
        self,
        run: DispatchRun,
        backend: GenerationBackend,
        prompt: str,
        content: TextGenerationContent,
        handle: StreamHandle,
        started_at: float,
    ) -> None:
        schema = content.output_schema or ARTIFACT_SCHEMA
        final: FinishEvent | None = None
        try:
            events = backend.stream_structured(
                prompt, schema, top_p=content.top_p, temperature=content.temperature
            )
            async with contextlib.aclosing(events):
                async for event in events:
                    match event:
                        case PartialObjectEvent():
                            await handle.update(to_artifact_object(event.object))
                        case FinishEvent():
                            final = event
                        case StreamErrorEvent():
                            raise BackendStreamError(event.error, backend.provider)
            if final is None:
                raise BackendStreamError("Stream ended without a result", backend.provider)
        except asyncio.CancelledError:
            run.transition(DispatchState.ABORTED)
            run.close_span(SpanStatus.ABORTED)
            raise
        except Exception as e:
            if isinstance(e, BackendStreamError):
                error = e
            else:
                error = BackendStreamError(str(e) or type(e).__name__, backend.provider)
                error.__cause__ = e
            logger.exception("Generation failed for node %s", run.node_id)
            if run.span is not None:
                self._tracing.update_span(run.span, error=str(error))
            run.transition(DispatchState.FAILED)
            run.close_span(SpanStatus.ERROR)
            await handle.error(error)
            return

        artifact = to_artifact_object(final.object)

        async def finalize() -> TokenUsage:
            if run.span is not None:
                self._tracing.update_span(run.span, output=final.object)
            run.close_span(SpanStatus.OK)
            await asyncio.to_thread(self._tracing.flush)
            return TokenUsage(input_tokens=final.input_tokens, output_tokens=final.output_tokens)

        try:
            await measure_token_usage(logger, finalize, final.model or backend.model_id, started_at)
            await handle.update(artifact)
        except asyncio.CancelledError:
            run.transition(DispatchState.ABORTED)
            run.close_span(SpanStatus.ABORTED)
            raise
        run.transition(DispatchState.COMPLETED)
        await handle.done()
