"""Deterministic backends for offline runs and tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from nodeflow.llm.provider import GenerationBackend
from nodeflow.llm.stream_events import (
    FinishEvent,
    PartialObjectEvent,
    StreamErrorEvent,
    StreamEvent,
)


class DevBackend(GenerationBackend):
    """The ``dev`` provider: emits a single error chunk, for fault injection."""

    provider = "dev"

    def __init__(self, model: str = "error", error: str = "a"):
        self.model = model
        self.error = error
        self.calls = 0

    async def stream_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        self.calls += 1
        yield StreamErrorEvent(error=self.error)


@dataclass
class RecordedCall:
    prompt: str
    schema: dict[str, Any]
    top_p: float | None
    temperature: float | None


class MockBackend(GenerationBackend):
    """
    Scripted backend.

    Yields each of ``partials`` in order, then a FinishEvent with ``final``.
    If ``raise_after`` is set, raises ``error`` after that many partials
    instead of finishing. ``delay`` pauses before every event.
    """

    def __init__(
        self,
        partials: list[dict[str, Any]] | None = None,
        final: dict[str, Any] | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        error: Exception | None = None,
        raise_after: int | None = None,
        delay: float = 0.0,
        provider: str = "mock",
        model: str = "scripted",
    ):
        self.provider = provider
        self.model = model
        self.partials = partials or []
        self.final = final if final is not None else (self.partials[-1] if self.partials else {})
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = error
        self.raise_after = raise_after
        self.delay = delay
        self.calls: list[RecordedCall] = []
        self.closed = False

    async def stream_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        self.calls.append(RecordedCall(prompt, schema, top_p, temperature))
        try:
            for index, partial in enumerate(self.partials):
                if self.raise_after is not None and index >= self.raise_after:
                    break
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield PartialObjectEvent(object=partial)
            if self.raise_after is not None:
                raise self.error or RuntimeError("scripted failure")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield FinishEvent(
                object=self.final,
                input_tokens=self.input_tokens,
                output_tokens=self.output_tokens,
                model=self.model_id,
            )
        finally:
            self.closed = True
