"""
StreamHandle - the consumer side of one execution.

The dispatcher's producer task pushes full artifact snapshots into a
bounded queue; the consumer iterates them with ``async for``. The stream
ends either "done" (iteration stops) or in error (iteration raises).

Usage:
    handle = await engine.execute_by_node(agent_id, execution_id, node_id)
    async for artifact in handle:
        print(artifact.content)

    # or only the terminal artifact
    artifact = await handle.result()

Leaving early must go through ``aclose()`` (or ``async with handle:``),
which cancels the producer and marks the generation aborted.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Literal

from nodeflow.graph.model import ExecutionId, TextArtifactObject

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Item:
    kind: Literal["value", "done", "error"]
    value: TextArtifactObject | None = None
    error: BaseException | None = None


class StreamHandle:
    """Bounded, ordered stream of artifact snapshots for one execution."""

    def __init__(self, execution_id: ExecutionId, maxsize: int = 64):
        self.execution_id = execution_id
        self._queue: asyncio.Queue[_Item] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self._finished = False
        self._error: BaseException | None = None
        self.latest: TextArtifactObject | None = None

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    # Producer side

    async def update(self, value: TextArtifactObject) -> None:
        await self._queue.put(_Item("value", value=value))

    async def done(self) -> None:
        await self._queue.put(_Item("done"))

    async def error(self, error: BaseException) -> None:
        await self._queue.put(_Item("error", error=error))

    # Consumer side

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> StreamHandle:
        return self

    async def __anext__(self) -> TextArtifactObject:
        if self._finished:
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        item = await self._queue.get()
        match item.kind:
            case "value":
                self.latest = item.value
                return item.value
            case "done":
                self._finished = True
                raise StopAsyncIteration
            case "error":
                self._finished = True
                self._error = item.error
                raise item.error

    async def result(self) -> TextArtifactObject | None:
        """Drain the stream and return the terminal artifact."""
        async for _ in self:
            pass
        return self.latest

    async def aclose(self) -> None:
        """Detach from the stream, cancelling the producer if it still runs."""
        self._finished = True
        task = self._task
        if task is None or task.done():
            return
        logger.info("Consumer detached from execution %s", self.execution_id)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> StreamHandle:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
