"""
Source and requirement resolution.

Turns the input handles declared on a text-generation node into typed
ExecutionSource values ready to be bound into a prompt.

Rules per upstream content kind:
- text: the text itself
- file / files: the extracted text payload; uploading or processing files
  fail the whole resolution (retryable), failed files contribute nothing
- textGeneration: the upstream node's generated artifact, if any
- anything else: nothing

Handles are resolved concurrently; the result keeps declaration order. The
first failing handle cancels the others and its error propagates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar, assert_never

from nodeflow.engine.context import ExecutionContext
from nodeflow.errors import FileProcessingError, FileUploadingError, SourceFileMissingError
from nodeflow.graph.model import (
    FileContent,
    FileData,
    FilesContent,
    FileStatus,
    NodeHandle,
    NodeId,
    RequestContent,
    ResponseContent,
    TextContent,
    TextGenerationContent,
    UnknownContent,
)
from nodeflow.storage.file_store import FileStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TextSource:
    type: Literal["text"] = "text"
    content: str = ""
    node_id: NodeId = ""


@dataclass(frozen=True)
class FileSource:
    type: Literal["file"] = "file"
    title: str = ""
    content: str = ""
    node_id: NodeId = ""


@dataclass(frozen=True)
class TextGenerationSource:
    type: Literal["textGeneration"] = "textGeneration"
    title: str = ""
    content: str = ""
    node_id: NodeId = ""


ExecutionSource = TextSource | FileSource | TextGenerationSource


async def _run_all(coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
    """
    Run coroutines concurrently and return their results in order.

    The first failure cancels the remaining coroutines and is re-raised as is.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


async def _resolve_file(
    file: FileData | None,
    node_id: NodeId,
    file_store: FileStore,
) -> FileSource | None:
    if file is None:
        raise SourceFileMissingError(node_id)
    match file.status:
        case FileStatus.UPLOADING:
            raise FileUploadingError(node_id, file.id)
        case FileStatus.PROCESSING:
            raise FileProcessingError(node_id, file.id)
        case FileStatus.FAILED:
            logger.info("Skipping failed file %s on node %s", file.id, node_id)
            return None
        case FileStatus.COMPLETED:
            pass
        case _:
            assert_never(file.status)
    if file.text_data_url is None:
        raise SourceFileMissingError(node_id)
    text = await file_store.fetch_text_payload(file.text_data_url)
    return FileSource(title=file.name, content=text, node_id=node_id)


async def _resolve_source(
    source: NodeHandle,
    context: ExecutionContext,
    file_store: FileStore,
) -> list[ExecutionSource]:
    node = context.resolve_upstream_node(source.id)
    if node is None:
        return []

    content = node.content
    match content:
        case TextContent():
            return [TextSource(content=content.text, node_id=node.id)]
        case FileContent():
            file_source = await _resolve_file(content.data, node.id, file_store)
            return [file_source] if file_source is not None else []
        case FilesContent():
            resolved = await _run_all(
                _resolve_file(file, node.id, file_store) for file in content.data
            )
            return [file_source for file_source in resolved if file_source is not None]
        case TextGenerationContent():
            artifact = context.resolve_generated_artifact(node.id)
            if artifact is None:
                return []
            return [
                TextGenerationSource(
                    title=artifact.object.title,
                    content=artifact.object.content,
                    node_id=node.id,
                )
            ]
        case RequestContent() | ResponseContent() | UnknownContent():
            return []
        case _:
            assert_never(content)


async def resolve_sources(
    sources: list[NodeHandle],
    context: ExecutionContext,
    file_store: FileStore,
) -> list[ExecutionSource]:
    """
    Resolve declared source handles into execution sources.

    Raises:
        TransientInputError: a referenced file is still uploading or processing
        SourceFileMissingError: a file node has no data
    """
    resolved = await _run_all(_resolve_source(source, context, file_store) for source in sources)
    return [item for items in resolved for item in items]


def resolve_requirement(
    requirement: NodeHandle | None,
    context: ExecutionContext,
) -> str | None:
    """Resolve the optional requirement handle to raw text."""
    if requirement is None:
        return None
    node = context.resolve_upstream_node(requirement.id)
    if node is None:
        return None

    content = node.content
    match content:
        case TextContent():
            return content.text
        case TextGenerationContent():
            artifact = context.resolve_generated_artifact(node.id)
            return artifact.object.content if artifact is not None else None
        case _:
            return None
