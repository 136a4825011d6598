"""Tests for source and requirement resolution."""

import asyncio

import pytest
from graph_builders import (
    connect,
    file_data,
    file_node,
    files_node,
    generated,
    generation_node,
    graph,
    request_node,
    text_node,
    unknown_node,
)

from nodeflow.engine import (
    ExecutionContext,
    FileSource,
    TextGenerationSource,
    TextSource,
    resolve_requirement,
    resolve_sources,
)
from nodeflow.errors import (
    FileProcessingError,
    FileUploadingError,
    NodeNotFoundError,
    SourceFileMissingError,
    TransientInputError,
)
from nodeflow.graph import FileStatus, StreamArtifact, TextArtifactObject
from nodeflow.storage import InMemoryFileStore


def make_context(nodes, connections=(), artifacts=(), target="gen"):
    g = graph(nodes, connections, artifacts)
    return ExecutionContext.from_graph("agnt_1", "exec_1", g, g.get_node(target))


def sources_of(context):
    return context.node.content.sources


class TestExecutionContext:
    def test_target_must_be_in_nodes(self):
        node = generation_node("gen")
        with pytest.raises(NodeNotFoundError):
            ExecutionContext(agent_id="a", execution_id="e", node=node, nodes=[])

    def test_upstream_lookup_first_connection_wins(self):
        ctx = make_context(
            [text_node("a", "A"), text_node("b", "B"), generation_node("gen", sources=["h1"])],
            [connect("a", "gen", "h1"), connect("b", "gen", "h1")],
        )
        assert ctx.resolve_upstream_node("h1").id == "a"
        assert ctx.resolve_upstream_node("h_none") is None


@pytest.mark.asyncio
async def test_no_connections_yields_nothing():
    ctx = make_context([generation_node("gen", sources=["h1", "h2"])])
    assert await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore()) == []


@pytest.mark.asyncio
async def test_text_source():
    ctx = make_context(
        [text_node("notes", "Meeting notes"), generation_node("gen", sources=["h1"])],
        [connect("notes", "gen", "h1")],
    )
    result = await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())
    assert result == [TextSource(content="Meeting notes", node_id="notes")]


@pytest.mark.asyncio
async def test_completed_file_fetches_payload():
    store = InMemoryFileStore({"https://files.test/fl_1.txt": "extracted text"})
    ctx = make_context(
        [file_node("doc", file_data("fl_1")), generation_node("gen", sources=["h1"])],
        [connect("doc", "gen", "h1")],
    )
    result = await resolve_sources(sources_of(ctx), ctx, store)
    assert result == [FileSource(title="fl_1.pdf", content="extracted text", node_id="doc")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error",
    [(FileStatus.UPLOADING, FileUploadingError), (FileStatus.PROCESSING, FileProcessingError)],
)
async def test_file_not_ready_is_retryable(status, error):
    ctx = make_context(
        [file_node("doc", file_data("fl_1", status=status)), generation_node("gen", sources=["h1"])],
        [connect("doc", "gen", "h1")],
    )
    with pytest.raises(error) as exc_info:
        await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())

    assert isinstance(exc_info.value, TransientInputError)
    assert exc_info.value.retryable is True
    assert exc_info.value.node_id == "doc"
    assert exc_info.value.file_id == "fl_1"


@pytest.mark.asyncio
async def test_uploading_file_message():
    ctx = make_context(
        [
            file_node("doc", file_data("fl_1", status=FileStatus.UPLOADING)),
            generation_node("gen", sources=["h1"]),
        ],
        [connect("doc", "gen", "h1")],
    )
    with pytest.raises(FileUploadingError, match="File is uploading"):
        await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())


@pytest.mark.asyncio
async def test_failed_file_contributes_nothing():
    store = InMemoryFileStore()
    ctx = make_context(
        [
            file_node("doc", file_data("fl_1", status=FileStatus.FAILED)),
            generation_node("gen", sources=["h1"]),
        ],
        [connect("doc", "gen", "h1")],
    )
    assert await resolve_sources(sources_of(ctx), ctx, store) == []
    assert store.fetched == []


@pytest.mark.asyncio
async def test_file_node_without_data():
    ctx = make_context(
        [file_node("doc", None), generation_node("gen", sources=["h1"])],
        [connect("doc", "gen", "h1")],
    )
    with pytest.raises(SourceFileMissingError):
        await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())


@pytest.mark.asyncio
async def test_files_node_skips_failed_elements_only():
    store = InMemoryFileStore(
        {"https://files.test/fl_1.txt": "one", "https://files.test/fl_3.txt": "three"}
    )
    ctx = make_context(
        [
            files_node(
                "docs",
                [
                    file_data("fl_1"),
                    file_data("fl_2", status=FileStatus.FAILED),
                    file_data("fl_3"),
                ],
            ),
            generation_node("gen", sources=["h1"]),
        ],
        [connect("docs", "gen", "h1")],
    )
    result = await resolve_sources(sources_of(ctx), ctx, store)
    assert [s.content for s in result] == ["one", "three"]
    assert all(isinstance(s, FileSource) and s.node_id == "docs" for s in result)


@pytest.mark.asyncio
async def test_files_node_with_processing_element_fails():
    ctx = make_context(
        [
            files_node("docs", [file_data("fl_1"), file_data("fl_2", status=FileStatus.PROCESSING)]),
            generation_node("gen", sources=["h1"]),
        ],
        [connect("docs", "gen", "h1")],
    )
    store = InMemoryFileStore({"https://files.test/fl_1.txt": "one"})
    with pytest.raises(FileProcessingError):
        await resolve_sources(sources_of(ctx), ctx, store)


@pytest.mark.asyncio
async def test_text_generation_source_uses_generated_artifact():
    ctx = make_context(
        [generation_node("draft"), generation_node("gen", sources=["h1"])],
        [connect("draft", "gen", "h1")],
        [generated("draft", title="Draft", content="First draft")],
    )
    result = await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())
    assert result == [TextGenerationSource(title="Draft", content="First draft", node_id="draft")]


@pytest.mark.asyncio
async def test_text_generation_without_generated_artifact():
    in_flight = StreamArtifact(
        id="artf_s",
        creator_node_id="draft",
        object=TextArtifactObject(title="Partial", content="Par"),
    )
    ctx = make_context(
        [generation_node("draft"), generation_node("gen", sources=["h1", "h2"])],
        [connect("draft", "gen", "h1")],
        [in_flight],
    )
    assert await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore()) == []


@pytest.mark.asyncio
async def test_other_kinds_contribute_nothing():
    ctx = make_context(
        [request_node("req"), generation_node("gen", sources=["h1"])],
        [connect("req", "gen", "h1")],
    )
    assert await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore()) == []


@pytest.mark.asyncio
async def test_unknown_kind_contributes_nothing():
    ctx = make_context(
        [
            unknown_node("search", query="otters"),
            text_node("notes", "notes"),
            generation_node("gen", sources=["h1", "h2"], requirement="h_req"),
        ],
        [
            connect("search", "gen", "h1"),
            connect("notes", "gen", "h2"),
            connect("search", "gen", "h_req"),
        ],
    )

    result = await resolve_sources(sources_of(ctx), ctx, InMemoryFileStore())

    assert result == [TextSource(content="notes", node_id="notes")]
    assert resolve_requirement(ctx.node.content.requirement, ctx) is None


class BlockingFileStore:
    """Fetches never complete; records whether they were cancelled."""

    def __init__(self):
        self.cancelled = []

    async def fetch_text_payload(self, url):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append(url)
            raise


@pytest.mark.asyncio
async def test_failing_handle_cancels_sibling_fetches():
    store = BlockingFileStore()
    ctx = make_context(
        [
            file_node("slow_doc", file_data("slow")),
            file_node("new_doc", file_data("new", status=FileStatus.UPLOADING)),
            generation_node("gen", sources=["h1", "h2"]),
        ],
        [connect("slow_doc", "gen", "h1"), connect("new_doc", "gen", "h2")],
    )

    with pytest.raises(FileUploadingError):
        await resolve_sources(sources_of(ctx), ctx, store)

    assert store.cancelled == ["https://files.test/slow.txt"]


@pytest.mark.asyncio
async def test_declaration_order_kept_despite_fetch_delays():
    store = InMemoryFileStore(
        {"https://files.test/slow.txt": "slow", "https://files.test/fast.txt": "fast"},
        delays={"https://files.test/slow.txt": 0.05},
    )
    ctx = make_context(
        [
            file_node("slow_doc", file_data("slow")),
            file_node("fast_doc", file_data("fast")),
            text_node("notes", "notes"),
            generation_node("gen", sources=["h1", "h2", "h3"]),
        ],
        [
            connect("slow_doc", "gen", "h1"),
            connect("fast_doc", "gen", "h2"),
            connect("notes", "gen", "h3"),
        ],
    )
    result = await resolve_sources(sources_of(ctx), ctx, store)

    assert [s.node_id for s in result] == ["slow_doc", "fast_doc", "notes"]
    # the fast fetch really did finish first
    assert store.fetched == ["https://files.test/fast.txt", "https://files.test/slow.txt"]


class TestRequirement:
    def test_absent_handle(self):
        ctx = make_context([generation_node("gen")])
        assert resolve_requirement(None, ctx) is None

    def test_unconnected_handle(self):
        ctx = make_context([generation_node("gen", requirement="h_req")])
        assert resolve_requirement(ctx.node.content.requirement, ctx) is None

    def test_text_requirement(self):
        ctx = make_context(
            [text_node("rules", "Be brief"), generation_node("gen", requirement="h_req")],
            [connect("rules", "gen", "h_req")],
        )
        assert resolve_requirement(ctx.node.content.requirement, ctx) == "Be brief"

    def test_generated_requirement_returns_content(self):
        ctx = make_context(
            [generation_node("brief"), generation_node("gen", requirement="h_req")],
            [connect("brief", "gen", "h_req")],
            [generated("brief", title="Brief", content="Use bullet points")],
        )
        assert resolve_requirement(ctx.node.content.requirement, ctx) == "Use bullet points"

    def test_generated_requirement_without_artifact(self):
        ctx = make_context(
            [generation_node("brief"), generation_node("gen", requirement="h_req")],
            [connect("brief", "gen", "h_req")],
        )
        assert resolve_requirement(ctx.node.content.requirement, ctx) is None

    def test_file_requirement_is_ignored(self):
        ctx = make_context(
            [file_node("doc", file_data("fl_1")), generation_node("gen", requirement="h_req")],
            [connect("doc", "gen", "h_req")],
        )
        assert resolve_requirement(ctx.node.content.requirement, ctx) is None
