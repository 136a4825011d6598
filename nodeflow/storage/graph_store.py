"""
Graph Store - Where the engine reads graphs and execution snapshots from.

The engine never writes graphs; persistence belongs to the caller. Three
implementations are provided:

- InMemoryGraphStore: dictionaries, for tests and embedding
- FileGraphStore: JSON files on disk (used by the CLI)
- HttpGraphStore: graph JSON served over HTTP (agent -> graph URL)

Directory structure of FileGraphStore:
    {base_path}/
        agents/{agent_id}.json      # Graph of one agent
        snapshots/{ref}.json        # ExecutionSnapshot
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx

from nodeflow.config import DEFAULT_HTTP_TIMEOUT_SECONDS
from nodeflow.graph.model import AgentId, ExecutionSnapshot, Graph

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.\-]+$")


class GraphStore(ABC):
    """Read-only access to stored graphs and snapshots."""

    @abstractmethod
    async def fetch_graph_by_agent(self, agent_id: AgentId) -> Graph | None:
        """Return the agent's current graph, or None if the agent has none."""

    @abstractmethod
    async def fetch_snapshot(self, ref: str) -> ExecutionSnapshot | None:
        """Return the snapshot stored under ``ref``, or None if absent."""


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryGraphStore(GraphStore):
    def __init__(
        self,
        graphs: dict[AgentId, Graph] | None = None,
        snapshots: dict[str, ExecutionSnapshot] | None = None,
    ):
        self._graphs = dict(graphs or {})
        self._snapshots = dict(snapshots or {})
        self.graph_fetches: list[AgentId] = []
        self.snapshot_fetches: list[str] = []

    def put_graph(self, agent_id: AgentId, graph: Graph) -> None:
        self._graphs[agent_id] = graph

    def put_snapshot(self, ref: str, snapshot: ExecutionSnapshot) -> None:
        self._snapshots[ref] = snapshot

    async def fetch_graph_by_agent(self, agent_id: AgentId) -> Graph | None:
        self.graph_fetches.append(agent_id)
        return self._graphs.get(agent_id)

    async def fetch_snapshot(self, ref: str) -> ExecutionSnapshot | None:
        self.snapshot_fetches.append(ref)
        return self._snapshots.get(ref)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def _atomic_write_text(path: Path, text: str) -> None:
    """Write via temp file + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileGraphStore(GraphStore):
    """Graphs and snapshots as JSON files. Blocking I/O runs in a thread."""

    def __init__(self, base_path: Path | str):
        self.base_path = Path(base_path)
        self.agents_dir = self.base_path / "agents"
        self.snapshots_dir = self.base_path / "snapshots"

    @staticmethod
    def _checked(name: str) -> str:
        if not _SAFE_NAME.match(name):
            raise ValueError(f"Invalid store key: {name!r}")
        return name

    def _graph_path(self, agent_id: AgentId) -> Path:
        return self.agents_dir / f"{self._checked(agent_id)}.json"

    def _snapshot_path(self, ref: str) -> Path:
        return self.snapshots_dir / f"{self._checked(ref)}.json"

    async def save_graph(self, agent_id: AgentId, graph: Graph) -> None:
        path = self._graph_path(agent_id)
        payload = graph.model_dump_json(by_alias=True, indent=2)
        await asyncio.to_thread(_atomic_write_text, path, payload)
        logger.debug("Saved graph for agent %s", agent_id)

    async def save_snapshot(self, snapshot: ExecutionSnapshot, ref: str | None = None) -> str:
        """Persist a snapshot and return its ref."""
        ref = ref or f"snp_{uuid.uuid4().hex[:12]}"
        path = self._snapshot_path(ref)
        payload = snapshot.model_dump_json(by_alias=True, indent=2)
        await asyncio.to_thread(_atomic_write_text, path, payload)
        logger.debug("Saved execution snapshot %s", ref)
        return ref

    async def fetch_graph_by_agent(self, agent_id: AgentId) -> Graph | None:
        def _read() -> Graph | None:
            path = self._graph_path(agent_id)
            if not path.exists():
                logger.warning("Graph file not found: %s", path)
                return None
            return Graph.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def fetch_snapshot(self, ref: str) -> ExecutionSnapshot | None:
        def _read() -> ExecutionSnapshot | None:
            path = self._snapshot_path(ref)
            if not path.exists():
                logger.warning("Snapshot file not found: %s", path)
                return None
            return ExecutionSnapshot.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

GraphUrlResolver = Callable[[AgentId], Awaitable[str | None]]


class HttpGraphStore(GraphStore):
    """
    Graph JSON served over HTTP.

    ``resolve_graph_url`` maps an agent id to the URL of its stored graph
    (None when the agent is unknown or has no graph). Snapshot refs are URLs.
    """

    def __init__(
        self,
        resolve_graph_url: GraphUrlResolver,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self._resolve_graph_url = resolve_graph_url
        self._client = client
        self._timeout = timeout

    async def _get_json(self, url: str) -> dict | None:
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def fetch_graph_by_agent(self, agent_id: AgentId) -> Graph | None:
        url = await self._resolve_graph_url(agent_id)
        if url is None:
            return None
        data = await self._get_json(url)
        return Graph.model_validate(data) if data is not None else None

    async def fetch_snapshot(self, ref: str) -> ExecutionSnapshot | None:
        data = await self._get_json(ref)
        return ExecutionSnapshot.model_validate(data) if data is not None else None
