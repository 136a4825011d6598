"""Storage collaborators: graphs, snapshots and file payloads."""

from nodeflow.storage.file_store import FileStore, HttpFileStore, InMemoryFileStore
from nodeflow.storage.graph_store import (
    FileGraphStore,
    GraphStore,
    HttpGraphStore,
    InMemoryGraphStore,
)

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "FileGraphStore",
    "HttpGraphStore",
    "FileStore",
    "HttpFileStore",
    "InMemoryFileStore",
]
