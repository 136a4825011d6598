"""Generation backend abstraction."""

from nodeflow.llm.mock import DevBackend, MockBackend
from nodeflow.llm.provider import ARTIFACT_SCHEMA, GenerationBackend, StructuredResult
from nodeflow.llm.registry import ProviderRegistry, default_registry, parse_model_selector
from nodeflow.llm.stream_events import (
    FinishEvent,
    PartialObjectEvent,
    StreamErrorEvent,
    StreamEvent,
)

__all__ = [
    "ARTIFACT_SCHEMA",
    "GenerationBackend",
    "StructuredResult",
    "ProviderRegistry",
    "default_registry",
    "parse_model_selector",
    "DevBackend",
    "MockBackend",
    "StreamEvent",
    "PartialObjectEvent",
    "FinishEvent",
    "StreamErrorEvent",
]
