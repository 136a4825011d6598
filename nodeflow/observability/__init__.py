"""
Observability: structured logging, tracing spans and token measurement.

- Execution context propagation via ContextVar
- JSON logging for production, human-readable logging for development
- Tracing sinks for generation spans (in-memory, Langfuse)
- Token usage measurement logged with every completed generation
"""

from nodeflow.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)
from nodeflow.observability.tokens import TokenUsage, measure_token_usage
from nodeflow.observability.tracing import (
    InMemoryTracingSink,
    NullTracingSink,
    SpanHandle,
    SpanMeta,
    SpanRecord,
    SpanStatus,
    TracingSink,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
    "TokenUsage",
    "measure_token_usage",
    "TracingSink",
    "SpanHandle",
    "SpanMeta",
    "SpanRecord",
    "SpanStatus",
    "InMemoryTracingSink",
    "NullTracingSink",
]
