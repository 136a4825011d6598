"""Execution engine: context building, source resolution, dispatch and streaming."""

from nodeflow.engine.context import ExecutionContext
from nodeflow.engine.dispatcher import (
    DispatchRun,
    DispatchState,
    GenerationDispatcher,
    to_artifact_object,
)
from nodeflow.engine.executor import ExecutionEngine
from nodeflow.engine.prompts import (
    DEFAULT_TEXT_GENERATION_PROMPT,
    JinjaPromptRenderer,
    PromptRenderer,
)
from nodeflow.engine.quota import (
    InMemoryTeamDirectory,
    InMemoryUsageSource,
    PlanTier,
    QuotaGate,
    QuotaService,
    ResourceLimit,
    StaticQuotaService,
    Team,
    TeamDirectory,
    UsageLimitQuotaService,
    UsageLimits,
    agent_time_limit_ms,
)
from nodeflow.engine.sources import (
    ExecutionSource,
    FileSource,
    TextGenerationSource,
    TextSource,
    resolve_requirement,
    resolve_sources,
)
from nodeflow.engine.stream import StreamHandle

__all__ = [
    "ExecutionEngine",
    "ExecutionContext",
    "GenerationDispatcher",
    "DispatchRun",
    "DispatchState",
    "to_artifact_object",
    "StreamHandle",
    "PromptRenderer",
    "JinjaPromptRenderer",
    "DEFAULT_TEXT_GENERATION_PROMPT",
    "ExecutionSource",
    "TextSource",
    "FileSource",
    "TextGenerationSource",
    "resolve_sources",
    "resolve_requirement",
    "Team",
    "PlanTier",
    "TeamDirectory",
    "QuotaService",
    "QuotaGate",
    "ResourceLimit",
    "UsageLimits",
    "UsageLimitQuotaService",
    "StaticQuotaService",
    "InMemoryTeamDirectory",
    "InMemoryUsageSource",
    "agent_time_limit_ms",
]
