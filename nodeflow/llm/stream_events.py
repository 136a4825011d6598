"""Stream event types for structured generation.

A discriminated union of frozen dataclasses describing everything a
structured streaming call can produce. These types are the contract between
generation backends and the dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class PartialObjectEvent:
    """The object parsed so far. Each event replaces the previous one."""

    type: Literal["partial_object"] = "partial_object"
    object: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FinishEvent:
    """Generation finished; carries the final object and token usage."""

    type: Literal["finish"] = "finish"
    object: dict[str, Any] = field(default_factory=dict)
    stop_reason: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


@dataclass(frozen=True)
class StreamErrorEvent:
    """An error occurred during streaming."""

    type: Literal["error"] = "error"
    error: str = ""
    recoverable: bool = False


# Discriminated union of all stream event types
StreamEvent = PartialObjectEvent | FinishEvent | StreamErrorEvent
