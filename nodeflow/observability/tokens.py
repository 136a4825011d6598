"""Token usage measurement for completed generations."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


async def measure_token_usage(
    log: logging.Logger,
    operation: Callable[[], Awaitable[TokenUsage]],
    model: str,
    started_at: float,
) -> TokenUsage:
    """
    Await ``operation`` and log the token usage it reports.

    Args:
        log: Logger that receives the ``token_usage`` record
        operation: Finalisation step returning the usage of the generation
        model: ``provider:model`` string for the record
        started_at: ``time.monotonic()`` value from when the execution began

    Returns:
        The usage reported by ``operation``
    """
    usage = await operation()
    latency_ms = int((time.monotonic() - started_at) * 1000)
    log.info(
        "Token usage: %d in / %d out (%d ms)",
        usage.input_tokens,
        usage.output_tokens,
        latency_ms,
        extra={
            "event": "token_usage",
            "model": model,
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "tokens_used": usage.total_tokens,
            "latency_ms": latency_ms,
        },
    )
    return usage
