"""LiteLLM-backed generation backend.

One implementation serves every hosted provider (OpenAI, Anthropic, Google)
through LiteLLM's unified interface. The structured object is requested via
a JSON-schema response format and parsed incrementally as text arrives.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import litellm
import pydantic_core
from pydantic import ValidationError

from nodeflow.llm.provider import GenerationBackend, output_model
from nodeflow.llm.stream_events import (
    FinishEvent,
    PartialObjectEvent,
    StreamErrorEvent,
    StreamEvent,
)

logger = logging.getLogger(__name__)

# provider id -> (LiteLLM model prefix, API key env var)
PROVIDER_ROUTES: dict[str, tuple[str, str]] = {
    "openai": ("openai", "OPENAI_API_KEY"),
    "anthropic": ("anthropic", "ANTHROPIC_API_KEY"),
    "google": ("gemini", "GEMINI_API_KEY"),
}


def parse_partial_object(buffer: str) -> Any | None:
    """
    Parse the JSON prefix streamed so far.

    Incomplete trailing strings are kept so text grows as it arrives;
    dangling keys and half-written literals are dropped. Returns None when
    nothing parseable has been streamed yet.
    """
    try:
        return pydantic_core.from_json(buffer, allow_partial="trailing-strings")
    except ValueError:
        return None


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "object"
        problems.append(f"{location}: {item['msg']}")
    return "; ".join(problems)


class LiteLLMBackend(GenerationBackend):
    """
    Structured streaming generation through LiteLLM.

    Example:
        backend = LiteLLMBackend(provider="anthropic", model="claude-3-5-sonnet-latest")
        async for event in backend.stream_structured(prompt, ARTIFACT_SCHEMA):
            ...
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
    ):
        if provider not in PROVIDER_ROUTES:
            raise ValueError(f"LiteLLMBackend does not route provider {provider!r}")
        self.provider = provider
        self.model = model
        prefix, env_var = PROVIDER_ROUTES[provider]
        self.litellm_model = f"{prefix}/{model}"
        self.api_key = api_key or os.environ.get(env_var)
        self.api_base = api_base
        self.timeout = timeout

    def _request_kwargs(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "artifact", "schema": schema, "strict": True},
            },
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if top_p is not None:
            kwargs["top_p"] = top_p
        if temperature is not None:
            kwargs["temperature"] = temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.timeout:
            kwargs["timeout"] = self.timeout
        return kwargs

    async def stream_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        response = await litellm.acompletion(
            **self._request_kwargs(prompt, schema, top_p, temperature)
        )

        buffer = ""
        last_partial: Any = None
        input_tokens = 0
        output_tokens = 0
        stop_reason = ""

        async for chunk in response:
            usage = getattr(chunk, "usage", None)
            if usage:
                input_tokens = getattr(usage, "prompt_tokens", 0) or input_tokens
                output_tokens = getattr(usage, "completion_tokens", 0) or output_tokens
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.finish_reason:
                stop_reason = choice.finish_reason
            delta = choice.delta.content if choice.delta else None
            if not delta:
                continue
            buffer += delta
            partial = parse_partial_object(buffer)
            if isinstance(partial, dict) and partial != last_partial:
                last_partial = partial
                yield PartialObjectEvent(object=partial)

        try:
            final = pydantic_core.from_json(buffer)
        except ValueError as e:
            logger.warning("Response from %s is not valid JSON: %s", self.model_id, e)
            yield StreamErrorEvent(error=f"No object generated: response did not parse ({e})")
            return

        if not isinstance(final, dict):
            yield StreamErrorEvent(error="No object generated: response is not an object")
            return
        try:
            output_model(schema).model_validate(final)
        except ValidationError as e:
            yield StreamErrorEvent(
                error=f"No object generated: response did not match schema ({_describe(e)})"
            )
            return

        yield FinishEvent(
            object=final,
            stop_reason=stop_reason,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=self.model_id,
        )
