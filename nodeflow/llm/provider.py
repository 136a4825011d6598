"""Generation backend abstraction for pluggable model providers."""

import functools
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model

from nodeflow.errors import BackendStreamError
from nodeflow.llm.stream_events import FinishEvent, StreamErrorEvent, StreamEvent

ARTIFACT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "plan": {
            "type": "string",
            "description": (
                "How you think about the content of the artefact (purpose, structure, "
                "essentials) and how you intend to output it"
            ),
        },
        "title": {"type": "string", "description": "The title of the artefact"},
        "content": {
            "type": "string",
            "description": "The content of the artefact formatted markdown.",
        },
        "description": {
            "type": "string",
            "description": (
                "Explanation of the Artifact and what the intention was in creating this "
                "Artifact. Add any suggestions for making it even better."
            ),
        },
    },
    "required": ["plan", "title", "content", "description"],
    "additionalProperties": False,
}


@dataclass
class StructuredResult:
    """Final result of a structured generation."""

    object: dict[str, Any]
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""


class GenerationBackend(ABC):
    """
    Abstract generation backend - plug in any model provider.

    Implementations should handle:
    - API authentication
    - Request formatting for structured (JSON schema) output
    - Incremental parsing of the streamed object
    - Token counting
    """

    provider: str = ""
    model: str = ""

    @property
    def model_id(self) -> str:
        return f"{self.provider}:{self.model}"

    @abstractmethod
    def stream_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a structured generation as an async iterator of StreamEvents.

        Args:
            prompt: Rendered prompt
            schema: JSON schema the generated object must satisfy
            top_p: Nucleus sampling, passed through verbatim
            temperature: Sampling temperature, passed through verbatim

        Yields:
            Zero or more PartialObjectEvent, then exactly one FinishEvent or
            StreamErrorEvent. Implementations may also raise.
        """

    async def generate_structured(
        self,
        prompt: str,
        schema: dict[str, Any],
        top_p: float | None = None,
        temperature: float | None = None,
    ) -> StructuredResult:
        """
        Run a structured generation to completion.

        Default implementation drains stream_structured().
        """
        async for event in self.stream_structured(prompt, schema, top_p, temperature):
            if isinstance(event, FinishEvent):
                return StructuredResult(
                    object=event.object,
                    model=event.model or self.model_id,
                    input_tokens=event.input_tokens,
                    output_tokens=event.output_tokens,
                    stop_reason=event.stop_reason,
                )
            if isinstance(event, StreamErrorEvent):
                raise BackendStreamError(event.error, self.provider)
        raise BackendStreamError("Stream ended without a result", self.provider)


_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
}


@functools.lru_cache(maxsize=128)
def _output_model(schema_json: str) -> type[BaseModel]:
    schema = json.loads(schema_json)
    required = set(schema.get("required", []))
    fields: dict[str, Any] = {}
    for name, prop in schema.get("properties", {}).items():
        annotation = _JSON_TYPES.get(prop.get("type"), Any)
        description = prop.get("description")
        if name in required:
            fields[name] = (annotation, Field(description=description))
        else:
            fields[name] = (annotation | None, Field(default=None, description=description))
    extra = "forbid" if schema.get("additionalProperties") is False else "allow"
    return create_model(
        "GeneratedObject",
        __config__=ConfigDict(extra=extra, strict=True),
        **fields,
    )


def output_model(schema: dict[str, Any]) -> type[BaseModel]:
    """
    Pydantic model validating a generated object against a flat JSON schema.

    Top-level property types and ``required`` are enforced strictly;
    ``additionalProperties: false`` forbids extra keys. Nested schemas are
    checked only for their top-level JSON type.
    """
    return _output_model(json.dumps(schema, sort_keys=True))
