"""Provider registry: maps ``provider:model`` selectors to backends.

The registry is an ordinary object injected into the engine, so tests can
register scripted backends without touching module state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from nodeflow.errors import UnsupportedProviderError
from nodeflow.llm.provider import GenerationBackend

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], GenerationBackend]


def parse_model_selector(llm: str) -> tuple[str, str]:
    """Split ``provider:model``. The model part may itself contain colons."""
    provider, sep, model = llm.partition(":")
    if not sep or not provider or not model:
        raise UnsupportedProviderError(llm)
    return provider, model


class ProviderRegistry:
    """Backend factories keyed by provider id."""

    def __init__(self, factories: dict[str, BackendFactory] | None = None):
        self._factories: dict[str, BackendFactory] = dict(factories or {})

    def register(self, provider: str, factory: BackendFactory) -> None:
        if provider in self._factories:
            logger.debug("Replacing backend factory for provider %s", provider)
        self._factories[provider] = factory

    def providers(self) -> list[str]:
        return sorted(self._factories)

    def resolve(self, llm: str) -> GenerationBackend:
        """Return a backend for ``llm``. Unknown providers are fatal."""
        provider, model = parse_model_selector(llm)
        factory = self._factories.get(provider)
        if factory is None:
            raise UnsupportedProviderError(llm)
        return factory(model)


def default_registry(timeout: float | None = None) -> ProviderRegistry:
    """Registry with the hosted providers (via LiteLLM) and the ``dev`` provider."""
    from nodeflow.llm.litellm import LiteLLMBackend
    from nodeflow.llm.mock import DevBackend

    registry = ProviderRegistry()
    for provider in ("openai", "anthropic", "google"):
        registry.register(
            provider,
            lambda model, provider=provider: LiteLLMBackend(provider, model, timeout=timeout),
        )
    registry.register("dev", lambda model: DevBackend(model))
    return registry
