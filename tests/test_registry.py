"""Tests for provider selector parsing and the backend registry."""

import pytest

from nodeflow.errors import UnsupportedProviderError
from nodeflow.llm import DevBackend, MockBackend, ProviderRegistry, default_registry
from nodeflow.llm.litellm import LiteLLMBackend
from nodeflow.llm.registry import parse_model_selector


@pytest.mark.parametrize(
    "llm,expected",
    [
        ("openai:gpt-4o", ("openai", "gpt-4o")),
        ("anthropic:claude-3-5-sonnet-latest", ("anthropic", "claude-3-5-sonnet-latest")),
        ("google:gemini-2.0-flash:exp", ("google", "gemini-2.0-flash:exp")),
    ],
)
def test_parse_model_selector(llm, expected):
    assert parse_model_selector(llm) == expected


@pytest.mark.parametrize("llm", ["", "gpt-4o", ":gpt-4o", "openai:"])
def test_parse_rejects_malformed(llm):
    with pytest.raises(UnsupportedProviderError) as exc_info:
        parse_model_selector(llm)
    assert exc_info.value.llm == llm


def test_registry_resolves_and_replaces():
    first, second = MockBackend(), MockBackend()
    registry = ProviderRegistry({"mock": lambda model: first})
    assert registry.resolve("mock:any") is first

    registry.register("mock", lambda model: second)
    assert registry.resolve("mock:any") is second
    assert registry.providers() == ["mock"]


def test_registry_unknown_provider():
    registry = ProviderRegistry()
    with pytest.raises(UnsupportedProviderError):
        registry.resolve("mistral:large")


def test_default_registry():
    registry = default_registry(timeout=5.0)
    assert registry.providers() == ["anthropic", "dev", "google", "openai"]

    backend = registry.resolve("google:gemini-2.0-flash")
    assert isinstance(backend, LiteLLMBackend)
    assert backend.litellm_model == "gemini/gemini-2.0-flash"
    assert backend.model_id == "google:gemini-2.0-flash"
    assert backend.timeout == 5.0

    dev = registry.resolve("dev:error")
    assert isinstance(dev, DevBackend)
    assert dev.model == "error"


def test_default_registry_builds_fresh_backends():
    registry = default_registry()
    assert registry.resolve("openai:gpt-4o") is not registry.resolve("openai:gpt-4o")
