import pytest

from nodeflow.observability.logging import clear_trace_context


@pytest.fixture(autouse=True)
def _isolate(monkeypatch, tmp_path):
    # Keep a developer's ~/.nodeflow/configuration.json out of the tests
    monkeypatch.setenv("NODEFLOW_CONFIG", str(tmp_path / "missing-config.json"))
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    clear_trace_context()
    yield
    clear_trace_context()
