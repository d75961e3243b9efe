"""Test configuration and shared fixtures for dynacounter tests."""

import pytest

from dynacounter.core.config import DynaCounterConfig
from dynacounter.services.retry import RetryPolicy
from dynacounter.services.storage.memory import InMemoryConditionalStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at a temp dir and clear environment overrides.

    Keeps tests from reading or writing ~/.dynacounter/config.yaml.
    """
    config_file = tmp_path / "dynacounter" / "config.yaml"
    monkeypatch.setattr("dynacounter.core.paths.CONFIG_FILE", config_file)
    monkeypatch.setattr("dynacounter.cli.config.CONFIG_FILE", config_file)
    for var in ("DYNACOUNTER_ENDPOINT_URL", "DYNACOUNTER_TABLE", "AWS_DEFAULT_REGION"):
        monkeypatch.delenv(var, raising=False)
    DynaCounterConfig.reset()
    yield config_file
    DynaCounterConfig.reset()


@pytest.fixture
def store():
    """Provide a clean in-memory store for each test."""
    return InMemoryConditionalStore()


@pytest.fixture
def fast_retry():
    """Retry policy that never sleeps, bounded so a bug can't loop forever."""
    return RetryPolicy(max_attempts=50, initial_delay=0, max_delay=0, jitter=0)
