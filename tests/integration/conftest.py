"""Fixtures for tests against a real DynamoDB Local.

Skipped unless DYNACOUNTER_INTEGRATION=1. Set DYNACOUNTER_TEST_ENDPOINT_URL
to reuse an emulator that is already running; otherwise one is started in
docker for the session and removed afterwards.
"""

import os
import uuid

import pytest

from dynacounter.core.config import EmulatorConfig
from dynacounter.core.emulator import DynamoDBLocal, docker_available
from dynacounter.services.storage import DynamoDBConditionalStore


@pytest.fixture(scope="session")
def dynamodb_endpoint():
    if os.environ.get("DYNACOUNTER_INTEGRATION") != "1":
        pytest.skip("Set DYNACOUNTER_INTEGRATION=1 to run DynamoDB Local tests")

    if endpoint := os.environ.get("DYNACOUNTER_TEST_ENDPOINT_URL"):
        yield endpoint
        return

    if not docker_available():
        pytest.skip("Docker not available")

    config = EmulatorConfig(container_name="dynacounter-test", port=8765)
    with DynamoDBLocal(config) as emulator:
        yield emulator.endpoint_url


@pytest.fixture
def dynamodb_store(dynamodb_endpoint):
    """Fresh table per test, deleted afterwards."""
    store = DynamoDBConditionalStore(
        f"dynacounter-{uuid.uuid4().hex[:8]}",
        endpoint_url=dynamodb_endpoint,
        region="us-east-1",
        aws_access_key_id="local",
        aws_secret_access_key="local",
    )
    store.ensure_table()
    yield store
    store.delete_table()
