"""Fixtures for Web API tests."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from skoo.web.api import create_app
from skoo.web.deps import get_llm_client


@pytest.fixture
def mock_llm_client():
    """Mock LLM client injected in place of the gateway client."""
    client = MagicMock()
    client.config.provider = "gateway"
    client.config.model = "test-model"
    return client


@pytest.fixture
def app(temp_db, mock_llm_client):
    """App wired to the temp database and the mock LLM client."""
    app = create_app()
    app.dependency_overrides[get_llm_client] = lambda: mock_llm_client
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {user['api_token']}"}
