"""Shared fixtures for sitedrop tests."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sitedrop.analytics import AnalyticsClient
from sitedrop.config import Settings
from sitedrop.deploy_key import DeployKeyStore
from sitedrop.main import create_app
from tests.helpers import PLACEHOLDER_HTML


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary output dir and env file."""
    placeholder = tmp_path / "deploying.html"
    placeholder.write_text(PLACEHOLDER_HTML)
    return Settings(
        output_dir=tmp_path / "public",
        env_file=tmp_path / ".env",
        placeholder_page=placeholder,
        analytics_delay=0,
    )


@pytest.fixture
def environ():
    """Isolated environment mapping for the key store."""
    return {}


@pytest.fixture
def store(settings, environ):
    return DeployKeyStore(settings.env_file, environ=environ)


@pytest.fixture
def analytics():
    return MagicMock(spec=AnalyticsClient)


@pytest.fixture
def restart():
    return MagicMock()


@pytest.fixture
def client(settings, store, analytics, restart):
    """TestClient for an app wired to the temporary fixtures."""
    app = create_app(settings, deploy_keys=store, analytics=analytics, restart=restart)
    with TestClient(app) as test_client:
        yield test_client
