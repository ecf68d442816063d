"""Fixtures for the ASGI application tests."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from edge_shield.common.config import ShieldSettings
from edge_shield.web.app import create_app
from tests.conftest import ORIGIN, FakeFetcher


@pytest.fixture
def web_settings() -> ShieldSettings:
    """Settings for an in-memory deployment on the production origin."""
    return ShieldSettings(
        _env_file=None,
        serving_origin=ORIGIN,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def web_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def client(web_settings: ShieldSettings, web_fetcher: FakeFetcher) -> Iterator[TestClient]:
    """Test client with the lifespan (install + activate) already run."""
    app = create_app(settings=web_settings, fetcher=web_fetcher)
    with TestClient(app) as test_client:
        yield test_client
