"""Shared fixtures for Edge Shield tests."""

from typing import Optional

import pytest

from edge_shield.cache.store import MemoryCacheStore
from edge_shield.common.config import ShieldConfig
from edge_shield.common.database import DatabaseManager
from edge_shield.common.schemas import EdgeRequest, EdgeResponse, PolicyDecision
from edge_shield.shield.fetcher import NetworkError
from edge_shield.shield.policy import AccessPolicyEngine
from edge_shield.shield.strategies import StrategySelector

ORIGIN = "https://www.abphotostudio.in"


class FakeFetcher:
    """Fetcher returning canned responses and recording every call."""

    def __init__(self) -> None:
        self.calls: list[EdgeRequest] = []
        self.responses: dict[str, EdgeResponse] = {}
        self.failing: set[str] = set()
        self.fail_all = False

    def set_response(
        self,
        url: str,
        status: int = 200,
        body: bytes = b"",
        headers: Optional[dict[str, str]] = None,
        response_type: str = "basic",
    ) -> None:
        self.responses[url] = EdgeResponse(
            status=status,
            headers=headers or {},
            body=body,
            response_type=response_type,
        )

    def fail(self, url: str) -> None:
        self.failing.add(url)

    async def fetch(self, request: EdgeRequest) -> EdgeResponse:
        self.calls.append(request)
        if self.fail_all or request.url in self.failing:
            raise NetworkError("connection refused", url=request.url)
        response = self.responses.get(request.url)
        if response is not None:
            return response.clone()
        return EdgeResponse(
            status=200,
            headers={"Content-Type": "application/octet-stream"},
            body=f"content:{request.url}".encode("utf-8"),
        )


class CountingPolicy(AccessPolicyEngine):
    """Policy engine counting how often it is consulted."""

    def __init__(self, config: ShieldConfig) -> None:
        super().__init__(config)
        self.calls = 0

    def decide(self, request: EdgeRequest, now: Optional[int] = None) -> PolicyDecision:
        self.calls += 1
        return super().decide(request, now)


@pytest.fixture
def config() -> ShieldConfig:
    """Default production-like configuration."""
    return ShieldConfig()


@pytest.fixture
def dev_config() -> ShieldConfig:
    """Configuration for a local development deployment."""
    return ShieldConfig(serving_origin="http://localhost:5173")


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def policy(config: ShieldConfig) -> CountingPolicy:
    return CountingPolicy(config)


@pytest.fixture
def selector(
    config: ShieldConfig,
    store: MemoryCacheStore,
    fetcher: FakeFetcher,
    policy: CountingPolicy,
) -> StrategySelector:
    return StrategySelector(config, store, fetcher, policy=policy)


@pytest.fixture
async def db_manager():
    """Create an in-memory database manager for testing."""
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.create_tables()
    yield manager
    await manager.dispose()
