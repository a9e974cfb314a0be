"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory document store and namespaced paths
- Identity token configuration and token issuing
- Dashboard session factory with an admin allow-list
"""

from collections.abc import Callable

import pytest

from src.adapters.identity.token import TokenConfig, TokenSessionProvider, issue_identity_token
from src.adapters.repository.memory import InMemoryDocumentStore
from src.domain.authorization import AdminPolicy
from src.domain.messages import StatusMessages
from src.domain.paths import DocumentPaths
from src.domain.session import DashboardSession

ADMIN_EMAIL = "admin@example.com"
NAMESPACE = "test-app"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def paths() -> DocumentPaths:
    return DocumentPaths(NAMESPACE)


@pytest.fixture
def policy() -> AdminPolicy:
    return AdminPolicy.from_emails([ADMIN_EMAIL])


@pytest.fixture
def token_cfg() -> TokenConfig:
    return TokenConfig(secret="test-secret", issuer="test-issuer", audience="test-audience")


@pytest.fixture
def issue_token(token_cfg: TokenConfig) -> Callable[..., str]:
    """Issue ID tokens for the test identity provider."""

    def issue(uid: str, email: str | None = None, name: str | None = None) -> str:
        return issue_identity_token(cfg=token_cfg, subject=uid, email=email, name=name)

    return issue


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_session(
    store: InMemoryDocumentStore,
    paths: DocumentPaths,
    policy: AdminPolicy,
    token_cfg: TokenConfig,
    clock: FakeClock,
) -> Callable[[], DashboardSession]:
    """Create started dashboard sessions sharing the same store."""

    def make() -> DashboardSession:
        session = DashboardSession(
            sessions=TokenSessionProvider(token_cfg),
            store=store,
            paths=paths,
            policy=policy,
            messages=StatusMessages(ttl_seconds=5.0, clock=clock),
        )
        session.start()
        return session

    return make
