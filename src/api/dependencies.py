"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the session
registry and the caller's dashboard session into routes, plus the
factory that wires a DashboardSession from settings and the shared
document store.
"""

from collections.abc import Callable

from fastapi import Depends, Header, HTTPException, Request, status

from src.adapters.identity.token import TokenConfig, TokenSessionProvider
from src.api.sessions import SessionRegistry
from src.config.settings import Settings
from src.domain.authorization import AdminPolicy
from src.domain.messages import StatusMessages
from src.domain.paths import DocumentPaths
from src.domain.ports import DocumentStore
from src.domain.session import DashboardSession


def token_config(settings: Settings) -> TokenConfig:
    return TokenConfig(
        secret=settings.identity_token_secret,
        issuer=settings.identity_token_issuer,
        audience=settings.identity_token_audience,
    )


def build_session_factory(
    settings: Settings, store: DocumentStore
) -> Callable[[], DashboardSession]:
    """
    Create a factory producing fully wired dashboard sessions.

    The document store and admin policy are shared; each session gets its
    own session provider and status message channel.
    """
    paths = DocumentPaths(settings.app_id)
    policy = AdminPolicy.from_emails(settings.admin_emails)
    cfg = token_config(settings)

    def factory() -> DashboardSession:
        return DashboardSession(
            sessions=TokenSessionProvider(cfg),
            store=store,
            paths=paths,
            policy=policy,
            messages=StatusMessages(ttl_seconds=settings.message_ttl_seconds),
        )

    return factory


def get_registry(request: Request) -> SessionRegistry:
    """
    Get the session registry from app state.

    The registry only exists once startup completed. Without it the
    application is still loading (or halted on a configuration error)
    and every request is answered with 503.
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Loading")
    return registry


def get_session_id(x_session_id: str = Header(..., alias="X-Session-Id")) -> str:
    return x_session_id


def get_session(
    session_id: str = Depends(get_session_id),
    registry: SessionRegistry = Depends(get_registry),
) -> DashboardSession:
    """Resolve the caller's dashboard session from the X-Session-Id header."""
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown session")
    return session


def get_admin_session(session: DashboardSession = Depends(get_session)) -> DashboardSession:
    """Reject non-administrators before any admin operation is attempted."""
    if not session.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required.",
        )
    return session
