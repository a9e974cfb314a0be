"""
Token session adapter - Implements SessionProvider protocol.

This module provides a session capability backed by ID tokens issued by
a federated identity provider. Tokens are HS256 JWTs verified with
PyJWT; the registered claims ``iss``, ``aud``, ``exp`` and ``sub`` are
mandatory, ``email`` and ``name`` are optional.

One provider instance holds the principal of one client session and
notifies its subscribers synchronously whenever that principal changes.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import InvalidTokenError

from src.domain.exceptions import AuthError
from src.domain.models import Principal
from src.domain.ports import PrincipalCallback, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    secret: str
    issuer: str
    audience: str
    alg: str = "HS256"


def issue_identity_token(
    *,
    cfg: TokenConfig,
    subject: str,
    email: str | None = None,
    name: str | None = None,
    ttl: timedelta = timedelta(hours=1),
) -> str:
    """Issue an ID token (local development and tests)."""
    now = datetime.now(tz=timezone.utc)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    if email is not None:
        payload["email"] = email
    if name is not None:
        payload["name"] = name
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def verify_identity_token(*, cfg: TokenConfig, token: str) -> Principal:
    """
    Verify an ID token and map its claims to a Principal.

    Raises:
        AuthError: If the token is malformed, expired or fails claim checks
    """
    try:
        claims = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except InvalidTokenError as e:
        raise AuthError(str(e)) from e

    subject = str(claims.get("sub") or "")
    if not subject:
        raise AuthError("Token has an empty subject")
    return Principal(
        uid=subject,
        email=claims.get("email"),
        display_name=claims.get("name"),
        is_anonymous=False,
    )


class TokenSessionProvider:
    """
    Implements SessionProvider protocol for a single client session.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, cfg: TokenConfig) -> None:
        self._cfg = cfg
        self._principal: Principal | None = None
        self._listeners: dict[int, PrincipalCallback] = {}
        self._next_id = 0

    def current_principal(self) -> Principal | None:
        return self._principal

    def subscribe(self, on_change: PrincipalCallback) -> Unsubscribe:
        listener_id = self._next_id
        self._next_id += 1
        self._listeners[listener_id] = on_change

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    def sign_in_federated(self, credential: str) -> Principal:
        principal = verify_identity_token(cfg=self._cfg, token=credential)
        logger.info("Federated sign-in for %s", principal.uid)
        self._replace(principal)
        return principal

    def sign_in_anonymous(self) -> Principal:
        principal = Principal(uid=uuid.uuid4().hex, is_anonymous=True)
        logger.info("Anonymous sign-in as %s", principal.uid)
        self._replace(principal)
        return principal

    def sign_out(self) -> None:
        if self._principal is None:
            return
        logger.info("Sign-out for %s", self._principal.uid)
        self._replace(None)

    def _replace(self, principal: Principal | None) -> None:
        self._principal = principal
        for listener in list(self._listeners.values()):
            listener(principal)
