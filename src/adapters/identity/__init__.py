"""Identity adapters - Session capability implementations."""

from .token import TokenConfig, TokenSessionProvider, issue_identity_token, verify_identity_token

__all__ = ["TokenConfig", "TokenSessionProvider", "issue_identity_token", "verify_identity_token"]
