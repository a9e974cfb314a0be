"""
Domain exceptions - Semantic error types for the membership lifecycle.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Adapters translate their own failures into StoreError/AuthError so the
domain never sees psycopg or jwt exceptions.
"""


class MembershipError(Exception):
    """Base class for membership domain errors."""

    pass


class ConfigError(MembershipError):
    """Backend configuration is missing or unusable (fatal at startup)."""

    pass


class AuthError(MembershipError):
    """Sign-in failed or an operation required a signed-in principal."""

    pass


class ValidationError(MembershipError):
    """A required registration field is empty."""

    pass


class AlreadyRegisteredError(MembershipError):
    """A profile already exists for the principal."""

    pass


class PermissionDenied(MembershipError):
    """Caller is not an administrator."""

    pass


class StoreError(MembershipError):
    """Read, write or subscribe failure against the document store."""

    pass


class NotFoundError(StoreError):
    """Target document does not exist."""

    pass
