"""
Domain layer - Pure business logic with zero framework imports.

This package contains the membership lifecycle state machine, the
authorization policy and the dashboard aggregator. It defines its own
port interfaces for the session and document capabilities, ensuring
true hexagonal architecture decoupling.
"""

from .exceptions import (
    AlreadyRegisteredError,
    AuthError,
    ConfigError,
    MembershipError,
    NotFoundError,
    PermissionDenied,
    StoreError,
    ValidationError,
)
from .lifecycle import LifecycleState, derive_lifecycle_state
from .models import ContentItem, PendingUserView, Principal, Profile, ProfileStatus
from .paths import ContentCollection, DocumentPaths
from .ports import Document, DocumentStore, FieldFilter, SessionProvider
from .session import DashboardSession

__all__ = [
    "AlreadyRegisteredError",
    "AuthError",
    "ConfigError",
    "ContentCollection",
    "ContentItem",
    "DashboardSession",
    "Document",
    "DocumentPaths",
    "DocumentStore",
    "FieldFilter",
    "LifecycleState",
    "MembershipError",
    "NotFoundError",
    "PendingUserView",
    "PermissionDenied",
    "Principal",
    "Profile",
    "ProfileStatus",
    "SessionProvider",
    "StoreError",
    "ValidationError",
    "derive_lifecycle_state",
]
